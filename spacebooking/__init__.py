from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from spacebooking.config import DevelopmentConfig
from spacebooking.extensions import db, migrate
from spacebooking.errors import ReservationError

def create_app(config_class=DevelopmentConfig):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Register Blueprints
    from spacebooking.api.routes.auth import auth_bp
    from spacebooking.api.routes.reservations import reservations_bp
    from spacebooking.api.routes.spaces import spaces_bp
    from spacebooking.api.routes.admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(reservations_bp, url_prefix='/api/reservations')
    app.register_blueprint(spaces_bp, url_prefix='/api/spaces')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    from spacebooking.commands import register_commands
    register_commands(app)

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'error': 'Server Error', 'message': 'An unexpected error occurred.'}), 500

    @app.route('/health')
    def health():
        return {"status": "ok", "app": "SpaceBooking"}

    return app
