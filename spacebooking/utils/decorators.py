from functools import wraps
from flask import request, jsonify, current_app
import jwt
from spacebooking.extensions import db
from spacebooking.models import User, Role

def token_required(f):
    """Decode the bearer token and pass the caller's Actor as first argument."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None
        if 'Authorization' in request.headers:
            # Bearer <token>
            auth_header = request.headers['Authorization']
            if auth_header.startswith("Bearer "):
                token = auth_header.split(" ")[1]

        if not token:
            return jsonify({'message': 'Token is missing!'}), 401

        try:
            data = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            return jsonify({'message': 'Token is invalid!', 'error': str(e)}), 401

        user = db.session.get(User, data['user_id']) if data.get('user_id') else None
        if not user:
            return jsonify({'message': 'Token is invalid!', 'error': 'User not found'}), 401

        # Role resolved here once; everything downstream works with the Actor.
        return f(user.as_actor(), *args, **kwargs)

    return decorated

def admin_required(f):
    """Stack under @token_required: expects the Actor as first argument."""
    @wraps(f)
    def decorated(*args, **kwargs):
        current_actor = args[0]
        if current_actor.role != Role.ADMIN:
            return jsonify({'message': 'Admin privilege required'}), 403
        return f(*args, **kwargs)
    return decorated
