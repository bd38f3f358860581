from flask import Blueprint, request, jsonify, current_app
from datetime import datetime, timezone
from spacebooking.errors import ValidationError
from spacebooking.utils.decorators import token_required, admin_required
from spacebooking.services.reservation_service import ReservationService

admin_bp = Blueprint('admin', __name__)

# --- DASHBOARD ---

@admin_bp.route('/stats', methods=['GET'])
@token_required
@admin_required
def get_stats(current_actor):
    return jsonify(ReservationService.get_stats(current_actor)), 200

# --- MAINTENANCE ---

@admin_bp.route('/sweep', methods=['POST'])
@token_required
@admin_required
def sweep(current_actor):
    data = request.get_json(silent=True) or {}
    now = None
    if data.get('now'):
        try:
            now = datetime.fromisoformat(data['now'])
        except ValueError:
            raise ValidationError('invalid_datetime', "'now' must be an ISO 8601 datetime.")
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

    counts = ReservationService.sweep_finished(now)
    current_app.logger.info("Sweep triggered by admin %s: %s", current_actor.id, counts)
    return jsonify(counts), 200
