from flask import Blueprint, request, jsonify
from datetime import datetime
from spacebooking.errors import ValidationError
from spacebooking.services.reservation_service import ReservationService, ReservationFilter
from spacebooking.utils.decorators import token_required

reservations_bp = Blueprint('reservations', __name__)


def _parse_datetime(data, key):
    value = data.get(key)
    if not value:
        raise ValidationError('missing_field', f"'{key}' is required.")
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError('invalid_datetime', f"'{key}' must be an ISO 8601 datetime.")


def _parse_int(data, key, required=True):
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError('missing_field', f"'{key}' is required.")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('invalid_field', f"'{key}' must be an integer.")


@reservations_bp.route('/', methods=['POST'])
@token_required
def create_reservation(current_actor):
    data = request.get_json(silent=True) or {}
    reservation = ReservationService.create_reservation(
        actor=current_actor,
        space_id=_parse_int(data, 'space_id'),
        course_id=_parse_int(data, 'course_id', required=False),
        requester_id=_parse_int(data, 'requester_id', required=False),
        start_time=_parse_datetime(data, 'start_time'),
        end_time=_parse_datetime(data, 'end_time'),
        purpose=data.get('purpose', ''),
    )
    return jsonify(reservation.to_dict()), 201


@reservations_bp.route('/', methods=['GET'])
@token_required
def list_reservations(current_actor):
    filters = ReservationFilter.from_args(request.args)
    reservations = ReservationService.list_reservations(current_actor, filters)
    return jsonify([r.to_dict() for r in reservations])


@reservations_bp.route('/<int:reservation_id>', methods=['GET'])
@token_required
def get_reservation(current_actor, reservation_id):
    reservation = ReservationService.get_reservation(reservation_id, current_actor)
    return jsonify(reservation.to_dict())


@reservations_bp.route('/<int:reservation_id>/approve', methods=['POST'])
@token_required
def approve_reservation(current_actor, reservation_id):
    reservation = ReservationService.approve_reservation(reservation_id, current_actor)
    return jsonify(reservation.to_dict())


@reservations_bp.route('/<int:reservation_id>/reject', methods=['POST'])
@token_required
def reject_reservation(current_actor, reservation_id):
    data = request.get_json(silent=True) or {}
    reservation = ReservationService.reject_reservation(reservation_id, current_actor, data.get('reason'))
    return jsonify(reservation.to_dict())


@reservations_bp.route('/<int:reservation_id>/cancel', methods=['POST'])
@token_required
def cancel_reservation(current_actor, reservation_id):
    data = request.get_json(silent=True) or {}
    reservation = ReservationService.cancel_reservation(reservation_id, current_actor, data.get('reason'))
    return jsonify(reservation.to_dict())


@reservations_bp.route('/<int:reservation_id>/no-show', methods=['POST'])
@token_required
def report_no_show(current_actor, reservation_id):
    reservation = ReservationService.report_no_show(reservation_id, current_actor)
    return jsonify(reservation.to_dict())


@reservations_bp.route('/<int:reservation_id>', methods=['DELETE'])
@token_required
def delete_reservation(current_actor, reservation_id):
    ReservationService.delete_reservation(reservation_id, current_actor)
    return jsonify({'message': 'Reservation deleted.', 'id': reservation_id}), 200
