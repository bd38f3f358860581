from flask import Blueprint, jsonify
from spacebooking.services.reservation_service import ReservationService
from spacebooking.utils.decorators import token_required

spaces_bp = Blueprint('spaces', __name__)

@spaces_bp.route('/', methods=['GET'])
@token_required
def get_spaces(current_actor):
    spaces = ReservationService.list_spaces()
    return jsonify([s.to_dict() for s in spaces])
