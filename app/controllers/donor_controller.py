from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from app.policy import authorize
from app.services import donation_requests
from app.validation import get_json_object

# Donor dashboard endpoints
donor_bp = Blueprint('donor_bp', __name__)


# GET every request addressed to the current donor
@donor_bp.route('/requests', methods=['GET'])
@authorize('donation_request.list_pending')
def get_donor_requests():
    requests = donation_requests.list_my_requests(current_user)
    return jsonify({'success': True, 'count': len(requests), 'data': [r.to_dict() for r in requests]}), 200


# PUT answer a request with Accepted or Declined
@donor_bp.route('/requests/<int:id>/status', methods=['PUT'])
@authorize('donation_request.respond')
def update_request_status(id):
    data = get_json_object(required=False)
    donation_request = donation_requests.respond_to_request(id, current_user, data.get('status'))
    return jsonify({
        'success': True,
        'message': f'Request {donation_request.status}',
        'data': donation_request.to_dict(),
    }), 200
