from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from app.policy import authorize
from app.services import donation_requests
from app.validation import get_json_object

# Define Blueprint for direct donor requests
donation_request_bp = Blueprint('donation_request_bp', __name__)


# POST a request addressed to one donor
@donation_request_bp.route('', methods=['POST'])
@authorize('donation_request.create')
def create_request():
    data = get_json_object()
    donation_request = donation_requests.create_donation_request(current_user, data)
    return jsonify({'success': True, 'data': donation_request.to_dict()}), 201


# GET requests the caller sent or received
@donation_request_bp.route('/my-requests', methods=['GET'])
@authorize('donation_request.list_mine')
def get_my_requests():
    requests = donation_requests.list_my_requests(current_user)
    return jsonify({'success': True, 'count': len(requests), 'data': [r.to_dict() for r in requests]}), 200


# GET pending requests for the current donor, most urgent first
@donation_request_bp.route('/pending', methods=['GET'])
@authorize('donation_request.list_pending')
def get_pending_requests():
    requests = donation_requests.list_pending_for_donor(current_user)
    return jsonify({'success': True, 'count': len(requests), 'data': [r.to_dict() for r in requests]}), 200


# PUT accept a pending request
@donation_request_bp.route('/<int:id>/accept', methods=['PUT'])
@authorize('donation_request.respond')
def accept_request(id):
    donation_request = donation_requests.accept_donation_request(id, current_user)
    return jsonify({'success': True, 'data': donation_request.to_dict()}), 200


# PUT reject a pending request
@donation_request_bp.route('/<int:id>/reject', methods=['PUT'])
@authorize('donation_request.respond')
def reject_request(id):
    donation_request = donation_requests.reject_donation_request(id, current_user)
    return jsonify({'success': True, 'data': donation_request.to_dict()}), 200


# PUT mark an accepted donation as completed
@donation_request_bp.route('/<int:id>/complete', methods=['PUT'])
@authorize('donation_request.complete')
def complete_request(id):
    donation_request = donation_requests.complete_donation_request(id, current_user)
    return jsonify({
        'success': True,
        'message': 'Donation marked as completed successfully',
        'data': donation_request.to_dict(),
    }), 200


# POST an emergency alert to matching available donors
@donation_request_bp.route('/emergency', methods=['POST'])
@authorize('donation_request.emergency')
def emergency_request():
    data = get_json_object(required=False)
    count = donation_requests.emergency_broadcast(current_user, data)
    return jsonify({
        'success': True,
        'message': f'Emergency request sent to {count} donors',
        'data': {'donors_notified': count},
    }), 200


# DELETE a finished request from history
@donation_request_bp.route('/<int:id>', methods=['DELETE'])
@authorize('donation_request.delete')
def delete_request(id):
    donation_requests.delete_donation_request(id, current_user)
    return jsonify({'success': True, 'message': 'History record removed', 'data': {}}), 200
