import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from app.errors import AuthorizationError, ValidationError
from app.models.hospital_request_model import HospitalRequest
from app.models.user_model import User
from app.policy import authorize
from app.services import atomic, donation_requests, get_or_404, inventory
from app.validation import get_json_object, text_field

logger = logging.getLogger(__name__)

# Define Blueprint for admin operations
admin_bp = Blueprint('admin_bp', __name__)


# GET system statistics
@admin_bp.route('/stats', methods=['GET'])
@authorize('admin.stats')
def get_stats():
    stock = inventory.stock_levels()
    return jsonify({
        'success': True,
        'data': {
            'users': {
                'donors': User.query.filter_by(role='donor').count(),
                'recipients': User.query.filter_by(role='recipient').count(),
                'hospitals': User.query.filter_by(role='hospital').count(),
            },
            'blood': {
                'total_units': sum(level['quantity'] for level in stock),
                'stock': stock,
            },
            'requests': {
                'pending': HospitalRequest.query.filter_by(status='pending').count(),
            },
        },
    }), 200


# GET all users, newest first
@admin_bp.route('/users', methods=['GET'])
@authorize('admin.users')
def get_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({'success': True, 'count': len(users), 'data': [u.to_dict(private=True) for u in users]}), 200


# DELETE a user account
@admin_bp.route('/users/<int:id>', methods=['DELETE'])
@authorize('admin.users')
def delete_user(id):
    user = get_or_404(User, id, 'User not found')
    if user.id == current_user.id:
        raise AuthorizationError('Admins cannot delete their own account')

    with atomic() as session:
        session.delete(user)
    logger.info('User %s deleted by admin %s', id, current_user.id)
    return jsonify({'success': True, 'message': 'User removed'}), 200


# POST ask one donor directly
@admin_bp.route('/notify', methods=['POST'])
@authorize('admin.notify_donor')
def notify_donor():
    data = get_json_object()
    donation_request, email_sent = donation_requests.notify_donor(current_user, data)
    return jsonify({
        'success': True,
        'message': 'Notification sent' if email_sent else 'Request created but email failed to send',
        'data': donation_request.to_dict(),
    }), 201


# POST broadcast or drive invitation to many donors
@admin_bp.route('/bulk-request', methods=['POST'])
@authorize('admin.bulk_request')
def bulk_request():
    data = get_json_object()
    count = donation_requests.create_bulk_request(current_user, data)
    return jsonify({
        'success': True,
        'message': f'Successfully sent requests to {count} donors',
        'data': {'count': count},
    }), 201


# GET every direct donation request
@admin_bp.route('/donation-requests', methods=['GET'])
@authorize('admin.donation_requests')
def get_donation_requests():
    requests = donation_requests.list_all_requests()
    return jsonify({'success': True, 'count': len(requests), 'data': [r.to_dict() for r in requests]}), 200


# PUT mark a donation request as completed
@admin_bp.route('/donation-requests/<int:id>/status', methods=['PUT'])
@authorize('admin.donation_requests')
def update_donation_request_status(id):
    data = get_json_object(required=False)
    if text_field(data, 'status').lower() != 'completed':
        raise ValidationError('Admins can only mark donation requests as Completed')
    donation_request = donation_requests.complete_donation_request(id, current_user)
    return jsonify({'success': True, 'data': donation_request.to_dict()}), 200


# DELETE a finished donation request
@admin_bp.route('/donation-requests/<int:id>', methods=['DELETE'])
@authorize('admin.donation_requests')
def delete_donation_request(id):
    donation_requests.delete_donation_request(id, current_user)
    return jsonify({'success': True, 'message': 'Request removed', 'data': {}}), 200
