from flask import Blueprint, jsonify
from flask_jwt_extended import current_user
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AuthorizationError
from app.extensions import db
from app.models.notification_model import Notification
from app.policy import authorize
from app.services import get_or_404

# Define the Blueprint for handling notifications
notification_bp = Blueprint('notification_bp', __name__)

NOTIFICATION_LIMIT = 100


def get_own_notification(id):
    notification = get_or_404(Notification, id, 'Notification not found')
    if notification.user_id != current_user.id and current_user.role != 'admin':
        raise AuthorizationError('Not authorized')
    return notification


# GET the current user's latest notifications
@notification_bp.route('', methods=['GET'])
@authorize('notification.manage')
def get_notifications():
    notifications = (Notification.query
                     .filter_by(user_id=current_user.id)
                     .order_by(Notification.created_at.desc(), Notification.id.desc())
                     .limit(NOTIFICATION_LIMIT)
                     .all())
    return jsonify({
        'success': True,
        'count': len(notifications),
        'data': [notification.to_dict() for notification in notifications],
    }), 200


# PUT mark every unread notification as read
@notification_bp.route('/read-all', methods=['PUT'])
@authorize('notification.manage')
def mark_all_as_read():
    try:
        Notification.query.filter_by(user_id=current_user.id, is_read=False).update({'is_read': True})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500
    return jsonify({'success': True, 'message': 'All notifications marked as read'}), 200


# PUT mark one notification as read
@notification_bp.route('/<int:id>/read', methods=['PUT'])
@authorize('notification.manage')
def mark_as_read(id):
    notification = get_own_notification(id)
    try:
        notification.is_read = True
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500
    return jsonify({'success': True, 'data': notification.to_dict()}), 200


# DELETE a notification
@notification_bp.route('/<int:id>', methods=['DELETE'])
@authorize('notification.manage')
def delete_notification(id):
    notification = get_own_notification(id)
    try:
        db.session.delete(notification)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500
    return jsonify({'success': True, 'message': 'Notification deleted'}), 200
