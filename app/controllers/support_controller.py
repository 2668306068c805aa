import logging
from datetime import datetime

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from app.errors import BusinessRuleError, ValidationError
from app.extensions import db
from app.models.support_message_model import SupportMessage
from app.policy import authorize
from app.services import atomic, get_or_404
from app.services.notifications import create_notification, notify_admins
from app.validation import get_json_object, text_field

logger = logging.getLogger(__name__)

support_bp = Blueprint('support_bp', __name__)


# POST a support message
@support_bp.route('', methods=['POST'])
@authorize('support.create')
def create_message():
    data = get_json_object(required=False)
    text = text_field(data, 'message')
    if not text:
        raise ValidationError('Message is required')

    with atomic():
        message = SupportMessage(sender_id=current_user.id, message=text)
        db.session.add(message)

    notify_admins('New Support Message', f'{current_user.name} sent a support message', 'info', message.id)
    return jsonify({'success': True, 'data': message.to_dict()}), 201


# GET the current user's support messages
@support_bp.route('/my', methods=['GET'])
@authorize('support.list_mine')
def get_my_messages():
    messages = (SupportMessage.query
                .filter_by(sender_id=current_user.id)
                .order_by(SupportMessage.created_at.desc(), SupportMessage.id.desc())
                .all())
    return jsonify({'success': True, 'count': len(messages), 'data': [m.to_dict() for m in messages]}), 200


# GET every support message (admin)
@support_bp.route('/admin', methods=['GET'])
@authorize('support.admin')
def get_messages_admin():
    messages = SupportMessage.query.order_by(SupportMessage.created_at.desc(), SupportMessage.id.desc()).all()
    return jsonify({'success': True, 'count': len(messages), 'data': [m.to_dict() for m in messages]}), 200


# PUT reply to an open support message (admin)
@support_bp.route('/admin/<int:id>/reply', methods=['PUT'])
@authorize('support.admin')
def reply_to_message(id):
    data = get_json_object(required=False)
    reply = text_field(data, 'reply')
    if not reply:
        raise ValidationError('Reply is required')

    message = get_or_404(SupportMessage, id, 'Message not found')
    if message.status != 'Open':
        raise BusinessRuleError('This message has already been replied to')

    with atomic():
        message.reply = reply
        message.status = 'Replied'
        message.updated_at = datetime.utcnow()

    logger.info('Support message %s replied by admin %s', id, current_user.id)
    create_notification(message.sender_id, 'Support Reply', 'An admin has replied to your support message', 'info',
                        message.id)
    return jsonify({'success': True, 'data': message.to_dict()}), 200
