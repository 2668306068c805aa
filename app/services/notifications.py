"""In-app notification sink.

Notifications are a side channel: a failure to record one is logged and
rolled back, it never fails the action that triggered it.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.models.notification_model import Notification
from app.models.user_model import User

logger = logging.getLogger(__name__)


def create_notification(user_id, title, message, type='info', related_id=None):
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_request_id=related_id,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Error creating notification for user %s', user_id)
        return None


def notify_admins(title, message, type='info', related_id=None):
    admins = User.query.filter_by(role='admin').all()
    for admin in admins:
        create_notification(admin.id, title, message, type, related_id)
    return len(admins)
