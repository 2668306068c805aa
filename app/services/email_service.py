import logging

from flask_mail import Message

from app.extensions import mail

logger = logging.getLogger(__name__)


def send_email(to, subject, body):
    """Send a plain-text email. Returns False instead of raising on failure."""
    if not to:
        return False
    try:
        mail.send(Message(subject=subject, recipients=[to], body=body))
        logger.info('Email sent to %s: %s', to, subject)
        return True
    except Exception:
        logger.exception('Email to %s failed', to)
        return False
