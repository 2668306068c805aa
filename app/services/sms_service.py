import logging

import africastalking

logger = logging.getLogger(__name__)

_sms = None


def init_sms(app):
    """Initialize Africa's Talking when credentials are configured."""
    global _sms
    username = app.config.get('AFRICASTALKING_USERNAME')
    api_key = app.config.get('AFRICASTALKING_API_KEY')
    if not username or not api_key:
        _sms = None
        logger.info('SMS delivery disabled: Africa\'s Talking credentials not set')
        return
    africastalking.initialize(username=username, api_key=api_key)
    _sms = africastalking.SMS


def send_sms(phone_numbers, message):
    """Send ``message`` to every number; returns how many were accepted."""
    recipients = [number for number in phone_numbers if number]
    if _sms is None or not recipients:
        return 0
    try:
        response = _sms.send(message, recipients)
    except Exception:
        logger.exception('SMS delivery to %d recipients failed', len(recipients))
        return 0
    sent = [r for r in response.get('SMSMessageData', {}).get('Recipients', []) if r.get('status') == 'Success']
    logger.info('SMS accepted for %d of %d recipients', len(sent), len(recipients))
    return len(sent)
