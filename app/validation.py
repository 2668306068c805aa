import re

from flask import request

from app.errors import ValidationError

BLOOD_TYPES = ('A+', 'A-', 'B+', 'B-', 'O+', 'O-', 'AB+', 'AB-')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_RE = re.compile(r'^\+?[0-9][0-9\s\-()]{5,18}[0-9]$')


def validate_email(email):
    return isinstance(email, str) and bool(EMAIL_RE.match(email))


def validate_phone(phone):
    return isinstance(phone, str) and bool(PHONE_RE.match(phone))


def validate_blood_type(blood_type):
    return isinstance(blood_type, str) and blood_type in BLOOD_TYPES


def parse_positive_int(value):
    """Return ``value`` as an int >= 1, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdecimal():
        number = int(value.strip())
    else:
        return None
    return number if number >= 1 else None


def get_json_object(required=True):
    """The request body as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict) or (required and not data):
        raise ValidationError('No input data provided')
    return data


def text_field(data, field):
    """Stripped string value of ``field``, '' when absent."""
    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value.strip()


def parse_coordinate(value, field, low, high):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not low <= number <= high:
        raise ValidationError(f'{field} must be between {low} and {high}')
    return number
