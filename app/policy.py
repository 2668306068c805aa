"""Role-based access policy.

Every protected endpoint names an operation; the table below is the single
place that decides which roles may invoke it. Ownership checks (is this my
request?) still happen in the services, since they depend on the row.
"""
from functools import wraps

from flask_jwt_extended import current_user, verify_jwt_in_request

from app.errors import AuthorizationError

DONOR = 'donor'
RECIPIENT = 'recipient'
HOSPITAL = 'hospital'
ADMIN = 'admin'

ROLES = (DONOR, RECIPIENT, HOSPITAL, ADMIN)
ALL_ROLES = frozenset(ROLES)

POLICY = {
    # users
    'users.list_donors': ALL_ROLES,
    'users.view_donor': ALL_ROLES,
    'users.update_profile': ALL_ROLES,
    'users.update_availability': frozenset({DONOR}),
    'users.hospital_donors': frozenset({HOSPITAL}),

    # blood bank
    'stock.view': ALL_ROLES,
    'stock.update': frozenset({ADMIN}),
    'stock.units_by_type': frozenset({ADMIN}),
    'bank_request.create': frozenset({HOSPITAL, RECIPIENT, ADMIN}),
    'bank_request.list': frozenset({HOSPITAL, RECIPIENT, ADMIN}),
    'bank_request.resolve': frozenset({ADMIN}),
    'bank_request.complete': frozenset({HOSPITAL, RECIPIENT, ADMIN}),
    'bank_request.delete': frozenset({HOSPITAL, RECIPIENT, ADMIN}),

    # direct donation requests
    'donation_request.create': frozenset({RECIPIENT, HOSPITAL}),
    'donation_request.list_mine': ALL_ROLES,
    'donation_request.list_pending': frozenset({DONOR}),
    'donation_request.respond': frozenset({DONOR}),
    'donation_request.complete': ALL_ROLES,
    'donation_request.delete': ALL_ROLES,
    'donation_request.emergency': frozenset({HOSPITAL}),

    # admin
    'admin.stats': frozenset({ADMIN}),
    'admin.users': frozenset({ADMIN}),
    'admin.notify_donor': frozenset({ADMIN}),
    'admin.bulk_request': frozenset({ADMIN}),
    'admin.donation_requests': frozenset({ADMIN}),

    # drives
    'drive.list': ALL_ROLES,
    'drive.create': frozenset({ADMIN, HOSPITAL}),
    'drive.list_mine': frozenset({ADMIN, HOSPITAL}),
    'drive.register': frozenset({DONOR}),
    'drive.attendance': frozenset({ADMIN, HOSPITAL}),

    # side channels
    'notification.manage': ALL_ROLES,
    'support.create': ALL_ROLES,
    'support.list_mine': ALL_ROLES,
    'support.admin': frozenset({ADMIN}),
}


def is_allowed(operation, role):
    return role in POLICY.get(operation, frozenset())


def require(operation, user):
    if not is_allowed(operation, user.role):
        raise AuthorizationError(f'Role {user.role} is not allowed to perform {operation}')


def authorize(operation):
    """Authenticate the request and check ``operation`` against the policy."""
    if operation not in POLICY:
        raise KeyError(f'Unknown operation: {operation}')

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            require(operation, current_user)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
