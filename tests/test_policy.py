import pytest

from app.errors import AuthorizationError
from app.policy import ADMIN, DONOR, HOSPITAL, POLICY, RECIPIENT, ROLES, authorize, is_allowed, require


class FakeUser:
    def __init__(self, role):
        self.role = role


@pytest.mark.parametrize('operation, allowed', [
    ('stock.update', {ADMIN}),
    ('bank_request.resolve', {ADMIN}),
    ('bank_request.create', {HOSPITAL, RECIPIENT, ADMIN}),
    ('donation_request.create', {RECIPIENT, HOSPITAL}),
    ('donation_request.respond', {DONOR}),
    ('donation_request.emergency', {HOSPITAL}),
    ('drive.create', {ADMIN, HOSPITAL}),
    ('drive.register', {DONOR}),
    ('support.admin', {ADMIN}),
])
def test_policy_table(operation, allowed):
    assert {role for role in ROLES if is_allowed(operation, role)} == allowed


def test_every_policy_entry_uses_known_roles():
    for operation, roles in POLICY.items():
        assert roles <= set(ROLES), operation


def test_unknown_operation_denies_everyone():
    assert not any(is_allowed('stock.delete_everything', role) for role in ROLES)


def test_require_raises_forbidden():
    with pytest.raises(AuthorizationError) as excinfo:
        require('stock.update', FakeUser(DONOR))
    assert excinfo.value.code == 403


def test_authorize_rejects_unknown_operations():
    with pytest.raises(KeyError):
        authorize('not.an.operation')
