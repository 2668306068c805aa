import itertools
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.config import TestingConfig
from app.extensions import db
from app.models import BloodUnit, User

_emails = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(role='donor', **overrides):
        n = next(_emails)
        fields = {
            'name': f'{role.title()} {n}',
            'email': f'{role}{n}@example.com',
            'phone': f'+25670000{n:04d}',
            'role': role,
        }
        if role in ('donor', 'recipient'):
            fields['blood_type'] = 'O+'
        if role == 'donor':
            fields.update(address='12 Kampala Road', city='Kampala', is_available=True)
        if role == 'hospital':
            fields.update(hospital_name=f'Mulago Hospital {n}', license_number=f'LIC-{n}')
        fields.update(overrides)
        user = User(**fields)
        user.set_password('secret123')
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user('admin', name='Admin')


@pytest.fixture
def donor(make_user):
    return make_user('donor')


@pytest.fixture
def recipient(make_user):
    return make_user('recipient')


@pytest.fixture
def hospital(make_user):
    return make_user('hospital')


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        return {'Authorization': f'Bearer {create_access_token(identity=user)}'}
    return _auth_headers


@pytest.fixture
def add_units(app):
    """Insert Available units directly, bypassing the API."""
    def _add_units(blood_type, count, donor=None, donation_date=None, **fields):
        units = []
        for _ in range(count):
            unit = BloodUnit(
                blood_type=blood_type,
                donor_id=donor.id if donor else None,
                manual_donor_name=None if donor else 'Walk-in Donor',
                manual_donor_phone=None if donor else '+256700999999',
                donation_date=donation_date or datetime.utcnow(),
                **fields,
            )
            db.session.add(unit)
            units.append(unit)
        db.session.commit()
        return units
    return _add_units


@pytest.fixture
def days_ago():
    return lambda days: datetime.utcnow() - timedelta(days=days)
