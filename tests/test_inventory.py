from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Query

from app.errors import InsufficientStockError, ValidationError
from app.models import BloodUnit
from app.models.blood_unit_model import SHELF_LIFE_DAYS
from app.services import inventory
from app.validation import BLOOD_TYPES


def stock_of(levels, blood_type):
    return next(level['quantity'] for level in levels if level['blood_type'] == blood_type)


def test_stock_lists_every_blood_type_with_zeros(client, donor, auth_headers):
    response = client.get('/api/blood-bank/stock', headers=auth_headers(donor))

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert [level['blood_type'] for level in body['data']] == list(BLOOD_TYPES)
    assert all(level['quantity'] == 0 for level in body['data'])


def test_stock_counts_only_available_units(app, add_units):
    add_units('A+', 3)
    add_units('A+', 2, status='Used')
    add_units('A+', 1, status='Expired')

    assert stock_of(inventory.stock_levels(), 'A+') == 3


def test_stock_requires_a_token(client):
    response = client.get('/api/blood-bank/stock')

    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'message': 'Not authorized, no token'}


def test_admin_adds_units_from_registered_donor(client, admin, donor, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'add', 'blood_type': 'O-', 'quantity': 3, 'donor_id': donor.id,
    })

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['action'] == 'add'
    assert stock_of(data['stock'], 'O-') == 3
    units = BloodUnit.query.filter_by(blood_type='O-').all()
    assert len(units) == 3
    assert {unit.donor_id for unit in units} == {donor.id}
    assert {unit.updated_by for unit in units} == {admin.id}


def test_add_requires_donor_or_manual_details(client, admin, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'add', 'blood_type': 'O-', 'quantity': 1, 'manual_donor_name': 'Jane',
    })

    assert response.status_code == 400
    assert 'Manual Donor details' in response.get_json()['message']
    assert BloodUnit.query.count() == 0


def test_add_with_unknown_donor_is_not_found(client, admin, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'add', 'blood_type': 'O-', 'quantity': 1, 'donor_id': 9999,
    })

    assert response.status_code == 404
    assert response.get_json()['message'] == 'Donor not found'


@pytest.mark.parametrize('quantity', [0, -2, 'abc', 1.5, True])
def test_add_rejects_non_positive_quantities(app, quantity):
    with pytest.raises(ValidationError):
        inventory.add_units('B+', quantity, manual_donor_name='Jane', manual_donor_phone='+256700111222')
    assert BloodUnit.query.count() == 0


def test_add_rejects_unknown_blood_type(app):
    with pytest.raises(ValidationError):
        inventory.add_units('C+', 1, manual_donor_name='Jane', manual_donor_phone='+256700111222')


def test_units_expire_after_shelf_life(app):
    donated = datetime(2026, 1, 1, 9, 30)
    units = inventory.add_units('B-', 1, manual_donor_name='Jane', manual_donor_phone='+256700111222',
                                donation_date=donated)

    assert units[0].expiry_date == donated + timedelta(days=SHELF_LIFE_DAYS)


def test_only_admin_updates_stock(client, hospital, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(hospital), json={
        'action': 'add', 'blood_type': 'O-', 'quantity': 1, 'manual_donor_name': 'J', 'manual_donor_phone': '+256700111222',
    })

    assert response.status_code == 403
    assert response.get_json()['success'] is False


def test_subtract_removes_exact_quantity(client, admin, add_units, auth_headers):
    add_units('AB+', 5)

    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'subtract', 'blood_type': 'AB+', 'quantity': 2,
    })

    assert response.status_code == 200
    assert stock_of(response.get_json()['data']['stock'], 'AB+') == 3
    assert BloodUnit.query.filter_by(blood_type='AB+', status='Used').count() == 2


def test_subtract_more_than_available_changes_nothing(client, admin, add_units, auth_headers):
    add_units('AB-', 2)

    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'subtract', 'blood_type': 'AB-', 'quantity': 3,
    })

    assert response.status_code == 400
    assert 'Insufficient stock' in response.get_json()['message']
    assert inventory.stock_count('AB-') == 2


def test_set_action_is_not_supported(client, admin, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'set', 'blood_type': 'A+', 'quantity': 10,
    })

    assert response.status_code == 400
    assert 'granular tracking mode' in response.get_json()['message']


def test_claim_takes_units_closest_to_expiry_first(app, add_units, days_ago):
    fresh = add_units('O+', 1, donation_date=days_ago(1))[0]
    oldest = add_units('O+', 1, donation_date=days_ago(30))[0]
    middle = add_units('O+', 1, donation_date=days_ago(10))[0]
    fresh_id, oldest_id, middle_id = fresh.id, oldest.id, middle.id

    claimed = inventory.claim_units('O+', 2)

    assert [unit.id for unit in claimed] == [oldest_id, middle_id]
    assert {u.id for u in BloodUnit.query.filter_by(status='Available')} == {fresh_id}


def test_claim_short_of_stock_raises(app, add_units):
    add_units('O+', 1)

    with pytest.raises(InsufficientStockError):
        inventory.claim_units('O+', 2)


def test_claim_waits_on_locked_units_instead_of_skipping(app, add_units, monkeypatch):
    add_units('A+', 2)
    locks = []
    real_with_for_update = Query.with_for_update

    def with_for_update(self, **kwargs):
        locks.append(kwargs)
        return real_with_for_update(self, **kwargs)

    monkeypatch.setattr(Query, 'with_for_update', with_for_update)

    inventory.claim_units('A+', 2)

    assert locks == [{}]


def test_expire_units_marks_only_past_expiry(app, add_units, days_ago):
    add_units('A-', 2, donation_date=days_ago(SHELF_LIFE_DAYS + 1))
    add_units('A-', 1, donation_date=days_ago(1))

    assert inventory.expire_units() == 2
    assert inventory.stock_count('A-') == 1
    assert BloodUnit.query.filter_by(status='Expired').count() == 2


def test_units_by_blood_type_lists_available_units(client, admin, donor, add_units, auth_headers):
    add_units('O-', 2, donor=donor)
    add_units('O-', 1, status='Used')

    response = client.get('/api/blood-bank/donors/O-', headers=auth_headers(admin))

    assert response.status_code == 200
    body = response.get_json()
    assert body['count'] == 2
    assert body['data'][0]['donor']['id'] == donor.id


def test_expire_units_command(app, add_units, days_ago):
    add_units('B+', 1, donation_date=days_ago(SHELF_LIFE_DAYS + 5))

    result = app.test_cli_runner().invoke(args=['expire-units'])

    assert 'Expired 1 blood units' in result.output
    assert inventory.stock_count('B+') == 0


def test_manual_entry_units_each_get_their_own_expiry(client, admin, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'add', 'blood_type': 'A+', 'quantity': 3,
        'manual_donor_name': 'Jane Doe', 'manual_donor_phone': '555-1111',
    })

    assert response.status_code == 200
    assert inventory.stock_count('A+') == 3
    for unit in BloodUnit.query.filter_by(blood_type='A+'):
        assert unit.manual_donor_name == 'Jane Doe'
        assert unit.donor_id is None
        assert unit.expiry_date == unit.donation_date + timedelta(days=SHELF_LIFE_DAYS)


def test_add_with_malformed_donor_id_is_not_found(client, admin, auth_headers):
    response = client.put('/api/blood-bank/stock', headers=auth_headers(admin), json={
        'action': 'add', 'blood_type': 'O-', 'quantity': 1, 'donor_id': [1, 2],
    })

    assert response.status_code == 404
    assert response.get_json()['message'] == 'Donor not found'
    assert BloodUnit.query.count() == 0
