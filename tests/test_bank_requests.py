import pytest
from sqlalchemy import update
from sqlalchemy.sql.dml import Update

from app.errors import InsufficientStockError, InvalidTransitionError
from app.extensions import db
from app.models import BloodUnit, DonationRequest, HospitalRequest, Notification
from app.services import bank_requests, inventory


def create_request(client, user, auth_headers, **fields):
    payload = {'blood_type': 'O-', 'units_needed': 2, 'urgency': 'urgent', 'patient_name': 'Baby Nakato'}
    payload.update(fields)
    return client.post('/api/blood-bank/requests', headers=auth_headers(user), json=payload)


def test_hospital_creates_request_and_admins_are_notified(client, hospital, admin, auth_headers):
    response = create_request(client, hospital, auth_headers)

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['status'] == 'pending'
    assert data['requested_by'] == {'kind': 'hospital', 'id': hospital.id}
    assert data['hospital_name'] == hospital.hospital_name
    assert Notification.query.filter_by(user_id=admin.id, title='New Hospital Request').count() == 1


def test_recipient_request_is_labelled_with_their_name(client, recipient, auth_headers):
    response = create_request(client, recipient, auth_headers)

    assert response.status_code == 201
    assert response.get_json()['data']['hospital_name'] == f'Recipient: {recipient.name}'


@pytest.mark.parametrize('units', [0, -1, 'two', None])
def test_request_needs_positive_units(client, hospital, auth_headers, units):
    response = create_request(client, hospital, auth_headers, units_needed=units)

    assert response.status_code == 400
    assert HospitalRequest.query.count() == 0


def test_admin_request_needs_hospital_name(client, admin, auth_headers):
    response = create_request(client, admin, auth_headers)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Hospital Name is required'


@pytest.mark.parametrize('hospital_name', [7, ['Mulago'], '   '])
def test_admin_request_hospital_name_must_be_text(client, admin, auth_headers, hospital_name):
    response = create_request(client, admin, auth_headers, hospital_name=hospital_name)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Hospital Name is required'
    assert HospitalRequest.query.count() == 0


def test_donor_cannot_create_bank_request(client, donor, auth_headers):
    response = create_request(client, donor, auth_headers)

    assert response.status_code == 403


def test_requesters_only_see_their_own_requests(client, hospital, make_user, admin, auth_headers):
    other = make_user('hospital')
    create_request(client, hospital, auth_headers)
    create_request(client, other, auth_headers)

    mine = client.get('/api/blood-bank/requests', headers=auth_headers(hospital)).get_json()
    everything = client.get('/api/blood-bank/requests', headers=auth_headers(admin)).get_json()

    assert mine['count'] == 1
    assert everything['count'] == 2


def test_approval_without_stock_leaves_request_pending(client, hospital, admin, add_units, auth_headers):
    add_units('O-', 1)
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']

    response = client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin),
                          json={'status': 'approved'})

    assert response.status_code == 400
    assert 'Insufficient stock' in response.get_json()['message']
    assert db.session.get(HospitalRequest, request_id).status == 'pending'
    assert inventory.stock_count('O-') == 1


def test_approval_claims_units_and_credits_donors(client, hospital, admin, donor, add_units, auth_headers):
    add_units('O-', 1, donor=donor)
    add_units('O-', 2)
    request_id = create_request(client, hospital, auth_headers, units_needed=3).get_json()['data']['id']

    response = client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin),
                          json={'status': 'approved'})

    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'approved'
    assert response.get_json()['data']['resolved_by'] == admin.id
    assert inventory.stock_count('O-') == 0
    assert {unit.hospital_id for unit in BloodUnit.query.filter_by(status='Used')} == {hospital.id}

    credit = DonationRequest.query.filter_by(donor_id=donor.id).one()
    assert credit.status == 'completed'
    assert credit.patient_name == 'Baby Nakato'
    assert credit.message == 'LifeLink: Your donation helped Baby Nakato.'
    assert Notification.query.filter_by(user_id=donor.id, title='Blood Donation Used!').count() == 1
    assert Notification.query.filter_by(user_id=hospital.id, title='Blood Request Approved').count() == 1


def test_request_cannot_be_approved_twice(client, hospital, admin, add_units, auth_headers):
    add_units('O-', 4)
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']
    headers = auth_headers(admin)

    client.put(f'/api/blood-bank/requests/{request_id}', headers=headers, json={'status': 'approved'})
    second = client.put(f'/api/blood-bank/requests/{request_id}', headers=headers, json={'status': 'approved'})

    assert second.status_code == 400
    assert inventory.stock_count('O-') == 2


def test_rejected_request_claims_nothing(client, hospital, admin, add_units, auth_headers):
    add_units('O-', 2)
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']

    response = client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin),
                          json={'status': 'rejected'})

    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'rejected'
    assert inventory.stock_count('O-') == 2


def test_unknown_status_is_rejected(client, hospital, admin, auth_headers):
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']

    response = client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin),
                          json={'status': 'shipped'})

    assert response.status_code == 400


def test_only_admin_resolves_requests(client, hospital, auth_headers):
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']

    response = client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(hospital),
                          json={'status': 'approved'})

    assert response.status_code == 403


def test_owner_marks_approved_request_received(client, hospital, admin, add_units, auth_headers):
    add_units('O-', 2)
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']
    client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin), json={'status': 'approved'})

    response = client.put(f'/api/blood-bank/requests/{request_id}/complete', headers=auth_headers(hospital))

    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'completed'
    assert Notification.query.filter_by(user_id=admin.id, title='Blood Received by Hospital').count() == 1


def test_other_hospital_cannot_complete_request(client, hospital, make_user, admin, add_units, auth_headers):
    add_units('O-', 2)
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']
    client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin), json={'status': 'approved'})

    response = client.put(f'/api/blood-bank/requests/{request_id}/complete',
                          headers=auth_headers(make_user('hospital')))

    assert response.status_code == 403
    assert db.session.get(HospitalRequest, request_id).status == 'approved'


def test_pending_request_cannot_be_completed(app, hospital, admin):
    bank_request = bank_requests.create_bank_request(hospital, {'blood_type': 'A+', 'units_needed': 1})

    with pytest.raises(InvalidTransitionError):
        bank_requests.complete_bank_request(bank_request.id, hospital)


def test_only_finished_requests_can_be_deleted(client, hospital, admin, auth_headers):
    request_id = create_request(client, hospital, auth_headers).get_json()['data']['id']

    pending = client.delete(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(hospital))
    client.put(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(admin), json={'status': 'rejected'})
    rejected = client.delete(f'/api/blood-bank/requests/{request_id}', headers=auth_headers(hospital))

    assert pending.status_code == 400
    assert rejected.status_code == 200
    assert db.session.get(HospitalRequest, request_id) is None


def test_admin_entered_request_claims_units_without_consumer(app, admin, add_units):
    add_units('B+', 1)
    bank_request = bank_requests.create_bank_request(
        admin, {'blood_type': 'B+', 'units_needed': 1, 'hospital_name': 'Nsambya Hospital'})

    bank_requests.approve_bank_request(bank_request.id, admin)

    unit = BloodUnit.query.one()
    assert unit.status == 'Used'
    assert unit.hospital_id is None
    assert bank_request.requested_by == {'kind': 'admin', 'id': admin.id}


def test_empty_stock_approval_keeps_request_pending(app, hospital, admin):
    bank_request = bank_requests.create_bank_request(hospital, {'blood_type': 'O-', 'units_needed': 2})

    with pytest.raises(InsufficientStockError):
        bank_requests.approve_bank_request(bank_request.id, admin)
    assert db.session.get(HospitalRequest, bank_request.id).status == 'pending'


def test_approval_rolls_back_when_stock_changes_mid_claim(app, hospital, admin, add_units, days_ago, monkeypatch):
    units = add_units('O-', 1, donation_date=days_ago(20)) + add_units('O-', 2)
    taken_id = units[0].id
    bank_request = bank_requests.create_bank_request(hospital, {'blood_type': 'O-', 'units_needed': 2})
    real_execute = db.session.execute
    raced = []

    def execute(statement, *args, **kwargs):
        # Another admin uses the oldest unit between the select and the update
        if isinstance(statement, Update) and statement.table is BloodUnit.__table__ and not raced:
            raced.append(taken_id)
            real_execute(update(BloodUnit).where(BloodUnit.id == taken_id).values(status='Used'))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db.session, 'execute', execute)

    with pytest.raises(InsufficientStockError, match='changed while claiming'):
        bank_requests.approve_bank_request(bank_request.id, admin)

    assert raced == [taken_id]
    assert db.session.get(HospitalRequest, bank_request.id).status == 'pending'
    assert inventory.stock_count('O-') == 3
    assert DonationRequest.query.count() == 0
