"""Hospital/bank request workflow.

    pending -> approved -> completed
    pending -> rejected

Approval claims stock inside the same transaction as the status change, so a
failed claim leaves the request pending and the ledger untouched.
"""
import logging
from datetime import datetime

from sqlalchemy import update

from app.errors import AuthorizationError, InvalidTransitionError, ValidationError
from app.extensions import db
from app.models.donation_request_model import DonationRequest
from app.models.hospital_request_model import HospitalRequest
from app.services import atomic, get_or_404
from app.services.inventory import claim_units
from app.services.notifications import create_notification, notify_admins
from app.validation import parse_positive_int, text_field, validate_blood_type

logger = logging.getLogger(__name__)

URGENCY_LEVELS = ('normal', 'urgent', 'critical')


def create_bank_request(user, data):
    blood_type = data.get('blood_type')
    units_needed = parse_positive_int(data.get('units_needed'))
    urgency = data.get('urgency') or 'normal'

    if not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')
    if units_needed is None:
        raise ValidationError('Units needed must be a positive whole number')
    if urgency not in URGENCY_LEVELS:
        raise ValidationError(f'Urgency must be one of: {", ".join(URGENCY_LEVELS)}')

    if user.role == 'hospital':
        hospital_name = user.hospital_name or user.name
    elif user.role == 'recipient':
        hospital_name = f'Recipient: {user.name}'
    elif user.role == 'admin':
        # Admin enters requests on behalf of offline requesters
        hospital_name = data.get('hospital_name')
        if not isinstance(hospital_name, str) or not hospital_name.strip():
            raise ValidationError('Hospital Name is required')
        hospital_name = hospital_name.strip()
    else:
        raise AuthorizationError('Not authorized to create requests')

    with atomic():
        bank_request = HospitalRequest(
            requester_kind=user.role,
            requester_id=user.id,
            hospital_name=hospital_name,
            patient_name=text_field(data, 'patient_name') or None,
            blood_type=blood_type,
            units_needed=units_needed,
            urgency=urgency,
        )
        db.session.add(bank_request)

    logger.info('Bank request %s created by %s %s', bank_request.id, user.role, user.id)
    notify_admins(
        'New Hospital Request',
        f'{hospital_name} has requested {units_needed} units of {blood_type} ({urgency})',
        'request',
        bank_request.id,
    )
    return bank_request


def list_bank_requests(user):
    query = HospitalRequest.query
    if user.role in ('hospital', 'recipient'):
        query = query.filter_by(requester_id=user.id)
    return query.order_by(HospitalRequest.request_date.desc(), HospitalRequest.id.desc()).all()


def _transition(request_id, from_status, **values):
    """Conditionally move a request out of ``from_status``; True if it moved."""
    result = db.session.execute(
        update(HospitalRequest)
        .where(HospitalRequest.id == request_id, HospitalRequest.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def approve_bank_request(request_id, admin):
    bank_request = get_or_404(HospitalRequest, request_id, 'Request not found')
    if bank_request.status != 'pending':
        raise InvalidTransitionError(f'Cannot approve a request that is {bank_request.status}')

    now = datetime.utcnow()
    beneficiary = bank_request.patient_name or bank_request.hospital_name or 'LifeLink Beneficiary'
    # Units go to the requesting account; offline requests entered by an admin have none
    consumer_id = bank_request.requester_id if bank_request.requester_kind != 'admin' else None
    credited = []

    with atomic():
        if not _transition(request_id, 'pending', status='approved', resolved_date=now, resolved_by=admin.id):
            raise InvalidTransitionError('Request is no longer pending')

        claimed = claim_units(bank_request.blood_type, bank_request.units_needed,
                              hospital_id=consumer_id, claimed_by=admin.id)

        # Credit registered donors whose units were used
        for unit in claimed:
            if not unit.donor_id:
                continue
            record = DonationRequest(
                donor_id=unit.donor_id,
                requester_kind=bank_request.requester_kind,
                requester_id=bank_request.requester_id,
                blood_type=unit.blood_type,
                units_needed=1,
                status='completed',
                completed_at=now,
                request_date=unit.donation_date,
                patient_name=beneficiary,
                message=f'LifeLink: Your donation helped {beneficiary}.',
            )
            db.session.add(record)
            credited.append(record)

    logger.info('Bank request %s approved by admin %s: %d units of %s claimed, %d donors credited',
                request_id, admin.id, len(claimed), bank_request.blood_type, len(credited))

    for record in credited:
        create_notification(
            record.donor_id,
            'Blood Donation Used!',
            f'Good news! Your {record.blood_type} blood donation was used to help a patient. Thank you for your kindness!',
            'completion',
            record.id,
        )
    if consumer_id:
        create_notification(
            consumer_id,
            'Blood Request Approved',
            f'Your request for {bank_request.units_needed} unit(s) of {bank_request.blood_type} has been approved.',
            'acceptance',
            bank_request.id,
        )
    return bank_request


def reject_bank_request(request_id, admin):
    bank_request = get_or_404(HospitalRequest, request_id, 'Request not found')
    with atomic():
        if not _transition(request_id, 'pending', status='rejected', resolved_date=datetime.utcnow(),
                           resolved_by=admin.id):
            raise InvalidTransitionError(f'Cannot reject a request that is {bank_request.status}')

    logger.info('Bank request %s rejected by admin %s', request_id, admin.id)
    if bank_request.requester_kind != 'admin' and bank_request.requester_id:
        create_notification(
            bank_request.requester_id,
            'Blood Request Rejected',
            f'Your request for {bank_request.units_needed} unit(s) of {bank_request.blood_type} was rejected.',
            'rejection',
            bank_request.id,
        )
    return bank_request


def complete_bank_request(request_id, user):
    """Requester (or an admin) confirms the approved units were received."""
    bank_request = get_or_404(HospitalRequest, request_id, 'Request not found')
    if not bank_request.is_owned_by(user) and user.role != 'admin':
        logger.warning('User %s tried to complete bank request %s owned by %s',
                       user.id, request_id, bank_request.requester_id)
        raise AuthorizationError('Not authorized to complete this request')

    with atomic():
        if not _transition(request_id, 'approved', status='completed', resolved_date=datetime.utcnow()):
            raise InvalidTransitionError('Only approved requests can be marked as received')

    logger.info('Bank request %s marked as received by user %s', request_id, user.id)
    notify_admins(
        'Blood Received by Hospital',
        f'{bank_request.hospital_name} has marked the request for {bank_request.blood_type} '
        f'({bank_request.units_needed} units) as RECEIVED.',
        'completion',
        bank_request.id,
    )
    return bank_request


def resolve_bank_request(request_id, status, admin):
    if status == 'approved':
        return approve_bank_request(request_id, admin)
    if status == 'rejected':
        return reject_bank_request(request_id, admin)
    if status == 'completed':
        return complete_bank_request(request_id, admin)
    raise ValidationError('Status must be one of: approved, rejected, completed')


def delete_bank_request(request_id, user):
    bank_request = get_or_404(HospitalRequest, request_id, 'Request not found')
    if not bank_request.is_owned_by(user) and user.role != 'admin':
        raise AuthorizationError('Not authorized to delete this request history')
    if bank_request.status not in HospitalRequest.TERMINAL_STATUSES:
        raise InvalidTransitionError('Only completed or rejected requests can be removed from history')

    with atomic():
        db.session.delete(bank_request)
    logger.info('Bank request %s deleted by user %s', request_id, user.id)
