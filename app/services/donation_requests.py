"""Direct donor request workflow.

    pending -> accepted -> completed
    pending -> rejected

Only the addressed donor answers a request. Accepting takes the donor off the
available list, which is what keeps a donor to one open acceptance at a time.
"""
import logging
from datetime import datetime

from sqlalchemy import update

from app.errors import (AuthorizationError, DonorUnavailableError, InvalidTransitionError, NotFoundError,
                        ValidationError)
from app.extensions import db
from app.models.donation_request_model import DonationRequest
from app.models.user_model import User
from app.services import atomic, get_or_404
from app.services.email_service import send_email
from app.services.notifications import create_notification
from app.services.sms_service import send_sms
from app.validation import parse_coordinate, parse_positive_int, text_field, validate_blood_type

logger = logging.getLogger(__name__)

URGENCY_RANK = {'critical': 0, 'emergency': 0, 'high': 1, 'urgent': 1, 'normal': 2}


def _parse_datetime(value, field):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an ISO 8601 date')


def create_donation_request(user, data):
    if user.role not in ('recipient', 'hospital'):
        raise AuthorizationError('Only recipients or hospitals can create requests')

    donor_id = parse_positive_int(data.get('donor_id'))
    donor = db.session.get(User, donor_id) if donor_id else None
    if not donor or donor.role != 'donor' or not donor.is_available:
        raise DonorUnavailableError('Donor not available')

    blood_type = data.get('blood_type') or donor.blood_type
    if not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')
    units_needed = parse_positive_int(data.get('units_needed', 1))
    if units_needed is None:
        raise ValidationError('Units needed must be a positive whole number')

    patient_name = text_field(data, 'patient_name') or None
    with atomic():
        donation_request = DonationRequest(
            donor_id=donor.id,
            requester_kind=user.role,
            requester_id=user.id,
            blood_type=blood_type,
            units_needed=units_needed,
            urgency=text_field(data, 'urgency') or 'normal',
            message=text_field(data, 'message') or None,
            patient_name=patient_name,
            contact_phone=text_field(data, 'contact_phone') or None,
        )
        db.session.add(donation_request)

    logger.info('Donation request %s: %s %s -> donor %s', donation_request.id, user.role, user.id, donor.id)
    create_notification(
        donor.id,
        'New Donation Request',
        f'{user.display_name} has requested {units_needed} unit(s) of {blood_type} blood for {patient_name or "a patient"}',
        'request',
        donation_request.id,
    )
    return donation_request


def notify_donor(admin, data):
    """Admin asks one donor directly; the donor also gets an email."""
    donor_id = parse_positive_int(data.get('donor_id'))
    donor = db.session.get(User, donor_id) if donor_id else None
    if not donor or donor.role != 'donor':
        raise NotFoundError('Donor not found')

    blood_type = data.get('blood_type') or donor.blood_type
    if not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')
    message = text_field(data, 'message')

    with atomic():
        donation_request = DonationRequest(
            donor_id=donor.id,
            requester_kind='admin',
            requester_id=admin.id,
            blood_type=blood_type,
            message=message,
            type='Individual',
        )
        db.session.add(donation_request)

    create_notification(donor.id, 'Urgent Blood Donation Request',
                        f'We have an urgent need for {blood_type} blood. {message}'.strip(),
                        'request', donation_request.id)
    email_sent = send_email(
        donor.email,
        f'Urgent Blood Donation Request: {blood_type}',
        f'Hello {donor.name},\n\nWe have an urgent need for {blood_type} blood.\n\nMessage: {message}\n\n'
        'Please login to your dashboard to view details and accept.\n\nThank you,\nLifeLink Team',
    )
    return donation_request, email_sent


def create_bulk_request(admin, data):
    """Broadcast or drive invitation to every donor of a type (or all donors)."""
    blood_type = data.get('blood_type') or 'All'
    request_type = data.get('type') or 'Broadcast'
    if blood_type != 'All' and not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type or "All"')
    if request_type not in ('Broadcast', 'Drive'):
        raise ValidationError('Type must be Broadcast or Drive')

    query = User.query.filter_by(role='donor')
    if blood_type != 'All':
        query = query.filter_by(blood_type=blood_type)
    donors = [donor for donor in query.all() if validate_blood_type(donor.blood_type)]
    if not donors:
        raise NotFoundError('No matching donors found')

    scheduled_date = _parse_datetime(data.get('scheduled_date'), 'scheduled_date')
    message = text_field(data, 'message')
    location = text_field(data, 'location') or None
    start_time, end_time = text_field(data, 'start_time') or None, text_field(data, 'end_time') or None
    latitude = longitude = None
    if data.get('latitude') is not None or data.get('longitude') is not None:
        latitude = parse_coordinate(data.get('latitude'), 'latitude', -90, 90)
        longitude = parse_coordinate(data.get('longitude'), 'longitude', -180, 180)
    with atomic():
        for donor in donors:
            db.session.add(DonationRequest(
                donor_id=donor.id,
                requester_kind='admin',
                requester_id=admin.id,
                blood_type=donor.blood_type,
                message=message,
                type=request_type,
                scheduled_date=scheduled_date,
                location=location,
                start_time=start_time,
                end_time=end_time,
                latitude=latitude,
                longitude=longitude,
            ))

    logger.info('Bulk %s request by admin %s reached %d donors', request_type, admin.id, len(donors))
    for donor in donors:
        send_email(
            donor.email,
            f'New Blood Drive Alert: {request_type}',
            f'Hello {donor.name},\n\nA new {request_type} has been scheduled near you.\n\nMessage: {message}\n\n'
            'Please check your dashboard for location and more details.\n\nThank you,\nLifeLink Team',
        )
    return len(donors)


def list_my_requests(user):
    query = DonationRequest.query
    if user.role == 'donor':
        query = query.filter_by(donor_id=user.id)
    elif user.role in ('recipient', 'hospital'):
        query = query.filter_by(requester_id=user.id)
    return query.order_by(DonationRequest.created_at.desc(), DonationRequest.id.desc()).all()


def list_pending_for_donor(donor):
    requests = (DonationRequest.query
                .filter_by(donor_id=donor.id, status='pending')
                .order_by(DonationRequest.created_at.desc(), DonationRequest.id.desc())
                .all())
    return sorted(requests, key=lambda r: URGENCY_RANK.get(r.urgency, 2))


def list_all_requests():
    return DonationRequest.query.order_by(DonationRequest.request_date.desc(), DonationRequest.id.desc()).all()


def _transition(request_id, from_status, **values):
    result = db.session.execute(
        update(DonationRequest)
        .where(DonationRequest.id == request_id, DonationRequest.status == from_status)
        .values(updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _load_for_donor(request_id, donor, action):
    donation_request = get_or_404(DonationRequest, request_id, 'Request not found')
    if donation_request.donor_id != donor.id:
        raise AuthorizationError(f'Not authorized to {action} this request')
    if donation_request.status != 'pending':
        raise InvalidTransitionError('Request is not pending')
    return donation_request


def accept_donation_request(request_id, donor):
    donation_request = _load_for_donor(request_id, donor, 'accept')

    with atomic():
        if not _transition(request_id, 'pending', status='accepted', accepted_at=datetime.utcnow()):
            raise InvalidTransitionError('Request is not pending')
        flipped = db.session.execute(
            update(User)
            .where(User.id == donor.id, User.is_available == True)  # noqa: E712
            .values(is_available=False)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount != 1:
            raise DonorUnavailableError('You are marked unavailable; finish or release your current donation first')

    logger.info('Donor %s accepted donation request %s', donor.id, request_id)
    if donation_request.requester_id:
        create_notification(
            donation_request.requester_id,
            'Request Accepted',
            f'{donor.name} has accepted your donation request. Contact: {donor.phone}, Address: {donor.address}',
            'acceptance',
            donation_request.id,
        )
    return donation_request


def reject_donation_request(request_id, donor):
    donation_request = _load_for_donor(request_id, donor, 'reject')

    with atomic():
        if not _transition(request_id, 'pending', status='rejected'):
            raise InvalidTransitionError('Request is not pending')

    logger.info('Donor %s rejected donation request %s', donor.id, request_id)
    if donation_request.requester_id:
        create_notification(
            donation_request.requester_id,
            'Request Rejected',
            f'{donor.name} has rejected your donation request',
            'rejection',
            donation_request.id,
        )
    return donation_request


def respond_to_request(request_id, donor, status):
    """Donor dashboard answer: Accepted, or Declined/Rejected."""
    normalized = status.lower() if isinstance(status, str) else ''
    if normalized == 'accepted':
        return accept_donation_request(request_id, donor)
    if normalized in ('declined', 'rejected'):
        return reject_donation_request(request_id, donor)
    raise ValidationError('Status must be Accepted or Declined')


def complete_donation_request(request_id, user):
    donation_request = get_or_404(DonationRequest, request_id, 'Request not found')
    if not donation_request.is_participant(user) and user.role != 'admin':
        raise AuthorizationError('You are not authorized to complete this donation.')
    if donation_request.status == 'completed':
        raise InvalidTransitionError('This donation is already marked as completed.')
    if donation_request.status != 'accepted':
        raise InvalidTransitionError('Only accepted donations can be marked as completed.')

    now = datetime.utcnow()
    with atomic():
        if not _transition(request_id, 'accepted', status='completed', completed_at=now):
            raise InvalidTransitionError('This donation is already marked as completed.')
        db.session.execute(
            update(User)
            .where(User.id == donation_request.donor_id)
            .values(last_donation=now)
            .execution_options(synchronize_session=False)
        )

    logger.info('Donation request %s completed by user %s', request_id, user.id)
    create_notification(
        donation_request.donor_id,
        'Donation Completed!',
        'Your blood donation has been marked as complete. You can now download your certificate from your history!',
        'completion',
        donation_request.id,
    )
    requester_id = donation_request.requester_id
    if requester_id and requester_id != user.id:
        create_notification(
            requester_id,
            'Blood Received',
            'The blood donation request has been marked as complete. Thank you for using LifeLink!',
            'completion',
            donation_request.id,
        )
    return donation_request


def delete_donation_request(request_id, user):
    donation_request = get_or_404(DonationRequest, request_id, 'Request not found')
    if not donation_request.is_participant(user) and user.role != 'admin':
        raise AuthorizationError('Not authorized to delete this history record.')
    if donation_request.status not in DonationRequest.TERMINAL_STATUSES:
        raise InvalidTransitionError('Only completed or rejected requests can be removed from history.')

    with atomic():
        db.session.delete(donation_request)
    logger.info('Donation request %s deleted by user %s', request_id, user.id)


def emergency_broadcast(hospital, data):
    """Alert every available donor matching the blood type and city."""
    blood_type = data.get('blood_type')
    if blood_type and not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')

    query = User.query.filter_by(role='donor', is_available=True)
    if blood_type:
        query = query.filter_by(blood_type=blood_type)
    if data.get('city'):
        query = query.filter(User.city.ilike(f'%{data["city"]}%'))
    donors = query.all()

    text = data.get('message') or f'Emergency blood needed for {data.get("patient_name") or "a patient"}'
    text = f'{text} - Contact: {data.get("contact_phone") or hospital.phone}'
    for donor in donors:
        create_notification(donor.id, 'Emergency Blood Request', text, 'emergency')
    send_sms([donor.phone for donor in donors], text)

    logger.info('Emergency broadcast by hospital %s reached %d donors', hospital.id, len(donors))
    return len(donors)
