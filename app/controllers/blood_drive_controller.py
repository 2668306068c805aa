import logging
from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_jwt_extended import current_user
from geopy.distance import geodesic
from sqlalchemy.exc import IntegrityError

from app.errors import AlreadyRegisteredError, AuthorizationError, BusinessRuleError, NotFoundError, ValidationError
from app.extensions import db
from app.models.blood_drive_model import BloodDrive, DriveAttendee
from app.policy import authorize
from app.services import atomic, get_or_404
from app.services.notifications import create_notification
from app.validation import get_json_object, parse_coordinate, text_field, validate_blood_type

logger = logging.getLogger(__name__)

# Define Blueprint for blood drives
blood_drive_bp = Blueprint('blood_drive_bp', __name__)

DEFAULT_RADIUS_KM = 50
ATTENDANCE_STATUSES = ('Attended', 'Missed')


def validate_drive_data(data):
    missing = [field for field in ('title', 'date', 'start_time', 'end_time', 'location')
               if not isinstance(data.get(field), str) or not data[field].strip()]
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}')

    try:
        date = datetime.fromisoformat(data['date'])
    except (TypeError, ValueError):
        raise ValidationError('date must be an ISO 8601 date')

    blood_types = data.get('blood_types') or ['All']
    if not isinstance(blood_types, list) or not all(bt == 'All' or validate_blood_type(bt) for bt in blood_types):
        raise ValidationError('blood_types must be a list of blood types or ["All"]')

    latitude = longitude = None
    if data.get('latitude') is not None or data.get('longitude') is not None:
        latitude = parse_coordinate(data.get('latitude'), 'latitude', -90, 90)
        longitude = parse_coordinate(data.get('longitude'), 'longitude', -180, 180)
    return date, blood_types, latitude, longitude


# POST create a blood drive
@blood_drive_bp.route('', methods=['POST'])
@authorize('drive.create')
def create_drive():
    data = get_json_object()
    date, blood_types, latitude, longitude = validate_drive_data(data)

    with atomic():
        drive = BloodDrive(
            organizer_id=current_user.id,
            title=data['title'],
            date=date,
            start_time=data['start_time'],
            end_time=data['end_time'],
            location=data['location'],
            description=text_field(data, 'description') or None,
            blood_types=blood_types,
            latitude=latitude,
            longitude=longitude,
        )
        db.session.add(drive)

    logger.info('Blood drive %s created by %s %s', drive.id, current_user.role, current_user.id)
    return jsonify({'success': True, 'data': drive.to_dict()}), 201


# GET upcoming drives, soonest first, optionally near a point
@blood_drive_bp.route('', methods=['GET'])
@authorize('drive.list')
def get_drives():
    drives = BloodDrive.query.filter_by(status='Upcoming').order_by(BloodDrive.date.asc(), BloodDrive.id.asc()).all()

    if request.args.get('lat') is None and request.args.get('lng') is None:
        data = [drive.to_dict() for drive in drives]
        return jsonify({'success': True, 'count': len(data), 'data': data}), 200

    origin = (parse_coordinate(request.args.get('lat'), 'lat', -90, 90),
              parse_coordinate(request.args.get('lng'), 'lng', -180, 180))
    radius_km = DEFAULT_RADIUS_KM
    if request.args.get('radius_km') is not None:
        try:
            radius_km = float(request.args['radius_km'])
        except ValueError:
            raise ValidationError('radius_km must be a number')

    data = []
    for drive in drives:
        if drive.coordinates is None:
            continue
        distance = geodesic(origin, drive.coordinates).km
        if distance <= radius_km:
            drive_data = drive.to_dict()
            drive_data['distance_km'] = round(distance, 2)
            data.append(drive_data)
    return jsonify({'success': True, 'count': len(data), 'data': data}), 200


# GET drives organized by the current user with attendees
@blood_drive_bp.route('/my-drives', methods=['GET'])
@authorize('drive.list_mine')
def get_my_drives():
    drives = (BloodDrive.query
              .filter_by(organizer_id=current_user.id)
              .order_by(BloodDrive.date.desc(), BloodDrive.id.desc())
              .all())
    data = [drive.to_dict(include_attendees=True) for drive in drives]
    return jsonify({'success': True, 'count': len(data), 'data': data}), 200


# PUT register the current donor for a drive
@blood_drive_bp.route('/<int:id>/register', methods=['PUT'])
@authorize('drive.register')
def register_for_drive(id):
    drive = get_or_404(BloodDrive, id, 'Drive not found')
    if drive.status != 'Upcoming':
        raise BusinessRuleError('Registration is only open for upcoming drives')
    if DriveAttendee.query.filter_by(drive_id=drive.id, donor_id=current_user.id).first():
        raise AlreadyRegisteredError()

    try:
        with atomic():
            db.session.add(DriveAttendee(drive_id=drive.id, donor_id=current_user.id))
    except IntegrityError:
        # Lost a race with a concurrent registration by the same donor
        raise AlreadyRegisteredError()

    logger.info('Donor %s registered for drive %s', current_user.id, drive.id)
    create_notification(
        drive.organizer_id,
        'New Drive Registration',
        f'{current_user.name} ({current_user.blood_type or "blood type unknown"}) registered for {drive.title}',
        'info',
        drive.id,
    )
    return jsonify({'success': True, 'message': 'Successfully registered for the drive'}), 200


# PUT record whether a registered donor attended
@blood_drive_bp.route('/<int:id>/attendees/<int:donor_id>', methods=['PUT'])
@authorize('drive.attendance')
def update_attendance(id, donor_id):
    drive = get_or_404(BloodDrive, id, 'Drive not found')
    if drive.organizer_id != current_user.id and current_user.role != 'admin':
        raise AuthorizationError('Only the organizer can record attendance')

    data = get_json_object(required=False)
    status = data.get('status')
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f'Status must be one of: {", ".join(ATTENDANCE_STATUSES)}')

    attendee = DriveAttendee.query.filter_by(drive_id=drive.id, donor_id=donor_id).first()
    if not attendee:
        raise NotFoundError('Donor is not registered for this drive')

    with atomic():
        attendee.status = status
    return jsonify({'success': True, 'data': attendee.to_dict()}), 200
