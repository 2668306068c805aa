import logging
import os
from datetime import datetime

from flask import Blueprint, current_app, request, jsonify, send_from_directory
from flask_jwt_extended import current_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from app.errors import NotFoundError, AuthorizationError, ValidationError
from app.extensions import db
from app.models.user_model import User
from app.policy import authorize
from app.validation import get_json_object, text_field, validate_blood_type, validate_phone

logger = logging.getLogger(__name__)

user_bp = Blueprint('user_bp', __name__)

ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}


def donor_query(blood_type=None, city=None):
    query = User.query.filter_by(role='donor')
    if blood_type and validate_blood_type(blood_type):
        query = query.filter_by(blood_type=blood_type)
    if city:
        query = query.filter(User.city.ilike(f'%{city}%'))
    return query.order_by(User.is_available.desc(), User.created_at.desc())


def public_donor(donor, viewer):
    # Recipients only get contact details once a donor accepts their request
    data = donor.to_dict(private=viewer.role != 'recipient')
    if viewer.role != 'recipient':
        data.pop('email', None)
    return data


# GET donors, filtered by blood type and city
@user_bp.route('/donors', methods=['GET'])
@authorize('users.list_donors')
def get_donors():
    query = donor_query(request.args.get('blood_type'), request.args.get('city'))

    if current_user.role == 'recipient':
        query = query.filter(User.is_available == True)  # noqa: E712
    elif current_user.role == 'donor' and request.args.get('available') is not None:
        query = query.filter(User.is_available == (request.args.get('available') == 'true'))

    donors = [public_donor(donor, current_user) for donor in query.all()]
    return jsonify({'success': True, 'count': len(donors), 'data': donors}), 200


# GET a specific donor by ID
@user_bp.route('/donors/<int:id>', methods=['GET'])
@authorize('users.view_donor')
def get_donor(id):
    donor = db.session.get(User, id)
    if not donor or donor.role != 'donor':
        raise NotFoundError('Donor not found')
    if current_user.role == 'recipient' and not donor.is_available:
        raise AuthorizationError('Donor is not available')
    return jsonify({'success': True, 'data': public_donor(donor, current_user)}), 200


def save_profile_picture(upload, user):
    filename = secure_filename(upload.filename or '')
    extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError('Profile picture must be an image file')
    stored_name = f'{user.id}_{int(datetime.utcnow().timestamp())}.{extension}'
    upload.save(os.path.join(current_app.config['UPLOAD_FOLDER'], stored_name))
    return f'/api/users/profile-pictures/{stored_name}'


# PUT update the current user's profile (JSON or multipart with a picture)
@user_bp.route('/profile', methods=['PUT'])
@authorize('users.update_profile')
def update_profile():
    data = request.form.to_dict() if request.files or request.form else get_json_object(required=False)
    user = current_user

    if data.get('phone') and not validate_phone(data['phone']):
        raise ValidationError('Please provide a valid phone number')
    if data.get('blood_type') and not validate_blood_type(data['blood_type']):
        raise ValidationError('Invalid blood type')
    name, address, city = text_field(data, 'name'), text_field(data, 'address'), text_field(data, 'city')
    hospital_name, license_number = text_field(data, 'hospital_name'), text_field(data, 'license_number')

    try:
        if name:
            user.name = name
        if data.get('phone'):
            user.phone = data['phone']
        if 'address' in data:
            user.address = address
        if 'city' in data:
            user.city = city

        if user.role in ('donor', 'recipient') and data.get('blood_type'):
            user.blood_type = data['blood_type']

        if user.role == 'hospital':
            if hospital_name:
                user.hospital_name = hospital_name
            if license_number:
                user.license_number = license_number

        if 'profile_picture' in request.files:
            user.profile_picture = save_profile_picture(request.files['profile_picture'], user)

        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500

    return jsonify({'success': True, 'data': user.to_dict(private=True)}), 200


# GET a stored profile picture
@user_bp.route('/profile-pictures/<path:filename>', methods=['GET'])
def get_profile_picture(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)


# PUT toggle donor availability
@user_bp.route('/availability', methods=['PUT'])
@authorize('users.update_availability')
def update_availability():
    data = get_json_object(required=False)
    if not data or not isinstance(data.get('is_available'), bool):
        raise ValidationError('is_available must be true or false')

    user = current_user
    try:
        user.is_available = data['is_available']
        # Going unavailable is how a donor records having just donated
        if not user.is_available:
            user.last_donation = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500

    logger.info('Donor %s availability set to %s', user.id, user.is_available)
    return jsonify({'success': True, 'data': user.to_dict(private=True)}), 200


# GET every donor regardless of availability (hospitals)
@user_bp.route('/hospital/donors', methods=['GET'])
@authorize('users.hospital_donors')
def get_all_donors_for_hospital():
    donors = donor_query(request.args.get('blood_type'), request.args.get('city')).all()
    data = [donor.to_dict(private=True) for donor in donors]
    return jsonify({'success': True, 'count': len(data), 'data': data}), 200
