import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required, create_access_token, set_access_cookies, unset_jwt_cookies
from sqlalchemy.exc import SQLAlchemyError

from app.auth import token_response
from app.errors import AuthenticationError, ValidationError
from app.extensions import db
from app.models.user_model import User
from app.validation import get_json_object, text_field, validate_blood_type, validate_email, validate_phone

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth_bp', __name__)

SELF_SERVICE_ROLES = ('donor', 'recipient', 'hospital')


def validate_registration(data):
    required_fields = ['name', 'email', 'password', 'phone', 'role']
    for field in required_fields:
        if not isinstance(data.get(field), str) or not data[field].strip():
            raise ValidationError('Please provide all required fields')
    if not validate_email(data['email']):
        raise ValidationError('Please provide a valid email')
    if len(data['password']) < 6:
        raise ValidationError('Password must be at least 6 characters')
    if not validate_phone(data['phone']):
        raise ValidationError('Please provide a valid phone number')
    if data['role'] not in SELF_SERVICE_ROLES:
        raise ValidationError(f'Role must be one of: {", ".join(SELF_SERVICE_ROLES)}')
    blood_type = data.get('blood_type')
    if data['role'] in ('donor', 'recipient') and blood_type not in (None, '') and not validate_blood_type(blood_type):
        raise ValidationError('Invalid blood type')


# POST register a new account
@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_json_object()
    validate_registration(data)

    email = data['email'].strip().lower()
    if User.query.filter_by(email=email).first():
        raise ValidationError('User already exists')

    role = data['role']
    try:
        user = User(
            name=data['name'],
            email=email,
            phone=data['phone'],
            role=role,
            blood_type=(data.get('blood_type') or '') if role in ('donor', 'recipient') else '',
            address=text_field(data, 'address') if role == 'donor' else '',
            city=text_field(data, 'city') if role == 'donor' else '',
            hospital_name=text_field(data, 'hospital_name') if role == 'hospital' else '',
            license_number=text_field(data, 'license_number') if role == 'hospital' else '',
        )
        user.set_password(data['password'])
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Registration failed for %s', email)
        return jsonify({'success': False, 'message': 'Database error occurred'}), 500

    logger.info('Registered %s account %s', role, user.id)
    return token_response(user, 201)


# POST log in with email and password
@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_json_object(required=False)
    email, password = data.get('email'), data.get('password')
    if not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError('Please provide email and password')
    email = email.strip().lower()
    user = User.query.filter_by(email=email).first() if email else None
    if not user or not user.check_password(password):
        raise AuthenticationError('Invalid credentials')
    return token_response(user)


# POST exchange a refresh token for a new access token
@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    access_token = create_access_token(identity=current_user)
    response = jsonify({'success': True, 'message': 'Access token refreshed', 'access_token': access_token})
    set_access_cookies(response, access_token)
    return response, 200


# POST clear auth cookies
@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    response = jsonify({'success': True, 'message': 'Logged out successfully'})
    unset_jwt_cookies(response)
    return response, 200


# GET the current account
@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    return jsonify({'success': True, 'data': current_user.to_dict(private=True)}), 200
