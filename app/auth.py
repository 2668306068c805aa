from flask import jsonify
from flask_jwt_extended import create_access_token, create_refresh_token, set_access_cookies, set_refresh_cookies

from app.extensions import db, jwt
from app.models.user_model import User


@jwt.user_identity_loader
def user_identity_lookup(user):
    return str(user.id)


@jwt.user_lookup_loader
def user_lookup_callback(_jwt_header, jwt_data):
    return db.session.get(User, int(jwt_data['sub']))


def token_response(user, status_code=200):
    """Login/registration reply: tokens in the body and as cookies."""
    access_token = create_access_token(identity=user)
    refresh_token = create_refresh_token(identity=user)
    response = jsonify({
        'success': True,
        'data': user.to_dict(private=True),
        'access_token': access_token,
        'refresh_token': refresh_token,
    })
    set_access_cookies(response, access_token)
    set_refresh_cookies(response, refresh_token)
    return response, status_code
