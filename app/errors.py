"""Error taxonomy and the JSON envelope every failure is rendered with."""
import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, Forbidden, HTTPException, NotFound, Unauthorized

from app.extensions import db, jwt

logger = logging.getLogger(__name__)


class ValidationError(BadRequest):
    description = 'Invalid input'


class AuthenticationError(Unauthorized):
    description = 'Not authorized'


class AuthorizationError(Forbidden):
    description = 'Not authorized to perform this action'


class NotFoundError(NotFound):
    description = 'Resource not found'


class BusinessRuleError(BadRequest):
    description = 'Request violates a business rule'


class InsufficientStockError(BusinessRuleError):
    description = 'Insufficient blood stock'


class DonorUnavailableError(BusinessRuleError):
    description = 'Donor not available'


class AlreadyRegisteredError(BusinessRuleError):
    description = 'Already registered for this drive'


class InvalidTransitionError(BusinessRuleError):
    description = 'Request is not in a state that allows this action'


def error_response(message, status_code):
    return jsonify({'success': False, 'message': message}), status_code


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return error_response(e.description, e.code)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        logger.exception('Unhandled database error')
        return error_response('Database error occurred', 500)


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return error_response('Not authorized, no token', 401)


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return error_response('Not authorized, token failed', 401)


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return error_response('Token has expired', 401)


@jwt.user_lookup_error_loader
def user_lookup_error_callback(jwt_header, jwt_payload):
    return error_response('User not found', 401)
