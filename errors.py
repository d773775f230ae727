from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from extensions import db, jwt


class ApiError(Exception):
    """Base class for every error a service can hand back to a client."""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self):
        return jsonify({'error': self.message}), self.status_code


class ValidationError(ApiError):
    status_code = 400
    default_message = 'Invalid request'


class InvalidCredentials(ApiError):
    status_code = 401
    default_message = 'Invalid credentials'


class Unauthorized(ApiError):
    status_code = 401
    default_message = 'Authorization required'


class Forbidden(ApiError):
    status_code = 403
    default_message = 'You are not allowed to do this'


class NotFound(ApiError):
    status_code = 404
    default_message = 'Not found'


class Conflict(ApiError):
    status_code = 409
    default_message = 'Conflicting state'


class Internal(ApiError):
    status_code = 500


def register_error_handlers(app):
    """Renders every failure as {'error': message} with its status code."""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return error.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error):
        db.session.rollback()
        current_app.logger.exception("Database error: %s", error)
        return Internal().to_response()

    # --- TOKEN ERRORS (flask-jwt-extended) ---
    @jwt.unauthorized_loader
    def missing_token(reason):
        return Unauthorized('No token, authorization denied').to_response()

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return Unauthorized('Token is not valid').to_response()

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return Unauthorized('Token has expired').to_response()
