import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = 'Internal server error.'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInput(ApiError):
    status_code = 400
    message = 'Invalid request.'


class Unauthenticated(ApiError):
    status_code = 401
    message = 'Authentication token is invalid or expired.'


class Forbidden(ApiError):
    status_code = 403
    message = 'Access denied. You do not have the necessary permissions.'


class NotFound(ApiError):
    status_code = 404
    message = 'Resource not found.'


class Conflict(ApiError):
    status_code = 409
    message = 'Resource already exists.'


class Internal(ApiError):
    status_code = 500


def register_error_handlers(app, db):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify({'message': error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        logger.exception('Storage failure while handling request')
        return jsonify({'message': Internal.message}), 500
