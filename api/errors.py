from flask import current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from models import storage
from services.errors import DomainError
from utils.responses import api_response

logger = logging.getLogger(__name__)


def error_response(message: str, status: int, details: dict | None = None):
    return api_response(details or {}, message, status)


def register_error_handlers(app):
    # Domain errors carry their own status and details
    @app.errorhandler(DomainError)
    def handle_domain_error(err: DomainError):
        if err.status_code >= 500:
            logger.error("internal error: %s", err.message)
        return error_response(err.message, err.status_code, err.to_dict())

    # Marshmallow validation errors map to 400 with field messages
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        if current_app and current_app.debug:
            logger.debug("validation failed: %s", err.messages)
        return error_response("Invalid input", 400, details={"code": "validation_error", "errors": err.messages})

    # Integrity errors that escaped a unit of work (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        storage.rollback()
        message = str(getattr(err, "orig", err)).lower()
        logger.warning("integrity error reached the API layer: %s", message)
        if "unique" in message:
            return error_response("Unique constraint violated.", 409, details={"code": "conflict"})
        return error_response("Integrity error.", 400, details={"code": "bad_request"})

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        # In dev, include exception details to speed up debugging
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("An unexpected error occurred", 500, details=details)
