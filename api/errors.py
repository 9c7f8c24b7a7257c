from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError

from utils.errors import AuthError, Internal, Unauthenticated
from utils.logger import get_logger

logger = get_logger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Domain errors from the session core carry their own code and status
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        if isinstance(err, Internal):
            logger.error("internal error: %s", err.message, exc_info=err)
        response, status = error_response(err.code, err.message, err.status, details=err.details)
        if isinstance(err, Unauthenticated):
            response.headers["WWW-Authenticate"] = "Bearer"
        return response, status

    # Marshmallow validation errors map to 400
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response("INVALID_INPUT", "Invalid input", 400, details=err.messages)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        code = (err.name or "error").upper().replace(" ", "_")
        return error_response(code, err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        # In dev, include exception details to speed up debugging
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
