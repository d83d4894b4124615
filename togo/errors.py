from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, errors=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors

    def to_dict(self):
        payload = {"message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class BadRequest(APIError):
    status_code = 400


class Unauthorized(APIError):
    status_code = 401


class Forbidden(APIError):
    status_code = 403


class NotFound(APIError):
    status_code = 404


def _field_errors(exc):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    return errors


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({"message": "Validation failed", "errors": _field_errors(exc)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"message": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        app.logger.exception("Unhandled server error")
        return jsonify({"message": "Internal Server Error"}), 500
