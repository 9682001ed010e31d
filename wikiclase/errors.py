from flask import jsonify, current_app


class ApiError(Exception):
    """Base error surfaced to the caller as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message=None):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class PaymentGatewayError(ApiError):
    status_code = 502


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.__class__.__name__}: {error.message}")
        else:
            current_app.logger.info(f"{error.__class__.__name__}: {error.message}")
        return jsonify({"error": error.message}), error.status_code
