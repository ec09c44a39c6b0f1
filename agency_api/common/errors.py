# agency_api/common/errors.py

from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from agency_api.common.http import fail
from agency_api.status import IllegalTransition


class APIError(Exception):
    """Custom API Error class."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    """Field-keyed form errors, e.g. {"end_date": "End date must be after start date"}."""
    def __init__(self, errors: dict, message="Validation failed"):
        super().__init__("VALIDATION_ERROR", message, status_code=422)
        self.errors = dict(errors)


class NotFound(APIError):
    def __init__(self, what="Resource"):
        super().__init__("NOT_FOUND", f"{what} not found", status_code=404)


class AuthError(APIError):
    def __init__(self, message="Invalid credentials"):
        super().__init__("AUTH_FAILED", message, status_code=401)


def _rollback():
    # half-applied changes from the failed request must not reach the next commit
    from agency_api.extensions import db
    db.session.rollback()


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        _rollback()
        return fail(e.message, status=e.status_code, code=e.code, errors=e.errors)

    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        _rollback()
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(IllegalTransition)
    def _transition(e: IllegalTransition):
        _rollback()
        return fail(str(e), status=409, code="ILLEGAL_TRANSITION",
                    detail={"kind": e.kind, "current": e.current, "target": e.target})

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        _rollback()
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        _rollback()
        return fail("Internal server error", status=500)
