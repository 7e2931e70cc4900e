# payroll_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from payroll_api.common.http import fail


class APIError(Exception):
    """Error carrying an API code and HTTP status for the JSON envelope."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class PayrollDataUnavailable(APIError):
    """
    A mandatory payroll source (employee master, attendance records or the
    attendance-deduction ledger) could not be read. The run produces no lines.
    """
    def __init__(self, source: str, payload=None):
        super().__init__(
            "PAYROLL_DATA_UNAVAILABLE",
            "Payroll data unavailable",
            status_code=503,
            payload=payload or {"source": source},
        )
        self.source = source


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
