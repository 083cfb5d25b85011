"""Application error taxonomy and the handlers that map it onto HTTP responses."""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Error kind enumeration."""
    VALIDATION = "ValidationError"
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    INTERNAL = "Internal"


# The only place where error kinds meet HTTP status codes
STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

KIND_BY_STATUS: Dict[int, ErrorKind] = {
    status_code: kind for kind, status_code in STATUS_BY_KIND.items()
}


class ApiError(Exception):
    """
    Base class for errors reported to API callers.

    Every error carries a kind, a human readable message, a stable
    machine readable code and optional structured details.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred while processing the request"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_envelope(self) -> Dict[str, Any]:
        """Render the error as a response envelope."""
        errors = {"kind": self.kind.value, "code": self.code}
        errors.update(self.details)
        return {"success": False, "message": self.message, "errors": errors}


class ValidationError(ApiError):
    """Missing or malformed input."""

    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"
    default_message = "The request data failed validation"

    def __init__(
        self,
        message: Optional[str] = None,
        violations: Optional[Sequence[Dict[str, str]]] = None,
        code: Optional[str] = None,
    ):
        details = {}
        if violations:
            details["violations"] = list(violations)
        super().__init__(message=message, code=code, details=details)


class AuthenticationError(ApiError):
    """Missing, invalid or expired credentials."""

    kind = ErrorKind.UNAUTHENTICATED
    default_code = "UNAUTHENTICATED"
    default_message = "Authentication credentials are required"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message=message, code=code, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ApiError):
    """The authenticated caller lacks rights over the target resource."""

    kind = ErrorKind.FORBIDDEN
    default_code = "FORBIDDEN"
    default_message = "Insufficient permissions to access this resource"

    def __init__(
        self,
        message: Optional[str] = None,
        required_roles: Optional[Sequence[str]] = None,
        code: Optional[str] = None,
    ):
        details = {}
        if required_roles:
            details["requiredRoles"] = list(required_roles)
        super().__init__(message=message, code=code, details=details)


class NotFoundError(ApiError):
    """Exception for resource not found errors."""

    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[Any] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        details = {"resourceType": resource_type}
        if resource_id:
            details["resourceId"] = str(resource_id)

        super().__init__(message=detail, details=details)


class ConflictError(ApiError):
    """Exception for resource conflict errors."""

    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"
    default_message = "The request conflicts with the current state of the resource"

    def __init__(
        self,
        detail: Optional[str] = None,
        code: Optional[str] = None,
        conflicting_resource: Optional[Dict[str, Any]] = None,
    ):
        details = {}
        if conflicting_resource:
            details["conflictingResource"] = conflicting_resource
        super().__init__(message=detail, code=code, details=details)


class InvalidStateError(ConflictError):
    """The resource is in the wrong status for the requested transition."""

    def __init__(self, resource_type: str, resource_id: Any, current_status: str, action: str):
        current_status = getattr(current_status, "value", current_status)
        super().__init__(
            detail=f"Cannot {action} {resource_type} {resource_id} in status {current_status}",
            code="INVALID_STATE",
            conflicting_resource={
                "resourceType": resource_type,
                "resourceId": str(resource_id),
                "status": current_status,
            }
        )


class InternalServerError(ApiError):
    """Exception for internal server errors."""

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        detail: Optional[str] = None,
        error_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.error_id = error_id or str(uuid.uuid4())
        super().__init__(
            message=detail,
            code=code,
            details={
                "errorId": self.error_id,
                "timestamp": datetime.utcnow().isoformat() + "Z",
            }
        )


def _violation_path(location: Sequence[Any]) -> str:
    """Turn a pydantic error location into a dotted path, dropping the body/query prefix."""
    parts = [str(part) for part in location]
    if parts and parts[0] in ("body", "query", "path", "header", "cookie"):
        parts = parts[1:]
    return ".".join(parts) or "body"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """
    Exception handler for application errors.

    Args:
        request: FastAPI request object
        exc: Application error

    Returns:
        JSONResponse: Error envelope with the status code mapped from the error kind
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request body/query validation failures as 400 with per-field violations."""
    violations = [
        {"path": _violation_path(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    error = ValidationError(violations=violations)
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown routes, wrong methods) in the response envelope."""
    kind = KIND_BY_STATUS.get(exc.status_code, ErrorKind.INTERNAL if exc.status_code >= 500 else ErrorKind.VALIDATION)
    content = {
        "success": False,
        "message": str(exc.detail),
        "errors": {"kind": kind.value, "code": f"HTTP_{exc.status_code}"},
    }
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to the error envelope.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: 500 error envelope with an error id for correlation
    """
    error = InternalServerError()

    logger.error(
        "Unhandled exception",
        extra={
            "error_id": error.error_id,
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
        exc_info=exc,
    )

    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


def register_exception_handlers(app) -> None:
    """Attach all error handlers to the application."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
