"""
Custom exceptions for the school dispatch service.
Handles HTTP exceptions, validation errors, and business logic errors.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Standard error detail structure"""
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class BaseCustomException(HTTPException):
    """Base class for all custom exceptions"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        field: Optional[str] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.field = field


# =============================================================================
# HTTP EXCEPTIONS
# =============================================================================

class NotFoundError(BaseCustomException):
    """Resource not found exception"""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} with identifier '{identifier}' not found",
            error_code="RESOURCE_NOT_FOUND"
        )


class ConflictError(BaseCustomException):
    """Resource conflict exception"""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message,
            error_code="RESOURCE_CONFLICT"
        )


class BadRequestError(BaseCustomException):
    """Bad request exception"""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
            error_code="BAD_REQUEST",
            field=field
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(BaseCustomException):
    """Base validation error"""

    def __init__(self, message: str, field: str = None, errors: List[ErrorDetail] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
            error_code="VALIDATION_ERROR",
            field=field
        )
        self.errors = errors or []


class InvalidCoordinatesError(ValidationError):
    """Invalid GPS coordinates error"""

    def __init__(self, latitude: float = None, longitude: float = None):
        if latitude is not None and longitude is not None:
            message = f"Invalid coordinates: latitude={latitude}, longitude={longitude}"
        else:
            message = "Invalid GPS coordinates provided"

        super().__init__(
            message=message,
            field="coordinates",
            errors=[
                ErrorDetail(
                    code="INVALID_COORDINATES",
                    message="Latitude must be between -90 and 90, longitude between -180 and 180",
                    field="coordinates"
                )
            ]
        )
        self.error_code = "INVALID_COORDINATES"


class InvalidConfigurationError(ValidationError):
    """Optimization parameters that cannot produce a plan"""

    def __init__(self, parameter: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid {parameter}={value}: {reason}",
            field=parameter,
            errors=[
                ErrorDetail(
                    code="INVALID_CONFIGURATION",
                    message=reason,
                    field=parameter,
                    details={"provided_value": value}
                )
            ]
        )
        self.error_code = "INVALID_CONFIGURATION"


# =============================================================================
# BUSINESS LOGIC ERRORS
# =============================================================================

class BusinessLogicError(BaseCustomException):
    """Base business logic error"""

    def __init__(self, message: str, error_code: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
            error_code=error_code
        )


class InsufficientDriversError(BusinessLogicError):
    """Fewer drivers available than routes requested"""

    def __init__(self, available: int, requested: int):
        super().__init__(
            message=f"Only {available} drivers available, but {requested} requested",
            error_code="INSUFFICIENT_DRIVERS"
        )


class CapacityExceededError(BusinessLogicError):
    """Plan leaves schools without a driver or seat"""

    def __init__(self, problems: List[str]):
        super().__init__(
            message="Route plan cannot be applied: " + "; ".join(problems),
            error_code="CAPACITY_EXCEEDED"
        )
        self.problems = problems


class InvalidTripStatusError(BusinessLogicError):
    """Invalid trip status transition"""

    def __init__(self, trip_id: int, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot change trip {trip_id} status from {current_status} to {requested_status}",
            error_code="INVALID_TRIP_STATUS_TRANSITION"
        )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def format_error_response(error: BaseCustomException) -> Dict[str, Any]:
    """Format error response for consistent API responses"""
    response = {
        "error": True,
        "error_code": getattr(error, 'error_code', None) or 'UNKNOWN_ERROR',
        "message": error.detail,
        "status_code": error.status_code
    }

    if getattr(error, 'field', None):
        response["field"] = error.field

    if getattr(error, 'errors', None):
        response["errors"] = [err.model_dump() for err in error.errors]

    return response


async def custom_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render every HTTPException with the common error envelope"""
    if isinstance(exc, BaseCustomException):
        body = format_error_response(exc)
    else:
        body = {
            "error": True,
            "error_code": "HTTP_ERROR",
            "message": exc.detail,
            "status_code": exc.status_code
        }
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)
