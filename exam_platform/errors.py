"""
exam_platform/errors.py
Centralized error envelope for the HTTP surface

CORE PRINCIPLES:
- No 500 errors caused by user input
- All errors follow consistent structure
- Errors are user-safe (no stack traces)
- Errors are machine-readable

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorKind",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input / illegal exam state change
- 401: Student identity missing
- 403: Access policy rejected the student
- 404: Resource does not exist
- 409: Duplicate attempt / attempt already closed / paper locked
- 410: Attempt expired during this call
- 422: Request body failed schema validation (Pydantic)
- 500: NEVER caused by user input (internal only)
"""

import logging
import uuid
from typing import Optional, Dict, Any, List

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    AUTH_REQUIRED = "AUTH_REQUIRED"

    ACCESS_DENIED = "ACCESS_DENIED"

    NOT_FOUND = "NOT_FOUND"

    DUPLICATE_ATTEMPT = "DUPLICATE_ATTEMPT"
    ATTEMPT_CLOSED = "ATTEMPT_CLOSED"
    ALREADY_CLOSED = "ALREADY_CLOSED"
    ATTEMPT_EXPIRED = "ATTEMPT_EXPIRED"
    INVALID_STATE = "INVALID_STATE"
    QUESTION_SET_LOCKED = "QUESTION_SET_LOCKED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


def error_response(
    status_code: int,
    error: str,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Build a JSONResponse in the standard envelope"""
    body = ErrorResponse(error=error, message=message, code=code, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def validation_error_response(errors: List[Dict[str, Any]]) -> JSONResponse:
    """422 for request bodies Pydantic rejected"""
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]
    return error_response(
        422,
        "Validation Error",
        "Request body is invalid",
        ErrorCode.VALIDATION_ERROR,
        {"errors": details},
    )


def internal_error_response(error: Exception, context: str = "") -> JSONResponse:
    """Log an internal error and return a safe 500 response"""
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Error",
        "An internal error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        {"log_id": log_id},
    )


def get_error_summary() -> Dict[str, Any]:
    """Return summary of error handling system for documentation"""
    return {
        "response_structure": {
            "success": "boolean (always false for errors)",
            "error": "string (error kind)",
            "message": "string (human-readable)",
            "code": "string (machine-readable)",
            "details": "object (optional)"
        },
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if not attr.startswith('_')
        ]
    }
