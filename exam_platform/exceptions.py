"""
exam_platform/exceptions.py
Typed exceptions for the exam attempt lifecycle.

Every failure a caller can recover from is an ExamPlatformError carrying a
machine-readable kind, a human message and the HTTP status the API layer
maps it to. None of them should crash a worker.
"""
import logging
from typing import Any, Dict, Optional

from exam_platform.errors import ErrorCode

logger = logging.getLogger(__name__)


class ExamPlatformError(Exception):
    """Base exception for the exam platform"""
    status_code: int = 500
    kind: str = "ExamPlatformError"
    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "error": self.kind,
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result


class AccessDenied(ExamPlatformError):
    """
    Raised when the access policy rejects a student.

    Examples:
    - Student is not a member of the exam's batch
    - Exam is not published
    - Current time is outside the exam window
    """
    status_code = 403
    kind = "AccessDenied"
    code = ErrorCode.ACCESS_DENIED

    def __init__(self, message: str = "You do not have access to this exam or it is not currently active",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class DuplicateAttempt(ExamPlatformError):
    """Raised when a student already holds an attempt for the exam."""
    status_code = 409
    kind = "DuplicateAttempt"
    code = ErrorCode.DUPLICATE_ATTEMPT

    def __init__(self, message: str = "You have already attempted this exam",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AttemptClosed(ExamPlatformError):
    """Raised when answers are written to a submitted attempt."""
    status_code = 409
    kind = "AttemptClosed"
    code = ErrorCode.ATTEMPT_CLOSED

    def __init__(self, message: str = "Cannot modify answers for a submitted exam",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AlreadyClosed(ExamPlatformError):
    """Raised when an explicit submit hits an attempt that is already terminal."""
    status_code = 409
    kind = "AlreadyClosed"
    code = ErrorCode.ALREADY_CLOSED

    def __init__(self, message: str = "Exam has already been submitted",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AttemptExpired(ExamPlatformError):
    """Raised when lazy expiry closed the attempt during this call."""
    status_code = 410
    kind = "AttemptExpired"
    code = ErrorCode.ATTEMPT_EXPIRED

    def __init__(self, message: str = "Time has expired, exam has been auto-submitted",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ValidationError(ExamPlatformError):
    """
    Raised for malformed input.

    Examples:
    - Non-positive marks or duration
    - Objective question without exactly one correct option
    - Answer payload of the wrong shape for the question type
    """
    status_code = 400
    kind = "ValidationError"
    code = ErrorCode.VALIDATION_ERROR


class NotFound(ExamPlatformError):
    status_code = 404
    kind = "NotFound"
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, {"resource": resource, "id": identifier})


class InvalidState(ExamPlatformError):
    """Raised for illegal exam lifecycle transitions (publish twice, delete with attempts)."""
    status_code = 400
    kind = "InvalidState"
    code = ErrorCode.INVALID_STATE


class QuestionSetLocked(ExamPlatformError):
    """Raised on structural edits to a paper attached to a non-draft exam."""
    status_code = 409
    kind = "QuestionSetLocked"
    code = ErrorCode.QUESTION_SET_LOCKED

    def __init__(self, message: str = "Cannot modify a question paper that is linked to a published exam",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvariantViolation(ExamPlatformError):
    """
    Persistence-layer bug: state the lifecycle should make impossible.

    Logged at CRITICAL when raised; never worked around.
    """
    status_code = 500
    kind = "InvariantViolation"
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        logger.critical(f"Invariant violation: {message} details={details}")
        super().__init__(message, details)


class AuthRequired(ExamPlatformError):
    """Raised when a student route is called without a usable student identity."""
    status_code = 401
    kind = "AuthRequired"
    code = ErrorCode.AUTH_REQUIRED

    def __init__(self, message: str = "Student identity is required",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
