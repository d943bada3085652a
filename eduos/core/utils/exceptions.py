# eduos/core/utils/exceptions.py
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class EduOSException(HTTPException):
    """Base error. Subclasses fix the status code and a default message."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, detail: Any = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or type(self).message,
            headers=headers,
        )


# =========================================================
# 🔹 TAXONOMY
# =========================================================

class Unauthenticated(EduOSException):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"

    def __init__(self, detail: Any = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(detail, headers or {"WWW-Authenticate": "Bearer"})


class Forbidden(EduOSException):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You do not have permission to perform this action"


class ValidationFailed(EduOSException):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class Conflict(EduOSException):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Resource already exists"


class NotFound(EduOSException):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


# =========================================================
# 🔹 AUTHENTICATION
# =========================================================

class InvalidCredentials(Unauthenticated):
    message = "Invalid credentials"


class InvalidStudentId(Unauthenticated):
    message = "Invalid Student ID"


class InvalidResetToken(Unauthenticated):
    message = "Invalid or expired reset token"


class FaceMismatch(Unauthenticated):
    message = "Face recognition failed"


class WrongLoginChannel(Forbidden):
    message = "Students must login using their allocated Student ID"


class InvalidRole(ValidationFailed):
    message = "Students must use their allocated ID to login. Registration is not allowed for students."


class FaceRequired(ValidationFailed):
    message = "Face recognition is required for admin login"


class WeakPassword(ValidationFailed):
    message = "Password must be at least 6 characters"


class DuplicateEmail(Conflict):
    message = "This email has already been registered"


class DuplicateStudentId(Conflict):
    message = "Student ID already allocated to another student"


# =========================================================
# 🔹 LEDGERS
# =========================================================

class AlreadyMarked(Conflict):
    message = "Attendance already marked for today"


class OutsideWindow(ValidationFailed):
    message = "Attendance can only be marked during school hours (8 AM - 5 PM)"


class NotInClass(Forbidden):
    message = "Student not in your class"


class OutOfRange(ValidationFailed):
    message = "Value must be between 0 and 100"


class AlreadyReviewed(Conflict):
    message = "Medical request has already been reviewed"
