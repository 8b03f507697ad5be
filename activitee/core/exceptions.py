"""
Application exceptions for centralized error handling
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Authentication errors ===
class AuthenticationError(BaseAppException):
    """Missing, malformed or expired bearer credential"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, "AUTHENTICATION_ERROR", details)


class AuthorizationError(BaseAppException):
    """Caller is neither a superadmin nor an active manager"""

    def __init__(
        self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, 403, "AUTHORIZATION_ERROR", details)


# === Validation errors ===
class ValidationError(BaseAppException):
    """Invalid input data"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(message, 400, error_code, details)


class InvalidRangeError(ValidationError):
    """Recurrence end date precedes its start date"""

    def __init__(self, start_date, end_date):
        message = f"Invalid date range: end {end_date} is before start {start_date}"
        details = {"start_date": str(start_date), "end_date": str(end_date)}
        super().__init__(message, details, "INVALID_RANGE")


class NoTargetGroupsError(ValidationError):
    """No schedulable group left after filtering the group target"""

    def __init__(self, requested: Optional[list] = None):
        super().__init__(
            "No target groups selected",
            {"requested_group_ids": requested or []},
            "NO_TARGET_GROUPS",
        )


# === Resource errors ===
class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Conflicts ===
class ConflictError(BaseAppException):
    """Operation contradicts a structural invariant"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "CONFLICT",
    ):
        super().__init__(message, 409, error_code, details)


class HeadCoachRemovalForbiddenError(ConflictError):
    def __init__(self, group_id: int, coach_id: int):
        super().__init__(
            "Cannot remove head coach from group",
            {"group_id": group_id, "coach_id": coach_id},
            "HEAD_COACH_REMOVAL_FORBIDDEN",
        )


class CrossOrganizationTargetError(ConflictError):
    def __init__(self, group_id: int, organization_id: int):
        super().__init__(
            "Target group not in this organization",
            {"group_id": group_id, "organization_id": organization_id},
            "CROSS_ORGANIZATION_TARGET",
        )


# === Database errors ===
class PersistenceError(BaseAppException):
    """The store rejected a read or write"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "PERSISTENCE_ERROR", details)


class DatabaseConnectionError(PersistenceError):
    """Database connection error"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message)
        self.status_code = 503
        self.error_code = "DATABASE_CONNECTION_ERROR"


class DatabaseTimeoutError(PersistenceError):
    """Database operation timeout"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        super().__init__(message, {"operation": operation, "timeout": timeout})
        self.status_code = 504
        self.error_code = "DATABASE_TIMEOUT"


class DatabaseIntegrityError(PersistenceError):
    """Data integrity error"""

    def __init__(self, constraint: str, details: Optional[Dict[str, Any]] = None):
        message = f"Database integrity constraint violated: {constraint}"
        error_details = {"constraint": constraint}
        if details:
            error_details.update(details)
        super().__init__(message, error_details)
        self.status_code = 409
        self.error_code = "DATABASE_INTEGRITY_ERROR"


# === Configuration errors ===
class ConfigurationError(BaseAppException):
    """Configuration error"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
