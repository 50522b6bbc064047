"""
Domain exceptions raised by services.

Each exception carries a machine-readable code (ENTRY_UNBALANCED,
CALL_NOT_SENT, ...) and the HTTP status api.exceptions answers with.
"""


class BaseApplicationException(Exception):
    """Base exception for all application-specific exceptions"""
    status_code = 400
    default_message = "An application error occurred"
    default_code = "APPLICATION_ERROR"

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'detail': self.message, 'error_code': self.code, 'details': self.details}


class ValidationError(BaseApplicationException):
    """Input rejected before any rule is evaluated"""
    default_message = "Validation failed"
    default_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationException):
    """Missing row, or a row outside the caller's scope"""
    status_code = 404
    default_message = "Resource not found"
    default_code = "NOT_FOUND"

    def __init__(self, resource_type=None, resource_id=None, **kwargs):
        self.resource_type = resource_type
        self.resource_id = resource_id
        if 'message' not in kwargs and resource_type:
            kwargs['message'] = f"{resource_type} not found"
        super().__init__(**kwargs)


class PermissionDeniedError(BaseApplicationException):
    status_code = 403
    default_message = "Permission denied"
    default_code = "PERMISSION_DENIED"


class BusinessLogicError(BaseApplicationException):
    """Valid input that a business rule refuses (posted entry, unpaid receipt...)"""
    status_code = 422
    default_message = "Business rule violation"
    default_code = "BUSINESS_RULE_VIOLATION"


class LimitExceededError(BusinessLogicError):
    """Plan limit reached (residences, managers)"""
    default_message = "Limit exceeded"
    default_code = "LIMIT_EXCEEDED"


class ConflictError(BusinessLogicError):
    """Resource already taken or changed concurrently"""
    status_code = 409
    default_message = "Resource is being modified by another user"
    default_code = "CONFLICT"


class InvalidTransitionError(BusinessLogicError):
    """Status change not allowed from the current status"""
    default_message = "Status transition not allowed"
    default_code = "INVALID_TRANSITION"
