"""
Custom exceptions for the invoicing backend.

This module defines a hierarchy of business exceptions. Each one carries
a machine-readable error code, extra context, and the HTTP status the API
layer answers with.
"""


class BaseBusinessException(Exception):
    """
    Base exception for all business logic errors in the system.

    Provides a consistent interface for handling business errors with
    additional context and error codes.
    """

    status_code = 400
    default_error_code = 'BUSINESS_ERROR'

    def __init__(self, message, error_code=None, context=None):
        """
        Initialize the business exception.

        Args:
            message (str): Human-readable error message
            error_code (str, optional): Machine-readable error code
            context (dict, optional): Additional context information
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self):
        """
        Convert exception to dictionary for logging and API responses.

        Returns:
            dict: Exception data in dictionary format
        """
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context
        }


class ValidationError(BaseBusinessException):
    """
    Exception raised when data validation fails.

    ``context`` maps field names to lists of messages when the failure is
    tied to specific fields.
    """
    status_code = 400
    default_error_code = 'VALIDATION_ERROR'

    @classmethod
    def for_field(cls, field, message):
        return cls(message, context={field: [message]})


class AuthenticationError(BaseBusinessException):
    """Exception raised when credentials or tokens are missing or invalid."""
    status_code = 401
    default_error_code = 'UNAUTHORIZED'


class AuthorizationError(BaseBusinessException):
    """
    Exception raised when user lacks permission for an action.
    """
    status_code = 403
    default_error_code = 'FORBIDDEN'


class NotFoundError(BaseBusinessException):
    """
    Exception raised when a record does not exist within the caller's scope.
    """
    status_code = 404
    default_error_code = 'NOT_FOUND'

    @classmethod
    def for_resource(cls, resource, identifier):
        return cls(
            f"{resource} not found",
            context={'resource': resource, 'id': str(identifier)}
        )


class ConflictError(BaseBusinessException):
    """Exception raised when a write collides with an existing unique record."""
    status_code = 409
    default_error_code = 'CONFLICT'


class BusinessLogicError(BaseBusinessException):
    """
    Exception raised when business rules are violated.

    Used for domain-specific rule violations that don't fit into other
    exception categories, such as refused status transitions.
    """
    status_code = 422
    default_error_code = 'BUSINESS_RULE_VIOLATION'


class ExternalServiceError(BaseBusinessException):
    """
    Exception raised when external service calls fail.

    Used for email delivery and PDF rendering failures.
    """
    status_code = 502
    default_error_code = 'EXTERNAL_SERVICE_ERROR'
