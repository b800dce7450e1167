"""
Error handling middleware for the invoicing backend.

API views render their own errors through ``core.api.api_exception_handler``;
this middleware covers everything else (plain Django views, admin, errors
raised outside DRF) with the same JSON envelope.
"""

import traceback
from django.conf import settings
from django.http import JsonResponse, Http404
from django.utils.deprecation import MiddlewareMixin
from django.core.exceptions import PermissionDenied, ValidationError as DjangoValidationError
from core.api import business_error_payload, error_payload, format_django_validation_error
from core.exceptions import BaseBusinessException
from core.logging.processors import get_client_ip
from core.logging_config import get_logger


class ErrorHandlingMiddleware(MiddlewareMixin):
    """
    Middleware for global error handling and logging.

    This middleware:
    1. Captures unhandled exceptions
    2. Logs errors with request context
    3. Returns JSON error responses
    """

    SENSITIVE_FIELDS = {
        'password', 'new_password', 'current_password', 'token',
        'refresh_token', 'api_key', 'secret', 'authorization',
    }

    def __init__(self, get_response=None):
        """Initialize the middleware."""
        super().__init__(get_response)
        self.logger = get_logger(__name__)

    def process_exception(self, request, exception):
        """
        Process unhandled exceptions and return appropriate responses.

        Args:
            request: Django HttpRequest object
            exception: Exception that occurred

        Returns:
            JsonResponse: Error response
        """
        self._log_error(request, exception)

        if isinstance(exception, BaseBusinessException):
            return JsonResponse(business_error_payload(exception), status=exception.status_code)
        if isinstance(exception, DjangoValidationError):
            return JsonResponse(
                error_payload('validation_error', 'Validation failed', 'VALIDATION_ERROR',
                              format_django_validation_error(exception)),
                status=400,
            )
        if isinstance(exception, PermissionDenied):
            return JsonResponse(
                error_payload('permission_error', 'Access denied', 'FORBIDDEN',
                              str(exception) or 'You do not have permission to access this resource'),
                status=403,
            )
        if isinstance(exception, Http404):
            return JsonResponse(
                error_payload('not_found_error', 'Resource not found', 'NOT_FOUND',
                              str(exception) or 'The requested resource was not found'),
                status=404,
            )
        return self._handle_system_error(exception)

    def _log_error(self, request, exception):
        context = {
            'request_id': getattr(request, 'id', None),
            'request_method': request.method,
            'request_path': request.path,
            'request_data': self._sanitize_request_data(request),
            'ip_address': get_client_ip(request),
            'exception_type': type(exception).__name__,
            'exception_message': str(exception),
        }

        if isinstance(exception, (Http404, PermissionDenied)):
            self.logger.warning("Expected error occurred", **context)
        elif isinstance(exception, BaseBusinessException):
            self.logger.error(
                "Business logic error occurred",
                error_code=exception.error_code,
                business_context=exception.context,
                **context
            )
        else:
            self.logger.critical("System error occurred", exc_info=True, **context)

    def _handle_system_error(self, exception):
        # Internal details are only exposed in DEBUG
        if settings.DEBUG:
            message = str(exception)
            details = {
                'exception_type': type(exception).__name__,
                'traceback': traceback.format_exc()
            }
        else:
            message = 'An internal server error occurred'
            details = None

        return JsonResponse(
            error_payload('system_error', message, 'INTERNAL_SERVER_ERROR', details),
            status=500,
        )

    def _sanitize_request_data(self, request):
        def sanitize_dict(data):
            sanitized = {}
            for key, value in data.items():
                if key.lower() in self.SENSITIVE_FIELDS:
                    sanitized[key] = '***SANITIZED***'
                else:
                    sanitized[key] = value
            return sanitized

        sanitized_data = {}
        if request.GET:
            sanitized_data['GET'] = sanitize_dict(request.GET.dict())
        if request.method == 'POST' and request.POST:
            sanitized_data['POST'] = sanitize_dict(request.POST.dict())
        return sanitized_data
