"""
Middleware for logging context management.

This middleware captures request context and makes it available
to logging processors throughout the request lifecycle.
"""

import uuid
import time
from django.conf import settings
from django.utils.deprecation import MiddlewareMixin
from core.logging.processors import set_request_context, clear_request_context, get_client_ip
from core.logging_config import get_logger


REQUEST_ID_HEADER = 'X-Request-ID'


class LoggingContextMiddleware(MiddlewareMixin):
    """
    Middleware that manages logging context for requests.

    This middleware:
    1. Reuses the caller's X-Request-ID or generates a new one
    2. Sets request context for logging processors
    3. Logs request start and completion
    4. Echoes the request id back in the response headers
    """

    def __init__(self, get_response=None):
        """Initialize the middleware."""
        super().__init__(get_response)
        self.logger = get_logger(__name__)
        self.slow_request_threshold = getattr(
            settings, 'ERROR_HANDLING_CONFIG', {}
        ).get('slow_request_threshold', 5.0)

    def process_request(self, request):
        """
        Process incoming request and set up logging context.

        Args:
            request: Django HttpRequest object
        """
        request.id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request._logging_start_time = time.time()

        set_request_context(request)

        self.logger.info(
            "Request started",
            request_id=request.id,
            method=request.method,
            path=request.path,
            ip_address=get_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', '')[:200]
        )

    def process_response(self, request, response):
        """
        Process response and log request completion.

        Args:
            request: Django HttpRequest object
            response: Django HttpResponse object

        Returns:
            HttpResponse: The response object
        """
        duration = None
        if hasattr(request, '_logging_start_time'):
            duration = time.time() - request._logging_start_time

        request_id = getattr(request, 'id', None)
        self.logger.info(
            "Request completed",
            request_id=request_id,
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration=duration,
        )

        if duration and duration > self.slow_request_threshold:
            self.logger.warning(
                "Slow request detected",
                request_id=request_id,
                method=request.method,
                path=request.path,
                duration=duration,
                status_code=response.status_code
            )

        if request_id:
            response[REQUEST_ID_HEADER] = request_id

        clear_request_context()

        return response

    def process_exception(self, request, exception):
        """
        Log the exception with request context; Django keeps handling it.
        """
        duration = None
        if hasattr(request, '_logging_start_time'):
            duration = time.time() - request._logging_start_time

        self.logger.error(
            "Request failed with exception",
            request_id=getattr(request, 'id', None),
            method=request.method,
            path=request.path,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            duration=duration,
            exc_info=True
        )

        return None
