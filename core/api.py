"""
REST framework integration for the shared error envelope and pagination.

Every API error, whether raised by a service as a business exception or
by DRF itself, is rendered as::

    {"error": true, "error_type": ..., "error_code": ..., "message": ..., "details": ...}
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseBusinessException
from core.logging_config import get_logger


logger = get_logger(__name__)


DRF_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: 'VALIDATION_ERROR',
    status.HTTP_401_UNAUTHORIZED: 'UNAUTHORIZED',
    status.HTTP_403_FORBIDDEN: 'FORBIDDEN',
    status.HTTP_404_NOT_FOUND: 'NOT_FOUND',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'METHOD_NOT_ALLOWED',
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: 'UNSUPPORTED_MEDIA_TYPE',
    status.HTTP_429_TOO_MANY_REQUESTS: 'RATE_LIMIT_EXCEEDED',
}


def error_payload(error_type, message, error_code=None, details=None):
    return {
        'error': True,
        'error_type': error_type,
        'error_code': error_code,
        'message': message,
        'details': details,
    }


def business_error_payload(exception):
    return error_payload(
        'business_error',
        exception.message,
        error_code=exception.error_code,
        details=exception.context,
    )


def format_django_validation_error(exception):
    if hasattr(exception, 'error_dict'):
        return {
            field: [str(message) for error in errors for message in error.messages]
            for field, errors in exception.error_dict.items()
        }
    return {'non_field_errors': [str(message) for message in exception.messages]}


def api_exception_handler(exc, context):
    """
    DRF exception handler that renders the shared error envelope.

    Business exceptions keep their own status code and error code; DRF
    and Django errors are mapped onto the same shape.
    """
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else None

    if isinstance(exc, BaseBusinessException):
        log = logger.warning if exc.status_code < 500 else logger.error
        log("Business error", view=view_name, **exc.to_dict())
        return Response(business_error_payload(exc), status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        return Response(
            error_payload('validation_error', 'Validation failed', 'VALIDATION_ERROR',
                          format_django_validation_error(exc)),
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()

    response = exception_handler(exc, context)
    if response is None:
        return None

    error_code = DRF_ERROR_CODES.get(response.status_code, 'ERROR')
    if isinstance(exc, drf_exceptions.ValidationError):
        payload = error_payload('validation_error', 'Validation failed', error_code, response.data)
    else:
        detail = response.data.get('detail') if isinstance(response.data, dict) else response.data
        details = None
        if isinstance(exc, drf_exceptions.Throttled):
            details = {'retry_after': exc.wait}
        payload = error_payload('api_error', str(detail), error_code, details)

    response.data = payload
    return response


class StandardPagination(PageNumberPagination):
    """
    Page-number pagination using ``page``/``limit`` query parameters.
    """
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        page = self.page
        return Response({
            'data': data,
            'pagination': {
                'page': page.number,
                'limit': page.paginator.per_page,
                'total': page.paginator.count,
                'total_pages': page.paginator.num_pages,
                'has_next': page.has_next(),
                'has_prev': page.has_previous(),
            },
        })
