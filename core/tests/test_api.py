from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.http import Http404
from django.test import SimpleTestCase
from rest_framework import exceptions as drf_exceptions
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory

from core.api import StandardPagination, api_exception_handler
from core.exceptions import ConflictError, ExternalServiceError


class ApiExceptionHandlerTest(SimpleTestCase):
    """
    Tests for the shared API error envelope.
    """

    def _handle(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_business_exception(self):
        response = self._handle(ConflictError("Invoice number already exists", context={'number': ['A-1']}))

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {
            'error': True,
            'error_type': 'business_error',
            'error_code': 'CONFLICT',
            'message': 'Invoice number already exists',
            'details': {'number': ['A-1']},
        })

    def test_server_side_business_exception(self):
        response = self._handle(ExternalServiceError("PDF failed", error_code='PDF_GENERATION_FAILED'))

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data['error_code'], 'PDF_GENERATION_FAILED')

    def test_drf_validation_error(self):
        response = self._handle(drf_exceptions.ValidationError({'email': ['Enter a valid email address.']}))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error_type'], 'validation_error')
        self.assertEqual(response.data['error_code'], 'VALIDATION_ERROR')
        self.assertEqual(response.data['details']['email'], ['Enter a valid email address.'])

    def test_django_validation_error(self):
        response = self._handle(DjangoValidationError({'due_date': ['Invalid date']}))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['details'], {'due_date': ['Invalid date']})

    def test_not_authenticated(self):
        response = self._handle(drf_exceptions.NotAuthenticated())

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error_type'], 'api_error')
        self.assertEqual(response.data['error_code'], 'UNAUTHORIZED')

    def test_http404(self):
        response = self._handle(Http404())

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error_code'], 'NOT_FOUND')

    def test_throttled_includes_retry_after(self):
        response = self._handle(drf_exceptions.Throttled(wait=30))

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.data['error_code'], 'RATE_LIMIT_EXCEEDED')
        self.assertEqual(response.data['details'], {'retry_after': 30})

    def test_unknown_exception_is_left_to_django(self):
        self.assertIsNone(self._handle(RuntimeError("boom")))


class StandardPaginationTest(SimpleTestCase):

    def test_envelope(self):
        request = Request(APIRequestFactory().get('/api/v1/clients/', {'limit': 2, 'page': 2}))
        paginator = StandardPagination()

        page = paginator.paginate_queryset(list(range(5)), request)
        response = paginator.get_paginated_response(page)

        self.assertEqual(response.data, {
            'data': [2, 3],
            'pagination': {
                'page': 2, 'limit': 2, 'total': 5, 'total_pages': 3, 'has_next': True, 'has_prev': True,
            },
        })

    def test_limit_is_capped(self):
        request = Request(APIRequestFactory().get('/api/v1/clients/', {'limit': 500}))
        paginator = StandardPagination()

        paginator.paginate_queryset(list(range(5)), request)

        self.assertEqual(paginator.page.paginator.per_page, 100)
        self.assertIsInstance(paginator.page.paginator, Paginator)
