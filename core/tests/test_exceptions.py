from django.test import SimpleTestCase

from core.exceptions import (
    AuthenticationError,
    BusinessLogicError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


class BusinessExceptionTest(SimpleTestCase):

    def test_status_codes_and_default_codes(self):
        cases = [
            (ValidationError, 400, 'VALIDATION_ERROR'),
            (AuthenticationError, 401, 'UNAUTHORIZED'),
            (NotFoundError, 404, 'NOT_FOUND'),
            (ConflictError, 409, 'CONFLICT'),
            (BusinessLogicError, 422, 'BUSINESS_RULE_VIOLATION'),
            (ExternalServiceError, 502, 'EXTERNAL_SERVICE_ERROR'),
        ]

        for exception_class, status_code, error_code in cases:
            exc = exception_class("Something failed")
            self.assertEqual(exc.status_code, status_code)
            self.assertEqual(exc.error_code, error_code)
            self.assertEqual(exc.context, {})

    def test_to_dict(self):
        exc = BusinessLogicError("Refused", error_code='INVALID_STATUS_TRANSITION', context={'invoice_id': 3})

        self.assertEqual(exc.to_dict(), {
            'error_type': 'BusinessLogicError',
            'message': 'Refused',
            'error_code': 'INVALID_STATUS_TRANSITION',
            'context': {'invoice_id': 3},
        })

    def test_field_validation_error(self):
        exc = ValidationError.for_field('amount', "Payment amount must be greater than 0")

        self.assertEqual(exc.context, {'amount': ["Payment amount must be greater than 0"]})
        self.assertEqual(str(exc), "Payment amount must be greater than 0")

    def test_not_found_for_resource(self):
        exc = NotFoundError.for_resource('Invoice', 42)

        self.assertEqual(exc.message, "Invoice not found")
        self.assertEqual(exc.context, {'resource': 'Invoice', 'id': '42'})
