"""
Tests for logging processors.

This module contains unit tests for the custom logging processors
that handle context, sanitization, and business-specific information.
"""

from unittest.mock import Mock

from django.test import RequestFactory, TestCase, override_settings

from accounts.models import User
from core.logging.processors import (
    BusinessContextProcessor,
    ContextProcessor,
    SanitizationProcessor,
    clear_request_context,
    get_client_ip,
    get_request_context,
    set_request_context,
)


class ContextProcessorTest(TestCase):
    """Tests for the ContextProcessor."""

    def setUp(self):
        self.processor = ContextProcessor()
        self.factory = RequestFactory()
        self.user = User.objects.create_user(
            username='test@example.com',
            email='test@example.com',
            password='testpass123'
        )

    def tearDown(self):
        clear_request_context()

    def test_context_processor_without_request(self):
        result = self.processor(None, 'info', {'event': 'test message'})

        self.assertIn('process_id', result)
        self.assertIn('thread_id', result)
        self.assertIn('thread_name', result)
        self.assertNotIn('request_id', result)
        self.assertNotIn('user_id', result)

    def test_context_processor_with_request(self):
        request = self.factory.get('/api/v1/invoices/')
        request.user = self.user
        request.id = 'req-123'
        set_request_context(request)

        result = self.processor(None, 'info', {'event': 'test message'})

        self.assertEqual(result['request_id'], 'req-123')
        self.assertEqual(result['user_id'], self.user.id)
        self.assertEqual(result['request_method'], 'GET')
        self.assertEqual(result['request_path'], '/api/v1/invoices/')
        self.assertIn('ip_address', result)

    def test_explicit_values_are_kept(self):
        request = self.factory.get('/test/')
        request.user = self.user
        set_request_context(request)

        result = self.processor(None, 'info', {'event': 'test', 'user_id': 99})

        self.assertEqual(result['user_id'], 99)

    def test_context_processor_with_anonymous_user(self):
        request = self.factory.get('/test/')
        request.user = Mock()
        request.user.is_authenticated = False
        set_request_context(request)

        result = self.processor(None, 'info', {'event': 'test message'})

        self.assertIsNone(result['user_id'])
        self.assertTrue(result['request_id'])

    def test_get_client_ip_with_forwarded_header(self):
        request = self.factory.get('/test/')
        request.META['HTTP_X_FORWARDED_FOR'] = '192.168.1.1, 10.0.0.1'

        self.assertEqual(get_client_ip(request), '192.168.1.1')

    def test_get_client_ip_without_forwarded_header(self):
        request = self.factory.get('/test/')
        request.META['REMOTE_ADDR'] = '127.0.0.1'

        self.assertEqual(get_client_ip(request), '127.0.0.1')


class SanitizationProcessorTest(TestCase):
    """Tests for the SanitizationProcessor."""

    def setUp(self):
        self.processor = SanitizationProcessor()

    def test_sanitize_password_in_message(self):
        result = self.processor(None, 'info', {'event': 'User login with password=secret123'})

        self.assertIn('password=***MASKED***', result['event'])
        self.assertNotIn('secret123', result['event'])

    def test_sanitize_token_in_message(self):
        result = self.processor(None, 'info', {'event': 'API call with token="abc123xyz"'})

        self.assertIn('token=***MASKED***', result['event'])
        self.assertNotIn('abc123xyz', result['event'])

    def test_sanitize_sensitive_fields(self):
        event_dict = {
            'event': 'User action',
            'password': 'secret123',
            'refresh_token': 'abc123xyz',
            'api_key': 'key_12345',
            'invoice_number': 'INV-2024-0001'
        }

        result = self.processor(None, 'info', event_dict)

        self.assertEqual(result['password'], 'se***23')
        self.assertEqual(result['refresh_token'], 'ab***yz')
        self.assertEqual(result['api_key'], 'ke***45')
        self.assertEqual(result['invoice_number'], 'INV-2024-0001')

    def test_sanitize_nested_dict(self):
        event_dict = {
            'event': 'User action',
            'payload': {
                'email': 'test@example.com',
                'password': 'secret123',
                'profile': {'new_password': 'nested_key_123'}
            }
        }

        result = self.processor(None, 'info', event_dict)

        self.assertEqual(result['payload']['password'], 'se***23')
        self.assertEqual(result['payload']['profile']['new_password'], 'ne***23')
        self.assertEqual(result['payload']['email'], 'test@example.com')

    def test_mask_short_values(self):
        self.assertEqual(self.processor._mask_value('abc'), '***')

    def test_mask_none_value(self):
        self.assertIsNone(self.processor._mask_value(None))


class BusinessContextProcessorTest(TestCase):
    """Tests for the BusinessContextProcessor."""

    def setUp(self):
        self.processor = BusinessContextProcessor()

    @override_settings(ENVIRONMENT='test')
    def test_add_environment_info(self):
        result = self.processor(None, 'info', {'event': 'test message'})

        self.assertEqual(result['environment'], 'test')

    def test_business_domain_detection(self):
        test_cases = [
            ('invoicing.services', 'invoice_management'),
            ('clients.views', 'client_management'),
            ('accounts.services.token_service', 'account_management'),
            ('core.api', 'general'),
        ]

        for logger_name, expected_domain in test_cases:
            result = self.processor(None, 'info', {'event': 'test', 'logger': logger_name})
            self.assertEqual(result['business_domain'], expected_domain)

    def test_entity_id_extraction(self):
        event_dict = {
            'event': 'test message',
            'invoice': Mock(pk=123),
            'client': 456,
            'owner_id': 789,
            'some_other_field': 'value'
        }

        result = self.processor(None, 'info', event_dict)

        self.assertEqual(result['invoice_id'], 123)
        self.assertEqual(result['client_id'], 456)
        self.assertEqual(result['user_id'], 789)
        self.assertEqual(result['client'], 456)
        self.assertEqual(result['some_other_field'], 'value')


class RequestContextTest(TestCase):
    """Tests for request context management functions."""

    def setUp(self):
        self.factory = RequestFactory()

    def tearDown(self):
        clear_request_context()

    def test_set_and_get_request_context(self):
        request = self.factory.get('/test/')
        self.assertIsNone(get_request_context())

        set_request_context(request)

        self.assertEqual(get_request_context(), request)

    def test_clear_request_context(self):
        set_request_context(self.factory.get('/test/'))
        self.assertIsNotNone(get_request_context())

        clear_request_context()
        self.assertIsNone(get_request_context())

    def test_multiple_clear_context(self):
        clear_request_context()
        clear_request_context()
