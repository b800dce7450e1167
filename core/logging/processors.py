"""
Custom processors for structured logging.

This module provides custom processors for structlog that add
context, sanitize sensitive data, and provide business-specific
information to log entries.
"""

import os
import re
import threading
import uuid


# Thread-local storage for request context
_local = threading.local()


class ContextProcessor:
    """
    Processor that adds request context to log entries.

    This processor extracts information from the current request
    and adds it to the log entry for better traceability.
    """

    def __call__(self, logger, method_name, event_dict):
        """
        Add request context to the log entry.

        Args:
            logger: The logger instance
            method_name: The logging method name (info, error, etc.)
            event_dict: The event dictionary to process

        Returns:
            dict: Enhanced event dictionary with context
        """
        request = getattr(_local, 'request', None)
        if request is not None:
            user = getattr(request, 'user', None)
            is_authenticated = bool(user is not None and user.is_authenticated)
            event_dict.setdefault('request_id', getattr(request, 'id', None) or str(uuid.uuid4()))
            event_dict.setdefault('user_id', user.id if is_authenticated else None)
            event_dict.update({
                'ip_address': get_client_ip(request),
                'request_method': request.method,
                'request_path': request.path,
            })

        event_dict.update({
            'process_id': os.getpid(),
            'thread_id': threading.get_ident(),
            'thread_name': threading.current_thread().name,
        })

        return event_dict


class SanitizationProcessor:
    """
    Processor that sanitizes sensitive data from log entries.

    Removes or masks passwords, tokens and similar secrets before the
    entry is rendered.
    """

    SENSITIVE_PATTERNS = [
        (re.compile(r'password["\']?\s*[:=]\s*["\']?([^"\'}\s,]+)', re.IGNORECASE), 'password'),
        (re.compile(r'token["\']?\s*[:=]\s*["\']?([^"\'}\s,]+)', re.IGNORECASE), 'token'),
        (re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?([^"\'}\s,]+)', re.IGNORECASE), 'api_key'),
        (re.compile(r'secret["\']?\s*[:=]\s*["\']?([^"\'}\s,]+)', re.IGNORECASE), 'secret'),
        (re.compile(r'authorization["\']?\s*[:=]\s*["\']?([^"\'}\s,]+)', re.IGNORECASE), 'authorization'),
    ]

    SENSITIVE_FIELDS = {
        'password', 'new_password', 'current_password', 'token', 'access_token',
        'refresh_token', 'api_key', 'secret', 'authorization', 'credit_card',
    }

    def __call__(self, logger, method_name, event_dict):
        """
        Sanitize sensitive data from the log entry.

        Args:
            logger: The logger instance
            method_name: The logging method name
            event_dict: The event dictionary to process

        Returns:
            dict: Sanitized event dictionary
        """
        if 'event' in event_dict:
            event_dict['event'] = self._sanitize_string(event_dict['event'])

        return self._sanitize_dict(event_dict)

    def _sanitize_dict(self, data):
        if not isinstance(data, dict):
            return data

        sanitized = {}
        for key, value in data.items():
            if str(key).lower() in self.SENSITIVE_FIELDS:
                sanitized[key] = self._mask_value(value)
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, list):
                sanitized[key] = [self._sanitize_dict(item) if isinstance(item, dict) else item for item in value]
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_string(value)
            else:
                sanitized[key] = value

        return sanitized

    def _sanitize_string(self, text):
        if not isinstance(text, str):
            return text

        for pattern, field_type in self.SENSITIVE_PATTERNS:
            text = pattern.sub(f'{field_type}=***MASKED***', text)

        return text

    def _mask_value(self, value):
        """
        Mask a sensitive value, keeping two characters at each end of long values.
        """
        if value is None:
            return None

        value_str = str(value)
        if len(value_str) <= 4:
            return '***'
        return f"{value_str[:2]}***{value_str[-2:]}"


class BusinessContextProcessor:
    """
    Processor that adds business-specific context to log entries.

    Tags each entry with the business domain of the emitting module and
    normalizes entity ids (invoice, client, payment, user) found in it.
    """

    DOMAINS = (
        ('invoicing', 'invoice_management'),
        ('clients', 'client_management'),
        ('accounts', 'account_management'),
    )

    ENTITY_KEYS = {
        'invoice_id': ['invoice_id', 'invoice'],
        'client_id': ['client_id', 'client'],
        'payment_id': ['payment_id', 'payment'],
        'user_id': ['user_id', 'owner_id'],
    }

    def __call__(self, logger, method_name, event_dict):
        """
        Add business context to the log entry.

        Args:
            logger: The logger instance
            method_name: The logging method name
            event_dict: The event dictionary to process

        Returns:
            dict: Enhanced event dictionary with business context
        """
        logger_name = event_dict.get('logger', '') or ''

        event_dict['business_domain'] = 'general'
        for prefix, domain in self.DOMAINS:
            if logger_name.startswith(prefix):
                event_dict['business_domain'] = domain
                break

        self._extract_entity_ids(event_dict)

        from django.conf import settings
        event_dict['environment'] = getattr(settings, 'ENVIRONMENT', 'unknown')

        return event_dict

    def _extract_entity_ids(self, event_dict):
        for entity_type, possible_keys in self.ENTITY_KEYS.items():
            for key in possible_keys:
                value = event_dict.get(key)
                if value:
                    event_dict[entity_type] = getattr(value, 'pk', value)
                    break


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


def set_request_context(request):
    """
    Set the current request in thread-local storage.

    Called by middleware to make request context available to the
    ContextProcessor.
    """
    _local.request = request


def clear_request_context():
    """Clear the request context from thread-local storage."""
    if hasattr(_local, 'request'):
        delattr(_local, 'request')


def get_request_context():
    """
    Get the current request from thread-local storage.

    Returns:
        HttpRequest or None: Current request object
    """
    return getattr(_local, 'request', None)
