import sys
from unittest.mock import MagicMock, patch

from celery.exceptions import Retry
from django.core import mail
from django.test import TestCase

from core.exceptions import ExternalServiceError
from invoicing.tasks import send_invoice_email_task
from invoicing.tests.helpers import make_client, make_invoice, make_user


class SendInvoiceEmailTaskTest(TestCase):
    """
    Test suite for the invoice email task.
    """

    def setUp(self):
        self.owner = make_user()
        self.invoice = make_invoice(self.owner, make_client(self.owner))
        self.weasyprint = MagicMock()
        self.weasyprint.HTML.return_value.write_pdf.return_value = b'%PDF-1.7 invoice'

    def test_email_is_sent_with_pdf_attached(self):
        with patch.dict(sys.modules, {'weasyprint': self.weasyprint}):
            result = send_invoice_email_task(self.invoice.pk, ['billing@acme.test'], cc=['boss@acme.test'],
                                             message='Late fees waived this month.')

        self.assertTrue(result['success'])
        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.to, ['billing@acme.test'])
        self.assertEqual(email.cc, ['boss@acme.test'])
        self.assertIn(self.invoice.number, email.subject)
        self.assertIn('Late fees waived this month.', email.body)
        filename, content, mimetype = email.attachments[0]
        self.assertEqual(filename, f'invoice_{self.invoice.number}.pdf')
        self.assertEqual(content, b'%PDF-1.7 invoice')
        self.assertEqual(mimetype, 'application/pdf')

    def test_custom_subject(self):
        with patch.dict(sys.modules, {'weasyprint': self.weasyprint}):
            send_invoice_email_task(self.invoice.pk, ['billing@acme.test'], subject='March invoice')

        self.assertEqual(mail.outbox[0].subject, 'March invoice')

    def test_missing_invoice_is_dropped(self):
        result = send_invoice_email_task(self.invoice.pk + 1000, ['billing@acme.test'])

        self.assertEqual(result, {'success': False, 'error': 'invoice_not_found'})
        self.assertEqual(len(mail.outbox), 0)

    @patch('invoicing.tasks.send_invoice_email')
    def test_delivery_failure_is_retried(self, send_email):
        send_email.side_effect = ExternalServiceError("SMTP unavailable")

        with patch.object(send_invoice_email_task, 'retry', side_effect=Retry()) as retry:
            with self.assertRaises(Retry):
                send_invoice_email_task(self.invoice.pk, ['billing@acme.test'])

        self.assertEqual(retry.call_args.kwargs['countdown'], 60)

    @patch('invoicing.tasks.send_invoice_email')
    def test_gives_up_after_max_retries(self, send_email):
        send_email.side_effect = OSError("connection refused")
        exhausted = send_invoice_email_task.MaxRetriesExceededError()

        with patch.object(send_invoice_email_task, 'retry', side_effect=exhausted):
            result = send_invoice_email_task(self.invoice.pk, ['billing@acme.test'])

        self.assertFalse(result['success'])
        self.assertTrue(result['max_retries_exceeded'])
