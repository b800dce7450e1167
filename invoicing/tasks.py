from smtplib import SMTPException

from celery import shared_task

from core.exceptions import ExternalServiceError
from core.logging_config import get_logger
from invoicing.documents import send_invoice_email
from invoicing.models import Invoice


logger = get_logger(__name__)


@shared_task(bind=True, max_retries=3)
def send_invoice_email_task(self, invoice_id, to, cc=None, subject=None, message=None):
    """
    Deliver an invoice by email with its PDF attached.

    Delivery failures are retried with a growing delay; a missing invoice
    is logged and dropped.
    """
    try:
        invoice = Invoice.objects.select_related('client', 'owner').get(pk=invoice_id)
    except Invoice.DoesNotExist:
        logger.warning("Invoice not found for email delivery", invoice_id=invoice_id)
        return {'success': False, 'error': 'invoice_not_found'}

    try:
        sent = send_invoice_email(invoice, to, cc=cc, subject=subject, message=message)
    except (ExternalServiceError, SMTPException, OSError) as exc:
        logger.error("Invoice email delivery failed", invoice_id=invoice_id,
                     attempt=self.request.retries + 1, error=str(exc))
        try:
            raise self.retry(countdown=60 * (self.request.retries + 1), exc=exc)
        except self.MaxRetriesExceededError:
            logger.error("Maximum retries reached for invoice email", invoice_id=invoice_id)
            return {'success': False, 'error': str(exc), 'max_retries_exceeded': True}

    return {'success': True, 'invoice_id': invoice_id, 'sent': sent}
