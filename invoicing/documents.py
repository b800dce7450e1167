"""
Invoice documents: PDF rendering and email delivery.
"""

from django.conf import settings
from django.core.mail import EmailMessage
from django.template.loader import render_to_string

from core.exceptions import ExternalServiceError
from core.logging_config import get_logger


logger = get_logger(__name__)

PDF_TEMPLATE = 'invoicing/invoice_pdf.html'
EMAIL_TEMPLATE = 'invoicing/invoice_email.txt'


def invoice_context(invoice):
    return {
        'invoice': invoice,
        'client': invoice.client,
        'owner': invoice.owner,
        'items': list(invoice.items.all()),
        'payments': list(invoice.payments.all()),
        'site_name': settings.SITE_NAME,
    }


def render_invoice_pdf(invoice):
    """
    Render the invoice to a PDF document with WeasyPrint.

    Returns:
        bytes: PDF content

    Raises:
        ExternalServiceError: If the PDF cannot be generated
    """
    from weasyprint import HTML

    html_string = render_to_string(PDF_TEMPLATE, invoice_context(invoice))
    try:
        pdf_content = HTML(string=html_string).write_pdf()
    except Exception as exc:
        logger.error("PDF generation failed", invoice_id=invoice.pk, error=str(exc), exc_info=True)
        raise ExternalServiceError("Could not generate the invoice PDF", error_code='PDF_GENERATION_FAILED',
                                   context={'invoice_id': invoice.pk})

    if not pdf_content:
        raise ExternalServiceError("Generated PDF is empty", error_code='PDF_GENERATION_FAILED',
                                   context={'invoice_id': invoice.pk})

    logger.info("Invoice PDF generated", invoice_id=invoice.pk, pdf_size=len(pdf_content))
    return pdf_content


def pdf_filename(invoice):
    return f"invoice_{invoice.number}.pdf"


def send_invoice_email(invoice, to, cc=None, subject=None, message=None):
    """
    Email the invoice PDF to ``to`` (and ``cc``).

    Args:
        invoice: Invoice to send
        to: Recipient addresses
        cc: Optional carbon-copy addresses
        subject: Subject line, defaults to "Invoice <number>"
        message: Optional text placed above the invoice summary

    Returns:
        int: Number of messages delivered by the email backend
    """
    context = invoice_context(invoice)
    context['message'] = message or ''
    body = render_to_string(EMAIL_TEMPLATE, context)

    email = EmailMessage(
        subject or f"Invoice {invoice.number} from {invoice.owner.full_name or settings.SITE_NAME}",
        body,
        settings.DEFAULT_FROM_EMAIL,
        list(to),
        cc=list(cc or []),
    )
    email.attach(pdf_filename(invoice), render_invoice_pdf(invoice), 'application/pdf')

    sent = email.send()
    logger.info("Invoice email sent", invoice_id=invoice.pk, recipients=len(to), cc=len(cc or []))
    return sent
