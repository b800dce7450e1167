"""
Business logic for invoices.

``InvoiceService`` scopes every operation to the owning user, keeps the
client financial rollup in sync after each change, and turns refused
state changes into business exceptions for the API layer.
"""

from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from clients.services import ClientService
from core.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from core.filters import ordering, tag_filter
from core.logging_config import get_logger
from invoicing import ledger
from invoicing.documents import render_invoice_pdf
from invoicing.models import Invoice, InvoiceSequence, Payment
from invoicing.tasks import send_invoice_email_task


SORT_FIELDS = {'number', 'issue_date', 'due_date', 'total', 'status', 'created_at'}

ITEM_FIELDS = ('description', 'quantity', 'unit_price', 'tax_rate', 'discount', 'category', 'unit')
REQUIRED_ITEM_FIELDS = ('description', 'quantity', 'unit_price')

# Fields copied when an invoice is duplicated
COPY_FIELDS = (
    'currency', 'tax_rate', 'discount_type', 'discount_value', 'shipping_cost',
    'notes', 'terms', 'payment_terms', 'tags', 'metadata',
)


class InvoiceService:
    """
    Service for invoice CRUD, payments, status changes and delivery.
    """

    def __init__(self, client_service=None):
        self.logger = get_logger(f"{__name__}.InvoiceService")
        self.clients = client_service or ClientService()

    def allocate_number(self, owner, year=None):
        return InvoiceSequence.next_number(owner, year=year)

    def create_invoice(self, owner, data):
        """
        Create a draft invoice with its line items.

        Args:
            owner: Owning user
            data: Validated data with ``client_id``, ``items`` and invoice fields

        Returns:
            Invoice: The saved invoice

        Raises:
            NotFoundError: If the client does not belong to the owner
            ValidationError: If items, dates or discount are invalid
            ConflictError: If the explicit number is already used
        """
        data = dict(data)
        client = self.clients.get_client(owner, data.pop('client_id'))
        items = data.pop('items', None) or []
        data.pop('status', None)

        issue_date = data.get('issue_date') or timezone.localdate()
        data['issue_date'] = issue_date
        if not data.get('due_date'):
            data['due_date'] = issue_date + timedelta(days=client.payment_terms)
        if data.get('currency'):
            data['currency'] = data['currency'].upper()

        self._validate_items(items)
        self._validate_dates(data['issue_date'], data['due_date'])

        invoice = Invoice(owner=owner, client=client, **data)
        invoice.set_items(items)
        self._save(invoice, check_number=bool(invoice.number))

        self.logger.info("Invoice created successfully", invoice_id=invoice.pk, invoice_number=invoice.number,
                         client_id=client.pk, user_id=owner.pk, total=str(invoice.total))
        self.clients.update_financials(client)
        return invoice

    def list_invoices(self, owner, filters=None):
        """
        Return the owner's invoices filtered and ordered by ``filters``.

        Supported keys: search, client, status, currency, min_amount,
        max_amount, issued_after, issued_before, due_after, due_before,
        tags, sort, order.
        """
        filters = filters or {}
        queryset = Invoice.objects.filter(owner=owner).select_related('client')

        search = filters.get('search')
        if search:
            queryset = queryset.filter(
                Q(number__icontains=search) | Q(notes__icontains=search) | Q(client__name__icontains=search)
            )
        if filters.get('client'):
            queryset = queryset.filter(client_id=filters['client'])
        if filters.get('status'):
            queryset = queryset.filter(status=filters['status'])
        if filters.get('currency'):
            queryset = queryset.filter(currency=filters['currency'].upper())
        if filters.get('min_amount') is not None:
            queryset = queryset.filter(total__gte=filters['min_amount'])
        if filters.get('max_amount') is not None:
            queryset = queryset.filter(total__lte=filters['max_amount'])
        if filters.get('issued_after'):
            queryset = queryset.filter(issue_date__gte=filters['issued_after'])
        if filters.get('issued_before'):
            queryset = queryset.filter(issue_date__lte=filters['issued_before'])
        if filters.get('due_after'):
            queryset = queryset.filter(due_date__gte=filters['due_after'])
        if filters.get('due_before'):
            queryset = queryset.filter(due_date__lte=filters['due_before'])
        if filters.get('tags'):
            queryset = queryset.filter(tag_filter(filters['tags']))

        return queryset.order_by(ordering(filters, SORT_FIELDS, default='created_at'), '-pk')

    def get_invoice(self, owner, invoice_id):
        try:
            return (
                Invoice.objects
                .select_related('client')
                .prefetch_related('items', 'payments')
                .get(owner=owner, pk=invoice_id)
            )
        except (Invoice.DoesNotExist, ValueError):
            raise NotFoundError.for_resource('Invoice', invoice_id)

    def update_invoice(self, owner, invoice_id, data):
        """
        Update invoice fields and, when given, replace its line items.

        The status is not editable here; use ``update_status``.
        """
        invoice = self.get_invoice(owner, invoice_id)
        previous_client = invoice.client
        data = dict(data)
        data.pop('status', None)

        if 'client_id' in data:
            invoice.client = self.clients.get_client(owner, data.pop('client_id'))
        if 'items' in data:
            items = data.pop('items')
            self._validate_items(items)
            invoice.set_items(items)
        if data.get('currency'):
            data['currency'] = data['currency'].upper()

        if 'number' in data and not data['number']:
            raise ValidationError.for_field('number', "Invoice number cannot be blank")
        number_changed = 'number' in data and data['number'] != invoice.number
        for field, value in data.items():
            setattr(invoice, field, value)

        self._validate_dates(invoice.issue_date, invoice.due_date)
        self._save(invoice, check_number=number_changed)

        self.logger.info("Invoice updated successfully", invoice_id=invoice.pk, user_id=owner.pk,
                         updated_fields=sorted(data))
        self.clients.update_financials(invoice.client)
        if previous_client.pk != invoice.client.pk:
            self.clients.update_financials(previous_client)
        return invoice

    def delete_invoice(self, owner, invoice_id):
        invoice = self.get_invoice(owner, invoice_id)
        client = invoice.client
        invoice.delete()

        self.logger.info("Invoice deleted successfully", invoice_id=invoice_id, user_id=owner.pk)
        self.clients.update_financials(client)

    def add_payment(self, owner, invoice_id, data):
        """
        Record a payment against the invoice.

        Returns:
            Tuple[Invoice, Payment]: The updated invoice and the new payment
        """
        invoice = self.get_invoice(owner, invoice_id)
        data = dict(data)
        payment = invoice.add_payment(data.pop('amount'), data.pop('method'), **data)

        self.logger.info("Payment recorded", invoice_id=invoice.pk, payment_id=payment.pk,
                         amount=str(payment.amount), status=invoice.status,
                         remaining_balance=str(invoice.remaining_balance))
        self.clients.update_financials(invoice.client)
        return invoice, payment

    def list_payments(self, owner, invoice_id):
        invoice = self.get_invoice(owner, invoice_id)
        return list(invoice.payments.all())

    def mark_as_sent(self, owner, invoice_id):
        invoice = self.get_invoice(owner, invoice_id)
        self._transition(invoice, Invoice.STATUS_SENT, invoice.mark_as_sent)
        return invoice

    def mark_as_viewed(self, owner, invoice_id):
        """
        Record that the client opened the invoice.

        Repeated views are not an error: the invoice is returned unchanged
        unless it was in ``sent``.
        """
        invoice = self.get_invoice(owner, invoice_id)
        if invoice.mark_as_viewed():
            self.logger.info("Invoice marked as viewed", invoice_id=invoice.pk)
        return invoice

    def mark_as_paid(self, owner, invoice_id, payment_data=None):
        invoice = self.get_invoice(owner, invoice_id)
        if invoice.status == Invoice.STATUS_PAID:
            raise self._refused(invoice, Invoice.STATUS_PAID)

        invoice.mark_as_paid(payment_data or None)
        self.logger.info("Invoice marked as paid", invoice_id=invoice.pk, user_id=owner.pk,
                         with_payment=bool(payment_data))
        self.clients.update_financials(invoice.client)
        return invoice

    def update_status(self, owner, invoice_id, data):
        """
        Apply an explicit status change requested through the API.

        Raises:
            BusinessLogicError: If the transition is not allowed from the current status
        """
        target = data['status']
        invoice = self.get_invoice(owner, invoice_id)

        if target == Invoice.STATUS_PAID:
            payment_data = None
            if data.get('payment_method'):
                payment_data = {
                    'method': data['payment_method'],
                    'reference': data.get('payment_reference', ''),
                    'date': data.get('paid_date'),
                }
            return self.mark_as_paid(owner, invoice.pk, payment_data)

        if target == Invoice.STATUS_SENT:
            self._transition(invoice, target, invoice.mark_as_sent)
        elif target == Invoice.STATUS_VIEWED:
            self._transition(invoice, target, invoice.mark_as_viewed)
        elif target == Invoice.STATUS_CANCELLED:
            if invoice.status == Invoice.STATUS_CANCELLED:
                raise self._refused(invoice, target)
            self._transition(invoice, target, invoice.cancel)
        elif target == Invoice.STATUS_OVERDUE:
            if invoice.status not in ledger.OVERDUE_CANDIDATES or not invoice.is_overdue():
                raise self._refused(invoice, target)
            invoice.save()
        else:
            raise self._refused(invoice, target)

        self.clients.update_financials(invoice.client)
        return invoice

    def duplicate_invoice(self, owner, invoice_id):
        """
        Copy an invoice into a new draft with a fresh number.

        The copy is issued today and keeps the original payment window;
        payments are not copied.
        """
        source = self.get_invoice(owner, invoice_id)
        today = timezone.localdate()

        copy = Invoice(
            owner=owner,
            client=source.client,
            issue_date=today,
            due_date=today + (source.due_date - source.issue_date),
            **{field: getattr(source, field) for field in COPY_FIELDS},
        )
        copy.set_items([
            {field: getattr(item, field) for field in ITEM_FIELDS}
            for item in source.items.all()
        ])
        self._save(copy, check_number=False)

        self.logger.info("Invoice duplicated", source_invoice_id=source.pk, invoice_id=copy.pk,
                         invoice_number=copy.number, user_id=owner.pk)
        self.clients.update_financials(copy.client)
        return copy

    def get_stats(self, owner):
        invoices = Invoice.objects.filter(owner=owner)
        stats = invoices.aggregate(
            total_invoices=Count('id'),
            draft_invoices=Count('id', filter=Q(status=Invoice.STATUS_DRAFT)),
            sent_invoices=Count('id', filter=Q(status__in=[Invoice.STATUS_SENT, Invoice.STATUS_VIEWED])),
            paid_invoices=Count('id', filter=Q(status=Invoice.STATUS_PAID)),
            overdue_invoices=Count('id', filter=Q(status=Invoice.STATUS_OVERDUE)),
            cancelled_invoices=Count('id', filter=Q(status=Invoice.STATUS_CANCELLED)),
            total_revenue=Sum('total_paid'),
            pending_revenue=Sum('remaining_balance', filter=Q(status__in=[
                Invoice.STATUS_SENT, Invoice.STATUS_VIEWED, Invoice.STATUS_OVERDUE,
            ])),
            average_invoice_value=Avg('total', filter=~Q(status=Invoice.STATUS_CANCELLED)),
        )
        for key in ('total_revenue', 'pending_revenue', 'average_invoice_value'):
            stats[key] = ledger.round_money(stats[key] or Decimal('0'))
        return stats

    def get_overdue_invoices(self, owner, today=None):
        today = today or timezone.localdate()
        return (
            Invoice.objects
            .filter(owner=owner, due_date__lt=today)
            .exclude(status__in=ledger.FINAL_STATUSES)
            .select_related('client')
            .order_by('due_date', 'pk')
        )

    def send_invoice(self, owner, invoice_id, data):
        """
        Mark the invoice as sent and queue the email with the PDF attached.

        Raises:
            BusinessLogicError: If the invoice is cancelled
        """
        invoice = self.get_invoice(owner, invoice_id)
        if invoice.status == Invoice.STATUS_CANCELLED:
            raise BusinessLogicError("Cancelled invoices cannot be sent",
                                     error_code='INVOICE_CANCELLED',
                                     context={'invoice_id': invoice.pk})

        invoice.mark_as_sent()
        send_invoice_email_task.delay(
            invoice.pk,
            list(data['to']),
            cc=list(data.get('cc') or []),
            subject=data.get('subject'),
            message=data.get('message'),
        )

        self.logger.info("Invoice email queued", invoice_id=invoice.pk, recipients=len(data['to']),
                         user_id=owner.pk)
        return invoice

    def render_pdf(self, owner, invoice_id):
        invoice = self.get_invoice(owner, invoice_id)
        return invoice, render_invoice_pdf(invoice)

    def _save(self, invoice, check_number):
        if check_number and self._number_taken(invoice):
            raise self._duplicate_number(invoice.number)

        invoice.calculate_totals()
        self._validate_discount(invoice)

        try:
            with transaction.atomic():
                invoice.save()
        except IntegrityError:
            if self._number_taken(invoice):
                raise self._duplicate_number(invoice.number)
            raise

    @staticmethod
    def _number_taken(invoice):
        return Invoice.objects.filter(owner=invoice.owner, number=invoice.number).exclude(pk=invoice.pk).exists()

    def _transition(self, invoice, target, method):
        previous = invoice.status
        if not method():
            raise self._refused(invoice, target)
        self.logger.info("Invoice status changed", invoice_id=invoice.pk, from_status=previous, to_status=target)

    @staticmethod
    def _refused(invoice, target):
        return BusinessLogicError(
            f"Cannot change invoice status from '{invoice.status}' to '{target}'",
            error_code='INVALID_STATUS_TRANSITION',
            context={'invoice_id': invoice.pk, 'current_status': invoice.status, 'requested_status': target},
        )

    @staticmethod
    def _duplicate_number(number):
        return ConflictError("Invoice number already exists", context={'number': [number]})

    @staticmethod
    def _validate_items(items):
        if not items:
            raise ValidationError.for_field('items', "At least one item is required")
        if len(items) > ledger.MAX_LINE_ITEMS:
            raise ValidationError.for_field('items', f"Maximum {ledger.MAX_LINE_ITEMS} items allowed")
        for position, item in enumerate(items):
            missing = [field for field in REQUIRED_ITEM_FIELDS if item.get(field) is None]
            if missing:
                raise ValidationError(
                    "Invalid invoice item",
                    context={'items': [{position: {field: ["This field is required."] for field in missing}}]},
                )

    @staticmethod
    def _validate_dates(issue_date, due_date):
        if due_date < issue_date:
            raise ValidationError.for_field('due_date', "Due date must be on or after the issue date")

    @staticmethod
    def _validate_discount(invoice):
        if invoice.discount_type == Invoice.DISCOUNT_PERCENTAGE and invoice.discount_value > 100:
            raise ValidationError.for_field('discount_value', "Percentage discount cannot exceed 100%")
        if invoice.discount_type == Invoice.DISCOUNT_FIXED and invoice.discount_value > invoice.subtotal:
            raise ValidationError.for_field('discount_value', "Discount cannot exceed the invoice subtotal")
