from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from core.exceptions import BusinessLogicError, ValidationError
from core.models import BaseModel
from invoicing import ledger


ZERO = Decimal('0.00')


class Invoice(BaseModel):
    """
    Invoice issued by an account owner to one of their clients.

    Amount fields are derived: every save recomputes them from the line
    items and invoice-level parameters (see ``calculate_totals``) and
    applies the save-time overdue rule before writing the row.
    """

    STATUS_DRAFT = ledger.STATUS_DRAFT
    STATUS_SENT = ledger.STATUS_SENT
    STATUS_VIEWED = ledger.STATUS_VIEWED
    STATUS_PAID = ledger.STATUS_PAID
    STATUS_OVERDUE = ledger.STATUS_OVERDUE
    STATUS_CANCELLED = ledger.STATUS_CANCELLED
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_VIEWED, 'Viewed'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    DISCOUNT_PERCENTAGE = ledger.DISCOUNT_PERCENTAGE
    DISCOUNT_FIXED = ledger.DISCOUNT_FIXED
    DISCOUNT_TYPE_CHOICES = [
        (DISCOUNT_PERCENTAGE, 'Percentage'),
        (DISCOUNT_FIXED, 'Fixed amount'),
    ]

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='invoices')
    client = models.ForeignKey('clients.Client', on_delete=models.PROTECT, related_name='invoices')
    number = models.CharField(max_length=50)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    issue_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField()
    currency = models.CharField(max_length=3, default='USD')

    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    discount_type = models.CharField(max_length=10, choices=DISCOUNT_TYPE_CHOICES, default=DISCOUNT_PERCENTAGE)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    notes = models.TextField(max_length=1000, blank=True)
    terms = models.TextField(max_length=1000, blank=True)
    payment_terms = models.JSONField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Derived amounts
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_paid = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    remaining_balance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        ordering = ['-issue_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['owner', 'number'], name='unique_invoice_number_per_owner'),
        ]
        indexes = [
            models.Index(fields=['owner', 'status'], name='invoice_owner_status_idx'),
            models.Index(fields=['owner', 'due_date'], name='invoice_owner_due_idx'),
            models.Index(fields=['client', 'issue_date'], name='invoice_client_issue_idx'),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pending_items = None

    def __str__(self):
        return f"{self.number} - {self.client}"

    def save(self, *args, **kwargs):
        """
        Recompute derived amounts, apply the overdue rule and persist the
        invoice together with any pending line items.
        """
        self.calculate_totals()
        self.refresh_overdue_status()

        with transaction.atomic():
            if self._state.adding and not self.number:
                self.number = InvoiceSequence.next_number(self.owner)
            super().save(*args, **kwargs)

            if self._pending_items is not None:
                self.items.all().delete()
                for item in self._pending_items:
                    item.invoice = self
                InvoiceItem.objects.bulk_create(self._pending_items)
                self._pending_items = None
                self._forget_prefetched('items')

    def _forget_prefetched(self, name):
        prefetched = getattr(self, '_prefetched_objects_cache', None)
        if prefetched:
            prefetched.pop(name, None)

    def set_items(self, items_data):
        """
        Replace the line items with ``items_data`` on the next save.

        Args:
            items_data: Iterable of dicts with InvoiceItem input fields
        """
        self._pending_items = [
            InvoiceItem(position=position, **data)
            for position, data in enumerate(items_data)
        ]

    def get_line_items(self):
        if self._pending_items is not None:
            return list(self._pending_items)
        if self.pk is None:
            return []
        return list(self.items.all())

    def calculate_totals(self):
        """
        Recompute line and invoice amounts from their inputs.

        Stored line totals are refreshed but never read back; aggregation
        always works on freshly computed values.
        """
        line_totals = [item.calculate() for item in self.get_line_items()]
        totals = ledger.aggregate_invoice(
            line_totals,
            tax_rate=self.tax_rate,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            shipping_cost=self.shipping_cost,
            total_paid=self.total_paid,
        )
        self.subtotal = totals.subtotal
        self.discount_amount = totals.discount_amount
        self.tax_amount = totals.tax_amount
        self.total = totals.total
        self.remaining_balance = totals.remaining_balance
        return totals

    def refresh_overdue_status(self, today=None):
        self.status = ledger.next_status(self.status, self.due_date, today or timezone.localdate())
        return self.status

    def add_payment(self, amount, method, date=None, reference='', notes=''):
        """
        Record a payment and settle the invoice when the balance is covered.

        Args:
            amount: Positive payment amount
            method: One of ``Payment.METHOD_CHOICES``
            date: Payment date, defaults to today
            reference: Optional external reference
            notes: Optional free text

        Returns:
            Payment: The recorded payment

        Raises:
            ValidationError: If the amount is not positive or the method is unknown
        """
        amount = ledger.to_decimal(amount)
        if amount <= 0:
            raise ValidationError.for_field('amount', "Payment amount must be greater than 0")
        if method not in Payment.METHODS:
            raise ValidationError.for_field('method', f"Invalid payment method: {method}")
        if self.pk is None:
            raise BusinessLogicError("Invoice must be saved before recording payments",
                                     error_code='INVOICE_NOT_SAVED')

        with transaction.atomic():
            amounts = list(self.payments.values_list('amount', flat=True)) + [amount]
            payment = Payment.objects.create(
                invoice=self,
                amount=amount,
                method=method,
                date=date or timezone.localdate(),
                reference=reference or '',
                notes=notes or '',
            )

            state = ledger.apply_payments(self.total, amounts)
            self.total_paid = state.total_paid
            self.remaining_balance = state.remaining_balance
            if state.settled:
                self.status = self.STATUS_PAID
                self.paid_at = self.paid_at or timezone.now()
            self.save()
            self._forget_prefetched('payments')

        return payment

    def mark_as_sent(self):
        if self.status != self.STATUS_DRAFT:
            return False
        self.status = self.STATUS_SENT
        self.sent_at = timezone.now()
        self.save()
        return True

    def mark_as_viewed(self):
        if self.status != self.STATUS_SENT:
            return False
        self.status = self.STATUS_VIEWED
        self.viewed_at = timezone.now()
        self.save()
        return True

    def mark_as_paid(self, payment_data=None):
        """
        Mark the invoice as paid.

        With ``payment_data`` a payment is recorded (amount defaults to the
        remaining balance, method to ``other``). Without it the invoice is
        reconciled manually: the whole total is considered paid.

        Returns:
            Payment or None: The recorded payment, if any
        """
        if payment_data:
            data = dict(payment_data)
            amount = data.pop('amount', None)
            if amount is None:
                amount = self.remaining_balance
            method = data.pop('method', None)
            if method is None:
                method = Payment.METHOD_OTHER
            return self.add_payment(amount, method, **data)

        self.status = self.STATUS_PAID
        self.paid_at = timezone.now()
        self.total_paid = self.total
        self.remaining_balance = ZERO
        self.save()
        return None

    def cancel(self):
        self.status = self.STATUS_CANCELLED
        self.save()
        return True

    def is_overdue(self, today=None):
        if self.status in ledger.FINAL_STATUSES:
            return False
        return (today or timezone.localdate()) > self.due_date

    def get_days_until_due(self, today=None):
        return (self.due_date - (today or timezone.localdate())).days


class InvoiceItem(models.Model):
    """
    Line of an invoice. Derived amounts are kept unrounded (6 decimals).
    """

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    position = models.PositiveSmallIntegerField(default=0)
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    category = models.CharField(max_length=50, blank=True)
    unit = models.CharField(max_length=20, blank=True)

    subtotal = models.DecimalField(max_digits=20, decimal_places=6, default=ZERO)
    tax_amount = models.DecimalField(max_digits=20, decimal_places=6, default=ZERO)
    total = models.DecimalField(max_digits=20, decimal_places=6, default=ZERO)

    class Meta:
        verbose_name = "Invoice item"
        verbose_name_plural = "Invoice items"
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.description} x {self.quantity}"

    def calculate(self):
        totals = ledger.compute_line_item(self.quantity, self.unit_price, self.discount, self.tax_rate)
        self.subtotal, self.tax_amount, self.total = totals
        return totals


class Payment(BaseModel):
    """Payment received against an invoice. Payments are never edited."""

    METHOD_CASH = 'cash'
    METHOD_CHECK = 'check'
    METHOD_CREDIT_CARD = 'credit_card'
    METHOD_BANK_TRANSFER = 'bank_transfer'
    METHOD_PAYPAL = 'paypal'
    METHOD_OTHER = 'other'
    METHOD_CHOICES = [
        (METHOD_CASH, 'Cash'),
        (METHOD_CHECK, 'Check'),
        (METHOD_CREDIT_CARD, 'Credit card'),
        (METHOD_BANK_TRANSFER, 'Bank transfer'),
        (METHOD_PAYPAL, 'PayPal'),
        (METHOD_OTHER, 'Other'),
    ]
    METHODS = {value for value, _ in METHOD_CHOICES}

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    date = models.DateField(default=timezone.localdate)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(max_length=500, blank=True)

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['date', 'id']

    def __str__(self):
        return f"{self.amount} ({self.get_method_display()}) for {self.invoice.number}"


class InvoiceSequence(BaseModel):
    """
    Per-owner, per-year counter behind automatic invoice numbers.
    """

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='invoice_sequences')
    year = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Invoice sequence"
        verbose_name_plural = "Invoice sequences"
        constraints = [
            models.UniqueConstraint(fields=['owner', 'year'], name='unique_invoice_sequence_per_year'),
        ]

    def __str__(self):
        return f"{self.owner} {self.year}: {self.last_value}"

    @classmethod
    def next_number(cls, owner, year=None):
        """
        Allocate the next free ``INV-<year>-<seq>`` number for ``owner``.

        The sequence row is locked for the rest of the transaction. A new
        row starts from the owner's current invoice count, and numbers
        already used explicitly are skipped.
        """
        year = year or timezone.localdate().year

        with transaction.atomic():
            sequence = cls.objects.select_for_update().filter(owner=owner, year=year).first()
            if sequence is None:
                seed = Invoice.objects.filter(owner=owner).count()
                cls.objects.get_or_create(owner=owner, year=year, defaults={'last_value': seed})
                sequence = cls.objects.select_for_update().get(owner=owner, year=year)

            while True:
                sequence.last_value += 1
                number = ledger.format_invoice_number(year, sequence.last_value)
                if not Invoice.objects.filter(owner=owner, number=number).exists():
                    break

            sequence.save(update_fields=['last_value', 'updated_at'])

        return number
