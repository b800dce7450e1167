from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import BaseModel


ADDRESS_FIELDS = ('street', 'city', 'state', 'postal_code', 'country')


class Client(BaseModel):
    """
    Customer billed by an account owner.

    Addresses and the contact person are stored as JSON documents with the
    keys listed in ``ADDRESS_FIELDS`` and ``name/email/phone/position``.
    The financial counters are a denormalized rollup of the client's
    invoices, maintained by ``ClientService.update_financials``.
    """

    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='clients')

    # Identity and contact
    name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)
    company = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    website = models.URLField(blank=True)
    notes = models.TextField(max_length=500, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    billing_address = models.JSONField(null=True, blank=True)
    shipping_address = models.JSONField(null=True, blank=True)
    contact_person = models.JSONField(null=True, blank=True)

    # Billing preferences
    payment_terms = models.PositiveSmallIntegerField(default=30, help_text="Days until payment is due")
    currency = models.CharField(max_length=3, default='USD')
    tags = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Financial rollup
    total_invoiced = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    outstanding_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    invoice_count = models.PositiveIntegerField(default=0)
    last_invoice_date = models.DateField(null=True, blank=True)

    class Meta:
        verbose_name = "Client"
        verbose_name_plural = "Clients"
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['owner', 'email'], name='unique_client_email_per_owner'),
        ]
        indexes = [
            models.Index(fields=['owner', 'status'], name='client_owner_status_idx'),
            models.Index(fields=['owner', 'name'], name='client_owner_name_idx'),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        if self.company:
            return f"{self.name} ({self.company})"
        return self.name

    @property
    def full_billing_address(self):
        """
        Billing address joined into a single line, skipping empty parts.

        Returns:
            str: Formatted address, or an empty string if none is stored.
        """
        address = self.billing_address or {}
        return ', '.join(address[key] for key in ADDRESS_FIELDS if address.get(key))

    @property
    def payment_status(self):
        if self.outstanding_balance > 0:
            return 'has_outstanding'
        if self.total_paid > 0:
            return 'paid'
        return 'no_payments'
