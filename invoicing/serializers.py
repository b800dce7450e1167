from decimal import Decimal

from rest_framework import serializers

from clients.serializers import ClientSummarySerializer
from invoicing.models import Invoice, InvoiceItem, Payment
from invoicing.ledger import MAX_LINE_ITEMS


PERCENT = {'max_digits': 5, 'decimal_places': 2, 'min_value': Decimal('0'), 'max_value': Decimal('100')}
AMOUNT = {'max_digits': 12, 'decimal_places': 2, 'min_value': Decimal('0')}


class InvoiceItemSerializer(serializers.ModelSerializer):
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2,
                                        min_value=Decimal('0.01'), max_value=Decimal('999999.99'))
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2,
                                          min_value=Decimal('0'), max_value=Decimal('999999.99'))
    tax_rate = serializers.DecimalField(required=False, default=Decimal('0'), **PERCENT)
    discount = serializers.DecimalField(required=False, default=Decimal('0'), **PERCENT)
    subtotal = serializers.DecimalField(max_digits=20, decimal_places=2, read_only=True)
    tax_amount = serializers.DecimalField(max_digits=20, decimal_places=2, read_only=True)
    total = serializers.DecimalField(max_digits=20, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceItem
        fields = [
            'id', 'description', 'quantity', 'unit_price', 'tax_rate', 'discount',
            'category', 'unit', 'subtotal', 'tax_amount', 'total',
        ]
        read_only_fields = ['id']


class PaymentSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    class Meta:
        model = Payment
        fields = ['id', 'amount', 'date', 'method', 'reference', 'notes', 'created_at']
        read_only_fields = ['id', 'created_at']


class PaymentTermsSerializer(serializers.Serializer):
    late_fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    discount_rate = serializers.DecimalField(default=Decimal('0'), **PERCENT)
    discount_days = serializers.IntegerField(min_value=0, default=0)
    payment_methods = serializers.ListField(
        child=serializers.ChoiceField(choices=Payment.METHOD_CHOICES), required=False
    )

    def to_internal_value(self, data):
        # Stored as JSON, so decimals are kept as strings
        value = super().to_internal_value(data)
        for key in ('late_fee', 'discount_rate'):
            value[key] = str(value[key])
        return value


class InvoiceSerializer(serializers.ModelSerializer):
    """
    Full invoice representation with items and payments.

    Used for create and update; amount fields are always derived on save.
    """

    client_id = serializers.IntegerField(write_only=True)
    client = ClientSummarySerializer(read_only=True)
    number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    items = InvoiceItemSerializer(many=True)
    payments = PaymentSerializer(many=True, read_only=True)
    due_date = serializers.DateField(required=False)
    tax_rate = serializers.DecimalField(required=False, **PERCENT)
    discount_value = serializers.DecimalField(required=False, **AMOUNT)
    shipping_cost = serializers.DecimalField(required=False, **AMOUNT)
    payment_terms = PaymentTermsSerializer(required=False, allow_null=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), max_length=10, required=False)
    metadata = serializers.DictField(required=False)
    is_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'number', 'client_id', 'client', 'status', 'issue_date', 'due_date', 'currency',
            'items', 'tax_rate', 'discount_type', 'discount_value', 'shipping_cost',
            'subtotal', 'discount_amount', 'tax_amount', 'total', 'total_paid', 'remaining_balance',
            'notes', 'terms', 'payment_terms', 'tags', 'metadata', 'payments',
            'sent_at', 'viewed_at', 'paid_at', 'is_overdue', 'days_until_due', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'status', 'subtotal', 'discount_amount', 'tax_amount', 'total', 'total_paid',
            'remaining_balance', 'sent_at', 'viewed_at', 'paid_at', 'created_at', 'updated_at',
        ]
        # Per-owner number uniqueness is checked by the service
        validators = []

    def get_is_overdue(self, obj):
        return obj.is_overdue()

    def get_days_until_due(self, obj):
        return obj.get_days_until_due()

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")
        if len(value) > MAX_LINE_ITEMS:
            raise serializers.ValidationError(f"Maximum {MAX_LINE_ITEMS} items allowed")
        if self.partial:
            # Replacement items are always complete, even on PATCH
            items = InvoiceItemSerializer(data=self.initial_data.get('items'), many=True)
            if not items.is_valid():
                raise serializers.ValidationError(items.errors)
            return items.validated_data
        return value

    def validate_currency(self, value):
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter code (e.g., USD)")
        return value.upper()

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")

        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError({'due_date': "Due date must be on or after the issue date"})

        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', Invoice.DISCOUNT_PERCENTAGE))
        discount_value = attrs.get('discount_value')
        if discount_type == Invoice.DISCOUNT_PERCENTAGE and discount_value is not None and discount_value > 100:
            raise serializers.ValidationError({'discount_value': "Percentage discount cannot exceed 100%"})
        return attrs


class InvoiceListSerializer(serializers.ModelSerializer):
    client = ClientSummarySerializer(read_only=True)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'number', 'client', 'status', 'issue_date', 'due_date', 'currency',
            'total', 'total_paid', 'remaining_balance', 'is_overdue', 'tags', 'created_at',
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj):
        return obj.is_overdue()


class InvoiceQuerySerializer(serializers.Serializer):
    """Query parameters accepted by the invoice list endpoint."""

    search = serializers.CharField(max_length=100, required=False)
    client = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES, required=False)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    min_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False)
    max_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False)
    issued_after = serializers.DateField(required=False)
    issued_before = serializers.DateField(required=False)
    due_after = serializers.DateField(required=False)
    due_before = serializers.DateField(required=False)
    tags = serializers.CharField(required=False)
    sort = serializers.ChoiceField(
        choices=['number', 'issue_date', 'due_date', 'total', 'status', 'created_at'], required=False
    )
    order = serializers.ChoiceField(choices=['asc', 'desc'], required=False)

    def validate_tags(self, value):
        return [tag.strip() for tag in value.split(',') if tag.strip()]

    def validate(self, attrs):
        min_amount, max_amount = attrs.get('min_amount'), attrs.get('max_amount')
        if min_amount is not None and max_amount is not None and max_amount < min_amount:
            raise serializers.ValidationError(
                {'max_amount': "Maximum amount must be greater than or equal to minimum amount"}
            )
        return attrs


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES)
    paid_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False)
    payment_reference = serializers.CharField(max_length=100, required=False, allow_blank=True)


class MarkPaidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'), required=False)
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False)
    date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


class SendInvoiceSerializer(serializers.Serializer):
    to = serializers.ListField(child=serializers.EmailField(), min_length=1, max_length=10)
    cc = serializers.ListField(child=serializers.EmailField(), max_length=5, required=False)
    subject = serializers.CharField(min_length=1, max_length=200, required=False)
    message = serializers.CharField(max_length=2000, required=False, allow_blank=True)
