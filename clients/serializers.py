from rest_framework import serializers

from clients.models import Client


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=100)
    city = serializers.CharField(max_length=50)
    state = serializers.CharField(max_length=50)
    postal_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=50)


class ContactPersonSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(max_length=20, required=False)
    position = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate_email(self, value):
        return value.lower()


class ClientSerializer(serializers.ModelSerializer):
    """
    Client representation used for reads and writes.

    Writes are validated here and persisted by ``ClientService``; the
    financial rollup fields are read-only.
    """

    billing_address = AddressSerializer(required=False, allow_null=True)
    shipping_address = AddressSerializer(required=False, allow_null=True)
    contact_person = ContactPersonSerializer(required=False, allow_null=True)
    payment_terms = serializers.IntegerField(min_value=0, max_value=365, required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), max_length=10, required=False)
    metadata = serializers.DictField(required=False)
    display_name = serializers.CharField(read_only=True)
    full_billing_address = serializers.CharField(read_only=True)
    payment_status = serializers.CharField(read_only=True)

    class Meta:
        model = Client
        fields = [
            'id', 'name', 'email', 'phone', 'company', 'tax_id', 'website', 'notes', 'status',
            'billing_address', 'shipping_address', 'contact_person', 'payment_terms',
            'currency', 'tags', 'metadata',
            'total_invoiced', 'total_paid', 'outstanding_balance', 'invoice_count', 'last_invoice_date',
            'display_name', 'full_billing_address', 'payment_status', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'total_invoiced', 'total_paid', 'outstanding_balance', 'invoice_count',
            'last_invoice_date', 'created_at', 'updated_at',
        ]
        # Per-owner uniqueness is checked by the service
        validators = []
        extra_kwargs = {
            'email': {'validators': []},
        }

    def validate_email(self, value):
        return value.lower()

    def validate_website(self, value):
        if value and not value.lower().startswith(('http://', 'https://')):
            raise serializers.ValidationError("Website must start with http:// or https://")
        return value

    def validate_currency(self, value):
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter code (e.g., USD)")
        return value.upper()

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        return attrs


class ClientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ['id', 'name', 'email', 'company', 'status']
        read_only_fields = fields


class ClientQuerySerializer(serializers.Serializer):
    """Query parameters accepted by the client list endpoint."""

    search = serializers.CharField(max_length=100, required=False)
    status = serializers.ChoiceField(choices=Client.STATUS_CHOICES, required=False)
    company = serializers.CharField(max_length=100, required=False)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    tags = serializers.CharField(required=False)
    created_after = serializers.DateTimeField(required=False)
    created_before = serializers.DateTimeField(required=False)
    sort = serializers.ChoiceField(
        choices=['name', 'email', 'company', 'created_at', 'updated_at',
                 'total_invoiced', 'outstanding_balance', 'last_invoice_date'],
        required=False,
    )
    order = serializers.ChoiceField(choices=['asc', 'desc'], required=False)

    def validate_tags(self, value):
        return [tag.strip() for tag in value.split(',') if tag.strip()]


class ClientSearchSerializer(serializers.Serializer):
    q = serializers.CharField(min_length=1, max_length=100)
    limit = serializers.IntegerField(min_value=1, max_value=50, required=False, default=10)
