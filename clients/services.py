"""
Business logic for client management.

Every operation is scoped to the owning user; a client that belongs to
someone else is reported as not found.
"""

from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Max, Q, Sum

from clients.models import Client
from core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from core.filters import ordering, tag_filter
from core.logging_config import get_logger
from invoicing.models import Invoice


ZERO = Decimal('0.00')

SORT_FIELDS = {
    'name', 'email', 'company', 'status', 'created_at', 'updated_at',
    'total_invoiced', 'outstanding_balance', 'last_invoice_date',
}


class ClientService:
    """
    Service for client CRUD, search, statistics and financial rollup.
    """

    def __init__(self):
        self.logger = get_logger(f"{__name__}.ClientService")

    def create_client(self, owner, data):
        """
        Create a client for ``owner``.

        Raises:
            ConflictError: If the owner already has a client with this email
        """
        email = data['email'].lower()
        if Client.objects.filter(owner=owner, email=email).exists():
            raise ConflictError("Client with this email already exists", context={'email': [email]})

        try:
            with transaction.atomic():
                client = Client.objects.create(owner=owner, **{**data, 'email': email})
        except IntegrityError:
            raise ConflictError("Client with this email already exists", context={'email': [email]})

        self.logger.info("Client created successfully", client_id=client.pk, user_id=owner.pk)
        return client

    def list_clients(self, owner, filters=None):
        """
        Return the owner's clients filtered and ordered by ``filters``.

        Supported keys: search, status, company, currency, tags,
        created_after, created_before, sort, order.
        """
        filters = filters or {}
        queryset = Client.objects.filter(owner=owner)

        search = filters.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(email__icontains=search) | Q(company__icontains=search)
            )
        if filters.get('status'):
            queryset = queryset.filter(status=filters['status'])
        if filters.get('company'):
            queryset = queryset.filter(company__icontains=filters['company'])
        if filters.get('currency'):
            queryset = queryset.filter(currency=filters['currency'].upper())
        if filters.get('tags'):
            queryset = queryset.filter(tag_filter(filters['tags']))
        if filters.get('created_after'):
            queryset = queryset.filter(created_at__gte=filters['created_after'])
        if filters.get('created_before'):
            queryset = queryset.filter(created_at__lte=filters['created_before'])

        return queryset.order_by(ordering(filters, SORT_FIELDS, default='created_at'), '-pk')

    def get_client(self, owner, client_id):
        try:
            return Client.objects.get(owner=owner, pk=client_id)
        except (Client.DoesNotExist, ValueError):
            raise NotFoundError.for_resource('Client', client_id)

    def update_client(self, owner, client_id, data):
        """
        Apply ``data`` to the owner's client.

        Raises:
            NotFoundError: If the client does not belong to the owner
            ConflictError: If the new email is used by another client of the owner
        """
        client = self.get_client(owner, client_id)

        if 'email' in data:
            data = {**data, 'email': data['email'].lower()}
            taken = Client.objects.filter(owner=owner, email=data['email']).exclude(pk=client.pk).exists()
            if taken:
                raise ConflictError("Another client with this email already exists", context={'email': [data['email']]})

        for field, value in data.items():
            setattr(client, field, value)

        try:
            with transaction.atomic():
                client.save()
        except IntegrityError:
            raise ConflictError("Another client with this email already exists", context={'email': [client.email]})

        self.logger.info("Client updated successfully", client_id=client.pk, user_id=owner.pk,
                         updated_fields=sorted(data))
        return client

    def delete_client(self, owner, client_id):
        """
        Delete a client that has no invoices.

        Raises:
            BusinessLogicError: If invoices still reference the client
        """
        client = self.get_client(owner, client_id)
        invoice_count = client.invoices.count()
        if invoice_count:
            raise BusinessLogicError(
                "Cannot delete client with existing invoices. Please delete all invoices first.",
                error_code='CLIENT_HAS_INVOICES',
                context={'client_id': client.pk, 'invoice_count': invoice_count},
            )

        client.delete()
        self.logger.info("Client deleted successfully", client_id=client_id, user_id=owner.pk)

    def get_stats(self, owner):
        stats = Client.objects.filter(owner=owner).aggregate(
            total_clients=Count('id'),
            active_clients=Count('id', filter=Q(status=Client.STATUS_ACTIVE)),
            total_invoiced=Sum('total_invoiced'),
            total_paid=Sum('total_paid'),
            outstanding_balance=Sum('outstanding_balance'),
            average_invoice_value=Avg('total_invoiced'),
        )
        for key in ('total_invoiced', 'total_paid', 'outstanding_balance', 'average_invoice_value'):
            stats[key] = Decimal(stats[key] or ZERO).quantize(Decimal('0.01'))
        return stats

    def search_clients(self, owner, term, limit=10):
        return list(
            Client.objects
            .filter(owner=owner)
            .filter(Q(name__icontains=term) | Q(email__icontains=term) | Q(company__icontains=term))
            .order_by('name')[:limit]
        )

    def update_financials(self, client):
        """
        Recompute the client's rollup counters from its invoices.

        ``total_paid`` sums the totals of paid invoices and the outstanding
        balance is the difference with the invoiced total.
        """
        totals = Invoice.objects.filter(client=client).aggregate(
            total_invoiced=Sum('total'),
            total_paid=Sum('total', filter=Q(status=Invoice.STATUS_PAID)),
            invoice_count=Count('id'),
            last_invoice_date=Max('issue_date'),
        )

        client.total_invoiced = totals['total_invoiced'] or ZERO
        client.total_paid = totals['total_paid'] or ZERO
        client.outstanding_balance = client.total_invoiced - client.total_paid
        client.invoice_count = totals['invoice_count']
        client.last_invoice_date = totals['last_invoice_date']
        client.save(update_fields=[
            'total_invoiced', 'total_paid', 'outstanding_balance',
            'invoice_count', 'last_invoice_date', 'updated_at',
        ])

        self.logger.debug("Client financials updated", client_id=client.pk,
                          invoice_count=client.invoice_count)
        return client

