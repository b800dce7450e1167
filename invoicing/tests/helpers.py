from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from accounts.models import User
from clients.models import Client
from invoicing.models import Invoice


def make_user(email='owner@example.com'):
    return User.objects.create_user(username=email, email=email, password='S3cure-Passw0rd!', first_name='Olga')


def make_client(owner, email='client@example.com', **extra):
    return Client.objects.create(owner=owner, name='Acme Buyer', email=email, company='Acme', **extra)


def item(description='Consulting', quantity='1', unit_price='1000', discount='0', tax_rate='0'):
    return {
        'description': description,
        'quantity': Decimal(quantity),
        'unit_price': Decimal(unit_price),
        'discount': Decimal(discount),
        'tax_rate': Decimal(tax_rate),
    }


def make_invoice(owner, client, items=None, number='', **fields):
    fields.setdefault('due_date', timezone.localdate() + timedelta(days=30))
    invoice = Invoice(owner=owner, client=client, number=number, **fields)
    invoice.set_items(items or [item()])
    invoice.save()
    return invoice
