import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from faker import Faker

from clients.models import Client
from clients.services import ClientService
from invoicing.models import Invoice, Payment
from invoicing.services import InvoiceService


DEMO_PASSWORD = 'DemoPassw0rd!'


class Command(BaseCommand):
    help = 'Creates a demo account with clients, invoices and payments'

    def add_arguments(self, parser):
        parser.add_argument('--email', default='demo@involuck.app', help='Email of the demo account')
        parser.add_argument('--clients', type=int, default=8, help='Number of clients to create')
        parser.add_argument('--invoices', type=int, default=3, help='Invoices per client')
        parser.add_argument('--seed', type=int, default=None, help='Random seed for repeatable data')

    def handle(self, *args, **options):
        fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        User = get_user_model()
        email = options['email'].lower()
        user, created = User.objects.get_or_create(
            email=email,
            defaults={'username': email, 'first_name': 'Demo', 'last_name': 'User'},
        )
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
            self.stdout.write(f"Created demo user {email} (password: {DEMO_PASSWORD})")

        client_service = ClientService()
        invoice_service = InvoiceService(client_service=client_service)

        with transaction.atomic():
            for _ in range(options['clients']):
                client = client_service.create_client(user, {
                    'name': fake.name(),
                    'email': fake.unique.email(),
                    'phone': fake.msisdn()[:15],
                    'company': fake.company()[:100],
                    'billing_address': {
                        'street': fake.street_address()[:100],
                        'city': fake.city()[:50],
                        'state': fake.state()[:50],
                        'postal_code': fake.postcode(),
                        'country': fake.country()[:50],
                    },
                    'payment_terms': random.choice([15, 30, 45, 60]),
                    'tags': random.sample(['retail', 'wholesale', 'priority', 'recurring'], k=2),
                })

                for _ in range(options['invoices']):
                    self._create_invoice(fake, invoice_service, user, client)

        self.stdout.write(self.style.SUCCESS(
            f"Demo data ready: {Client.objects.filter(owner=user).count()} clients, "
            f"{Invoice.objects.filter(owner=user).count()} invoices"
        ))

    def _create_invoice(self, fake, invoice_service, user, client):
        issue_date = fake.date_between(start_date='-120d', end_date='today')
        invoice = invoice_service.create_invoice(user, {
            'client_id': client.pk,
            'issue_date': issue_date,
            'due_date': issue_date + timedelta(days=client.payment_terms),
            'tax_rate': Decimal(random.choice(['0', '10', '21'])),
            'shipping_cost': Decimal(random.choice(['0', '0', '15.00'])),
            'notes': fake.sentence(),
            'items': [
                {
                    'description': fake.bs().capitalize(),
                    'quantity': Decimal(random.randint(1, 10)),
                    'unit_price': Decimal(random.randint(20, 900)),
                    'discount': Decimal(random.choice(['0', '0', '5', '10'])),
                }
                for _ in range(random.randint(1, 4))
            ],
        })

        outcome = random.choice(['draft', 'sent', 'partial', 'paid'])
        if outcome == 'draft':
            return invoice

        invoice.mark_as_sent()
        if outcome == 'partial':
            invoice_service.add_payment(user, invoice.pk, {
                'amount': (invoice.total / 2).quantize(Decimal('0.01')),
                'method': random.choice([Payment.METHOD_BANK_TRANSFER, Payment.METHOD_CREDIT_CARD]),
                'date': min(issue_date + timedelta(days=7), timezone.localdate()),
            })
        elif outcome == 'paid':
            invoice_service.add_payment(user, invoice.pk, {
                'amount': invoice.total,
                'method': random.choice([Payment.METHOD_BANK_TRANSFER, Payment.METHOD_PAYPAL]),
                'date': min(issue_date + timedelta(days=10), timezone.localdate()),
            })
        return invoice
