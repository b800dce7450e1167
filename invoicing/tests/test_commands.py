from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from accounts.models import User
from clients.models import Client
from invoicing.models import Invoice


class SeedDemoDataCommandTest(TestCase):

    def test_creates_demo_account_with_data(self):
        out = StringIO()
        call_command('seed_demo_data', clients=2, invoices=2, seed=7, stdout=out)

        user = User.objects.get(email='demo@involuck.app')
        self.assertEqual(Client.objects.filter(owner=user).count(), 2)
        self.assertEqual(Invoice.objects.filter(owner=user).count(), 4)
        self.assertIn('Demo data ready', out.getvalue())

        for client in Client.objects.filter(owner=user):
            self.assertEqual(client.invoice_count, 2)
