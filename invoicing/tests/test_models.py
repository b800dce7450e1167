from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError
from django.test import TestCase
from django.utils import timezone

from core.exceptions import ValidationError
from invoicing.models import Invoice, InvoiceSequence, Payment
from invoicing.tests.helpers import item, make_client, make_invoice, make_user


class InvoiceTotalsTest(TestCase):
    """
    Test suite for totals recomputation on save.
    """

    def setUp(self):
        self.owner = make_user()
        self.client_record = make_client(self.owner)

    def test_single_item_invoice(self):
        invoice = make_invoice(self.owner, self.client_record)

        self.assertEqual(invoice.subtotal, Decimal('1000.00'))
        self.assertEqual(invoice.total, Decimal('1000.00'))
        self.assertEqual(invoice.remaining_balance, Decimal('1000.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(invoice.items.count(), 1)

    def test_two_items_with_shipping(self):
        invoice = make_invoice(
            self.owner, self.client_record,
            items=[item(quantity='2', unit_price='100', tax_rate='10'),
                   item(quantity='1', unit_price='150', discount='5', tax_rate='10')],
            tax_rate=Decimal('10'), shipping_cost=Decimal('25'),
        )

        self.assertEqual(invoice.subtotal, Decimal('342.50'))
        self.assertEqual(invoice.discount_amount, Decimal('0.00'))
        self.assertEqual(invoice.tax_amount, Decimal('34.25'))
        self.assertEqual(invoice.total, Decimal('401.75'))

        second = invoice.items.get(position=1)
        self.assertEqual(second.subtotal, Decimal('142.5'))
        self.assertEqual(second.tax_amount, Decimal('14.25'))
        self.assertEqual(second.total, Decimal('156.75'))

    def test_resaving_does_not_drift(self):
        invoice = make_invoice(
            self.owner, self.client_record,
            items=[item(quantity='3', unit_price='33.33', discount='7.5', tax_rate='21')],
            tax_rate=Decimal('8.25'), discount_type=Invoice.DISCOUNT_FIXED, discount_value=Decimal('1.11'),
        )
        first = (invoice.subtotal, invoice.tax_amount, invoice.total, invoice.remaining_balance)

        for _ in range(3):
            invoice = Invoice.objects.get(pk=invoice.pk)
            invoice.save()
            self.assertEqual((invoice.subtotal, invoice.tax_amount, invoice.total, invoice.remaining_balance), first)

    def test_caller_supplied_totals_are_ignored(self):
        invoice = make_invoice(self.owner, self.client_record)
        invoice.total = Decimal('1.00')
        invoice.subtotal = Decimal('1.00')
        invoice.save()

        invoice.refresh_from_db()
        self.assertEqual(invoice.total, Decimal('1000.00'))

    def test_set_items_replaces_lines(self):
        invoice = make_invoice(self.owner, self.client_record)

        invoice.set_items([item(unit_price='10'), item(unit_price='20')])
        invoice.save()

        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(invoice.total, Decimal('30.00'))


class InvoiceNumberingTest(TestCase):

    def setUp(self):
        self.owner = make_user()
        self.client_record = make_client(self.owner)

    def test_number_continues_from_existing_invoice_count(self):
        for number in ('A-1', 'A-2', 'A-3'):
            make_invoice(self.owner, self.client_record, number=number)

        self.assertEqual(InvoiceSequence.next_number(self.owner, year=2024), 'INV-2024-0004')
        self.assertEqual(InvoiceSequence.next_number(self.owner, year=2024), 'INV-2024-0005')

    def test_new_invoice_gets_current_year_number(self):
        invoice = make_invoice(self.owner, self.client_record)
        year = timezone.localdate().year

        self.assertEqual(invoice.number, f'INV-{year}-0001')

    def test_allocation_skips_numbers_taken_explicitly(self):
        year = timezone.localdate().year
        make_invoice(self.owner, self.client_record, number=f'INV-{year}-0002')

        # One existing invoice seeds the counter at 1, so 0002 is next but taken
        invoice = make_invoice(self.owner, self.client_record)
        self.assertEqual(invoice.number, f'INV-{year}-0003')

    def test_sequences_are_per_owner(self):
        other = make_user('other@example.com')
        other_client = make_client(other)

        first = make_invoice(self.owner, self.client_record)
        second = make_invoice(other, other_client)

        self.assertEqual(first.number, second.number)

    def test_duplicate_number_for_same_owner_is_rejected(self):
        make_invoice(self.owner, self.client_record, number='DUP-1')

        with self.assertRaises(IntegrityError):
            make_invoice(self.owner, self.client_record, number='DUP-1')


class InvoicePaymentTest(TestCase):
    """
    Test suite for payments and settlement.
    """

    def setUp(self):
        self.owner = make_user()
        self.client_record = make_client(self.owner)
        self.invoice = make_invoice(self.owner, self.client_record)

    def test_full_payment_marks_paid(self):
        payment = self.invoice.add_payment(Decimal('1000'), Payment.METHOD_BANK_TRANSFER)

        self.invoice.refresh_from_db()
        self.assertEqual(payment.amount, Decimal('1000'))
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(self.invoice.total_paid, Decimal('1000.00'))
        self.assertEqual(self.invoice.remaining_balance, Decimal('0.00'))
        self.assertIsNotNone(self.invoice.paid_at)

    def test_partial_payments_accumulate(self):
        self.invoice.add_payment(Decimal('400'), Payment.METHOD_CASH)
        self.assertEqual(self.invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(self.invoice.remaining_balance, Decimal('600.00'))

        self.invoice.add_payment(Decimal('600'), Payment.METHOD_CHECK)
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(self.invoice.payments.count(), 2)

    def test_half_cent_short_converges_to_paid(self):
        self.invoice.add_payment(Decimal('999.995'), Payment.METHOD_OTHER)
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)

    def test_two_cents_short_stays_unpaid(self):
        self.invoice.add_payment(Decimal('999.98'), Payment.METHOD_OTHER)

        self.assertEqual(self.invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(self.invoice.remaining_balance, Decimal('0.02'))
        self.assertIsNone(self.invoice.paid_at)

    def test_paid_at_is_kept_from_first_settlement(self):
        self.invoice.add_payment(Decimal('1000'), Payment.METHOD_CASH)
        paid_at = self.invoice.paid_at

        self.invoice.add_payment(Decimal('5'), Payment.METHOD_CASH)

        self.assertEqual(self.invoice.paid_at, paid_at)
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(self.invoice.remaining_balance, Decimal('-5.00'))

    def test_non_positive_amount_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.invoice.add_payment(Decimal('0'), Payment.METHOD_CASH)

        self.assertIn('amount', ctx.exception.context)
        self.assertFalse(self.invoice.payments.exists())

    def test_unknown_method_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.invoice.add_payment(Decimal('10'), 'bitcoin')
        self.assertIn('method', ctx.exception.context)

    def test_mark_as_paid_without_payment_reconciles(self):
        result = self.invoice.mark_as_paid()

        self.invoice.refresh_from_db()
        self.assertIsNone(result)
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(self.invoice.total_paid, Decimal('1000.00'))
        self.assertEqual(self.invoice.remaining_balance, Decimal('0.00'))
        self.assertFalse(self.invoice.payments.exists())

        # A later save keeps the reconciliation
        self.invoice.notes = 'Settled offline'
        self.invoice.save()
        self.assertEqual(self.invoice.remaining_balance, Decimal('0.00'))

    def test_mark_as_paid_with_data_defaults_to_remaining_balance(self):
        self.invoice.add_payment(Decimal('250'), Payment.METHOD_CASH)

        payment = self.invoice.mark_as_paid({'reference': 'WIRE-1'})

        self.assertEqual(payment.amount, Decimal('750.00'))
        self.assertEqual(payment.method, Payment.METHOD_OTHER)
        self.assertEqual(payment.reference, 'WIRE-1')
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)

    def test_mark_as_paid_with_zero_amount_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.invoice.mark_as_paid({'amount': Decimal('0')})

        self.assertIn('amount', ctx.exception.context)
        self.assertFalse(self.invoice.payments.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_DRAFT)


class InvoiceStatusTest(TestCase):
    """
    Test suite for status transitions.
    """

    def setUp(self):
        self.owner = make_user()
        self.client_record = make_client(self.owner)
        self.today = timezone.localdate()

    def test_sent_only_from_draft(self):
        invoice = make_invoice(self.owner, self.client_record)

        self.assertTrue(invoice.mark_as_sent())
        self.assertIsNotNone(invoice.sent_at)
        self.assertFalse(invoice.mark_as_sent())

    def test_viewed_only_from_sent(self):
        invoice = make_invoice(self.owner, self.client_record)
        self.assertFalse(invoice.mark_as_viewed())

        invoice.mark_as_sent()
        self.assertTrue(invoice.mark_as_viewed())
        self.assertEqual(invoice.status, Invoice.STATUS_VIEWED)
        self.assertIsNotNone(invoice.viewed_at)

    def test_sent_invoice_past_due_becomes_overdue_on_save(self):
        invoice = make_invoice(self.owner, self.client_record)
        invoice.mark_as_sent()

        invoice.issue_date = self.today - timedelta(days=40)
        invoice.due_date = self.today - timedelta(days=10)
        invoice.save()

        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)

    def test_draft_past_due_stays_draft(self):
        invoice = make_invoice(self.owner, self.client_record,
                               issue_date=self.today - timedelta(days=40),
                               due_date=self.today - timedelta(days=10))
        invoice.save()

        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertTrue(invoice.is_overdue())

    def test_paid_and_cancelled_are_final_on_save(self):
        past_due = self.today - timedelta(days=1)
        paid = make_invoice(self.owner, self.client_record)
        paid.add_payment(Decimal('1000'), Payment.METHOD_CASH)
        cancelled = make_invoice(self.owner, self.client_record)
        cancelled.cancel()

        for invoice in (paid, cancelled):
            expected = invoice.status
            invoice.issue_date = past_due - timedelta(days=30)
            invoice.due_date = past_due
            invoice.save()
            self.assertEqual(invoice.status, expected)
            self.assertFalse(invoice.is_overdue())

    def test_partial_payment_keeps_overdue(self):
        invoice = make_invoice(self.owner, self.client_record)
        invoice.mark_as_sent()
        invoice.issue_date = self.today - timedelta(days=40)
        invoice.due_date = self.today - timedelta(days=10)
        invoice.save()

        invoice.add_payment(Decimal('100'), Payment.METHOD_CASH)

        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)

    def test_days_until_due(self):
        invoice = make_invoice(self.owner, self.client_record, due_date=self.today + timedelta(days=12))

        self.assertEqual(invoice.get_days_until_due(), 12)
        self.assertEqual(invoice.get_days_until_due(today=self.today + timedelta(days=15)), -3)

    def test_cancel_from_any_status(self):
        invoice = make_invoice(self.owner, self.client_record)
        invoice.add_payment(Decimal('1000'), Payment.METHOD_CASH)

        self.assertTrue(invoice.cancel())
        self.assertEqual(invoice.status, Invoice.STATUS_CANCELLED)


class EndToEndScenarioTest(TestCase):

    def test_create_and_pay_invoice(self):
        owner = make_user()
        client = make_client(owner)

        invoice = make_invoice(owner, client, items=[item(quantity='1', unit_price='1000')],
                               due_date=timezone.localdate() + timedelta(days=30))
        self.assertEqual(invoice.subtotal, Decimal('1000.00'))
        self.assertEqual(invoice.total, Decimal('1000.00'))
        self.assertEqual(invoice.remaining_balance, Decimal('1000.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)

        invoice.add_payment(Decimal('1000'), Payment.METHOD_BANK_TRANSFER)
        invoice.refresh_from_db()

        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(invoice.remaining_balance, Decimal('0.00'))
        self.assertEqual(invoice.total_paid, Decimal('1000.00'))
