"""
Invoice ledger arithmetic.

Pure functions with no database access: line-item totals, invoice
aggregation, payment settlement and save-time status derivation. Models
and services call into this module so the rules live in one place.

Line-item values are never rounded. Invoice-level amounts are rounded to
cents with half-away-from-zero rounding (``219.995 -> 220.00``).
"""

from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP


ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')
SETTLEMENT_TOLERANCE = Decimal('0.01')

DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_FIXED = 'fixed'

STATUS_DRAFT = 'draft'
STATUS_SENT = 'sent'
STATUS_VIEWED = 'viewed'
STATUS_PAID = 'paid'
STATUS_OVERDUE = 'overdue'
STATUS_CANCELLED = 'cancelled'

# Statuses that may become overdue when the due date passes
OVERDUE_CANDIDATES = (STATUS_SENT, STATUS_VIEWED)
# Statuses no automatic transition leaves
FINAL_STATUSES = (STATUS_PAID, STATUS_CANCELLED)

NUMBER_PREFIX = 'INV'
MAX_LINE_ITEMS = 100


LineItemTotals = namedtuple('LineItemTotals', ['subtotal', 'tax_amount', 'total'])
InvoiceTotals = namedtuple(
    'InvoiceTotals',
    ['subtotal', 'discount_amount', 'tax_amount', 'total', 'remaining_balance'],
)
PaymentState = namedtuple('PaymentState', ['total_paid', 'remaining_balance', 'settled'])


def to_decimal(value):
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value):
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_line_item(quantity, unit_price, discount=0, tax_rate=0):
    """
    Compute the subtotal, tax and total of a single invoice line.

    Args:
        quantity: Number of units
        unit_price: Price per unit
        discount: Line discount in percent (0-100)
        tax_rate: Line tax rate in percent (0-100)

    Returns:
        LineItemTotals: Unrounded subtotal, tax_amount and total
    """
    raw = to_decimal(quantity) * to_decimal(unit_price)
    discount = to_decimal(discount)

    subtotal = raw - raw * discount / HUNDRED if discount > 0 else raw
    tax_amount = subtotal * to_decimal(tax_rate) / HUNDRED
    return LineItemTotals(subtotal, tax_amount, subtotal + tax_amount)


def compute_discount(subtotal, discount_type, discount_value):
    discount_value = to_decimal(discount_value)
    if discount_value == 0:
        return ZERO
    if discount_type == DISCOUNT_FIXED:
        return discount_value
    return to_decimal(subtotal) * discount_value / HUNDRED


def aggregate_invoice(items, tax_rate=0, discount_type=DISCOUNT_PERCENTAGE, discount_value=0,
                      shipping_cost=0, total_paid=0):
    """
    Aggregate line totals into the invoice-level amounts.

    ``items`` is an iterable of objects exposing ``subtotal`` (usually
    ``LineItemTotals``). The discount applies to the sum of line subtotals,
    the invoice tax rate to the discounted amount, and shipping is added
    after tax. A discount larger than the subtotal is not clamped; callers
    reject such input before saving.

    Returns:
        InvoiceTotals: All five amounts rounded with ``round_money``
    """
    subtotal = sum((to_decimal(item.subtotal) for item in items), ZERO)
    discount_amount = compute_discount(subtotal, discount_type, discount_value)
    taxable_amount = subtotal - discount_amount
    tax_amount = taxable_amount * to_decimal(tax_rate) / HUNDRED
    total = taxable_amount + tax_amount + to_decimal(shipping_cost)
    remaining_balance = total - to_decimal(total_paid)

    return InvoiceTotals(
        subtotal=round_money(subtotal),
        discount_amount=round_money(discount_amount),
        tax_amount=round_money(tax_amount),
        total=round_money(total),
        remaining_balance=round_money(remaining_balance),
    )


def is_settled(remaining_balance):
    """An invoice counts as paid once at most one cent remains."""
    return to_decimal(remaining_balance) <= SETTLEMENT_TOLERANCE


def apply_payments(total, amounts):
    """
    Settle ``total`` against the recorded payment ``amounts``.

    Settlement is decided on the exact balance before rounding.
    """
    total_paid = sum((to_decimal(amount) for amount in amounts), ZERO)
    remaining_balance = to_decimal(total) - total_paid
    return PaymentState(
        total_paid=round_money(total_paid),
        remaining_balance=round_money(remaining_balance),
        settled=is_settled(remaining_balance),
    )


def next_status(status, due_date, today):
    """
    Status an invoice takes when saved on ``today``.

    Only sent or viewed invoices past their due date move to overdue;
    every other status is returned unchanged.
    """
    if status in OVERDUE_CANDIDATES and due_date is not None and today > due_date:
        return STATUS_OVERDUE
    return status


def format_invoice_number(year, sequence):
    return f"{NUMBER_PREFIX}-{year}-{sequence:04d}"
