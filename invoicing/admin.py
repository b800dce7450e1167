from django.contrib import admin
from .models import Invoice, InvoiceItem, InvoiceSequence, Payment

class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ('subtotal', 'tax_amount', 'total')

class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0

@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('number', 'client', 'owner', 'issue_date', 'due_date', 'status', 'total', 'remaining_balance')
    list_filter = ('status', 'currency', 'issue_date', 'due_date')
    search_fields = ('number', 'client__name', 'client__company', 'owner__email')
    readonly_fields = (
        'subtotal', 'discount_amount', 'tax_amount', 'total', 'total_paid',
        'remaining_balance', 'sent_at', 'viewed_at', 'paid_at',
    )
    inlines = [InvoiceItemInline, PaymentInline]

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('invoice', 'date', 'amount', 'method', 'reference')
    list_filter = ('method', 'date')
    search_fields = ('invoice__number', 'reference')

@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ('owner', 'year', 'last_value')
    list_filter = ('year',)
