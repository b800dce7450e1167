from django.contrib import admin
from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'email', 'owner', 'status', 'invoice_count', 'outstanding_balance']
    list_filter = ['status', 'currency']
    search_fields = ['name', 'email', 'company', 'owner__email']
    readonly_fields = [
        'total_invoiced', 'total_paid', 'outstanding_balance', 'invoice_count',
        'last_invoice_date', 'created_at', 'updated_at',
    ]
