from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, RefreshToken


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'is_staff']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Preferences', {'fields': ('role', 'is_email_verified', 'preferred_currency', 'language', 'timezone')}),
    )


@admin.register(RefreshToken)
class RefreshTokenAdmin(admin.ModelAdmin):
    list_display = ['user', 'ip_address', 'expires_at', 'revoked_at', 'created_at']
    list_filter = ['revoked_at']
    search_fields = ['user__email']
    readonly_fields = ['token_hash', 'created_at', 'updated_at']
