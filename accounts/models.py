import hashlib

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from core.models import BaseModel


class User(AbstractUser, BaseModel):
    """
    Account that owns clients and invoices.

    Extends Django's user model and authenticates with the email address.
    Preference fields seed the defaults of new clients and invoices.
    """

    ROLE_USER = 'user'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_ADMIN, 'Admin'),
    ]

    email = models.EmailField(unique=True, verbose_name="Email")
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_USER)
    is_email_verified = models.BooleanField(default=False)
    preferred_currency = models.CharField(max_length=3, default='USD')
    language = models.CharField(max_length=5, default='en')
    timezone = models.CharField(max_length=50, default='UTC')

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class RefreshToken(BaseModel):
    """
    Issued refresh token. Only the SHA-256 hash of the token is stored.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='refresh_tokens')
    token_hash = models.CharField(max_length=64, unique=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    expires_at = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Refresh token"
        verbose_name_plural = "Refresh tokens"
        ordering = ['-created_at']

    def __str__(self):
        return f"Refresh token for {self.user} (expires {self.expires_at:%Y-%m-%d})"

    @staticmethod
    def hash_token(raw_token):
        return hashlib.sha256(raw_token.encode('utf-8')).hexdigest()

    @property
    def is_active(self):
        return self.revoked_at is None and self.expires_at > timezone.now()

    def revoke(self):
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
            self.save(update_fields=['revoked_at', 'updated_at'])
