"""
Access and refresh token handling.

Access tokens are short-lived HS256 JWTs carrying the user id and email.
Refresh tokens are opaque random strings; only their hash is persisted.
"""

import secrets
from datetime import timedelta

import jwt
from django.conf import settings
from django.utils import timezone

from accounts.models import RefreshToken
from core.exceptions import AuthenticationError
from core.logging_config import get_logger


logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = 'access'


class TokenService:
    """
    Issues, verifies and revokes authentication tokens.
    """

    def __init__(self):
        self.secret = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.access_lifetime = timedelta(minutes=settings.JWT_ACCESS_TOKEN_LIFETIME_MINUTES)
        self.refresh_lifetime = timedelta(days=settings.JWT_REFRESH_TOKEN_LIFETIME_DAYS)

    def issue_access_token(self, user):
        now = timezone.now()
        payload = {
            'sub': str(user.pk),
            'email': user.email,
            'type': ACCESS_TOKEN_TYPE,
            'iat': now,
            'exp': now + self.access_lifetime,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_access_token(self, token):
        """
        Validate an access token and return its payload.

        Raises:
            AuthenticationError: If the token is expired, malformed or not an access token
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired", error_code='TOKEN_EXPIRED')
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token", error_code='INVALID_TOKEN')

        if payload.get('type') != ACCESS_TOKEN_TYPE or 'sub' not in payload:
            raise AuthenticationError("Invalid token", error_code='INVALID_TOKEN')
        return payload

    def issue_refresh_token(self, user, ip_address=None, user_agent=''):
        raw_token = secrets.token_urlsafe(48)
        RefreshToken.objects.create(
            user=user,
            token_hash=RefreshToken.hash_token(raw_token),
            ip_address=ip_address or None,
            user_agent=(user_agent or '')[:255],
            expires_at=timezone.now() + self.refresh_lifetime,
        )
        return raw_token

    def get_active_refresh_token(self, raw_token):
        token = (
            RefreshToken.objects
            .select_related('user')
            .filter(token_hash=RefreshToken.hash_token(raw_token))
            .first()
        )
        if token is None or not token.is_active or not token.user.is_active:
            raise AuthenticationError("Invalid or expired refresh token", error_code='INVALID_REFRESH_TOKEN')
        return token

    def rotate_refresh_token(self, raw_token, ip_address=None, user_agent=''):
        """
        Exchange a refresh token for a new access/refresh pair, revoking the old one.
        """
        token = self.get_active_refresh_token(raw_token)
        token.revoke()
        user = token.user
        logger.info("Refresh token rotated", user_id=user.pk)
        return user, self.issue_token_pair(user, ip_address=ip_address, user_agent=user_agent)

    def revoke_refresh_token(self, raw_token):
        token = RefreshToken.objects.filter(token_hash=RefreshToken.hash_token(raw_token)).first()
        if token is not None:
            token.revoke()
        return token is not None

    def revoke_all_for_user(self, user):
        return RefreshToken.objects.filter(user=user, revoked_at__isnull=True).update(revoked_at=timezone.now())

    def issue_token_pair(self, user, ip_address=None, user_agent=''):
        return {
            'access_token': self.issue_access_token(user),
            'refresh_token': self.issue_refresh_token(user, ip_address=ip_address, user_agent=user_agent),
            'token_type': 'Bearer',
            'expires_in': int(self.access_lifetime.total_seconds()),
        }
