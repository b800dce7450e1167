from datetime import timedelta
from unittest.mock import patch

import jwt
from django.conf import settings
from django.test import TestCase
from django.utils import timezone

from accounts.models import RefreshToken, User
from accounts.services.token_service import TokenService
from core.exceptions import AuthenticationError


class TokenServiceTest(TestCase):
    """
    Test suite for access token encoding and refresh token rotation.
    """

    def setUp(self):
        self.user = User.objects.create_user(
            username='ana@example.com',
            email='ana@example.com',
            password='S3cure-Passw0rd!',
            first_name='Ana',
        )
        self.service = TokenService()

    def test_access_token_round_trip(self):
        token = self.service.issue_access_token(self.user)
        payload = self.service.decode_access_token(token)

        self.assertEqual(payload['sub'], str(self.user.pk))
        self.assertEqual(payload['email'], 'ana@example.com')
        self.assertEqual(payload['type'], 'access')

    def test_expired_access_token_is_rejected(self):
        past = timezone.now() - timedelta(hours=2)
        token = jwt.encode(
            {'sub': str(self.user.pk), 'type': 'access', 'iat': past, 'exp': past + timedelta(minutes=1)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )

        with self.assertRaises(AuthenticationError) as ctx:
            self.service.decode_access_token(token)
        self.assertEqual(ctx.exception.error_code, 'TOKEN_EXPIRED')

    def test_token_signed_with_other_secret_is_rejected(self):
        token = jwt.encode({'sub': str(self.user.pk), 'type': 'access'}, 'another-secret', algorithm='HS256')

        with self.assertRaises(AuthenticationError) as ctx:
            self.service.decode_access_token(token)
        self.assertEqual(ctx.exception.error_code, 'INVALID_TOKEN')

    def test_token_without_access_type_is_rejected(self):
        token = jwt.encode({'sub': str(self.user.pk), 'type': 'refresh'}, settings.JWT_SECRET, algorithm='HS256')

        with self.assertRaises(AuthenticationError):
            self.service.decode_access_token(token)

    def test_refresh_token_is_stored_hashed(self):
        raw = self.service.issue_refresh_token(self.user, ip_address='10.0.0.1', user_agent='tests')

        stored = RefreshToken.objects.get(user=self.user)
        self.assertNotEqual(stored.token_hash, raw)
        self.assertEqual(stored.token_hash, RefreshToken.hash_token(raw))
        self.assertEqual(stored.ip_address, '10.0.0.1')
        self.assertTrue(stored.is_active)

    def test_rotation_revokes_previous_token(self):
        raw = self.service.issue_refresh_token(self.user)

        user, pair = self.service.rotate_refresh_token(raw)

        self.assertEqual(user, self.user)
        self.assertNotEqual(pair['refresh_token'], raw)
        self.assertEqual(pair['token_type'], 'Bearer')
        with self.assertRaises(AuthenticationError) as ctx:
            self.service.rotate_refresh_token(raw)
        self.assertEqual(ctx.exception.error_code, 'INVALID_REFRESH_TOKEN')

    def test_expired_refresh_token_is_rejected(self):
        raw = self.service.issue_refresh_token(self.user)
        RefreshToken.objects.filter(user=self.user).update(expires_at=timezone.now() - timedelta(seconds=1))

        with self.assertRaises(AuthenticationError):
            self.service.get_active_refresh_token(raw)

    def test_refresh_token_of_inactive_user_is_rejected(self):
        raw = self.service.issue_refresh_token(self.user)
        self.user.is_active = False
        self.user.save()

        with self.assertRaises(AuthenticationError):
            self.service.get_active_refresh_token(raw)

    def test_revoke_all_for_user(self):
        self.service.issue_refresh_token(self.user)
        self.service.issue_refresh_token(self.user)

        revoked = self.service.revoke_all_for_user(self.user)

        self.assertEqual(revoked, 2)
        self.assertFalse(RefreshToken.objects.filter(user=self.user, revoked_at__isnull=True).exists())

    def test_unknown_token_revocation_returns_false(self):
        self.assertFalse(self.service.revoke_refresh_token('does-not-exist'))

    @patch('accounts.services.token_service.secrets.token_urlsafe', return_value='fixed-token')
    def test_issue_refresh_token_uses_random_source(self, mock_token):
        raw = self.service.issue_refresh_token(self.user)
        self.assertEqual(raw, 'fixed-token')
        mock_token.assert_called_once_with(48)
