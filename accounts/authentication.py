from django.contrib.auth import get_user_model
from rest_framework import authentication, exceptions

from accounts.services.token_service import TokenService
from core.exceptions import AuthenticationError


class JWTAuthentication(authentication.BaseAuthentication):
    """
    Authenticates ``Authorization: Bearer <access token>`` headers.

    Requests without the header fall through as anonymous so that
    permission classes decide whether access is allowed.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            raise exceptions.AuthenticationFailed('Invalid authorization header.')

        try:
            token = header[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid authorization header.')

        try:
            payload = TokenService().decode_access_token(token)
        except AuthenticationError as exc:
            raise exceptions.AuthenticationFailed(exc.message)

        User = get_user_model()
        try:
            user = User.objects.get(pk=payload['sub'], is_active=True)
        except (User.DoesNotExist, ValueError):
            raise exceptions.AuthenticationFailed('User not found or inactive.')

        return user, payload

    def authenticate_header(self, request):
        return self.keyword
