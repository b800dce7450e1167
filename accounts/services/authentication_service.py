"""
Account registration and authentication.

Handles sign-up, credential checks, profile updates and password changes.
Token mechanics live in ``TokenService``.
"""

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.services.token_service import TokenService
from core.exceptions import AuthenticationError, ConflictError, ValidationError
from core.logging.processors import get_client_ip
from core.logging_config import get_logger


User = get_user_model()


class AuthenticationService:
    """
    Service for account lifecycle operations.
    """

    PROFILE_FIELDS = ('first_name', 'last_name', 'email', 'preferred_currency', 'language', 'timezone')

    def __init__(self, token_service=None):
        self.logger = get_logger(f"{__name__}.AuthenticationService")
        self.tokens = token_service or TokenService()

    def register(self, data, request=None):
        """
        Create an account and return it with a fresh token pair.

        Args:
            data: Validated registration data (email, password, first_name, last_name)
            request: HTTP request, used to record the refresh token origin

        Returns:
            Tuple[User, dict]: The new user and its tokens

        Raises:
            ConflictError: If the email is already registered
        """
        email = data['email'].lower()
        if User.objects.filter(email__iexact=email).exists():
            raise ConflictError("User with this email already exists", context={'email': [email]})

        self._validate_password(data['password'])

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=data['password'],
                    first_name=data.get('first_name', ''),
                    last_name=data.get('last_name', ''),
                )
        except IntegrityError:
            raise ConflictError("User with this email already exists", context={'email': [email]})

        self.logger.info("User registered successfully", user_id=user.pk)
        return user, self._issue_tokens(user, request)

    def login(self, email, password, request=None):
        """
        Check credentials and return the user with a fresh token pair.

        Raises:
            AuthenticationError: If the credentials are invalid or the account is inactive
        """
        user = authenticate(request, email=email.lower(), password=password)
        if user is None:
            self.logger.warning("Login attempt failed", email_domain=email.rsplit('@', 1)[-1])
            raise AuthenticationError("Invalid email or password", error_code='INVALID_CREDENTIALS')

        user.last_login = timezone.now()
        user.save(update_fields=['last_login', 'updated_at'])

        self.logger.info("User logged in successfully", user_id=user.pk)
        return user, self._issue_tokens(user, request)

    def refresh(self, raw_refresh_token, request=None):
        ip_address, user_agent = self._request_origin(request)
        return self.tokens.rotate_refresh_token(raw_refresh_token, ip_address=ip_address, user_agent=user_agent)

    def logout(self, user, raw_refresh_token=None):
        """
        Revoke the given refresh token, or every refresh token of the user.
        """
        if raw_refresh_token:
            self.tokens.revoke_refresh_token(raw_refresh_token)
        else:
            self.tokens.revoke_all_for_user(user)
        self.logger.info("User logged out", user_id=user.pk)

    def update_profile(self, user, data):
        email = data.get('email')
        if email and User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
            raise ConflictError("Email is already taken", context={'email': [email]})

        changed = []
        for field in self.PROFILE_FIELDS:
            if field in data:
                value = data[field]
                if field == 'email':
                    value = value.lower()
                    user.username = value
                    changed.append('username')
                setattr(user, field, value)
                changed.append(field)

        if changed:
            user.save(update_fields=changed + ['updated_at'])
            self.logger.info("Profile updated", user_id=user.pk, updated_fields=changed)
        return user

    def change_password(self, user, current_password, new_password):
        if not user.check_password(current_password):
            raise ValidationError.for_field('current_password', "Current password is incorrect")

        self._validate_password(new_password, user=user)
        user.set_password(new_password)
        user.save(update_fields=['password', 'updated_at'])
        self.tokens.revoke_all_for_user(user)
        self.logger.info("Password changed", user_id=user.pk)
        return user

    def _validate_password(self, password, user=None):
        try:
            validate_password(password, user=user)
        except DjangoValidationError as exc:
            raise ValidationError("Password does not meet requirements", context={'password': list(exc.messages)})

    def _issue_tokens(self, user, request):
        ip_address, user_agent = self._request_origin(request)
        return self.tokens.issue_token_pair(user, ip_address=ip_address, user_agent=user_agent)

    @staticmethod
    def _request_origin(request):
        if request is None:
            return None, ''
        return get_client_ip(request) or None, request.META.get('HTTP_USER_AGENT', '')
