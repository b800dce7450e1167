from django.contrib.auth import get_user_model
from rest_framework import serializers


User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'role',
            'is_email_verified', 'preferred_currency', 'language', 'timezone',
            'last_login', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, max_length=128, trim_whitespace=False)
    first_name = serializers.CharField(min_length=2, max_length=50)
    last_name = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class LogoutSerializer(serializers.Serializer):
    refresh_token = serializers.CharField(required=False, allow_blank=True)


class ProfileUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(min_length=2, max_length=50, required=False)
    last_name = serializers.CharField(max_length=50, required=False, allow_blank=True)
    email = serializers.EmailField(required=False)
    preferred_currency = serializers.CharField(min_length=3, max_length=3, required=False)
    language = serializers.CharField(max_length=5, required=False)
    timezone = serializers.CharField(max_length=50, required=False)

    def validate_preferred_currency(self, value):
        return value.upper()

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        return attrs


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password = serializers.CharField(write_only=True, min_length=8, max_length=128, trim_whitespace=False)

    def validate(self, attrs):
        if attrs['current_password'] == attrs['new_password']:
            raise serializers.ValidationError({'new_password': "New password must differ from the current password"})
        return attrs
