from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v


class SignupSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_username(self, v):
        v = v.strip()
        if User.objects.filter(username__iexact=v).exists():
            raise serializers.ValidationError('username is already taken')
        return v

    def validate_email(self, v):
        v = v.strip().lower()
        if User.objects.filter(email__iexact=v).exists():
            raise serializers.ValidationError('an account with this email already exists')
        return v

    def validate(self, attrs):
        validate_password(attrs['password'], user=User(username=attrs['username'], email=attrs['email']))
        return attrs


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField()

    def validate(self, attrs):
        if attrs['currentPassword'] == attrs['newPassword']:
            raise serializers.ValidationError({'newPassword': 'new password must differ from the current one'})
        validate_password(attrs['newPassword'], user=self.context.get('user'))
        return attrs


class ProfileSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)
