from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import ROLE_CHOICES

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Profile representation. Role, email and timestamps are read-only here;
    roles change only through the Django admin or the set_user_role command.
    """

    class Meta:
        model = User
        fields = [
            'id', 'email', 'full_name', 'phone', 'role',
            'address_line1', 'address_line2', 'city', 'state', 'postal_code',
            'landmark', 'country', 'address_type',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'email', 'role', 'created_at', 'updated_at']


class RegisterSerializer(serializers.ModelSerializer):
    """
    Self-service sign-up. Every new profile starts as a customer.
    """
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    confirm_password = serializers.CharField(write_only=True, required=False)

    class Meta:
        model = User
        fields = [
            'email', 'password', 'confirm_password', 'full_name', 'phone',
            'address_line1', 'address_line2', 'city', 'state', 'postal_code',
            'landmark', 'country', 'address_type',
        ]
        extra_kwargs = {
            'full_name': {'required': True},
        }

    def validate(self, attrs):
        confirm = attrs.pop('confirm_password', None)
        if confirm is not None and confirm != attrs['password']:
            raise serializers.ValidationError({'confirm_password': 'Passwords do not match'})
        validate_password(attrs['password'])
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        email = validated_data.pop('email')
        return User.objects.create_user(username=email, email=email, password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=ROLE_CHOICES, required=False)
