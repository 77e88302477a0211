from rest_framework import serializers
from django.core.validators import RegexValidator
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    phone_number = serializers.CharField(
        required=False,
        allow_blank=True,
        validators=[RegexValidator(regex=r'^\+?[1-9]\d{9,14}$', message="Enter a valid phone number.")]
    )
    full_name = serializers.CharField(required=True, max_length=120)

    class Meta:
        model = User
        fields = ['email', 'password', 'full_name', 'phone_number']
        extra_kwargs = {'password': {'write_only': True}}

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email is already registered.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class UserSerializer(serializers.ModelSerializer):
    fullName = serializers.CharField(source='display_name', read_only=True)
    phoneNumber = serializers.CharField(source='phone_number', read_only=True)

    class Meta:
        model = User
        fields = ['user_id', 'email', 'fullName', 'phoneNumber']
        read_only_fields = fields
