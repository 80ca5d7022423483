from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role',
            'roll_number', 'department', 'semester', 'phone_number', 'is_staff',
        ]
        read_only_fields = ['is_staff']


class ProfileSerializer(UserSerializer):
    """Self-service profile: users may not change their own role."""
    class Meta(UserSerializer.Meta):
        read_only_fields = ['is_staff', 'role', 'email']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)

    class Meta:
        model = User
        fields = [
            'email', 'first_name', 'last_name', 'password', 'role',
            'roll_number', 'department', 'semester',
        ]

    def validate_role(self, value):
        # Public sign-up only creates students; admins create staff via /api/users/
        request = self.context.get('request')
        creator = getattr(request, 'user', None)
        if value != User.Role.STUDENT and not (creator and creator.is_authenticated and creator.is_portal_admin):
            raise serializers.ValidationError("Only administrators can create faculty or admin accounts.")
        return value

    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['email'],
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data['first_name'],
            last_name=validated_data['last_name'],
            role=validated_data.get('role', User.Role.STUDENT),
            roll_number=validated_data.get('roll_number', ''),
            department=validated_data.get('department', ''),
            semester=validated_data.get('semester'),
        )
        return user


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data
