from rest_framework import serializers
from core.constants import UserRole
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User"""
    display_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'display_name',
            'phone', 'role', 'agency', 'date_joined'
        ]
        read_only_fields = ['id', 'role', 'agency', 'date_joined']


class UserListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for nested/list use"""
    display_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = ['id', 'username', 'display_name', 'role']


class StaffCreateSerializer(serializers.ModelSerializer):
    """Agency owner creating a staff member"""
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role', 'password']
        read_only_fields = ['id']

    def validate_role(self, value):
        if value not in (UserRole.MANAGER, UserRole.SYNDIC, UserRole.CS):
            raise serializers.ValidationError("Role must be MANAGER, SYNDIC or CS.")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user
