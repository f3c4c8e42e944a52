from rest_framework import serializers
from .models import User, AuditLog, AdminOverride, DisplaySettings


class UserSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'permissions']

    def get_permissions(self, obj):
        return obj.permissions


class UserAdminSerializer(UserSerializer):
    """User listing for admins, including the raw overrides"""

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'created_at', 'updated_at', 'permissions', 'permission_overrides']


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'entity_type', 'entity_id', 'description',
            'user', 'user_email', 'metadata', 'ip_address', 'created_at'
        ]


class DisplaySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = DisplaySettings
        fields = ['id'] + DisplaySettings.FLAG_FIELDS + ['updated_at']
        read_only_fields = ['id', 'updated_at']


class AdminOverrideSerializer(serializers.ModelSerializer):
    updated_by = serializers.SerializerMethodField()

    class Meta:
        model = AdminOverride
        fields = ['category', 'value', 'notes', 'updated_at', 'updated_by']

    def get_updated_by(self, obj):
        if not obj.updated_by:
            return None
        return {'id': obj.updated_by.id, 'name': obj.updated_by.name, 'email': obj.updated_by.email}
