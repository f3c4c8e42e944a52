from rest_framework import serializers
from .models import CashEntry, CashCustodyEntry


class CashEntrySerializer(serializers.ModelSerializer):
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = CashEntry
        fields = ['id', 'type', 'amount', 'description', 'created_by', 'created_by_email', 'created_at']


class CashCustodyEntrySerializer(serializers.ModelSerializer):
    from_employee_name = serializers.CharField(source='from_employee.name', read_only=True)
    to_employee_name = serializers.CharField(source='to_employee.name', read_only=True)
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = CashCustodyEntry
        fields = [
            'id', 'type', 'amount', 'from_employee', 'from_employee_name', 'to_employee', 'to_employee_name',
            'description', 'created_by', 'created_by_email', 'created_at'
        ]
