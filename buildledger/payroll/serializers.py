from rest_framework import serializers
from .models import Employee, ManufacturingPieceRate, PayrollRun, PayrollEntry


class ManufacturingPieceRateSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = ManufacturingPieceRate
        fields = ['id', 'employee', 'product', 'product_name', 'rate', 'helper_rate', 'is_active', 'created_at', 'updated_at']


class EmployeeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Employee
        fields = [
            'id', 'name', 'role', 'pay_type', 'salary_amount', 'salary_frequency',
            'active', 'phone', 'notes', 'created_at', 'updated_at'
        ]


class EmployeeSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Employee
        fields = ['id', 'name', 'role', 'pay_type']


class PayrollEntrySerializer(serializers.ModelSerializer):
    employee = EmployeeSummarySerializer(read_only=True)
    helper_employee = EmployeeSummarySerializer(read_only=True)
    stone_product_name = serializers.CharField(source='stone_product.name', read_only=True, default=None)
    payment_date = serializers.DateTimeField(source='payment.date', read_only=True, default=None)

    class Meta:
        model = PayrollEntry
        fields = [
            'id', 'employee', 'period_start', 'period_end', 'type', 'amount', 'quantity', 'notes',
            'stone_product', 'stone_product_name', 'helper_employee', 'payroll_run',
            'payment', 'payment_date', 'created_at'
        ]


class PayrollRunSerializer(serializers.ModelSerializer):
    entry_count = serializers.SerializerMethodField()

    class Meta:
        model = PayrollRun
        fields = [
            'id', 'frequency', 'period_start', 'period_end', 'status', 'debit_at', 'paid_at',
            'total_gross', 'total_net', 'total_deductions', 'notes', 'entry_count', 'created_at', 'updated_at'
        ]

    def get_entry_count(self, obj):
        count = getattr(obj, 'entry_count', None)
        if count is None:
            count = obj.entries.count()
        return count


class PayrollRunDetailSerializer(PayrollRunSerializer):
    entries = PayrollEntrySerializer(many=True, read_only=True)

    class Meta(PayrollRunSerializer.Meta):
        fields = PayrollRunSerializer.Meta.fields + ['entries']
