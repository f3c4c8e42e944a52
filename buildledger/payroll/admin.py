from django.contrib import admin
from .models import Employee, ManufacturingPieceRate, PayrollRun, PayrollEntry


class PieceRateInline(admin.TabularInline):
    model = ManufacturingPieceRate
    extra = 0
    fields = ['product', 'rate', 'helper_rate', 'is_active']


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ['name', 'role', 'pay_type', 'salary_amount', 'salary_frequency', 'active']
    list_filter = ['role', 'pay_type', 'active']
    search_fields = ['name', 'phone']
    ordering = ['name']
    inlines = [PieceRateInline]


@admin.register(PayrollRun)
class PayrollRunAdmin(admin.ModelAdmin):
    list_display = ['id', 'frequency', 'period_start', 'period_end', 'status', 'total_net', 'paid_at']
    list_filter = ['status', 'frequency']
    ordering = ['-period_start']
    readonly_fields = ['total_gross', 'total_net', 'total_deductions', 'created_at', 'updated_at']


@admin.register(PayrollEntry)
class PayrollEntryAdmin(admin.ModelAdmin):
    list_display = ['employee', 'type', 'amount', 'period_start', 'period_end', 'payroll_run', 'payment']
    list_filter = ['type']
    search_fields = ['employee__name', 'notes']
    ordering = ['-created_at']
