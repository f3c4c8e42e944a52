from rest_framework import serializers
from buildledger.receipts.serializers import ReceiptSerializer
from .models import Invoice


class InvoiceSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    job_site_name = serializers.CharField(source='job_site.name', read_only=True, default=None)
    receipt_count = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_no', 'customer', 'customer_name', 'job_site', 'job_site_name', 'receipt_type',
            'status', 'subtotal', 'vat_rate', 'vat_amount', 'total', 'amount_paid', 'outstanding',
            'notes', 'issued_at', 'paid_at', 'created_by', 'receipt_count', 'created_at', 'updated_at'
        ]

    def get_receipt_count(self, obj):
        count = getattr(obj, 'receipt_count', None)
        if count is not None:
            return count
        return obj.invoice_receipts.count()


class InvoiceDetailSerializer(InvoiceSerializer):
    """Pass the invoice receipts as `receipts` in context"""
    receipts = serializers.SerializerMethodField()

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['receipts']

    def get_receipts(self, obj):
        return ReceiptSerializer(self.context.get('receipts') or [], many=True).data
