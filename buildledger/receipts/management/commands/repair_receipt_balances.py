from django.core.management.base import BaseCommand
from django.db import transaction
from buildledger.core.cache_signals import clear_cache_prefix, suspend_cache_signals
from buildledger.payments.services import repair_receipt_balance
from buildledger.receipts.models import Receipt


class Command(BaseCommand):
    help = 'Recomputes receipt paid amounts from their payment links'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report changes without saving them')
        parser.add_argument('--customer', type=int, help='Only repair receipts of this customer id')

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        receipts = Receipt.objects.prefetch_related('payment_links').order_by('id')
        if options.get('customer'):
            receipts = receipts.filter(customer_id=options['customer'])

        changed_count = 0
        with suspend_cache_signals(), transaction.atomic():
            for receipt in receipts:
                old_paid, new_paid, changed = repair_receipt_balance(receipt, dry_run=dry_run)
                if changed:
                    changed_count += 1
                    self.stdout.write(f"{receipt.receipt_no}: {old_paid} -> {new_paid}")

        if changed_count and not dry_run:
            clear_cache_prefix('dashboard')
            clear_cache_prefix('reports_summary')

        if not changed_count:
            self.stdout.write("All receipt balances are consistent.")
        elif dry_run:
            self.stdout.write(self.style.WARNING(f"{changed_count} receipts would be updated (dry run)."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Updated {changed_count} receipts."))
