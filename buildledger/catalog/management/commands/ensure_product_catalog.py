from django.core.management.base import BaseCommand
from buildledger.catalog.utils import ensure_product_catalog


class Command(BaseCommand):
    help = 'Creates or refreshes the fixed product catalog (aggregates, cement, diesel and blocks)'

    def handle(self, *args, **options):
        created, updated = ensure_product_catalog()
        self.stdout.write(self.style.SUCCESS(f"Product catalog synced: {created} created, {updated} updated."))
