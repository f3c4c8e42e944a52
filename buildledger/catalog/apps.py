from django.apps import AppConfig
from django.db.models.signals import post_migrate


def sync_product_catalog(sender, **kwargs):
    from .utils import ensure_product_catalog
    ensure_product_catalog()


class CatalogConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'buildledger.catalog'

    def ready(self):
        """Keep the fixed product catalog in place after every migrate"""
        post_migrate.connect(sync_product_catalog, sender=self)
