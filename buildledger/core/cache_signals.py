"""
Drop cached figures once the rows behind them change.

Every cache prefix lists the models it is built from; a save or delete of
one of those models clears the prefix after the transaction commits.
"""
import logging
import threading
from contextlib import contextmanager

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

logger = logging.getLogger(__name__)

_state = threading.local()

LEDGER_MODELS = frozenset({
    'Product', 'Receipt', 'ReceiptItem', 'InventoryEntry', 'StockMovement',
    'Payment', 'ReceiptPayment', 'InventoryPayment', 'PayrollEntry',
    'DebrisEntry', 'CashEntry', 'Customer', 'Supplier', 'AdminOverride',
})

CACHE_DEPENDENCIES = {
    'products_list': frozenset({'Product', 'ProductComponent'}),
    'dashboard': LEDGER_MODELS,
    'reports_summary': LEDGER_MODELS,
}


@contextmanager
def suspend_cache_signals():
    """
    Skip invalidation inside the block, e.g. while a command rewrites many
    rows. Call `clear_cache_prefix` for the affected prefixes afterwards.
    """
    _state.suspended = True
    try:
        yield
    finally:
        _state.suspended = False


def signals_suspended():
    return getattr(_state, 'suspended', False)


def clear_cache_prefix(prefix):
    """Delete every key under `prefix`: redis SCAN when available, a full clear otherwise"""
    backend = settings.CACHES.get('default', {}).get('BACKEND', '')
    if 'django_redis' not in backend:
        cache.clear()
        logger.debug(f"Local cache cleared for {prefix}")
        return

    try:
        from django_redis import get_redis_connection
        connection = get_redis_connection('default')
        stale = list(connection.scan_iter(match=f"*{prefix}:*", count=100))
        if stale:
            connection.delete(*stale)
        logger.info(f"Cleared {len(stale)} cached keys for {prefix}")
    except Exception as e:
        logger.warning(f"Could not clear cached keys for {prefix}: {e}")


@receiver([post_save, post_delete])
def invalidate_dependent_caches(sender, instance, **kwargs):
    if signals_suspended():
        return
    for prefix, models in CACHE_DEPENDENCIES.items():
        if sender.__name__ in models:
            transaction.on_commit(lambda prefix=prefix: clear_cache_prefix(prefix))
