"""
Cache invalidation signals
Automatically invalidate catalog cache when products or categories change
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from backend.catalog.models import Category, Product
from backend.core.cache_utils import invalidate_products_cache, invalidate_categories_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk imports; invalidate manually after the block.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete], sender=Product)
def invalidate_product_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    logger.debug(f"Product {instance.pk} changed - invalidating products cache")
    invalidate_products_cache()


@receiver([post_save, post_delete], sender=Category)
def invalidate_category_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    logger.debug(f"Category {instance.pk} changed - invalidating catalog cache")
    invalidate_categories_cache()
    invalidate_products_cache()
