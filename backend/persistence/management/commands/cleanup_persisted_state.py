"""
Management command to sweep expired persisted client state
Usage: python manage.py cleanup_persisted_state [--days 7]
"""
from django.conf import settings
from django.core.management.base import BaseCommand

from backend.persistence.models import PersistedState
from backend.persistence.store import DAY, DatabaseStorage, StatePersistence


class Command(BaseCommand):
    help = 'Remove persisted client state older than the given number of days (and unreadable entries)'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=7, help='Maximum age in days (default: 7)')

    def handle(self, *args, **options):
        max_age = options['days'] * DAY
        owner_keys = PersistedState.objects.values_list('owner_key', flat=True).distinct()

        removed = 0
        owners = 0
        for owner_key in owner_keys:
            store = StatePersistence(DatabaseStorage(owner_key), prefix=settings.STATE_PREFIX)
            removed += store.cleanup_expired_data(max_age)
            owners += 1

        self.stdout.write(self.style.SUCCESS(
            f'✅ Removed {removed} expired persisted state entries across {owners} owners'
        ))
