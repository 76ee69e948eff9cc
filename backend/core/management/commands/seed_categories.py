"""
Management command to add the storefront's predefined categories to the database
"""
from django.core.management.base import BaseCommand
from django.utils.text import slugify

from backend.catalog.models import Category
from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import invalidate_categories_cache


class Command(BaseCommand):
    help = "Adds predefined product categories to the database"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all existing categories before adding new ones',
        )

    def handle(self, *args, **options):
        clear = options['clear']

        # Listed in display order
        categories = [
            'Sarees',
            'Lehengas',
            'Suits',
            'Kurtis',
            'Anarkalis',
            'Dupattas',
            'Blouses',
            'Indo-Western',
            'Bridal',
            'Custom Design',
        ]

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("ADDING PRODUCT CATEGORIES"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        created_count = 0
        skipped_count = 0

        with suspend_cache_signals():
            if clear:
                self.stdout.write(self.style.WARNING("Clearing all existing categories..."))
                Category.objects.all().delete()

            for display_order, category_name in enumerate(categories):
                category, created = Category.objects.get_or_create(
                    slug=slugify(category_name),
                    defaults={
                        'name': category_name,
                        'display_order': display_order,
                        'is_active': True,
                    }
                )

                if created:
                    created_count += 1
                    self.stdout.write(self.style.SUCCESS(f"  ✓ Created: {category_name}"))
                else:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (already exists): {category_name}"))

        invalidate_categories_cache()

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Categories Created: {created_count}")
        self.stdout.write(f"Categories Skipped (already exist): {skipped_count}")
        self.stdout.write(f"Total Categories in Database: {Category.objects.count()}")
