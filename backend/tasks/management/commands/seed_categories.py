"""
Seed the canonical default categories.

Run once when provisioning a database:

    python manage.py seed_categories

Seeding is skipped when default categories already exist. ``--reset``
deletes the current defaults first and re-scores every task.
"""

from django.core.management.base import BaseCommand, CommandError

from tasks.errors import PriorityError
from tasks.registry import CategoryRegistry


class Command(BaseCommand):
    help = "Create the default priority categories if none exist"

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset',
            action='store_true',
            help='Delete existing default categories and re-seed them',
        )

    def handle(self, *args, **options):
        registry = CategoryRegistry()
        try:
            if options['reset']:
                categories = registry.reset_defaults()
                self.stdout.write(self.style.SUCCESS(
                    f"Reset {len(categories)} default categories"
                ))
                return

            created = registry.initialize_defaults()
        except PriorityError as exc:
            raise CommandError(exc.message)

        if created:
            self.stdout.write(self.style.SUCCESS(
                f"Created {len(created)} default categories"
            ))
        else:
            self.stdout.write("Default categories already exist")
