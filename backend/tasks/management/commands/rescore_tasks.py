"""
Recompute the stored priority score of every task.

The urgency bonus depends on the current date, so stored scores go stale as
days pass. Schedule this daily, e.g. from cron:

    python manage.py rescore_tasks

``--owner`` limits the run to one owner's tasks.
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from tasks.models import Task


class Command(BaseCommand):
    help = "Recompute cached priority scores against today's date"

    def add_arguments(self, parser):
        parser.add_argument(
            '--owner',
            help='Only re-score tasks belonging to this owner',
        )

    def handle(self, *args, **options):
        tasks = Task.objects.all()
        if options['owner']:
            tasks = tasks.for_owner(options['owner'])

        changed = tasks.rescore(timezone.now())
        self.stdout.write(self.style.SUCCESS(f"Re-scored {changed} task(s)"))
