"""
Management command to register the Storefront platform's scheduled tasks.
"""

from typing import Any

from django.core.management.base import BaseCommand

from apps.common.tasks import setup_common_scheduled_tasks


class Command(BaseCommand):
    help = 'Set up all scheduled tasks for the Storefront platform'

    def handle(self, *args: Any, **options: Any) -> None:
        self.stdout.write('🚀 Setting up Storefront scheduled tasks...')

        results = setup_common_scheduled_tasks()
        for task_name, result in results.items():
            if result == 'already_exists':
                self.stdout.write(self.style.WARNING(f'  - {task_name}: Task already exists (skipped)'))
            else:
                self.stdout.write(self.style.SUCCESS(f'  - {task_name}: Created successfully'))

        self.stdout.write('')
        self.stdout.write('📋 Task Schedule:')
        self.stdout.write('  - Expired Idempotency Key Cleanup: Every hour')
        self.stdout.write('')
        self.stdout.write('🔧 Start workers: python manage.py qcluster')
