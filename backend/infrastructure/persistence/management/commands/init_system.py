"""
Initialize System Command.

Creates the admin user.
"""

from django.core.management.base import BaseCommand
from django.db import transaction


class Command(BaseCommand):
    help = 'Initialize system with default data (admin user)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-username',
            type=str,
            default='admin',
            help='Username of the admin user'
        )
        parser.add_argument(
            '--admin-password',
            type=str,
            default='admin123',
            help='Password for admin user'
        )

    def handle(self, *args, **options):
        with transaction.atomic():
            self._create_admin_user(options['admin_username'], options['admin_password'])

        self.stdout.write(
            self.style.SUCCESS('System initialization completed!')
        )

    def _create_admin_user(self, username, password):
        """Create admin user if not exists."""
        from django.contrib.auth import get_user_model

        User = get_user_model()

        admin_user, created = User.objects.get_or_create(
            username=username,
            defaults={
                'email': f'{username}@example.com',
                'first_name': 'Administrateur',
                'is_admin': True,
                'is_staff': True,
                'is_superuser': True,
            }
        )

        if created:
            admin_user.set_password(password)
            admin_user.save()

            self.stdout.write(
                self.style.SUCCESS(f'Created admin user {username}')
            )
        else:
            self.stdout.write('Admin user already exists')
