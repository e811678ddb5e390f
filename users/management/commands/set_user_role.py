from django.core.management.base import BaseCommand, CommandError
from users.models import CustomUser, ROLE_CHOICES
import logging

logger = logging.getLogger('admin_actions')


class Command(BaseCommand):
    help = 'Show or change the role of a profile'

    def add_arguments(self, parser):
        parser.add_argument('email', type=str, help='Profile email')
        parser.add_argument('--role', choices=[value for value, _ in ROLE_CHOICES],
                            help='New role to assign')

    def handle(self, *args, **options):
        email = options['email']

        try:
            user = CustomUser.objects.get(email=email)
        except CustomUser.DoesNotExist:
            raise CommandError(f"User with email {email} not found")

        self.stdout.write(f"Role for {email}: {user.role}")

        new_role = options.get('role')
        if new_role and new_role != user.role:
            old_role = user.role
            user.role = new_role
            user.save(update_fields=['role', 'updated_at'])
            logger.info(f"Role for {email} changed from {old_role} to {new_role}")
            self.stdout.write(self.style.SUCCESS(f"Role updated to {new_role}"))
