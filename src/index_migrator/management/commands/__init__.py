from django.core.management.base import BaseCommand


class MigratorCommand(BaseCommand):
    """Base class of the migration commands, with styled output helpers."""

    def success(self, message):
        self.stdout.write(self.style.SUCCESS(message))

    def warning(self, message):
        self.stdout.write(self.style.WARNING(message))

    def info(self, message):
        self.stdout.write(message)
