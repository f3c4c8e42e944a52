from django.core.management.base import BaseCommand
from buildledger.core.sessions import purge_expired_sessions


class Command(BaseCommand):
    help = 'Deletes expired and revoked login sessions'

    def handle(self, *args, **options):
        deleted = purge_expired_sessions()
        if deleted:
            self.stdout.write(self.style.SUCCESS(f"Removed {deleted} stale sessions."))
        else:
            self.stdout.write("No stale sessions found.")
