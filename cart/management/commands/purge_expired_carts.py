from django.core.management.base import BaseCommand

from cart.services import purge_expired_carts


class Command(BaseCommand):
    help = "Delete carts whose expiry has passed"

    def handle(self, *args, **options):
        count = purge_expired_carts()
        self.stdout.write(self.style.SUCCESS(f"Purged {count} expired cart(s)."))
