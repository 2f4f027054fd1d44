from django.core.management.base import BaseCommand

from ledger_core.services.chart import seed_default_accounts


class Command(BaseCommand):
    help = "Installs the default chart of accounts (existing codes are kept)."

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE("Seeding chart of accounts..."))
        created = seed_default_accounts()
        self.stdout.write(self.style.SUCCESS(f"{created} account(s) created."))
