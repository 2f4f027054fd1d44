import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from ledger_core.services.recurring import process_due_templates


class Command(BaseCommand):
    help = "Generate and post the recurring journal entries due today."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the templates that are due without posting anything.",
        )
        parser.add_argument(
            "--date",
            type=str,
            default=None,
            help="Run as of this date (YYYY-MM-DD, default: today)",
        )

    def handle(self, *args, **options):
        if options["date"]:
            try:
                today = datetime.date.fromisoformat(options["date"])
            except ValueError:
                raise CommandError(f"Invalid --date: {options['date']}")
        else:
            today = timezone.localdate()

        dry_run = options["dry_run"]
        self.stdout.write(self.style.NOTICE(
            f"Processing recurring entries for {today}{' (dry run)' if dry_run else ''}..."))

        summary = process_due_templates(today, dry_run=dry_run)

        if dry_run:
            for name in summary["entries"]:
                self.stdout.write(f"  due: {name}")
            self.stdout.write(self.style.SUCCESS(
                f"{summary['due']} template(s) due, nothing posted."))
            return

        for number in summary["entries"]:
            self.stdout.write(f"  posted {number}")
        if summary["failed"]:
            self.stdout.write(self.style.ERROR(
                f"{summary['failed']} template(s) failed, see the log."))
        self.stdout.write(self.style.SUCCESS(
            f"Processed {summary['processed']} of {summary['due']} due template(s)."))
