import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from ledger_core.exceptions import LedgerValidationError
from ledger_core.models import (JournalEntry, RecurringJournalEntry,
                                RecurringRun, SourceKind)
from ledger_core.services.balances import balance_as_of
from ledger_core.services.recurring import (advance, is_due,
                                            process_due_templates,
                                            run_template, save_template,
                                            toggle_template)
from ledger_core.tasks import process_recurring_entries

from .factories import lines, make_chart

RENT_LINES = lines(("5300", "1000.00", "0"), ("1010", "0", "1000.00"))


def make_rent(**overrides):
    fields = {
        "name": "Rent",
        "frequency": "monthly",
        "day_of_month": 1,
        "start_date": datetime.date(2024, 2, 1),
    }
    fields.update(overrides)
    return save_template(lines=RENT_LINES, **fields)


class RentTemplateTests(TestCase):

    def setUp(self):
        self.chart = make_chart()
        self.rent = make_rent()

    def test_save_sets_schedule_and_total(self):
        self.assertEqual(self.rent.next_run_date, datetime.date(2024, 2, 1))
        self.assertEqual(self.rent.total_amount, Decimal("1000.00"))
        self.assertEqual(self.rent.lines.count(), 2)

    def test_run_posts_entry_and_advances_schedule(self):
        entry = run_template(self.rent.pk, datetime.date(2024, 2, 1))

        self.assertIsNotNone(entry)
        self.assertEqual(entry.status, "posted")
        self.assertEqual(entry.source, SourceKind.RECURRING)
        self.assertEqual(entry.source_id, self.rent.pk)
        self.assertEqual(entry.reference, f"REC-{self.rent.pk}")
        self.assertEqual(entry.entry_date, datetime.date(2024, 2, 1))

        self.rent.refresh_from_db()
        self.assertEqual(self.rent.next_run_date, datetime.date(2024, 3, 1))
        self.assertEqual(self.rent.last_run_date, datetime.date(2024, 2, 1))
        self.assertEqual(self.rent.occurrences, 1)
        self.assertEqual(
            balance_as_of(self.chart["5300"], datetime.date(2024, 2, 29)), Decimal("1000.00"))

    def test_second_run_same_day_returns_none(self):
        first = run_template(self.rent.pk, datetime.date(2024, 2, 1))
        second = run_template(self.rent.pk, datetime.date(2024, 2, 1))

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(JournalEntry.objects.for_source("recurring", self.rent.pk).count(), 1)
        self.rent.refresh_from_db()
        self.assertEqual(self.rent.occurrences, 1)

    def test_run_claim_blocks_duplicate_even_if_schedule_was_not_advanced(self):
        run_template(self.rent.pk, datetime.date(2024, 2, 1))
        # schedule rewound by hand: today's claim still stands
        RecurringJournalEntry.objects.filter(pk=self.rent.pk).update(
            next_run_date=datetime.date(2024, 2, 1))

        self.assertIsNone(run_template(self.rent.pk, datetime.date(2024, 2, 1)))
        self.assertEqual(RecurringRun.objects.filter(template=self.rent).count(), 1)

    def test_not_due_before_next_run_date(self):
        self.assertIsNone(run_template(self.rent.pk, datetime.date(2024, 1, 31)))
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_catch_up_skips_forward_without_back_fill(self):
        # scheduler was down from February to May
        entry = run_template(self.rent.pk, datetime.date(2024, 5, 15))

        self.assertEqual(entry.entry_date, datetime.date(2024, 5, 15))
        self.rent.refresh_from_db()
        self.assertEqual(self.rent.next_run_date, datetime.date(2024, 6, 1))
        self.assertEqual(self.rent.occurrences, 1)
        self.assertEqual(JournalEntry.objects.count(), 1)


class ScheduleTests(TestCase):

    def setUp(self):
        make_chart()

    def test_is_due_rules(self):
        t = make_rent(end_date=datetime.date(2024, 6, 30), max_occurrences=3)

        self.assertFalse(is_due(t, datetime.date(2024, 1, 31)))
        self.assertTrue(is_due(t, datetime.date(2024, 2, 1)))
        self.assertFalse(is_due(t, datetime.date(2024, 7, 1)))  # after end_date

        t.occurrences = 3
        self.assertFalse(is_due(t, datetime.date(2024, 2, 1)))  # limit reached

        t.occurrences = 0
        t.is_active = False
        self.assertFalse(is_due(t, datetime.date(2024, 2, 1)))

    def test_advance_steps_from_next_run_date(self):
        start = datetime.date(2024, 1, 31)
        cases = {
            "daily": datetime.date(2024, 2, 1),
            "weekly": datetime.date(2024, 2, 7),
            "monthly": datetime.date(2024, 2, 29),
            "quarterly": datetime.date(2024, 4, 30),
            "yearly": datetime.date(2025, 1, 31),
        }
        for frequency, expected in cases.items():
            t = RecurringJournalEntry(
                name=frequency, frequency=frequency,
                start_date=start, next_run_date=start,
            )
            self.assertEqual(advance(t), expected, frequency)

    def test_day_of_month_does_not_drift_after_february(self):
        t = RecurringJournalEntry(
            name="Month end", frequency="monthly", day_of_month=31,
            start_date=datetime.date(2024, 1, 31), next_run_date=datetime.date(2024, 1, 31),
        )
        t.next_run_date = advance(t)
        self.assertEqual(t.next_run_date, datetime.date(2024, 2, 29))
        t.next_run_date = advance(t)
        self.assertEqual(t.next_run_date, datetime.date(2024, 3, 31))

    def test_weekday_and_month_fields_do_not_move_the_schedule(self):
        monday = datetime.date(2024, 1, 1)
        weekly = RecurringJournalEntry(
            name="Weekly", frequency="weekly", day_of_week=4,
            start_date=monday, next_run_date=monday,
        )
        self.assertEqual(advance(weekly), datetime.date(2024, 1, 8))

        jan_15 = datetime.date(2024, 1, 15)
        yearly = RecurringJournalEntry(
            name="Yearly", frequency="yearly", month_of_year=6,
            start_date=jan_15, next_run_date=jan_15,
        )
        self.assertEqual(advance(yearly), datetime.date(2025, 1, 15))

    def test_max_occurrences_stops_generation(self):
        t = make_rent(frequency="daily", day_of_month=None, max_occurrences=2,
                      start_date=datetime.date(2024, 2, 1))
        run_template(t.pk, datetime.date(2024, 2, 1))
        run_template(t.pk, datetime.date(2024, 2, 2))
        self.assertIsNone(run_template(t.pk, datetime.date(2024, 2, 3)))
        t.refresh_from_db()
        self.assertEqual(t.occurrences, 2)

    def test_unbalanced_template_is_rejected_at_save(self):
        with self.assertRaises(LedgerValidationError):
            save_template(
                lines=lines(("5300", "1000.00", "0"), ("1010", "0", "900.00")),
                name="Broken", frequency="monthly", start_date=datetime.date(2024, 2, 1),
            )
        self.assertFalse(RecurringJournalEntry.objects.exists())

    def test_single_line_template_is_rejected(self):
        with self.assertRaises(LedgerValidationError):
            save_template(
                lines=lines(("5300", "1000.00", "0")),
                name="Half", frequency="monthly", start_date=datetime.date(2024, 2, 1),
            )

    def test_frequency_specific_fields_are_validated(self):
        with self.assertRaises(ValidationError):
            make_rent(frequency="daily", day_of_month=1)
        with self.assertRaises(ValidationError):
            make_rent(frequency="monthly", day_of_month=None, day_of_week=2)

    def test_toggle_template(self):
        t = make_rent()
        self.assertFalse(toggle_template(t.pk).is_active)
        self.assertTrue(toggle_template(t.pk).is_active)


class BatchTests(TestCase):

    def setUp(self):
        self.chart = make_chart()

    def test_failing_template_does_not_stop_the_batch(self):
        ok = make_rent(name="Rent")
        broken = make_rent(name="Utilities")
        # account deactivated after the template was saved
        broken_line = broken.lines.get(account__code="5300")
        broken_line.account = self.chart["1300"]
        broken_line.save()
        self.chart["1300"].soft_delete()

        summary = process_due_templates(datetime.date(2024, 2, 1))

        self.assertEqual(summary["due"], 2)
        self.assertEqual(summary["processed"], 1)
        self.assertEqual(summary["failed"], 1)
        ok.refresh_from_db()
        self.assertEqual(ok.occurrences, 1)
        broken.refresh_from_db()
        self.assertEqual(broken.occurrences, 0)
        self.assertFalse(RecurringRun.objects.filter(template=broken).exists())

    def test_dry_run_posts_nothing(self):
        make_rent()
        summary = process_due_templates(datetime.date(2024, 2, 1), dry_run=True)
        self.assertEqual(summary["due"], 1)
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_management_command(self):
        make_rent()
        call_command("process_recurring", "--date", "2024-02-01")
        call_command("process_recurring", "--date", "2024-02-01")
        self.assertEqual(JournalEntry.objects.posted().count(), 1)


@pytest.mark.django_db
def test_celery_task_runs_due_templates(chart):
    make_rent()
    # eager call, no broker needed
    result = process_recurring_entries("2024-02-01")
    assert result["processed"] == 1
    assert JournalEntry.objects.posted().count() == 1
