import datetime
from concurrent.futures import ThreadPoolExecutor
from unittest import skipUnless

import pytest
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings

from ledger_core.models import EntrySequence, JournalEntry
from ledger_core.services.numbering import (format_number,
                                            generate_entry_number, next_number)
from ledger_core.services.posting import create_draft

from .factories import lines, make_chart


class EntryNumberTests(TestCase):

    def setUp(self):
        make_chart()

    def make_draft(self, entry_date):
        return create_draft(
            lines(("1000", "1.00", "0"), ("4000", "0", "1.00")),
            entry_date=entry_date,
        )

    def test_format(self):
        self.assertEqual(format_number("JE", 2024, 42), "JE-2024-000042")

    def test_numbers_are_unique_and_strictly_increasing(self):
        numbers = [self.make_draft(datetime.date(2024, 5, d)).entry_number for d in range(1, 11)]

        self.assertEqual(len(set(numbers)), 10)
        self.assertEqual(numbers[0], "JE-2024-000001")
        self.assertEqual(numbers[-1], "JE-2024-000010")
        self.assertEqual(numbers, sorted(numbers))

    def test_sequence_restarts_each_calendar_year(self):
        self.make_draft(datetime.date(2024, 12, 31))
        self.make_draft(datetime.date(2024, 12, 31))
        first_2025 = self.make_draft(datetime.date(2025, 1, 1))

        self.assertEqual(first_2025.entry_number, "JE-2025-000001")
        self.assertEqual(EntrySequence.objects.get(prefix="JE", year=2024).last_value, 2)

    def test_deleted_draft_number_is_not_reused(self):
        first = self.make_draft(datetime.date(2024, 6, 1))
        first.delete()
        second = self.make_draft(datetime.date(2024, 6, 1))
        self.assertEqual(second.entry_number, "JE-2024-000002")

    def test_series_are_independent(self):
        self.make_draft(datetime.date(2024, 6, 1))
        self.assertEqual(next_number("AP", datetime.date(2024, 6, 1)), "AP-2024-000001")
        self.assertEqual(next_number("REC", datetime.date(2024, 6, 1)), "REC-2024-000001")
        self.assertEqual(next_number("AP", datetime.date(2024, 6, 2)), "AP-2024-000002")
        self.assertEqual(
            generate_entry_number(datetime.date(2024, 6, 2), prefix="AP"), "AP-2024-000003")
        self.assertEqual(generate_entry_number(datetime.date(2024, 6, 2)), "JE-2024-000002")

    @override_settings(LEDGER_ENTRY_PREFIX="GJ")
    def test_prefix_comes_from_settings(self):
        self.assertEqual(self.make_draft(datetime.date(2024, 6, 1)).entry_number, "GJ-2024-000001")

    def test_number_taken_outside_the_sequence_is_skipped(self):
        # imported history already holds the next number
        JournalEntry.objects.create(entry_number="JE-2024-000001", entry_date=datetime.date(2024, 1, 1))
        self.assertEqual(self.make_draft(datetime.date(2024, 6, 1)).entry_number, "JE-2024-000002")


@skipUnless(connection.vendor == "postgresql", "needs row locks (PostgreSQL)")
class ConcurrentEntryNumberTests(TransactionTestCase):
    workers = 4
    per_worker = 10

    def setUp(self):
        make_chart()

    def draft_batch(self, _):
        try:
            return [
                create_draft(
                    lines(("1000", "1.00", "0"), ("4000", "0", "1.00")),
                    entry_date=datetime.date(2024, 6, 1),
                ).entry_number
                for _ in range(self.per_worker)
            ]
        finally:
            # each worker thread opened its own connection
            connection.close()

    def test_parallel_drafts_get_distinct_increasing_numbers(self):
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            batches = list(pool.map(self.draft_batch, range(self.workers)))

        for batch in batches:
            self.assertEqual(batch, sorted(batch))
        total = self.workers * self.per_worker
        numbers = sorted(n for batch in batches for n in batch)
        self.assertEqual(numbers, [format_number("JE", 2024, i) for i in range(1, total + 1)])
        self.assertEqual(EntrySequence.objects.get(prefix="JE", year=2024).last_value, total)


@pytest.mark.django_db
def test_next_number_creates_counter_row_once():
    day = datetime.date(2030, 3, 3)
    assert next_number("JE", day) == "JE-2030-000001"
    assert next_number("JE", day) == "JE-2030-000002"
    assert EntrySequence.objects.filter(prefix="JE", year=2030).count() == 1
