import datetime
from decimal import Decimal

from django.test import TestCase

from ledger_core.exceptions import LedgerValidationError, StateConflictError
from ledger_core.models import AuditLog, FiscalYear, JournalEntry, SourceKind
from ledger_core.services.balances import balance_as_of
from ledger_core.services.fiscal_years import (close_fiscal_year,
                                               create_fiscal_year,
                                               resolve_fiscal_year)
from ledger_core.services.posting import create_draft, post_entry, void_entry
from ledger_core.services.reports import balance_sheet, income_statement

from .factories import lines, make_chart, posted_entry

DEC_31 = datetime.date(2024, 12, 31)


class FiscalYearTests(TestCase):

    def setUp(self):
        self.chart = make_chart()
        self.fy = create_fiscal_year(
            "FY2024", datetime.date(2024, 1, 1), DEC_31)

    def book_year(self):
        posted_entry([("1010", "5000.00", "0"), ("3000", "0", "5000.00")],
                     entry_date=datetime.date(2024, 1, 2))
        posted_entry([("1000", "1500.00", "0"), ("4000", "0", "1500.00")],
                     entry_date=datetime.date(2024, 3, 1))
        return posted_entry([("5300", "800.00", "0"), ("1010", "0", "800.00")],
                            entry_date=datetime.date(2024, 6, 1))

    def test_overlapping_year_is_rejected(self):
        with self.assertRaises(LedgerValidationError):
            create_fiscal_year("FY2024b", datetime.date(2024, 6, 1), datetime.date(2025, 5, 31))
        create_fiscal_year("FY2025", datetime.date(2025, 1, 1), datetime.date(2025, 12, 31))

    def test_entries_are_assigned_to_their_year(self):
        je = self.book_year()
        self.assertEqual(je.fiscal_year, self.fy)
        self.assertEqual(resolve_fiscal_year(datetime.date(2024, 7, 4)), self.fy)
        self.assertIsNone(resolve_fiscal_year(datetime.date(2023, 12, 31)))

    def test_close_moves_net_income_to_retained_earnings(self):
        self.book_year()

        fy = close_fiscal_year(self.fy.pk)

        self.assertTrue(fy.is_closed)
        self.assertIsNotNone(fy.closed_at)
        closing = fy.closing_entry
        self.assertEqual(closing.status, "posted")
        self.assertEqual(closing.source, SourceKind.CLOSING)
        self.assertEqual(closing.reference, "CLOSE-FY2024")
        self.assertEqual(closing.entry_date, DEC_31)

        self.assertEqual(balance_as_of(self.chart["4000"], DEC_31), Decimal("0.00"))
        self.assertEqual(balance_as_of(self.chart["5300"], DEC_31), Decimal("0.00"))
        self.assertEqual(balance_as_of(self.chart["3100"], DEC_31), Decimal("700.00"))
        self.assertTrue(AuditLog.objects.filter(action="close_year").exists())

    def test_income_statement_ignores_closing_entry(self):
        self.book_year()
        close_fiscal_year(self.fy.pk)

        pl = income_statement(fiscal_year=self.fy)

        self.assertEqual(pl["revenue"], Decimal("1500.00"))
        self.assertEqual(pl["net_income"], Decimal("700.00"))

    def test_balance_sheet_after_close(self):
        self.book_year()
        close_fiscal_year(self.fy.pk)

        bs = balance_sheet(fiscal_year=self.fy)

        self.assertTrue(bs["is_balanced"])
        self.assertEqual(bs["retained_earnings"], Decimal("700.00"))
        self.assertEqual(bs["current_year_earnings"], Decimal("0.00"))
        self.assertEqual(bs["total_equity"], Decimal("5700.00"))

    def test_net_loss_debits_retained_earnings(self):
        posted_entry([("5300", "300.00", "0"), ("1010", "0", "300.00")],
                     entry_date=datetime.date(2024, 2, 1))
        close_fiscal_year(self.fy.pk)
        self.assertEqual(balance_as_of(self.chart["3100"], DEC_31), Decimal("-300.00"))

    def test_year_without_activity_closes_without_entry(self):
        fy = close_fiscal_year(self.fy.pk)
        self.assertTrue(fy.is_closed)
        self.assertIsNone(fy.closing_entry)
        self.assertFalse(JournalEntry.objects.exists())

    def test_closed_year_accepts_no_entries(self):
        je = self.book_year()
        close_fiscal_year(self.fy.pk)

        with self.assertRaises(LedgerValidationError):
            create_draft(lines(("1000", "10.00", "0"), ("4000", "0", "10.00")),
                         entry_date=datetime.date(2024, 5, 1))
        with self.assertRaises(LedgerValidationError):
            void_entry(je.pk, "Late correction")

    def test_closing_twice_is_a_conflict(self):
        close_fiscal_year(self.fy.pk)
        with self.assertRaises(StateConflictError):
            close_fiscal_year(self.fy.pk)

    def test_draft_older_than_its_year_cannot_post_once_closed(self):
        draft = create_draft(lines(("1000", "10.00", "0"), ("4000", "0", "10.00")),
                             entry_date=datetime.date(2023, 6, 1))
        self.assertIsNone(draft.fiscal_year)
        FiscalYear.objects.create(
            name="FY2023", start_date=datetime.date(2023, 1, 1),
            end_date=datetime.date(2023, 12, 31), is_closed=True)

        with self.assertRaises(LedgerValidationError):
            post_entry(draft.pk)

        draft.refresh_from_db()
        self.assertEqual(draft.status, "draft")

    def test_entry_older_than_its_year_cannot_be_voided_once_closed(self):
        je = posted_entry([("1000", "10.00", "0"), ("4000", "0", "10.00")],
                          entry_date=datetime.date(2023, 6, 1))
        FiscalYear.objects.create(
            name="FY2023", start_date=datetime.date(2023, 1, 1),
            end_date=datetime.date(2023, 12, 31), is_closed=True)

        with self.assertRaises(LedgerValidationError):
            void_entry(je.pk, "Late correction")

    def test_new_year_adopts_existing_entries(self):
        draft = create_draft(lines(("1000", "10.00", "0"), ("4000", "0", "10.00")),
                             entry_date=datetime.date(2023, 6, 1))
        outside = create_draft(lines(("1000", "10.00", "0"), ("4000", "0", "10.00")),
                               entry_date=datetime.date(2022, 6, 1))

        fy = create_fiscal_year(
            "FY2023", datetime.date(2023, 1, 1), datetime.date(2023, 12, 31))

        draft.refresh_from_db()
        outside.refresh_from_db()
        self.assertEqual(draft.fiscal_year, fy)
        self.assertIsNone(outside.fiscal_year)
