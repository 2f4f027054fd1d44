import datetime

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from ledger_core.models import FiscalYear, JournalEntry
from ledger_core.services.posting import create_draft

from .factories import lines, make_chart, posted_entry


class AdminActionTests(TestCase):

    def setUp(self):
        make_chart()
        self.admin = get_user_model().objects.create_superuser(
            username="admin", email="admin@example.com", password="testpass123")
        self.client.force_login(self.admin)

    def run_action(self, model, action, pks):
        url = reverse(f"admin:ledger_core_{model}_changelist")
        return self.client.post(url, {"action": action, "_selected_action": pks})

    def test_changelist_renders(self):
        posted_entry([("1000", "20.00", "0"), ("4000", "0", "20.00")])
        response = self.client.get(reverse("admin:ledger_core_journalentry_changelist"))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "JE-2024-000001")

    def test_post_action_posts_balanced_drafts_only(self):
        good = create_draft(lines(("1000", "20.00", "0"), ("4000", "0", "20.00")),
                            entry_date=datetime.date(2024, 1, 5))
        bad = create_draft(lines(("1000", "20.00", "0"), ("4000", "0", "19.00")),
                           entry_date=datetime.date(2024, 1, 5))

        response = self.run_action("journalentry", "post_journal_entries", [good.pk, bad.pk])

        self.assertEqual(response.status_code, 302)
        good.refresh_from_db()
        bad.refresh_from_db()
        self.assertEqual(good.status, "posted")
        self.assertEqual(good.posted_by, self.admin)
        self.assertEqual(bad.status, "draft")

    def test_void_action(self):
        je = posted_entry([("1000", "20.00", "0"), ("4000", "0", "20.00")])

        self.run_action("journalentry", "void_journal_entries", [je.pk])

        je.refresh_from_db()
        self.assertEqual(je.status, "void")
        self.assertIn("admin", je.void_reason)

    def test_reverse_action_creates_draft(self):
        je = posted_entry([("1000", "20.00", "0"), ("4000", "0", "20.00")])

        self.run_action("journalentry", "reverse_journal_entries", [je.pk])

        reversal = JournalEntry.objects.get(reference=f"REV-{je.entry_number}")
        self.assertEqual(reversal.status, "draft")
        self.assertEqual(reversal.source_id, je.pk)

    def test_close_fiscal_year_action(self):
        fy = FiscalYear.objects.create(
            name="FY2023", start_date=datetime.date(2023, 1, 1), end_date=datetime.date(2023, 12, 31))

        self.run_action("fiscalyear", "close_fiscal_years", [fy.pk])

        fy.refresh_from_db()
        self.assertTrue(fy.is_closed)
