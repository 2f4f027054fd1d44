import datetime
from decimal import Decimal

import pytest
from django.test import TestCase

from ledger_core.models import Account, SourceRef
from ledger_core.services.balances import (balance_as_of, credit_total,
                                            debit_total, general_ledger)
from ledger_core.services.posting import create_draft, void_entry
from ledger_core.services.reports import (balance_sheet, cash_flow,
                                          income_statement, trial_balance)

from .factories import lines, make_chart, posted_entry

JAN_1 = datetime.date(2024, 1, 1)
JAN_31 = datetime.date(2024, 1, 31)


def book_january():
    """A small retail month: capital, stock, a sale, rent, equipment."""
    posted_entry([("1010", "10000.00", "0"), ("3000", "0", "10000.00")],
                 entry_date=datetime.date(2024, 1, 2), description="Owner investment")
    posted_entry([("1200", "2000.00", "0"), ("2000", "0", "2000.00")],
                 entry_date=datetime.date(2024, 1, 5), source=SourceRef("purchase", 1))
    posted_entry([("1000", "1500.00", "0"), ("4000", "0", "1500.00")],
                 entry_date=datetime.date(2024, 1, 10), source=SourceRef("sales", 1))
    posted_entry([("5000", "600.00", "0"), ("1200", "0", "600.00")],
                 entry_date=datetime.date(2024, 1, 10), source=SourceRef("sales", 1))
    posted_entry([("5300", "800.00", "0"), ("1010", "0", "800.00")],
                 entry_date=datetime.date(2024, 1, 15), source=SourceRef("expense", 1))
    posted_entry([("1500", "3000.00", "0"), ("1010", "0", "3000.00")],
                 entry_date=datetime.date(2024, 1, 20), description="Display shelving")

    # neither of these may show up anywhere
    duplicate = posted_entry([("1000", "999.00", "0"), ("4000", "0", "999.00")],
                             entry_date=datetime.date(2024, 1, 12))
    void_entry(duplicate.pk, "Entered twice")
    create_draft(lines(("5400", "120.00", "0"), ("1010", "0", "120.00")),
                 entry_date=datetime.date(2024, 1, 25))


class ReportTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.chart = make_chart()
        book_january()

    def test_trial_balance_totals_match(self):
        tb = trial_balance(JAN_31)

        self.assertTrue(tb["is_balanced"])
        self.assertEqual(tb["total_debit"], Decimal("13500.00"))
        self.assertEqual(tb["total_credit"], Decimal("13500.00"))

        rows = {row["code"]: row for row in tb["accounts"]}
        self.assertEqual(rows["1010"]["debit"], Decimal("10000.00"))
        self.assertEqual(rows["1010"]["credit"], Decimal("3800.00"))
        self.assertEqual(rows["1010"]["balance_debit"], Decimal("6200.00"))
        self.assertEqual(rows["4000"]["balance_credit"], Decimal("1500.00"))
        self.assertNotIn("5400", rows)  # draft only
        self.assertNotIn("1100", rows)  # no activity

    def test_trial_balance_before_any_activity_is_empty(self):
        tb = trial_balance(JAN_1)
        self.assertEqual(tb["accounts"], [])
        self.assertTrue(tb["is_balanced"])

    def test_income_statement(self):
        pl = income_statement(JAN_1, JAN_31)

        self.assertEqual(pl["revenue"], Decimal("1500.00"))
        self.assertEqual(pl["cost_of_goods_sold"], Decimal("600.00"))
        self.assertEqual(pl["gross_profit"], Decimal("900.00"))
        self.assertEqual(pl["operating_expenses"], Decimal("800.00"))
        self.assertEqual(pl["operating_income"], Decimal("100.00"))
        self.assertEqual(pl["net_income"], Decimal("100.00"))
        self.assertEqual(
            [row["code"] for row in pl["sections"]["operating_expense"]], ["5300"])

    def test_income_statement_respects_range(self):
        pl = income_statement(datetime.date(2024, 1, 11), JAN_31)
        self.assertEqual(pl["revenue"], Decimal("0.00"))
        self.assertEqual(pl["net_income"], Decimal("-800.00"))

    def test_balance_sheet_balances_with_unclosed_earnings(self):
        bs = balance_sheet(JAN_31)

        self.assertTrue(bs["is_balanced"])
        self.assertEqual(bs["total_assets"], Decimal("12100.00"))
        self.assertEqual(bs["total_liabilities"], Decimal("2000.00"))
        self.assertEqual(bs["current_year_earnings"], Decimal("100.00"))
        self.assertEqual(bs["total_equity"], Decimal("10100.00"))
        self.assertEqual(bs["total_liabilities_and_equity"], Decimal("12100.00"))

    def test_cash_flow_by_activity(self):
        cf = cash_flow(JAN_1, JAN_31)

        self.assertEqual(cf["opening_cash"], Decimal("0.00"))
        self.assertEqual(cf["operating"]["total"], Decimal("700.00"))
        self.assertEqual(cf["investing"]["total"], Decimal("-3000.00"))
        self.assertEqual(cf["financing"]["total"], Decimal("10000.00"))
        self.assertEqual(cf["net_change"], Decimal("7700.00"))
        self.assertEqual(cf["closing_cash"], Decimal("7700.00"))

    def test_cash_flow_opening_cash_carries_earlier_activity(self):
        cf = cash_flow(datetime.date(2024, 1, 16), JAN_31)
        self.assertEqual(cf["opening_cash"], Decimal("10700.00"))
        self.assertEqual(cf["closing_cash"], Decimal("7700.00"))

    def test_raw_debit_and_credit_totals(self):
        bank = self.chart["1010"]
        self.assertEqual(debit_total(bank), Decimal("10000.00"))
        self.assertEqual(credit_total(bank), Decimal("3800.00"))
        self.assertEqual(credit_total(bank, date_from=datetime.date(2024, 1, 16)), Decimal("3000.00"))
        self.assertEqual(debit_total("5400", JAN_1, JAN_31), Decimal("0.00"))  # draft only

    def test_general_ledger_running_balance(self):
        gl = general_ledger(self.chart["1010"], JAN_1, JAN_31)

        self.assertEqual(gl["opening_balance"], Decimal("0.00"))
        self.assertEqual(
            [row["balance"] for row in gl["lines"]],
            [Decimal("10000.00"), Decimal("9200.00"), Decimal("6200.00")],
        )
        self.assertEqual(gl["closing_balance"], Decimal("6200.00"))


@pytest.mark.django_db
def test_opening_balances_feed_balance_sheet_and_trial_balance(chart):
    cash, equity = chart["1000"], chart["3000"]
    for account in (cash, equity):
        account.opening_balance = Decimal("250.00")
        account.opening_balance_date = JAN_1
        account.save()

    bs = balance_sheet(JAN_31)
    tb = trial_balance(JAN_31)

    assert bs["total_assets"] == Decimal("250.00")
    assert bs["is_balanced"]
    assert tb["total_debit"] == tb["total_credit"] == Decimal("250.00")


@pytest.mark.django_db
def test_trial_balance_rows_agree_with_account_balances(chart):
    for code in ("1200", "2000"):
        account = chart[code]
        account.opening_balance = Decimal("400.00")
        account.opening_balance_date = JAN_1
        account.save()
    book_january()

    tb = trial_balance(JAN_31)

    assert tb["is_balanced"]
    for row in tb["accounts"]:
        account = Account.objects.get(pk=row["account_id"])
        net = row["balance_debit"] - row["balance_credit"]
        on_normal_side = net if account.is_debit_normal else -net
        assert on_normal_side == balance_as_of(account, JAN_31), account.code
