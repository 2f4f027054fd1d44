"""
Financial statements.

Every statement is recomputed from posted lines on each call;
nothing here writes to the database.
"""
import datetime
from collections import defaultdict
from decimal import Decimal

from django.utils import timezone

from ..models import Account, JournalEntryLine, SourceKind
from .balances import (ZERO, account_movements, balance_as_of, balances_as_of,
                       opening_counts)

INCOME_SUBTYPES = ("sales", "other_income")
EXPENSE_SUBTYPES = ("cost_of_goods_sold", "operating_expense", "payroll", "other_expense")


def _period(date_from, date_to, fiscal_year):
    if fiscal_year is not None:
        return date_from or fiscal_year.start_date, date_to or fiscal_year.end_date
    return date_from, date_to


def _row(account, amount):
    return {
        "account_id": account.pk,
        "code": account.code,
        "name": account.name,
        "subtype": account.subtype,
        "amount": amount,
    }


# ---------- Trial balance ----------
def trial_balance(as_of=None, date_from=None, fiscal_year=None):
    """
    Debits and credits per account, net balance split into the
    debit / credit column. Totals match whenever every posting balanced.
    """
    date_from, as_of = _period(date_from, as_of, fiscal_year)
    as_of = as_of or timezone.localdate()
    movements = account_movements(date_from=date_from, date_to=as_of)

    rows = []
    total_debit = total_credit = ZERO
    for account in Account.objects.all():
        debit, credit = movements.get(account.pk, (ZERO, ZERO))
        if opening_counts(account, as_of):
            if account.is_debit_normal:
                debit += account.opening_balance
            else:
                credit += account.opening_balance
        if debit == 0 and credit == 0:
            continue

        net = debit - credit
        row = {
            "account_id": account.pk,
            "code": account.code,
            "name": account.name,
            "type": account.type,
            "debit": debit,
            "credit": credit,
            "balance_debit": net if net > 0 else ZERO,
            "balance_credit": -net if net < 0 else ZERO,
        }
        total_debit += row["balance_debit"]
        total_credit += row["balance_credit"]
        rows.append(row)

    return {
        "as_of": as_of,
        "date_from": date_from,
        "accounts": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "is_balanced": total_debit == total_credit,
    }


# ---------- Income statement ----------
def income_statement(date_from=None, date_to=None, fiscal_year=None):
    """
    Income and expense activity in the range, grouped by subtype.
    Year-end closing entries are left out, they only move the result
    into retained earnings.
    """
    date_from, date_to = _period(date_from, date_to, fiscal_year)
    movements = account_movements(date_from, date_to, exclude_closing=True)

    sections = {subtype: [] for subtype in INCOME_SUBTYPES + EXPENSE_SUBTYPES}
    totals = defaultdict(lambda: ZERO)
    for account in Account.objects.of_type("income", "expense"):
        if account.pk not in movements:
            continue
        debit, credit = movements[account.pk]
        amount = account.signed_balance(debit, credit)
        if amount == 0:
            continue
        sections[account.subtype].append(_row(account, amount))
        totals[account.subtype] += amount

    revenue = totals["sales"]
    cogs = totals["cost_of_goods_sold"]
    gross_profit = revenue - cogs
    operating_expenses = totals["operating_expense"] + totals["payroll"]
    operating_income = gross_profit - operating_expenses
    net_income = operating_income + totals["other_income"] - totals["other_expense"]

    return {
        "date_from": date_from,
        "date_to": date_to,
        "sections": sections,
        "subtotals": {subtype: totals[subtype] for subtype in sections},
        "revenue": revenue,
        "cost_of_goods_sold": cogs,
        "gross_profit": gross_profit,
        "operating_expenses": operating_expenses,
        "operating_income": operating_income,
        "other_income": totals["other_income"],
        "other_expenses": totals["other_expense"],
        "total_income": revenue + totals["other_income"],
        "total_expenses": cogs + operating_expenses + totals["other_expense"],
        "net_income": net_income,
    }


# ---------- Balance sheet ----------
def balance_sheet(as_of=None, fiscal_year=None):
    """
    assets = liabilities + equity, where equity includes the earnings
    not yet closed into retained earnings.
    """
    if as_of is None:
        as_of = fiscal_year.end_date if fiscal_year else timezone.localdate()
    balances = balances_as_of(as_of)

    sections = {"asset": [], "liability": [], "equity": []}
    totals = defaultdict(lambda: ZERO)
    for account, balance in balances.items():
        if account.type in sections:
            if balance != 0:
                sections[account.type].append(_row(account, balance))
            totals[account.type] += balance
            if account.subtype == "retained_earnings":
                totals["retained_earnings"] += balance
        else:
            # income adds to equity, expense reduces it
            totals["current_earnings"] += (
                -balance if account.is_debit_normal else balance
            )

    total_equity = totals["equity"] + totals["current_earnings"]
    total_liabilities_and_equity = totals["liability"] + total_equity

    return {
        "as_of": as_of,
        "assets": sections["asset"],
        "liabilities": sections["liability"],
        "equity": sections["equity"],
        "total_assets": totals["asset"],
        "total_liabilities": totals["liability"],
        "retained_earnings": totals["retained_earnings"],
        "current_year_earnings": totals["current_earnings"],
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "is_balanced": totals["asset"] == total_liabilities_and_equity,
    }


# ---------- Cash flow ----------
OPERATING_SOURCES = (SourceKind.SALES, SourceKind.EXPENSE, SourceKind.REFUND)
INVESTING_SOURCES = (SourceKind.PURCHASE,)


def _categorize(entry, counter_lines):
    """operating / investing / financing for one cash movement."""
    if entry.source in OPERATING_SOURCES:
        return "operating"
    if entry.source in INVESTING_SOURCES:
        return "investing"
    if any(ln.account.subtype == "fixed_asset" for ln in counter_lines):
        return "investing"
    if any(ln.account.type in ("liability", "equity") for ln in counter_lines):
        return "financing"
    return "operating"


def cash_accounts():
    return Account.objects.of_type("asset").with_subtype("cash", "bank")


def cash_flow(date_from, date_to):
    """Cash and bank movements in the range, grouped by activity."""
    accounts = list(cash_accounts())
    cash_ids = {a.pk for a in accounts}
    opening_cash = sum(
        (balance_as_of(a, date_from - datetime.timedelta(days=1)) for a in accounts),
        ZERO,
    )

    cash_lines = (
        JournalEntryLine.objects.posted(date_from, date_to)
        .filter(account_id__in=cash_ids)
        .select_related("journal_entry")
        .order_by("journal_entry__entry_date", "journal_entry__entry_number")
    )

    # net cash movement per entry
    per_entry = {}
    for line in cash_lines:
        entry = line.journal_entry
        amount = line.debit - line.credit
        if entry.pk in per_entry:
            per_entry[entry.pk][1] += amount
        else:
            per_entry[entry.pk] = [entry, amount]

    counter = defaultdict(list)
    for line in (
        JournalEntryLine.objects.filter(journal_entry_id__in=per_entry)
        .exclude(account_id__in=cash_ids)
        .select_related("account")
    ):
        counter[line.journal_entry_id].append(line)

    activities = {
        name: {"items": [], "total": ZERO}
        for name in ("operating", "investing", "financing")
    }
    for entry, amount in per_entry.values():
        if amount == 0:
            continue  # transfer between cash accounts
        activity = activities[_categorize(entry, counter[entry.pk])]
        activity["items"].append({
            "entry_number": entry.entry_number,
            "date": entry.entry_date,
            "description": entry.description,
            "source": entry.source,
            "amount": amount,
        })
        activity["total"] += amount

    net_change = sum((a["total"] for a in activities.values()), Decimal("0.00"))
    return {
        "date_from": date_from,
        "date_to": date_to,
        "opening_cash": opening_cash,
        "operating": activities["operating"],
        "investing": activities["investing"],
        "financing": activities["financing"],
        "net_change": net_change,
        "closing_cash": opening_cash + net_change,
    }
