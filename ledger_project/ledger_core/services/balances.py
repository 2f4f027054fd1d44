import datetime
from decimal import Decimal

from django.db.models import Sum

from ..models import Account, JournalEntryLine, SourceKind
from .posting import get_account

ZERO = Decimal("0.00")


def opening_counts(account, as_of):
    """Opening balance applies from its date on (or always when undated)."""
    return account.opening_balance_date is None or account.opening_balance_date <= as_of


def balance_as_of(account, as_of) -> Decimal:
    """
    Balance on the account's normal side:
        opening_balance + Σ(posted debits/credits dated <= as_of), signed.
    Draft and void entries never count.
    """
    account = get_account(account)
    debit, credit = (
        JournalEntryLine.objects.for_account(account).posted(date_to=as_of).totals()
    )
    balance = account.signed_balance(debit, credit)
    if opening_counts(account, as_of):
        balance += account.opening_balance
    return balance


def debit_total(account, date_from=None, date_to=None) -> Decimal:
    account = get_account(account)
    return JournalEntryLine.objects.for_account(account).posted(date_from, date_to).totals()[0]


def credit_total(account, date_from=None, date_to=None) -> Decimal:
    account = get_account(account)
    return JournalEntryLine.objects.for_account(account).posted(date_from, date_to).totals()[1]


def account_movements(date_from=None, date_to=None, exclude_closing=False):
    """{account_id: (debit, credit)} over posted lines, one query for the whole chart."""
    qs = JournalEntryLine.objects.posted(date_from, date_to)
    if exclude_closing:
        qs = qs.exclude(journal_entry__source=SourceKind.CLOSING)
    rows = (
        qs.values("account_id")
        .order_by("account_id")
        .annotate(debit=Sum("debit"), credit=Sum("credit"))
    )
    return {
        row["account_id"]: (row["debit"] or ZERO, row["credit"] or ZERO)
        for row in rows
    }


def balances_as_of(as_of, accounts=None):
    """{Account: balance} for every account (or the given ones) at as_of."""
    movements = account_movements(date_to=as_of)
    if accounts is None:
        accounts = Account.objects.all()
    result = {}
    for account in accounts:
        debit, credit = movements.get(account.pk, (ZERO, ZERO))
        balance = account.signed_balance(debit, credit)
        if opening_counts(account, as_of):
            balance += account.opening_balance
        result[account] = balance
    return result


def general_ledger(account, date_from, date_to):
    """Posted lines of one account in range, with a running balance."""
    account = get_account(account)
    opening = balance_as_of(account, date_from - datetime.timedelta(days=1))

    lines = (
        JournalEntryLine.objects.for_account(account)
        .posted(date_from, date_to)
        .select_related("journal_entry")
        .order_by("journal_entry__entry_date", "journal_entry__entry_number", "line_order")
    )

    running = opening
    rows = []
    total_debit = total_credit = ZERO
    for line in lines:
        running += account.signed_balance(line.debit, line.credit)
        total_debit += line.debit
        total_credit += line.credit
        rows.append({
            "date": line.journal_entry.entry_date,
            "entry_number": line.journal_entry.entry_number,
            "description": line.description or line.journal_entry.description,
            "debit": line.debit,
            "credit": line.credit,
            "balance": running,
        })

    return {
        "account": account,
        "date_from": date_from,
        "date_to": date_to,
        "opening_balance": opening,
        "lines": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "closing_balance": running,
    }
