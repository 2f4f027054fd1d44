import datetime
from decimal import Decimal

from ledger_core.models import Account, BankAccount
from ledger_core.services.chart import seed_default_accounts
from ledger_core.services.posting import create_draft, post_entry


def make_chart():
    """Default chart keyed by code: {"1000": <Cash>, ...}."""
    seed_default_accounts()
    return {a.code: a for a in Account.objects.all()}


def make_account(code, name, type, subtype, **extra):
    return Account.objects.create(code=code, name=name, type=type, subtype=subtype, **extra)


def lines(*pairs):
    """lines(("1000", "500.00", "0"), ("4000", "0", "500.00"))"""
    return [
        {"account": code, "debit": Decimal(debit), "credit": Decimal(credit)}
        for code, debit, credit in pairs
    ]


def posted_entry(pairs, entry_date=datetime.date(2024, 1, 5), **kwargs):
    je = create_draft(lines(*pairs), entry_date=entry_date, **kwargs)
    return post_entry(je.pk)


def make_bank_account(gl_account, **extra):
    return BankAccount.objects.create(
        account=gl_account,
        name=extra.pop("name", "Main Checking"),
        bank_name=extra.pop("bank_name", "First Bank"),
        **extra,
    )
