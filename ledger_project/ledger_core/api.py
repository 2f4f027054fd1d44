"""
Entry points for the rest of the POS (sales, expenses, purchasing,
refunds, reporting screens). Other modules call these functions and
never touch the ledger models directly.

    from ledger_core import api

    entry_id = api.post_entry("sales", order.pk, order.date, [
        {"account": "1000", "debit": order.total},
        {"account": "4000", "credit": order.total},
    ], f"Sale {order.number}")
"""
import logging
from types import SimpleNamespace

from django.db import transaction

from .models import JournalEntry, SourceRef
from .services import reconciliation, reports
from .services.balances import balance_as_of
from .services.posting import record_entry
from .services.posting import void_entry as _void_entry

logger = logging.getLogger(__name__)


def post_entry(source_type, source_id, date, lines, description, user=None, reference=None):
    """Create and post a balanced entry for a source document; returns its id."""
    source = SourceRef(source_type, source_id)
    je = record_entry(
        lines,
        entry_date=date,
        description=description,
        reference=reference or "",
        source=source,
        user=user,
    )
    return je.pk


def void_entry(entry_id, reason, user=None):
    return _void_entry(entry_id, reason, user=user).pk


def void_source_entries(source_type, source_id, reason, user=None):
    """Void every posted entry of a cancelled source document."""
    source = SourceRef(source_type, source_id)
    voided = []
    with transaction.atomic():
        for je in JournalEntry.objects.posted().for_source(source.kind, source.id):
            _void_entry(je.pk, reason, user=user)
            voided.append(je.pk)
    logger.info(
        "Source entries voided",
        extra={"source": source.kind.value, "source_id": source.id, "count": len(voided)},
    )
    return voided


def get_account_balance(account_id, as_of):
    return balance_as_of(account_id, as_of)


def get_trial_balance(as_of, fiscal_year=None):
    return reports.trial_balance(as_of, fiscal_year=fiscal_year)


def get_income_statement(date_from, date_to, fiscal_year=None):
    return reports.income_statement(date_from, date_to, fiscal_year=fiscal_year)


def get_balance_sheet(as_of, fiscal_year=None):
    return reports.balance_sheet(as_of, fiscal_year=fiscal_year)


def get_cash_flow(date_from, date_to):
    return reports.cash_flow(date_from, date_to)


def _start_reconciliation(bank_account_id, statement_date, statement_balance, user=None):
    return reconciliation.start_reconciliation(
        bank_account_id, statement_date, statement_balance, user=user).pk


def _complete_reconciliation(reconciliation_id, cleared_transaction_ids, user=None):
    return reconciliation.complete_reconciliation(
        reconciliation_id, cleared_transaction_ids, user=user).pk


# api.reconcile.start(...) / api.reconcile.complete(...)
reconcile = SimpleNamespace(
    start=_start_reconciliation,
    complete=_complete_reconciliation,
)
