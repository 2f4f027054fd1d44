import csv
import datetime
import logging
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser
from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from ..exceptions import (LedgerValidationError, NotFoundError,
                          ReconciliationImbalanceError, StateConflictError)
from ..models import (BankAccount, BankReconciliation, BankTransaction,
                      JournalEntryLine, to_money)
from .audit_helper import log_action
from .balances import balance_as_of
from .numbering import generate_reconciliation_reference

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def get_bank_account(bank_account_id, lock=False):
    if isinstance(bank_account_id, BankAccount):
        bank_account_id = bank_account_id.pk
    qs = BankAccount.objects.select_related("account")
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=bank_account_id)
    except BankAccount.DoesNotExist:
        raise NotFoundError(f"Bank account {bank_account_id} does not exist.") from None


def get_reconciliation(reconciliation_id, lock=False):
    if isinstance(reconciliation_id, BankReconciliation):
        reconciliation_id = reconciliation_id.pk
    qs = BankReconciliation.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=reconciliation_id)
    except BankReconciliation.DoesNotExist:
        raise NotFoundError(
            f"Bank reconciliation {reconciliation_id} does not exist.") from None


# ---------- Bank transactions ----------
def record_bank_transaction(
    bank_account_id,
    *,
    transaction_date,
    amount,
    description="",
    reference="",
    type=None,
    journal_entry=None,
    is_imported=False,
):
    """Append a statement line. The type follows the sign when omitted."""
    amount = to_money(amount)
    if type is None:
        type = "deposit" if amount > 0 else "withdrawal"

    with transaction.atomic():
        bank = get_bank_account(bank_account_id, lock=True)
        tx = BankTransaction.objects.create(
            bank_account=bank,
            transaction_date=transaction_date,
            amount=amount,
            description=description or "",
            reference=reference or "",
            type=type,
            status="matched" if journal_entry else "pending",
            journal_entry=journal_entry,
            is_imported=is_imported,
        )
        # running balance moves in the same transaction as the new line
        BankAccount.objects.filter(pk=bank.pk).update(
            current_balance=F("current_balance") + amount)
    return tx


def _parse_date(value):
    if isinstance(value, datetime.date):
        return value
    return date_parser.parse(str(value)).date()


def import_transactions(bank_account_id, rows):
    """
    Import statement rows ({"date", "amount", "description", "reference", "type"}).
    Rows already present (same date, amount and reference) are skipped.
    """
    imported = skipped = 0
    with transaction.atomic():
        bank = get_bank_account(bank_account_id)
        for number, row in enumerate(rows, start=1):
            try:
                tx_date = _parse_date(row["date"])
                amount = to_money(str(row["amount"]).replace(",", ""))
            except (KeyError, ValueError, OverflowError, InvalidOperation) as exc:
                raise LedgerValidationError(
                    f"Statement row {number} is invalid: {exc}") from exc

            reference = row.get("reference") or ""
            if BankTransaction.objects.filter(
                bank_account=bank,
                transaction_date=tx_date,
                amount=amount,
                reference=reference,
            ).exists():
                skipped += 1
                continue

            record_bank_transaction(
                bank,
                transaction_date=tx_date,
                amount=amount,
                description=row.get("description") or "",
                reference=reference,
                type=row.get("type") or None,
                is_imported=True,
            )
            imported += 1

    logger.info(
        "Bank statement imported",
        extra={"bank_account_id": bank.pk, "imported": imported, "skipped": skipped},
    )
    return {"imported": imported, "skipped": skipped}


def read_statement_csv(fileobj):
    """Rows of a CSV statement with date, description, amount[, reference, type] columns."""
    reader = csv.DictReader(fileobj)
    return [
        {key.strip().lower(): (value or "").strip() for key, value in row.items() if key}
        for row in reader
    ]


# ---------- Candidates ----------
def unreconciled_transactions(bank_account, date_to=None):
    qs = BankTransaction.objects.filter(bank_account=bank_account).unreconciled()
    if date_to:
        qs = qs.filter(transaction_date__lte=date_to)
    return qs.order_by("transaction_date", "id")


def book_lines(bank_account, date_to=None):
    """Posted ledger lines on the bank's GL account."""
    return (
        JournalEntryLine.objects.posted(date_to=date_to)
        .for_account(bank_account.account_id)
        .select_related("journal_entry")
        .order_by("journal_entry__entry_date", "id")
    )


def suggest_matches(reconciliation):
    """
    Pair each unmatched bank transaction with a book line of the same
    signed amount (deposit ↔ debit, withdrawal ↔ credit) dated within
    the match window. Closest date wins; a line is used once.
    """
    window = settings.RECONCILIATION_MATCH_WINDOW_DAYS
    bank = reconciliation.bank_account
    cutoff = reconciliation.statement_date + datetime.timedelta(days=window)

    linked = set(
        BankTransaction.objects.filter(bank_account=bank, journal_entry__isnull=False)
        .values_list("journal_entry_id", flat=True)
    )
    candidates = [
        line for line in book_lines(bank, cutoff)
        if line.journal_entry_id not in linked
    ]

    used = set()
    matches = []
    for tx in unreconciled_transactions(bank, reconciliation.statement_date):
        if tx.journal_entry_id:
            continue
        best = None
        for line in candidates:
            if line.pk in used or line.debit - line.credit != tx.amount:
                continue
            gap = abs((line.journal_entry.entry_date - tx.transaction_date).days)
            if gap <= window and (best is None or gap < best[0]):
                best = (gap, line)
        if best:
            used.add(best[1].pk)
            matches.append({"transaction": tx, "line": best[1], "days_apart": best[0]})
    return matches


def match_transaction(transaction_id, journal_entry):
    """Link a bank transaction to the entry that books it."""
    with transaction.atomic():
        tx = BankTransaction.objects.select_for_update().get(pk=transaction_id)
        if tx.status == "reconciled":
            raise StateConflictError("Reconciled transactions cannot be re-matched.")
        tx.journal_entry = journal_entry
        tx.status = "matched"
        tx.save(update_fields=["journal_entry", "status"])
    return tx


# ---------- Reconciliation ----------
def cleared_balance(opening_balance, transactions):
    """opening + Σ cleared deposits − Σ cleared withdrawals."""
    deposits = sum((tx.amount for tx in transactions if tx.amount > 0), ZERO)
    withdrawals = sum((-tx.amount for tx in transactions if tx.amount < 0), ZERO)
    return opening_balance + deposits - withdrawals


def start_reconciliation(bank_account_id, statement_date, statement_balance, user=None):
    """
    Open a reconciliation for one statement, or resume the one already
    in progress for the same statement date (taking the new statement
    balance). An open reconciliation for another date is a conflict.
    """
    statement_balance = to_money(statement_balance)
    with transaction.atomic():
        bank = get_bank_account(bank_account_id, lock=True)

        existing = (
            bank.reconciliations.select_for_update().filter(status="in_progress").first()
        )
        if existing:
            if existing.statement_date != statement_date:
                raise StateConflictError(
                    f"{existing.reference} for statement {existing.statement_date} is "
                    f"still in progress on {bank}; complete it before starting "
                    f"{statement_date}."
                )
            if existing.statement_balance != statement_balance:
                existing.statement_balance = statement_balance
                existing.difference = statement_balance - existing.cleared_balance
                existing.save(update_fields=["statement_balance", "difference"])
            logger.info(
                "Bank reconciliation resumed",
                extra={"reference": existing.reference, "bank_account_id": bank.pk},
            )
            return existing

        if bank.last_reconciled_date and statement_date <= bank.last_reconciled_date:
            raise LedgerValidationError(
                f"Statement date {statement_date} is not after the last "
                f"reconciliation ({bank.last_reconciled_date})."
            )

        opening = bank.reconciliation_start_balance
        rec = BankReconciliation.objects.create(
            reference=generate_reconciliation_reference(statement_date),
            bank_account=bank,
            statement_date=statement_date,
            statement_balance=statement_balance,
            opening_balance=opening,
            cleared_balance=opening,
            gl_balance=balance_as_of(bank.account, statement_date),
            difference=statement_balance - opening,
        )

    logger.info(
        "Bank reconciliation started",
        extra={"reference": rec.reference, "bank_account_id": bank.pk},
    )
    return rec


def _selectable(rec, transaction_ids):
    ids = set(transaction_ids)
    txns = list(
        unreconciled_transactions(rec.bank_account_id, rec.statement_date)
        .filter(pk__in=ids)
    )
    missing = ids - {tx.pk for tx in txns}
    if missing:
        raise LedgerValidationError(
            f"Transactions {sorted(missing)} cannot be cleared on {rec.reference}: "
            f"unknown, already reconciled, on another bank account or dated "
            f"after {rec.statement_date}."
        )
    return txns


def update_selection(reconciliation_id, transaction_ids):
    """Persist the cleared selection so the reconciliation can be resumed."""
    with transaction.atomic():
        rec = get_reconciliation(reconciliation_id, lock=True)
        if rec.is_completed:
            raise StateConflictError(f"{rec.reference} is already completed.")

        txns = _selectable(rec, transaction_ids)
        rec.cleared_transactions.set(txns)
        rec.cleared_balance = cleared_balance(rec.opening_balance, txns)
        rec.difference = rec.statement_balance - rec.cleared_balance
        rec.save(update_fields=["cleared_balance", "difference"])
    return rec


def complete_reconciliation(reconciliation_id, cleared_transaction_ids=None, user=None):
    """
    Close the statement. Only an exact zero difference completes;
    otherwise the selection stays saved and ReconciliationImbalanceError
    reports the difference.
    """
    if cleared_transaction_ids is not None:
        update_selection(reconciliation_id, cleared_transaction_ids)

    with transaction.atomic():
        rec = get_reconciliation(reconciliation_id, lock=True)
        if rec.is_completed:
            raise StateConflictError(f"{rec.reference} is already completed.")
        bank = get_bank_account(rec.bank_account_id, lock=True)

        # selection may have changed since it was saved
        txns = _selectable(rec, rec.cleared_transactions.values_list("pk", flat=True))
        rec.cleared_balance = cleared_balance(rec.opening_balance, txns)
        rec.difference = rec.statement_balance - rec.cleared_balance
        if rec.difference != 0:
            logger.warning(
                "Reconciliation not balanced",
                extra={"reference": rec.reference, "difference": str(rec.difference)},
            )
            raise ReconciliationImbalanceError(rec.difference)

        rec.status = "completed"
        rec.completed_by = user
        rec.completed_at = timezone.now()
        rec.save()

        BankTransaction.objects.filter(pk__in=[tx.pk for tx in txns]).update(
            status="reconciled", reconciliation=rec)

        total = BankTransaction.objects.filter(bank_account=bank).aggregate(
            total=Sum("amount"))["total"] or ZERO
        bank.last_reconciled_date = rec.statement_date
        bank.last_reconciled_balance = rec.statement_balance
        bank.current_balance = bank.opening_balance + total
        bank.save()

        log_action(
            action="reconcile",
            instance=rec,
            user=user,
            changes={
                "statement_balance": str(rec.statement_balance),
                "cleared": len(txns),
            },
        )

    logger.info(
        "Bank reconciliation completed",
        extra={"reference": rec.reference, "cleared": len(txns)},
    )
    return rec
