import logging
from decimal import InvalidOperation

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import (ConcurrencyError, LedgerValidationError,
                          NotFoundError, StateConflictError,
                          UnbalancedJournalError)
from ..models import (POSTED, Account, JournalEntry, JournalEntryLine,
                      SourceRef, to_money)
from .audit_helper import log_action
from .fiscal_years import resolve_fiscal_year
from .numbering import generate_entry_number

logger = logging.getLogger(__name__)

# numbers skipped when the series runs into rows it did not allocate
MAX_NUMBER_ATTEMPTS = 5


# ----------------------------
# Lookups
# ----------------------------
def get_account(ref):
    """Account instance, primary key (int) or account code (str)."""
    if isinstance(ref, Account):
        return ref
    lookup = {"code": ref} if isinstance(ref, str) else {"pk": ref}
    try:
        return Account.objects.get(**lookup)
    except Account.DoesNotExist:
        raise NotFoundError(f"Account {ref!r} does not exist.") from None


def get_entry(entry_id):
    if isinstance(entry_id, JournalEntry):
        entry_id = entry_id.pk
    try:
        return JournalEntry.objects.get(pk=entry_id)
    except JournalEntry.DoesNotExist:
        raise NotFoundError(f"Journal entry {entry_id} does not exist.") from None


def prepare_lines(lines):
    """
    Validate raw line mappings and normalize them:
        {"account": <Account|id|code>, "debit": ..., "credit": ..., "description": ...}
    Balance is NOT checked here, drafts may be unbalanced.
    """
    if not lines:
        raise LedgerValidationError("A journal entry needs at least one line.")

    prepared = []
    for order, raw in enumerate(lines, start=1):
        if raw.get("account") in (None, ""):
            raise LedgerValidationError(f"Line {order}: an account is required.")
        try:
            debit = to_money(raw.get("debit"))
            credit = to_money(raw.get("credit"))
        except (TypeError, ValueError, InvalidOperation) as exc:
            raise LedgerValidationError(
                f"Line {order}: amounts must be decimal numbers "
                f"(debit={raw.get('debit')!r}, credit={raw.get('credit')!r})."
            ) from exc
        account = get_account(raw["account"])

        if debit < 0 or credit < 0:
            raise LedgerValidationError(
                f"Line {order}: debit and credit cannot be negative.")
        if debit > 0 and credit > 0:
            raise LedgerValidationError(
                f"Line {order}: a line cannot carry both a debit and a credit.")
        if debit == 0 and credit == 0:
            raise LedgerValidationError(
                f"Line {order}: a line needs a non-zero debit or credit.")
        if not account.can_post:
            raise LedgerValidationError(
                f"Line {order}: account {account.code} is inactive.")

        prepared.append({
            "account": account,
            "debit": debit,
            "credit": credit,
            "description": raw.get("description") or "",
            "line_order": raw.get("line_order") or order,
        })
    return prepared


# ----------------------------
# Journal workflows
# ----------------------------
def create_draft(
    lines,
    *,
    entry_date,
    description="",
    reference="",
    source: SourceRef | None = None,
    fiscal_year=None,
    user=None,
) -> JournalEntry:
    """Create a draft entry and its lines. Totals are computed from the lines."""
    source = source or SourceRef.manual()
    prepared = prepare_lines(lines)

    with transaction.atomic():
        fiscal_year = fiscal_year or resolve_fiscal_year(entry_date)
        if fiscal_year is not None:
            if not fiscal_year.contains(entry_date):
                raise LedgerValidationError(
                    f"{entry_date} is outside fiscal year {fiscal_year.name}.")
            if fiscal_year.is_closed:
                raise LedgerValidationError(
                    f"Fiscal year {fiscal_year.name} is closed.")

        je = None
        for _ in range(MAX_NUMBER_ATTEMPTS):
            entry_number = generate_entry_number(entry_date)
            try:
                with transaction.atomic():
                    je = JournalEntry.objects.create(
                        entry_number=entry_number,
                        entry_date=entry_date,
                        fiscal_year=fiscal_year,
                        reference=reference or "",
                        description=description or "",
                        source=source.kind,
                        source_id=source.id,
                        created_by=user,
                    )
                break
            except IntegrityError:
                # number taken outside the sequence (e.g. imported history)
                logger.warning("Entry number already in use", extra={"entry_number": entry_number})
        if je is None:
            raise ConcurrencyError(
                f"Could not allocate a free entry number for {entry_date.year}.")

        for line in prepared:
            JournalEntryLine.objects.create(journal_entry=je, **line)
        je.recalculate_totals()

    logger.info(
        "Draft journal entry created",
        extra={
            "entry_number": je.entry_number,
            "source": source.kind.value,
            "source_id": source.id,
            "lines": len(prepared),
        },
    )
    return je


def post_entry(entry_id, user=None) -> JournalEntry:
    """
    draft → posted, wraps JournalEntry.post with audit + logging.
    """
    with transaction.atomic():
        je = get_entry(entry_id)
        try:
            je.post(user=user)
        except UnbalancedJournalError as exc:
            logger.warning(
                "Rejected unbalanced journal entry",
                extra={
                    "entry_number": je.entry_number,
                    "total_debit": str(exc.total_debit),
                    "total_credit": str(exc.total_credit),
                },
            )
            raise
        log_action(
            action="post",
            instance=je,
            user=user,
            changes={"entry_number": je.entry_number, "amount": str(je.total_debit)},
        )

    logger.info(
        "Journal entry posted",
        extra={"entry_number": je.entry_number, "amount": str(je.total_debit)},
    )
    return je


def record_entry(lines, *, entry_date, **kwargs) -> JournalEntry:
    """Create and post in one transaction (collaborators, scheduler, closing)."""
    user = kwargs.get("user")
    with transaction.atomic():
        je = create_draft(lines, entry_date=entry_date, **kwargs)
        return post_entry(je.pk, user=user)


def void_entry(entry_id, reason, user=None) -> JournalEntry:
    with transaction.atomic():
        je = get_entry(entry_id)
        je.void(reason, user=user)
        log_action(
            action="void",
            instance=je,
            user=user,
            changes={"entry_number": je.entry_number, "reason": je.void_reason},
        )

    logger.info(
        "Journal entry voided",
        extra={"entry_number": je.entry_number, "reason": je.void_reason},
    )
    return je


def reverse_entry(entry_id, description=None, entry_date=None, user=None) -> JournalEntry:
    """
    Compensating entry: a new draft with every line's debit and credit
    swapped. The original stays posted.
    """
    with transaction.atomic():
        original = get_entry(entry_id)
        if original.status != POSTED:
            raise StateConflictError(
                f"Only posted entries can be reversed; "
                f"{original.entry_number} is {original.status}."
            )

        lines = [
            {
                "account": line.account,
                "debit": line.credit,
                "credit": line.debit,
                "description": f"Reversal: {line.description}".rstrip(),
                "line_order": line.line_order,
            }
            for line in original.lines.select_related("account")
        ]
        reversal = create_draft(
            lines,
            entry_date=entry_date or timezone.localdate(),
            description=description or f"Reversal of {original.entry_number}",
            reference=f"REV-{original.entry_number}",
            source=SourceRef("adjustment", original.pk),
            user=user,
        )
        log_action(
            action="reverse",
            instance=original,
            user=user,
            changes={"reversal": reversal.entry_number},
        )

    logger.info(
        "Reversing entry created",
        extra={"entry_number": original.entry_number, "reversal": reversal.entry_number},
    )
    return reversal
