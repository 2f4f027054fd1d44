import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ..exceptions import LedgerValidationError, NotFoundError, StateConflictError
from ..models import (Account, FiscalYear, JournalEntry, JournalEntryLine,
                      SourceKind, SourceRef)
from .audit_helper import log_action

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def get_fiscal_year(fiscal_year_id):
    if isinstance(fiscal_year_id, FiscalYear):
        return fiscal_year_id
    try:
        return FiscalYear.objects.get(pk=fiscal_year_id)
    except FiscalYear.DoesNotExist:
        raise NotFoundError(f"Fiscal year {fiscal_year_id} does not exist.") from None


def create_fiscal_year(name, start_date, end_date):
    """Fiscal years partition time: no two may overlap."""
    with transaction.atomic():
        overlapping = FiscalYear.objects.filter(
            start_date__lte=end_date, end_date__gte=start_date
        ).first()
        if overlapping:
            raise LedgerValidationError(
                f"{name} overlaps fiscal year {overlapping.name} "
                f"({overlapping.start_date} to {overlapping.end_date})."
            )
        fy = FiscalYear.objects.create(
            name=name, start_date=start_date, end_date=end_date)
        # entries booked before the year existed now belong to it
        adopted = JournalEntry.objects.filter(
            fiscal_year__isnull=True,
            entry_date__gte=start_date,
            entry_date__lte=end_date,
        ).update(fiscal_year=fy)
    logger.info(
        "Fiscal year created",
        extra={"fiscal_year": fy.name, "adopted_entries": adopted},
    )
    return fy


"""
    Entry date determines the fiscal year.
    Returns None when no year covers the date (books without fiscal years).
"""
def resolve_fiscal_year(entry_date):
    return FiscalYear.objects.filter(
        start_date__lte=entry_date, end_date__gte=entry_date
    ).first()


def _retained_earnings_account():
    account = (
        Account.objects.active()
        .of_type("equity")
        .with_subtype("retained_earnings")
        .order_by("code")
        .first()
    )
    if account is None:
        raise LedgerValidationError(
            "No active retained earnings account; cannot close the year.")
    return account


def closing_lines(fiscal_year, retained_earnings):
    """
    Lines that zero every income and expense account's activity for the
    year and move the difference (net income or loss) to retained earnings.
    """
    rows = (
        JournalEntryLine.objects.posted(fiscal_year.start_date, fiscal_year.end_date)
        .filter(account__type__in=("income", "expense"))
        .values("account_id")
        .order_by("account_id")
    )
    rows = rows.annotate(debit=Sum("debit"), credit=Sum("credit"))

    lines = []
    net_income = ZERO
    for row in rows:
        # positive: the account carries a debit balance for the year
        net = (row["debit"] or ZERO) - (row["credit"] or ZERO)
        if net == 0:
            continue
        net_income -= net
        lines.append({
            "account": row["account_id"],
            "debit": -net if net < 0 else ZERO,
            "credit": net if net > 0 else ZERO,
            "description": f"Close {fiscal_year.name}",
        })

    if net_income > 0:
        lines.append({
            "account": retained_earnings,
            "debit": ZERO,
            "credit": net_income,
            "description": f"Net income {fiscal_year.name}",
        })
    elif net_income < 0:
        lines.append({
            "account": retained_earnings,
            "debit": -net_income,
            "credit": ZERO,
            "description": f"Net loss {fiscal_year.name}",
        })
    return lines, net_income


def close_fiscal_year(fiscal_year_id, user=None):
    """
    Post the year-end closing entry and lock the year.
    A year without income/expense activity closes without an entry.
    """
    # posting resolves fiscal years through this module
    from .posting import record_entry

    with transaction.atomic():
        fy = get_fiscal_year(fiscal_year_id)
        fy = FiscalYear.objects.select_for_update().get(pk=fy.pk)
        if fy.is_closed:
            raise StateConflictError(f"Fiscal year {fy.name} is already closed.")

        retained_earnings = _retained_earnings_account()
        lines, net_income = closing_lines(fy, retained_earnings)

        entry = None
        if lines:
            entry = record_entry(
                lines,
                entry_date=fy.end_date,
                description=f"Year-end closing entry for {fy.name}",
                reference=f"CLOSE-{fy.name}",
                source=SourceRef(SourceKind.CLOSING, fy.pk),
                fiscal_year=fy,
                user=user,
            )

        fy.is_closed = True
        fy.closed_at = timezone.now()
        fy.closed_by = user
        fy.closing_entry = entry
        fy.save()

        log_action(
            action="close_year",
            instance=fy,
            user=user,
            changes={
                "net_income": str(net_income),
                "closing_entry": entry.entry_number if entry else None,
            },
        )

    logger.info(
        "Fiscal year closed",
        extra={"fiscal_year": fy.name, "net_income": str(net_income)},
    )
    return fy
