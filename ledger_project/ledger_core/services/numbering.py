import logging

from django.conf import settings
from django.db import IntegrityError, transaction

from ..models import EntrySequence

logger = logging.getLogger(__name__)


def format_number(prefix: str, year: int, value: int) -> str:
    """e.g. format_number("JE", 2024, 42) -> "JE-2024-000042"."""
    return f"{prefix}-{year}-{value:06d}"


def next_number(prefix: str, entry_date) -> str:
    """
    Allocate the next number of the (prefix, year) series.

    The counter row is locked for the rest of the caller's transaction,
    so two concurrent allocations in the same series serialize and
    never hand out the same value.
    """
    year = entry_date.year
    with transaction.atomic():
        seq = (
            EntrySequence.objects.select_for_update()
            .filter(prefix=prefix, year=year)
            .first()
        )
        if seq is None:
            # First number of the year: create the row in a savepoint.
            # A concurrent creator wins the unique constraint, we re-read.
            try:
                with transaction.atomic():
                    seq = EntrySequence.objects.create(
                        prefix=prefix, year=year, last_value=0)
            except IntegrityError:
                seq = EntrySequence.objects.select_for_update().get(
                    prefix=prefix, year=year)

        seq.last_value += 1
        seq.save(update_fields=["last_value"])

    number = format_number(prefix, year, seq.last_value)
    logger.debug("Allocated number", extra={"number": number, "prefix": prefix})
    return number


def generate_entry_number(entry_date, prefix=None) -> str:
    return next_number(prefix or settings.LEDGER_ENTRY_PREFIX, entry_date)


def generate_reconciliation_reference(statement_date) -> str:
    return next_number(settings.LEDGER_RECONCILIATION_PREFIX, statement_date)
