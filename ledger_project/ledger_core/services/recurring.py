import calendar
import logging
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.db import IntegrityError, transaction

from ..exceptions import LedgerValidationError, NotFoundError
from ..models import (RecurringJournalEntry, RecurringJournalEntryLine,
                      RecurringRun, SourceKind, SourceRef)
from .audit_helper import log_action
from .posting import create_draft, post_entry, prepare_lines

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "yearly": relativedelta(years=1),
}


def get_template(template_id):
    if isinstance(template_id, RecurringJournalEntry):
        template_id = template_id.pk
    try:
        return RecurringJournalEntry.objects.get(pk=template_id)
    except RecurringJournalEntry.DoesNotExist:
        raise NotFoundError(f"Recurring template {template_id} does not exist.") from None


# ---------- Template maintenance ----------
def save_template(*, lines, template=None, user=None, **fields):
    """
    Create (or update) a template and replace its lines.
    The lines must balance here: runs post without re-checking.
    """
    prepared = prepare_lines(lines)
    if len(prepared) < 2:
        raise LedgerValidationError("A recurring template needs at least two lines.")

    total_debit = sum((ln["debit"] for ln in prepared), ZERO)
    total_credit = sum((ln["credit"] for ln in prepared), ZERO)
    if total_debit != total_credit:
        raise LedgerValidationError(
            f"Template not balanced: debits={total_debit}, credits={total_credit}, "
            f"difference={total_debit - total_credit}"
        )

    with transaction.atomic():
        if template is None:
            template = RecurringJournalEntry(created_by=user, **fields)
        else:
            template = RecurringJournalEntry.objects.select_for_update().get(pk=template.pk)
            for name, value in fields.items():
                setattr(template, name, value)

        # schedule restarts from start_date until the first run
        if template.occurrences == 0:
            template.next_run_date = template.start_date
        template.total_amount = total_debit
        template.save()

        template.lines.all().delete()
        for line in prepared:
            RecurringJournalEntryLine.objects.create(template=template, **line)

    logger.info(
        "Recurring template saved",
        extra={"template_id": template.pk, "amount": str(total_debit)},
    )
    return template


def toggle_template(template_id):
    with transaction.atomic():
        template = get_template(template_id)
        template.is_active = not template.is_active
        template.save(update_fields=["is_active"])
    logger.info(
        "Recurring template toggled",
        extra={"template_id": template.pk, "is_active": template.is_active},
    )
    return template


# ---------- Schedule ----------
def is_due(template, today) -> bool:
    if not template.is_active:
        return False
    if template.end_date and today > template.end_date:
        return False
    if template.has_reached_limit:
        return False
    return template.next_run_date is not None and today >= template.next_run_date


def next_occurrence(template, current):
    """
    One step of the template's frequency after `current`.

    Only day_of_month shapes the step (it snaps month-based frequencies
    back to that day). day_of_week and month_of_year are descriptive:
    the schedule follows next_run_date, never those two fields.
    """
    nxt = current + STEPS[template.frequency]
    # relativedelta clamps Jan 31 + 1 month to Feb 29; snap back to the
    # configured day so the schedule does not drift to the 29th for good
    if template.day_of_month and template.frequency in ("monthly", "quarterly", "yearly"):
        last_day = calendar.monthrange(nxt.year, nxt.month)[1]
        nxt = nxt.replace(day=min(template.day_of_month, last_day))
    return nxt


def advance(template, today=None):
    """
    Step next_run_date forward from its current value.
    With `today`, keep stepping until the date is after today:
    missed occurrences are skipped, not back-filled.
    """
    nxt = next_occurrence(template, template.next_run_date)
    if today is not None:
        while nxt <= today:
            nxt = next_occurrence(template, nxt)
    return nxt


# ---------- Runs ----------
def run_template(template_id, today, user=None):
    """
    Generate and post today's entry for a due template.
    Returns None when not due or already run today.
    """
    with transaction.atomic():
        template = get_template(template_id)
        template = RecurringJournalEntry.objects.select_for_update().get(pk=template.pk)
        if not is_due(template, today):
            return None

        # claim (template, today); a second claim the same day is a no-op
        try:
            with transaction.atomic():
                run = RecurringRun.objects.create(template=template, run_date=today)
        except IntegrityError:
            logger.info(
                "Recurring template already ran today",
                extra={"template_id": template.pk, "run_date": str(today)},
            )
            return None

        lines = [
            {
                "account": line.account,
                "debit": line.debit,
                "credit": line.credit,
                "description": line.description,
                "line_order": line.line_order,
            }
            for line in template.lines.select_related("account")
        ]
        draft = create_draft(
            lines,
            entry_date=today,
            description=template.description or template.name,
            reference=f"REC-{template.pk}",
            source=SourceRef(SourceKind.RECURRING, template.pk),
            user=user,
        )
        entry = post_entry(draft.pk, user=user)

        run.journal_entry = entry
        run.save(update_fields=["journal_entry"])

        template.last_run_date = today
        template.next_run_date = advance(template, today)
        template.occurrences += 1
        template.save(update_fields=["last_run_date", "next_run_date", "occurrences"])

        log_action(
            action="recurring_run",
            instance=template,
            user=user,
            changes={
                "entry_number": entry.entry_number,
                "run_date": str(today),
                "next_run_date": str(template.next_run_date),
            },
        )

    logger.info(
        "Recurring entry generated",
        extra={
            "template_id": template.pk,
            "entry_number": entry.entry_number,
            "next_run_date": str(template.next_run_date),
        },
    )
    return entry


def due_templates(today):
    candidates = RecurringJournalEntry.objects.filter(
        is_active=True, next_run_date__lte=today)
    return [t for t in candidates if is_due(t, today)]


def process_due_templates(today, dry_run=False, user=None):
    """
    Run every due template. A failing template is logged and counted,
    the batch carries on with the rest.
    """
    summary = {"due": 0, "processed": 0, "skipped": 0, "failed": 0, "entries": []}
    for template in due_templates(today):
        summary["due"] += 1
        if dry_run:
            summary["entries"].append(template.name)
            continue
        try:
            entry = run_template(template.pk, today, user=user)
        except Exception:
            logger.exception(
                "Recurring template failed",
                extra={"template_id": template.pk, "run_date": str(today)},
            )
            summary["failed"] += 1
            continue
        if entry is None:
            summary["skipped"] += 1
        else:
            summary["processed"] += 1
            summary["entries"].append(entry.entry_number)

    logger.info(
        "Recurring run finished",
        extra={k: v for k, v in summary.items() if k != "entries"},
    )
    return summary
