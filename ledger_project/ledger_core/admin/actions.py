from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledger_core.exceptions import ConcurrencyError, StateConflictError
from ledger_core.services import (fiscal_years, posting, reconciliation,
                                  recurring)

# ---------- Admin actions ----------


@admin.action(description=_("Post selected journal entries (make immutable)"))
# Bulk-post multiple journal entries from Django admin list view
def post_journal_entries(
    modeladmin,  # `ModelAdmin` class for JournalEntry
    request,  # HTTP request object
    queryset,  # record what admin selected from list view
):
    """
    Post each selected draft in its own transaction and report
    per-entry failures via admin messages.
    """
    candidates = queryset.filter(status="draft")
    total = candidates.count()
    success = 0
    failures = 0

    for je in candidates:
        try:
            posting.post_entry(je.pk, user=request.user)
            success += 1
        except (ValidationError, StateConflictError, ConcurrencyError) as exc:
            failures += 1
            modeladmin.message_user(
                request,
                _("Could not post %(number)s: %(err)s") % {"number": je.entry_number, "err": exc},
                level=messages.ERROR,
            )

    # Final summary message
    modeladmin.message_user(
        request,
        _("Posted %(success)d of %(total)d journal entries. %(failures)d failed.") % {
            "success": success,
            "total": total,
            "failures": failures,
        },
        level=messages.SUCCESS if failures == 0 else messages.WARNING,
    )


@admin.action(description=_("Void selected journal entries"))
def void_journal_entries(modeladmin, request, queryset):
    reason = f"Voided from admin by {request.user} on {timezone.localdate()}"
    for je in queryset.filter(status="posted"):
        try:
            posting.void_entry(je.pk, reason, user=request.user)
            modeladmin.message_user(request, f"Voided {je.entry_number}")
        except (ValidationError, StateConflictError, ConcurrencyError) as exc:
            modeladmin.message_user(
                request, f"{je.entry_number}: {exc}", level=messages.ERROR)


@admin.action(description=_("Create reversing drafts for selected entries"))
def reverse_journal_entries(modeladmin, request, queryset):
    for je in queryset:
        try:
            reversal = posting.reverse_entry(je.pk, user=request.user)
            modeladmin.message_user(
                request, f"{reversal.entry_number} reverses {je.entry_number}")
        except (ValidationError, StateConflictError) as exc:
            modeladmin.message_user(
                request, f"{je.entry_number}: {exc}", level=messages.ERROR)


""" Run the selected recurring templates as of today """


@admin.action(description=_("Run selected recurring templates now"))
def run_recurring_templates(modeladmin, request, queryset):
    today = timezone.localdate()
    for template in queryset:
        try:
            entry = recurring.run_template(template.pk, today, user=request.user)
        except (ValidationError, StateConflictError, ConcurrencyError) as exc:
            modeladmin.message_user(
                request, f"{template}: {exc}", level=messages.ERROR)
            continue
        if entry is None:
            modeladmin.message_user(
                request, f"{template}: not due", level=messages.WARNING)
        else:
            modeladmin.message_user(request, f"{template}: posted {entry.entry_number}")


@admin.action(description=_("Activate / deactivate selected templates"))
def toggle_recurring_templates(modeladmin, request, queryset):
    for template in queryset:
        recurring.toggle_template(template.pk)


""" call reconciliation.complete_reconciliation with the saved selection """


@admin.action(description=_("Complete selected reconciliations"))
def complete_reconciliations(modeladmin, request, queryset):
    for rec in queryset.filter(status="in_progress"):
        try:
            reconciliation.complete_reconciliation(rec.pk, user=request.user)
            modeladmin.message_user(request, f"Completed {rec.reference}")
        except (ValidationError, StateConflictError) as exc:
            modeladmin.message_user(
                request, f"{rec.reference}: {exc}", level=messages.ERROR)


@admin.action(description=_("Close selected fiscal years"))
def close_fiscal_years(modeladmin, request, queryset):
    for fy in queryset.filter(is_closed=False):
        try:
            fiscal_years.close_fiscal_year(fy.pk, user=request.user)
            modeladmin.message_user(request, f"Closed {fy.name}")
        except (ValidationError, StateConflictError) as exc:
            modeladmin.message_user(
                request, f"{fy.name}: {exc}", level=messages.ERROR)
