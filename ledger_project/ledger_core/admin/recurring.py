from decimal import Decimal

from django.contrib import admin

from ledger_core.models import RecurringJournalEntry, RecurringRun

from .actions import run_recurring_templates, toggle_recurring_templates
from .inlines import RecurringLineInline
from .ReadOnly import ReadOnlyAdmin


# Register `RecurringJournalEntry` model
@admin.register(RecurringJournalEntry)
class RecurringJournalEntryAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "frequency",
        "next_run_date",
        "last_run_date",
        "total_amount",
        "occurrences",
        "max_occurrences",
        "is_active",
    )
    list_filter = ("frequency", "is_active")
    search_fields = ("name", "description")
    readonly_fields = ("next_run_date", "last_run_date", "total_amount", "occurrences", "created_by")
    inlines = [RecurringLineInline]
    actions = [run_recurring_templates, toggle_recurring_templates]

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        # schedule (re)starts at start_date until the first run
        if obj.occurrences == 0:
            obj.next_run_date = obj.start_date
        super().save_model(request, obj, form, change)

    # lines are validated as balanced by the inline formset
    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        template = form.instance
        total = sum((ln.debit for ln in template.lines.all()), Decimal("0.00"))
        RecurringJournalEntry.objects.filter(pk=template.pk).update(total_amount=total)


@admin.register(RecurringRun)
class RecurringRunAdmin(ReadOnlyAdmin):
    list_display = ("template", "run_date", "journal_entry", "created_at")
    list_filter = ("run_date",)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("template", "journal_entry")
