from decimal import Decimal

from django.contrib import admin
from django.db.models import Prefetch
from django.utils.html import format_html

from ledger_core.models import EntrySequence, JournalEntry, JournalEntryLine
from ledger_core.services.fiscal_years import resolve_fiscal_year
from ledger_core.services.numbering import generate_entry_number

from .actions import (post_journal_entries, reverse_journal_entries,
                      void_journal_entries)
from .inlines import JournalEntryLineInline
from .ReadOnly import ReadOnlyAdmin


# Register `JournalEntry` model
@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = (
        "entry_number",
        "entry_date",
        "reference",
        "source_label",
        "status",
        "posted_at",
        "created_by",
        "balanced",
    )
    list_filter = ("status", "source", "fiscal_year", "entry_date")
    search_fields = ("entry_number", "reference", "description")
    date_hierarchy = "entry_date"
    readonly_fields = (
        "entry_number",
        "status",
        "total_debit",
        "total_credit",
        "created_by",
        "posted_by",
        "posted_at",
        "voided_by",
        "voided_at",
        "void_reason",
        "version",
    )  # users can see but not edit these
    inlines = [JournalEntryLineInline]  # edit lines directly on the entry page
    actions = [post_journal_entries, void_journal_entries, reverse_journal_entries]

    # Fetch lines + their accounts in two queries
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        lines_qs = JournalEntryLine.objects.select_related("account")
        return qs.select_related("created_by", "fiscal_year").prefetch_related(
            Prefetch("lines", queryset=lines_qs)
        )

    """ Computed columns """
    @admin.display(description="Source")
    def source_label(self, obj):
        return obj.source_ref.label

    # Show total debits / total credits for each journal
    @admin.display(description="Debits / Credits")
    def balanced(self, obj):
        d = sum((ln.debit for ln in obj.lines.all()), Decimal("0.00"))
        c = sum((ln.credit for ln in obj.lines.all()), Decimal("0.00"))
        return format_html("<b>{}</b> / <small>{}</small>", d, c)

    """ Make entries immutable once posted """
    def get_readonly_fields(self, request, obj=None):
        r = list(self.readonly_fields)
        if obj and obj.status != "draft":
            r += ["entry_date", "fiscal_year", "reference", "description", "source", "source_id"]
        return r

    def has_delete_permission(self, request, obj=None):
        # only drafts can be deleted, posted entries are voided
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)

    # new drafts get their number and fiscal year on first save
    def save_model(self, request, obj, form, change):
        if not change:
            obj.entry_number = generate_entry_number(obj.entry_date)
            obj.created_by = request.user
            if obj.fiscal_year_id is None:
                obj.fiscal_year = resolve_fiscal_year(obj.entry_date)
        super().save_model(request, obj, form, change)

    # cached totals follow the inline lines
    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        if form.instance.status == "draft":
            form.instance.recalculate_totals()


@admin.register(EntrySequence)
class EntrySequenceAdmin(ReadOnlyAdmin):
    list_display = ("prefix", "year", "last_value")
    list_filter = ("prefix",)
