from django.contrib import admin

from ledger_core.models import (Account, JournalEntryLine,
                                RecurringJournalEntryLine)

from .forms import BalancedLinesFormSet

# ---------- Inline admin classes ----------

LINE_FIELDS = ("line_order", "account", "description", "debit", "credit")


class JournalEntryLineInline(admin.TabularInline):
    """Show JournalEntryLine rows on JournalEntry page"""

    model = JournalEntryLine
    extra = 0  # don’t show “empty” rows by default
    fields = LINE_FIELDS
    ordering = ("line_order", "id")

    def formfield_for_foreignkey(self, db_field, request=None, **kwargs):
        # new lines may only use accounts that can still be posted to
        if db_field.name == "account":
            kwargs["queryset"] = Account.objects.active()
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("account")

    def get_readonly_fields(self, request, obj=None):
        # Once the entry leaves draft, all its lines become completely locked
        if obj and obj.status != "draft":
            return LINE_FIELDS
        return super().get_readonly_fields(request, obj)

    def has_add_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)


class RecurringLineInline(admin.TabularInline):
    model = RecurringJournalEntryLine
    formset = BalancedLinesFormSet
    extra = 0
    fields = LINE_FIELDS
    ordering = ("line_order", "id")

    def formfield_for_foreignkey(self, db_field, request=None, **kwargs):
        if db_field.name == "account":
            kwargs["queryset"] = Account.objects.active()
        return super().formfield_for_foreignkey(db_field, request, **kwargs)
