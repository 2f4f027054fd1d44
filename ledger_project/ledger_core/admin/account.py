from django.contrib import admin

from ledger_core.models import Account, FiscalYear

from .actions import close_fiscal_years


# Register `Account` model
@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    # show key accounting fields
    list_display = (
        "code",
        "name",
        "type",
        "subtype",
        "normal_balance",
        "parent",
        "level",
        "is_system",
        "is_active",
    )
    list_filter = ("type", "subtype", "is_active", "is_system")
    search_fields = ("code", "name")
    ordering = ("code",)
    readonly_fields = ("level", "deleted_at", "created_at")
    fieldsets = (
        (
            None,
            {
                "fields": (
                    "code",
                    "name",
                    "description",
                    "type",
                    "subtype",
                    "parent",
                    "level",
                )
            },
        ),
        ("Opening balance", {"fields": ("opening_balance", "opening_balance_date")}),
        ("Status", {"fields": ("is_active", "is_system", "deleted_at", "created_at")}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("parent")

    # system accounts back the POS postings
    def has_delete_permission(self, request, obj=None):
        if obj and obj.is_system:
            return False
        return super().has_delete_permission(request, obj)


# Register `FiscalYear` model
@admin.register(FiscalYear)
class FiscalYearAdmin(admin.ModelAdmin):
    list_display = ("name", "start_date", "end_date", "is_closed", "closed_at", "closing_entry")
    list_filter = ("is_closed",)
    readonly_fields = ("is_closed", "closed_at", "closed_by", "closing_entry")
    ordering = ("-start_date",)
    actions = [close_fiscal_years]
