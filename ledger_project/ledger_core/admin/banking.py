from django.contrib import admin

from ledger_core.models import BankAccount, BankReconciliation, BankTransaction

from .actions import complete_reconciliations


# Register `BankAccount` model
@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "bank_name",
        "account",
        "currency",
        "current_balance",
        "last_reconciled_date",
        "last_reconciled_balance",
        "is_active",
    )
    list_filter = ("is_active", "currency")
    search_fields = ("name", "bank_name", "account_number")
    readonly_fields = ("current_balance", "last_reconciled_date", "last_reconciled_balance")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("account")


# Register `BankTransaction` model
@admin.register(BankTransaction)
class BankTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_date",
        "bank_account",
        "reference",
        "description",
        "amount",
        "type",
        "status",
        "journal_entry",
    )
    list_filter = ("bank_account", "type", "status", "is_imported")
    search_fields = ("reference", "description")
    date_hierarchy = "transaction_date"
    readonly_fields = ("status", "reconciliation", "is_imported", "created_at")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("bank_account", "journal_entry")

    # reconciled lines belong to a closed statement
    def has_change_permission(self, request, obj=None):
        if obj and obj.status == "reconciled":
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status == "reconciled":
            return False
        return super().has_delete_permission(request, obj)


# Register `BankReconciliation` model
@admin.register(BankReconciliation)
class BankReconciliationAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "bank_account",
        "statement_date",
        "statement_balance",
        "cleared_balance",
        "difference",
        "status",
        "completed_at",
    )
    list_filter = ("status", "bank_account")
    search_fields = ("reference",)
    readonly_fields = (
        "reference",
        "bank_account",
        "statement_date",
        "statement_balance",
        "opening_balance",
        "cleared_balance",
        "gl_balance",
        "difference",
        "status",
        "completed_by",
        "completed_at",
        "cleared_transactions",
    )
    actions = [complete_reconciliations]

    # reconciliations are started through the service (reference numbering)
    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        if obj and obj.is_completed:
            return False
        return super().has_delete_permission(request, obj)
