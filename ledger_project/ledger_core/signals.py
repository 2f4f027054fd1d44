from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Account, BankTransaction, FiscalYear, JournalEntry, JournalEntryLine

"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if instance.is_system:
        raise ValidationError("Cannot delete a system account.")
    if JournalEntryLine.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account used in journal lines.")


"""Block deletion of posted / void entries, including bulk queryset deletes."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_finalized_journal(sender, instance, **kwargs):
    if instance.status != "draft":
        raise ValidationError(
            f"Cannot delete a {instance.status} journal entry; void it instead.")


"""Lines of a posted entry are history."""


@receiver(pre_delete, sender=JournalEntryLine)
def prevent_delete_posted_line(sender, instance, **kwargs):
    if JournalEntry.objects.filter(
        pk=instance.journal_entry_id).exclude(status="draft").exists():
        raise ValidationError("Cannot delete a line of a posted or void journal entry.")


@receiver(pre_delete, sender=BankTransaction)
def prevent_delete_reconciled_transaction(sender, instance, **kwargs):
    if instance.status == "reconciled":
        raise ValidationError("Cannot delete a reconciled bank transaction.")


"""Block deletion if fiscal year has journal entries."""


@receiver(pre_delete, sender=FiscalYear)
def prevent_delete_fiscal_year_with_entries(sender, instance, **kwargs):
    if instance.journal_entries.exists():
        raise ValidationError("Cannot delete a fiscal year with journal entries.")
