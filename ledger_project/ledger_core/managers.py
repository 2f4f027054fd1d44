from decimal import Decimal

from django.db import models
from django.db.models.functions import Coalesce

ZERO = Decimal("0.00")


# -----------------------------------------
# Query helpers shared by the ledger models
# -----------------------------------------
class AccountQuerySet(models.QuerySet):
    # "soft deleted" accounts stay in the table for history
    def active(self):
        return self.filter(is_active=True, deleted_at__isnull=True)

    def of_type(self, *types):
        return self.filter(type__in=types)

    def with_subtype(self, *subtypes):
        return self.filter(subtype__in=subtypes)

    def roots(self):
        return self.filter(parent__isnull=True)


class JournalEntryQuerySet(models.QuerySet):
    def posted(self):
        return self.filter(status="posted")

    def drafts(self):
        return self.filter(status="draft")

    # Every entry a source document (order, expense, template...) produced
    def for_source(self, kind, source_id):
        return self.filter(source=kind, source_id=source_id)

    def between(self, date_from=None, date_to=None):
        qs = self
        if date_from:
            qs = qs.filter(entry_date__gte=date_from)
        if date_to:
            qs = qs.filter(entry_date__lte=date_to)
        return qs


class JournalLineQuerySet(models.QuerySet):
    """ Only lines of posted entries ever affect balances:
        drafts are not final and void entries are excluded by definition. """

    def posted(self, date_from=None, date_to=None):
        qs = self.filter(journal_entry__status="posted")
        if date_from:
            qs = qs.filter(journal_entry__entry_date__gte=date_from)
        if date_to:
            qs = qs.filter(journal_entry__entry_date__lte=date_to)
        return qs

    def for_account(self, account):
        return self.filter(account=account)

    # Sum debits and credits in one query, 0.00 when there are no rows
    def totals(self):
        aggs = self.aggregate(
            total_debit=Coalesce(
                models.Sum("debit"), ZERO, output_field=models.DecimalField()
            ),
            total_credit=Coalesce(
                models.Sum("credit"), ZERO, output_field=models.DecimalField()
            ),
        )
        return aggs["total_debit"], aggs["total_credit"]


class BankTransactionQuerySet(models.QuerySet):
    # Selected in an in-progress reconciliation still counts as unreconciled
    def unreconciled(self):
        return self.exclude(status="reconciled")

    def deposits(self):
        return self.filter(amount__gt=0)

    def withdrawals(self):
        return self.filter(amount__lt=0)


# Attach querysets to .objects
AccountManager = models.Manager.from_queryset(AccountQuerySet)
JournalEntryManager = models.Manager.from_queryset(JournalEntryQuerySet)
JournalLineManager = models.Manager.from_queryset(JournalLineQuerySet)
BankTransactionManager = models.Manager.from_queryset(BankTransactionQuerySet)
