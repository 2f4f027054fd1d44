from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import BankTransactionManager
from .account import Account
from .journal import JournalEntry, to_money

TRANSACTION_TYPES = [
    ("deposit", "Deposit"),
    ("withdrawal", "Withdrawal"),
    ("transfer", "Transfer"),
    ("fee", "Bank fee"),
    ("interest", "Interest"),
    ("other", "Other"),
]

BT_STATUS_CHOICES = [
    ("pending", "Pending"),  # imported / entered, not matched yet
    ("matched", "Matched"),  # linked to a journal entry
    ("reconciled", "Reconciled"),  # cleared by a completed reconciliation
]

RECONCILIATION_STATUS = [
    ("in_progress", "In progress"),
    ("completed", "Completed"),
]


# ---------- Banking ----------
class BankAccount(models.Model):  # Represents a bank account the store maintains
    # The GL account this bank account posts through (asset / cash or bank)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="bank_accounts")
    name = models.CharField(max_length=200)  # e.g. "Checking Account"
    bank_name = models.CharField(max_length=200, blank=True, default="")
    # Partial account number for display/security
    account_number = models.CharField(max_length=50, blank=True, default="")
    currency = models.CharField(max_length=3, default="USD")

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # Snapshot refreshed when a reconciliation completes
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # For reconciliation workflows
    last_reconciled_date = models.DateField(null=True, blank=True)
    last_reconciled_balance = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ("name",)
        constraints = [
            models.UniqueConstraint(fields=["name"], name="uq_bankaccount_name"),
        ]

    def __str__(self):
        # Show name + masked number for clarity
        if self.account_number:
            return f"{self.name} ({self.account_number[-4:]})"
        return self.name

    def clean(self):
        if self.account_id and (
            self.account.type != "asset"
            or self.account.subtype not in ("cash", "bank")
        ):
            raise ValidationError(
                {"account": "A bank account must be linked to a cash or bank asset account."})

    def save(self, *args, **kwargs):
        if self._state.adding and not self.current_balance:
            self.current_balance = self.opening_balance
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    @property
    def reconciliation_start_balance(self):
        """Balance the next reconciliation starts from."""
        if self.last_reconciled_balance is not None:
            return self.last_reconciled_balance
        return self.opening_balance


class BankTransaction(models.Model):  # Single inflow/outflow on a bank statement
    # prevent BankAccount deletion if transactions exist
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.PROTECT, related_name="transactions")
    transaction_date = models.DateField()
    reference = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")
    # amount: positive = inflow (deposit), negative = outflow (withdrawal)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    type = models.CharField(max_length=20, choices=TRANSACTION_TYPES, default="other")
    status = models.CharField(
        max_length=20, choices=BT_STATUS_CHOICES, default="pending")

    journal_entry = models.ForeignKey(
        JournalEntry,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="bank_transactions"
    )
    reconciliation = models.ForeignKey(
        "BankReconciliation",
        null=True, blank=True, on_delete=models.SET_NULL, related_name="reconciled_transactions"
    )
    is_imported = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = BankTransactionManager()

    class Meta:
        ordering = ("transaction_date", "id")
        # Optimizes queries for reconciliation
        # (find all txns for a bank account up to a date)
        indexes = [
            models.Index(fields=["bank_account", "transaction_date"], name="bt_account_date_idx"),
            models.Index(fields=["bank_account", "status"], name="bt_account_status_idx"),
        ]

    def __str__(self):
        return f"{self.bank_account.name} - {self.transaction_date} - {self.amount} ({self.status})"

    @property
    def is_deposit(self):
        return self.amount > 0

    @property
    def is_withdrawal(self):
        return self.amount < 0

    def clean(self):
        if self.amount == 0:
            raise ValidationError({"amount": "A bank transaction cannot be zero."})

    def save(self, *args, **kwargs):
        # Reconciled lines are history: the statement they cleared is closed
        if self.pk:
            orig = BankTransaction.objects.filter(pk=self.pk).first()
            if orig and orig.status == "reconciled":
                raise ValidationError(
                    "Cannot modify a reconciled bank transaction.")
        self.amount = to_money(self.amount)
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.status == "reconciled":
            raise ValidationError(
                "Cannot delete a reconciled bank transaction.")
        return super().delete(*args, **kwargs)


class BankReconciliation(models.Model):
    """
    One statement matched against the bank's transactions.
        opening  = balance the account was last reconciled at
        cleared  = opening + cleared deposits - cleared withdrawals
        difference = statement_balance - cleared (must be exactly 0 to complete)
    """

    reference = models.CharField(max_length=32, unique=True)  # REC-YYYY-NNNNNN
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.PROTECT, related_name="reconciliations")
    statement_date = models.DateField()
    statement_balance = models.DecimalField(max_digits=18, decimal_places=2)
    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    cleared_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # GL balance of the linked account at statement_date, for comparison
    gl_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    difference = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(
        max_length=20, choices=RECONCILIATION_STATUS, default="in_progress")

    # In-progress selection, persisted so work can resume later
    cleared_transactions = models.ManyToManyField(
        BankTransaction, blank=True, related_name="selected_in")

    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-statement_date", "-id")
        indexes = [models.Index(fields=["bank_account", "status"], name="recon_account_status_idx")]

    def __str__(self):
        return f"{self.reference} {self.bank_account} @ {self.statement_date} ({self.status})"

    @property
    def is_completed(self):
        return self.status == "completed"

    @property
    def is_balanced(self):
        return self.difference == 0
