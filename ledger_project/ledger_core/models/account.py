from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import AccountManager

# Choice Lists
AC_TYPES = [
    # Used in Account model to classify general ledger accounts
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("income", "Income"),
    ("expense", "Expense"),
]

# Closed subtype vocabulary per account type
# (reports group accounts by subtype)
SUBTYPES = {
    "asset": [
        "cash", "bank", "accounts_receivable", "inventory",
        "prepaid", "fixed_asset", "other_asset",
    ],
    "liability": [
        "accounts_payable", "credit_card", "current_liability",
        "long_term_liability", "other_liability",
    ],
    "equity": ["owners_equity", "retained_earnings", "other_equity"],
    "income": ["sales", "other_income"],
    "expense": [
        "cost_of_goods_sold", "operating_expense", "payroll", "other_expense",
    ],
}

SUBTYPE_CHOICES = [
    (subtype, subtype.replace("_", " ").title())
    for subtypes in SUBTYPES.values()
    for subtype in subtypes
]

# Increases are recorded as debits for these types,
# as credits for liability, equity and income
DEBIT_NORMAL_TYPES = ("asset", "expense")

# Balance sheet vs. P&L
BALANCE_SHEET_TYPES = ("asset", "liability", "equity")


class Account(models.Model):
    """
    Ledger account in the Chart of Accounts.
    - code is unique across the chart
    - type fixes the normal balance side (debit: asset/expense)
    - opening_balance + opening_balance_date anchor balance computation
    - accounts with postings are soft deleted, never removed
    """

    # Every account has a code
    # which lets you sort/group accounts consistently in reports.
    code = models.CharField(max_length=32, unique=True)
    # Human-readable name → "Cash", "Accounts Payable"
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")

    type = models.CharField(max_length=10, choices=AC_TYPES)
    subtype = models.CharField(max_length=32, choices=SUBTYPE_CHOICES)

    # Optional hierarchy:
    # (e.g. 1000 Cash, 1001 Petty Cash, 1002 Register Float)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # you can’t delete a parent if children exist
        related_name="children",
    )
    # Depth in the tree (0 for roots), derived from parent on save
    level = models.PositiveSmallIntegerField(default=0)

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    opening_balance_date = models.DateField(null=True, blank=True)

    # “soft deactivate” accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    # system accounts are used by the POS collaborators and cannot be deleted
    is_system = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AccountManager()

    class Meta:
        ordering = ("code",)
        indexes = [
            # For reports grouped by type / subtype
            models.Index(fields=["type", "subtype"], name="account_type_subtype_idx"),
            models.Index(fields=["parent"], name="account_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"  # Example: "1000 – Cash"

    @property
    def display_name(self):
        return f"{self.code} - {self.name}"

    @property
    def is_debit_normal(self):
        return self.type in DEBIT_NORMAL_TYPES

    @property
    def normal_balance(self):
        return "debit" if self.is_debit_normal else "credit"

    @property
    def can_post(self):
        return self.is_active and self.deleted_at is None

    def signed_balance(self, debit, credit):
        """Net debit/credit movement expressed on the account's normal side."""
        if self.is_debit_normal:
            return debit - credit
        return credit - debit

    def clean(self):
        # subtype must come from this type's vocabulary
        if self.subtype not in SUBTYPES.get(self.type, []):
            raise ValidationError(
                {"subtype": f"'{self.subtype}' is not a valid {self.type} subtype."}
            )
        # income and expense start every period at zero
        if self.type not in BALANCE_SHEET_TYPES and self.opening_balance:
            raise ValidationError(
                {"opening_balance": "Only asset, liability and equity accounts "
                                    "carry an opening balance."}
            )

        if self.parent_id:
            if self.pk and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent.")
            # sub-accounts roll up into a parent of the same type
            if self.parent.type != self.type:
                raise ValidationError(
                    "Parent & child accounts must have the same type."
                )

    def save(self, *args, **kwargs):
        """Enforce chart immutability
        (can’t change the type of an account used in journal lines)"""
        self.level = self.parent.level + 1 if self.parent_id else 0
        self.full_clean()

        if self.pk:
            old = Account.objects.filter(pk=self.pk).only("type").first()
            if old and old.type != self.type:
                # lazy import, journal imports account
                from .journal import JournalEntryLine

                if JournalEntryLine.objects.filter(account=self).exists():
                    raise ValidationError(
                        "Cannot change the type of an account used in journal lines."
                    )
        return super().save(*args, **kwargs)

    def soft_delete(self):
        self.is_active = False
        self.deleted_at = timezone.now()
        self.save(update_fields=["is_active", "deleted_at", "level"])
