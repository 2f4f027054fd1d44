from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.apps import apps
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import (ConcurrencyError, LedgerValidationError,
                          StateConflictError, UnbalancedJournalError)
from ..managers import JournalEntryManager, JournalLineManager
from .account import Account
from .fiscal_year import FiscalYear

CENT = Decimal("0.01")

DRAFT = "draft"
POSTED = "posted"
VOID = "void"

JOURNAL_STATUS = [
    (DRAFT, "Draft"),  # still editable
    (POSTED, "Posted"),  # finalized, affects balances
    (VOID, "Void"),  # terminal, kept for audit, excluded from balances
]


def to_money(value) -> Decimal:
    """Coerce user input to a 2-decimal Decimal (never via float)."""
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------- Source descriptor ----------
class SourceKind(models.TextChoices):
    MANUAL = "manual", "Manual"
    SALES = "sales", "Sales (order)"
    EXPENSE = "expense", "Expense"
    PURCHASE = "purchase", "Purchase order"
    REFUND = "refund", "Refund"
    PAYMENT = "payment", "Payment"
    RECURRING = "recurring", "Recurring template"
    ADJUSTMENT = "adjustment", "Adjustment (reversal)"
    CLOSING = "closing", "Year-end closing"


# Which document each kind refers to.
# Kinds living outside the ledger are resolved by their own modules.
SOURCE_DOCUMENTS = {
    SourceKind.MANUAL: None,
    SourceKind.SALES: "Order",
    SourceKind.EXPENSE: "Expense",
    SourceKind.PURCHASE: "PurchaseOrder",
    SourceKind.REFUND: "Refund",
    SourceKind.PAYMENT: "Payment",
    SourceKind.RECURRING: "ledger_core.RecurringJournalEntry",
    SourceKind.ADJUSTMENT: "ledger_core.JournalEntry",
    SourceKind.CLOSING: "ledger_core.FiscalYear",
}


@dataclass(frozen=True)
class SourceRef:
    """Tagged reference to the business event behind an entry."""

    kind: SourceKind
    id: Optional[int] = None

    def __post_init__(self):
        kind = SourceKind(self.kind)
        object.__setattr__(self, "kind", kind)
        if kind == SourceKind.MANUAL and self.id is not None:
            raise LedgerValidationError("Manual entries carry no source id.")
        if kind != SourceKind.MANUAL and self.id is None:
            raise LedgerValidationError(f"A {kind.value} source requires an id.")

    @classmethod
    def manual(cls):
        return cls(SourceKind.MANUAL)

    @property
    def document_type(self):
        return SOURCE_DOCUMENTS[self.kind]

    @property
    def is_internal(self):
        return bool(self.document_type) and self.document_type.startswith("ledger_core.")

    @property
    def label(self):
        match self.kind:
            case SourceKind.MANUAL:
                return "Manual entry"
            case SourceKind.SALES:
                return f"Order #{self.id}"
            case SourceKind.EXPENSE:
                return f"Expense #{self.id}"
            case SourceKind.PURCHASE:
                return f"Purchase order #{self.id}"
            case SourceKind.REFUND:
                return f"Refund #{self.id}"
            case SourceKind.PAYMENT:
                return f"Payment #{self.id}"
            case SourceKind.RECURRING:
                return f"Recurring template #{self.id}"
            case SourceKind.ADJUSTMENT:
                return f"Reversal of entry #{self.id}"
            case SourceKind.CLOSING:
                return f"Year-end close of fiscal year #{self.id}"
        raise ValueError(f"Unhandled source kind: {self.kind}")

    def resolve(self):
        """Load the referenced object when it lives in the ledger itself."""
        if not self.is_internal:
            return None
        model = apps.get_model(self.document_type)
        return model.objects.filter(pk=self.id).first()


# ---------- Entry number counter ----------
class EntrySequence(models.Model):
    """ One row per (prefix, calendar year).
        Numbers are allocated by locking this row and incrementing it,
        never by reading the highest existing entry number. """

    prefix = models.CharField(max_length=10)  # "JE", "AP", "REC"
    year = models.PositiveIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["prefix", "year"], name="uq_entry_sequence_prefix_year"
            )
        ]

    def __str__(self):
        return f"{self.prefix}-{self.year}: {self.last_value}"


# ---------- Journal (Header) & JournalEntryLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Externally visible number, e.g. "JE-2024-000042"
    entry_number = models.CharField(max_length=32, unique=True)
    entry_date = models.DateField()
    # Explicit fiscal year (resolved by date when not given)
    fiscal_year = models.ForeignKey(
        FiscalYear,
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # Prevent breaking historical ledger
        related_name="journal_entries",
    )
    reference = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10,
        choices=JOURNAL_STATUS,
        default=DRAFT,
        # draft --post--> posted --void--> void
    )

    # Tagged source descriptor, see SourceRef
    source = models.CharField(
        max_length=20, choices=SourceKind.choices, default=SourceKind.MANUAL
    )
    source_id = models.BigIntegerField(null=True, blank=True)

    # Cached totals, recomputed from lines
    total_debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Audit fields
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    posted_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")

    # Bumped on every status transition (optimistic check)
    version = models.PositiveIntegerField(default=0)

    objects = JournalEntryManager()

    class Meta:
        ordering = ("entry_date", "entry_number")
        verbose_name_plural = "journal entries"
        # Speed up listing & filtering
        # (e.g. show all posted entries this month)
        indexes = [
            models.Index(fields=["entry_date"], name="je_entry_date_idx"),
            models.Index(fields=["status", "entry_date"], name="je_status_date_idx"),
            models.Index(fields=["source", "source_id"], name="je_source_idx"),
        ]

    # Fields that freeze once an entry leaves draft
    FROZEN_FIELDS = (
        "entry_number", "entry_date", "fiscal_year_id", "reference",
        "description", "source", "source_id", "total_debit", "total_credit",
    )

    def __str__(self):
        return f"{self.entry_number} {self.entry_date} [{self.status}]"

    @property
    def source_ref(self):
        return SourceRef(self.source, self.source_id)

    def governing_fiscal_year(self):
        """Assigned fiscal year, else the one covering entry_date (None if no year does)."""
        if self.fiscal_year_id:
            return self.fiscal_year
        return FiscalYear.objects.filter(
            start_date__lte=self.entry_date, end_date__gte=self.entry_date
        ).first()

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        return self.lines.all().totals()

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def recalculate_totals(self):
        self.total_debit, self.total_credit = self.compute_totals()
        JournalEntry.objects.filter(pk=self.pk).update(
            total_debit=self.total_debit, total_credit=self.total_credit
        )

    # Post the entry safely inside a database transaction
    @transaction.atomic
    def post(self, user=None):
        """
        draft → posted.
        The entry row and its lines stay locked from the balance check
        until the status flip, so no line can change in between.
        """
        # Lock row + lines to prevent concurrent modifications
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        lines = list(je.lines.select_for_update())

        if je.status != DRAFT:
            raise StateConflictError(
                f"Cannot post {je.entry_number}: status is {je.status}, expected draft."
            )
        if not lines:  # Prevent posting an empty entry
            raise LedgerValidationError(
                f"{je.entry_number} must have at least one line to be posted.")
        fiscal_year = je.governing_fiscal_year()
        if fiscal_year and fiscal_year.is_closed:
            raise LedgerValidationError(
                f"Fiscal year {fiscal_year} is closed.")
        inactive = [ln.account.code for ln in lines if not ln.account.can_post]
        if inactive:
            raise LedgerValidationError(
                f"Inactive accounts cannot be posted to: {', '.join(inactive)}")

        # Recompute totals fresh from the locked rows, ignore cached values
        total_debit = sum((ln.debit for ln in lines), Decimal("0.00"))
        total_credit = sum((ln.credit for ln in lines), Decimal("0.00"))
        # Enforce double-entry rule: exact Decimal comparison at 2 places
        if total_debit.quantize(CENT) != total_credit.quantize(CENT):
            raise UnbalancedJournalError(total_debit, total_credit)

        updated = JournalEntry.objects.filter(
            pk=je.pk, status=DRAFT, version=je.version
        ).update(
            status=POSTED,
            posted_by=user,
            posted_at=timezone.now(),
            fiscal_year=fiscal_year,
            total_debit=total_debit,
            total_credit=total_credit,
            version=models.F("version") + 1,
        )
        if updated != 1:
            raise ConcurrencyError(f"{je.entry_number} changed while posting.")

        self.refresh_from_db()
        return self

    @transaction.atomic
    def void(self, reason, user=None):
        """
        posted → void. Lines are left untouched (audit trail);
        balances exclude void entries.
        """
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)

        if je.status != POSTED:
            raise StateConflictError(
                f"Cannot void {je.entry_number}: status is {je.status}, expected posted."
            )
        if not reason or not reason.strip():
            raise LedgerValidationError("A void reason is required.")
        fiscal_year = je.governing_fiscal_year()
        if fiscal_year and fiscal_year.is_closed:
            raise LedgerValidationError(
                f"Fiscal year {fiscal_year} is closed.")

        updated = JournalEntry.objects.filter(
            pk=je.pk, status=POSTED, version=je.version
        ).update(
            status=VOID,
            voided_by=user,
            voided_at=timezone.now(),
            void_reason=reason.strip(),
            version=models.F("version") + 1,
        )
        if updated != 1:
            raise ConcurrencyError(f"{je.entry_number} changed while voiding.")

        self.refresh_from_db()
        return self

    # Control status changes
    def transition_to(self, new_status, user=None, reason=None):
        allowed = {
            DRAFT: [POSTED],
            POSTED: [VOID],
            VOID: [],
        }
        if new_status not in allowed.get(self.status, []):
            raise StateConflictError(
                f"Cannot go from {self.status} to {new_status}")

        if new_status == POSTED:
            return self.post(user=user)
        return self.void(reason, user=user)

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            orig = JournalEntry.objects.filter(pk=self.pk).first()
            if orig and orig.status != DRAFT:
                # posted / void entries: only status transitions are allowed,
                # and those go through post() / void()
                if self.status != orig.status:
                    raise ValidationError(
                        f"Cannot move a {orig.status} journal to {self.status}")
                changed = [
                    f for f in self.FROZEN_FIELDS
                    if getattr(orig, f) != getattr(self, f)
                ]
                if changed:
                    raise ValidationError(
                        f"Cannot modify a {orig.status} JournalEntry "
                        f"({', '.join(changed)}). It is immutable."
                    )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Only drafts may disappear; posted/void stay for audit
        if self.status != DRAFT:
            raise ValidationError(
                f"Cannot delete a {self.status} JournalEntry; void it instead.")
        return super().delete(*args, **kwargs)


class JournalEntryLine(models.Model):  # Stores Lines ( credits / debits )
    """
    Each line belongs to one journal entry and to one GL account,
    and carries a debit XOR a credit.
    """

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    # Must point to one Account (can’t delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines")
    description = models.CharField(max_length=400, blank=True, default="")
    debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # Deterministic display / reversal order
    line_order = models.PositiveIntegerField(default=0)

    objects = JournalLineManager()

    class Meta:
        ordering = ("line_order", "id")
        # For fast queries like “all lines for this account”
        indexes = [
            models.Index(fields=["account"], name="jel_account_idx"),
            models.Index(fields=["journal_entry", "line_order"], name="jel_entry_order_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="jel_non_negative_amounts",
            ),
            # exactly one side is nonzero
            models.CheckConstraint(
                condition=(
                    (models.Q(debit=0) & models.Q(credit__gt=0)) |
                    (models.Q(debit__gt=0) & models.Q(credit=0))
                ),
                name="jel_debit_xor_credit",
            ),
        ]

    def __str__(self):
        return f"{self.journal_entry_id} | {self.account.code} | D:{self.debit} C:{self.credit}"

    @property
    def net_amount(self):
        return self.debit - self.credit

    def is_debit(self):
        return self.debit > 0

    def is_credit(self):
        return self.credit > 0

    def clean(self):
        # Ensure no negative values sneak in
        # (redundant with CheckConstraint but useful at app-level)
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError(
                "JournalEntryLine should not have both debit and credit > 0")
        if self.debit == 0 and self.credit == 0:
            raise ValidationError(
                "JournalEntryLine requires a non-0 amount on either debit or credit")

        if not self.pk and self.account_id and not self.account.can_post:
            raise ValidationError(
                f"Account {self.account.code} is inactive and cannot receive lines.")

        # Lines are frozen once the parent entry leaves draft
        if self.journal_entry_id:
            status = JournalEntry.objects.filter(
                pk=self.journal_entry_id).values_list("status", flat=True).first()
            if status and status != DRAFT:
                raise ValidationError(
                    f"Cannot add or modify lines: parent JournalEntry is {status}.")

    def save(self, *args, **kwargs):
        # round to 2 decimal places before validating
        self.debit = to_money(self.debit)
        self.credit = to_money(self.credit)
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Prevent deletion if parent journal is no longer a draft
        if JournalEntry.objects.filter(
            pk=self.journal_entry_id).exclude(status=DRAFT).exists():
            raise ValidationError(
                "Cannot delete JournalEntryLine: parent JournalEntry is not a draft.")
        return super().delete(*args, **kwargs)
