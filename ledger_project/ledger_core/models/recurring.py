from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .account import Account
from .journal import JournalEntry, to_money

FREQUENCIES = [
    ("daily", "Daily"),
    ("weekly", "Weekly"),
    ("monthly", "Monthly"),
    ("quarterly", "Quarterly"),
    ("yearly", "Yearly"),
]

WEEKDAYS = [
    (0, "Monday"),
    (1, "Tuesday"),
    (2, "Wednesday"),
    (3, "Thursday"),
    (4, "Friday"),
    (5, "Saturday"),
    (6, "Sunday"),
]


# ---------- Recurring journal templates ----------
class RecurringJournalEntry(models.Model):
    """
    Template for a journal entry generated on a schedule
    (rent, depreciation, subscriptions...).
    The template is balanced when saved, every run copies its lines
    into a new posted entry.
    """

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    frequency = models.CharField(max_length=10, choices=FREQUENCIES)

    # Schedule anchors, which ones apply depends on frequency
    day_of_week = models.PositiveSmallIntegerField(
        null=True, blank=True, choices=WEEKDAYS)  # weekly only, descriptive
    day_of_month = models.PositiveSmallIntegerField(
        null=True, blank=True)  # monthly / quarterly / yearly
    month_of_year = models.PositiveSmallIntegerField(
        null=True, blank=True)  # yearly only, descriptive

    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    next_run_date = models.DateField(null=True, blank=True)
    last_run_date = models.DateField(null=True, blank=True)

    # Sum of the debit side of the lines
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    occurrences = models.PositiveIntegerField(default=0)
    max_occurrences = models.PositiveIntegerField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("next_run_date", "name")
        indexes = [models.Index(fields=["is_active", "next_run_date"], name="recurring_due_idx")]

    def __str__(self):
        return f"{self.name} ({self.frequency})"

    def clean(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValidationError("end_date cannot be before start_date")

        if self.day_of_week is not None and self.frequency != "weekly":
            raise ValidationError(
                {"day_of_week": "day_of_week only applies to weekly templates."})
        if self.day_of_month is not None:
            if self.frequency not in ("monthly", "quarterly", "yearly"):
                raise ValidationError(
                    {"day_of_month": "day_of_month only applies to monthly, "
                                     "quarterly or yearly templates."})
            if not 1 <= self.day_of_month <= 31:
                raise ValidationError(
                    {"day_of_month": "day_of_month must be between 1 and 31."})
        if self.month_of_year is not None:
            if self.frequency != "yearly":
                raise ValidationError(
                    {"month_of_year": "month_of_year only applies to yearly templates."})
            if not 1 <= self.month_of_year <= 12:
                raise ValidationError(
                    {"month_of_year": "month_of_year must be between 1 and 12."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def has_reached_limit(self):
        return (
            self.max_occurrences is not None
            and self.occurrences >= self.max_occurrences
        )


class RecurringJournalEntryLine(models.Model):
    template = models.ForeignKey(
        RecurringJournalEntry, on_delete=models.CASCADE, related_name="lines")
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="recurring_lines")
    description = models.CharField(max_length=400, blank=True, default="")
    debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    line_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("line_order", "id")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="rjel_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.template_id} | {self.account.code} | D:{self.debit} C:{self.credit}"

    def clean(self):
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if (self.debit > 0) == (self.credit > 0):
            raise ValidationError(
                "Each template line needs exactly one of debit or credit.")

    def save(self, *args, **kwargs):
        self.debit = to_money(self.debit)
        self.credit = to_money(self.credit)
        self.full_clean()
        return super().save(*args, **kwargs)


class RecurringRun(models.Model):
    """ Claim for one template on one day.
        The unique (template, run_date) pair makes a second run
        on the same day a no-op. """

    template = models.ForeignKey(
        RecurringJournalEntry, on_delete=models.CASCADE, related_name="runs")
    run_date = models.DateField()
    journal_entry = models.OneToOneField(
        JournalEntry,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="recurring_run"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-run_date",)
        constraints = [
            models.UniqueConstraint(
                fields=["template", "run_date"], name="uq_recurring_run_per_day"
            )
        ]

    def __str__(self):
        return f"{self.template} @ {self.run_date}"
