from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


# ---------- Fiscal year (accounting period) ----------
class FiscalYear(models.Model):
    # Each fiscal year is the time bucket that gets closed into retained earnings

    # Human-readable label for the year
    name = models.CharField(max_length=50, unique=True)  # Example: "FY2024"

    # Define the exact date range of the fiscal year
    start_date = models.DateField()
    end_date = models.DateField()

    # Indicate whether the books for this year are closed
    is_closed = models.BooleanField(default=False)
    """
        When is_closed=True:
            No new entries or postings dated inside the year.
            Prevents backdating transactions that could corrupt finalized reports.
    """
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    # The year-end entry that moved net income into retained earnings
    closing_entry = models.ForeignKey(
        "JournalEntry",
        null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )

    class Meta:
        indexes = [models.Index(fields=["start_date", "end_date"], name="fiscalyear_range_idx")]
        # Default query ordering: chronologically
        ordering = ("start_date",)

    def __str__(self):
        return self.name

    def clean(self):
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError("start_date must be before end_date")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def contains(self, date):
        return self.start_date <= date <= self.end_date
