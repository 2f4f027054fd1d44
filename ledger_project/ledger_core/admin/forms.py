from decimal import Decimal

from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet


class BalancedLinesFormSet(BaseInlineFormSet):
    """Recurring template lines must balance before the template is saved."""

    def clean(self):
        super().clean()
        debit = credit = Decimal("0.00")
        lines = 0
        for form in self.forms:
            if not hasattr(form, "cleaned_data") or not form.cleaned_data:
                continue
            if form.cleaned_data.get("DELETE"):
                continue
            debit += form.cleaned_data.get("debit") or Decimal("0.00")
            credit += form.cleaned_data.get("credit") or Decimal("0.00")
            lines += 1
        if lines < 2:
            raise ValidationError("A recurring template needs at least two lines.")
        if debit != credit:
            raise ValidationError(
                f"Template not balanced: debits={debit}, credits={credit}, "
                f"difference={debit - credit}"
            )
