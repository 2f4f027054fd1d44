from .account import AccountAdmin, FiscalYearAdmin
from .actions import (close_fiscal_years, complete_reconciliations,
                      post_journal_entries, reverse_journal_entries,
                      run_recurring_templates, toggle_recurring_templates,
                      void_journal_entries)
from .auditlog import AuditLogAdmin
from .banking import (BankAccountAdmin, BankReconciliationAdmin,
                      BankTransactionAdmin)
from .forms import BalancedLinesFormSet
from .inlines import JournalEntryLineInline, RecurringLineInline
from .journal import EntrySequenceAdmin, JournalEntryAdmin
from .ReadOnly import ReadOnlyAdmin
from .recurring import RecurringJournalEntryAdmin, RecurringRunAdmin
