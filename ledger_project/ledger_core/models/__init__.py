from .account import (AC_TYPES, BALANCE_SHEET_TYPES, DEBIT_NORMAL_TYPES,
                      SUBTYPES, Account)
from .auditlog import AuditLog
from .banking import BankAccount, BankReconciliation, BankTransaction
from .fiscal_year import FiscalYear
from .journal import (DRAFT, POSTED, VOID, EntrySequence, JournalEntry,
                      JournalEntryLine, SourceKind, SourceRef, to_money)
from .recurring import (RecurringJournalEntry, RecurringJournalEntryLine,
                        RecurringRun)

__all__ = [
    "AC_TYPES",
    "BALANCE_SHEET_TYPES",
    "DEBIT_NORMAL_TYPES",
    "SUBTYPES",
    "Account",
    "AuditLog",
    "BankAccount",
    "BankReconciliation",
    "BankTransaction",
    "FiscalYear",
    "DRAFT",
    "POSTED",
    "VOID",
    "EntrySequence",
    "JournalEntry",
    "JournalEntryLine",
    "SourceKind",
    "SourceRef",
    "to_money",
    "RecurringJournalEntry",
    "RecurringJournalEntryLine",
    "RecurringRun",
]
