import logging

from django.db import transaction

from ..exceptions import LedgerValidationError, StateConflictError
from ..models import Account, JournalEntryLine, RecurringJournalEntryLine
from .posting import get_account

logger = logging.getLogger(__name__)

# code, name, type, subtype, is_system
DEFAULT_CHART = [
    # Assets (1000-1999)
    ("1000", "Cash", "asset", "cash", True),
    ("1010", "Bank Account", "asset", "bank", True),
    ("1100", "Accounts Receivable", "asset", "accounts_receivable", True),
    ("1200", "Inventory", "asset", "inventory", True),
    ("1300", "Prepaid Expenses", "asset", "prepaid", False),
    ("1500", "Fixed Assets", "asset", "fixed_asset", False),
    # Liabilities (2000-2999)
    ("2000", "Accounts Payable", "liability", "accounts_payable", True),
    ("2100", "Credit Card Payable", "liability", "credit_card", False),
    ("2500", "Long-term Loans", "liability", "long_term_liability", False),
    # Equity (3000-3999)
    ("3000", "Owner's Equity", "equity", "owners_equity", True),
    ("3100", "Retained Earnings", "equity", "retained_earnings", True),
    # Income (4000-4999)
    ("4000", "Sales Revenue", "income", "sales", True),
    ("4100", "Other Income", "income", "other_income", False),
    # Expenses (5000-5999)
    ("5000", "Cost of Goods Sold", "expense", "cost_of_goods_sold", True),
    ("5100", "Operating Expenses", "expense", "operating_expense", True),
    ("5200", "Payroll Expense", "expense", "payroll", False),
    ("5300", "Rent Expense", "expense", "operating_expense", False),
    ("5400", "Utilities Expense", "expense", "operating_expense", False),
    ("5900", "Bad Debt Expense", "expense", "other_expense", False),
]


def create_account(*, code, name, type, subtype, parent=None, **extra):
    if parent is not None:
        parent = get_account(parent)
    account = Account(code=code, name=name, type=type, subtype=subtype, parent=parent, **extra)
    account.save()  # full_clean: subtype vocabulary, parent type, unique code
    logger.info("Account created", extra={"code": code, "type": type})
    return account


def is_used(account):
    return (
        JournalEntryLine.objects.filter(account=account).exists()
        or RecurringJournalEntryLine.objects.filter(account=account).exists()
    )


def deactivate_account(account_id):
    """Soft delete: history stays, new lines are refused."""
    with transaction.atomic():
        account = get_account(account_id)
        if account.is_system:
            raise StateConflictError(f"System account {account.code} cannot be deactivated.")
        account.soft_delete()
    logger.info("Account deactivated", extra={"code": account.code})
    return account


def delete_account(account_id):
    """Hard delete, only for unused non-system accounts without children."""
    with transaction.atomic():
        account = get_account(account_id)
        if account.is_system:
            raise StateConflictError(f"System account {account.code} cannot be deleted.")
        if is_used(account):
            raise StateConflictError(
                f"Account {account.code} has journal lines; deactivate it instead.")
        if account.children.exists():
            raise LedgerValidationError(
                f"Account {account.code} has sub-accounts; move or delete them first.")
        code = account.code
        account.delete()
    logger.info("Account deleted", extra={"code": code})


def seed_default_accounts():
    """Install the default retail chart. Existing codes are left alone."""
    created = 0
    with transaction.atomic():
        for code, name, ac_type, subtype, is_system in DEFAULT_CHART:
            _, was_created = Account.objects.get_or_create(
                code=code,
                defaults={
                    "name": name,
                    "type": ac_type,
                    "subtype": subtype,
                    "is_system": is_system,
                },
            )
            created += was_created
    logger.info("Default chart seeded", extra={"accounts_created": created})
    return created


def hierarchical_accounts():
    """Active root accounts, each with its active sub-tree."""
    accounts = list(Account.objects.active().order_by("code"))
    children = {}
    for account in accounts:
        children.setdefault(account.parent_id, []).append(account)

    def build(node):
        return {
            "account": node,
            "children": [build(child) for child in children.get(node.pk, [])],
        }

    return [build(root) for root in children.get(None, [])]
