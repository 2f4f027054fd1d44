import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models

SUBTYPE_CHOICES = [
    ("cash", "Cash"),
    ("bank", "Bank"),
    ("accounts_receivable", "Accounts Receivable"),
    ("inventory", "Inventory"),
    ("prepaid", "Prepaid"),
    ("fixed_asset", "Fixed Asset"),
    ("other_asset", "Other Asset"),
    ("accounts_payable", "Accounts Payable"),
    ("credit_card", "Credit Card"),
    ("current_liability", "Current Liability"),
    ("long_term_liability", "Long Term Liability"),
    ("other_liability", "Other Liability"),
    ("owners_equity", "Owners Equity"),
    ("retained_earnings", "Retained Earnings"),
    ("other_equity", "Other Equity"),
    ("sales", "Sales"),
    ("other_income", "Other Income"),
    ("cost_of_goods_sold", "Cost Of Goods Sold"),
    ("operating_expense", "Operating Expense"),
    ("payroll", "Payroll"),
    ("other_expense", "Other Expense"),
]

SOURCE_CHOICES = [
    ("manual", "Manual"),
    ("sales", "Sales (order)"),
    ("expense", "Expense"),
    ("purchase", "Purchase order"),
    ("refund", "Refund"),
    ("payment", "Payment"),
    ("recurring", "Recurring template"),
    ("adjustment", "Adjustment (reversal)"),
    ("closing", "Year-end closing"),
]


def money(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, **kwargs)


def user_fk():
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name="+",
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("type", models.CharField(choices=[("asset", "Asset"), ("liability", "Liability"), ("equity", "Equity"), ("income", "Income"), ("expense", "Expense")], max_length=10)),
                ("subtype", models.CharField(choices=SUBTYPE_CHOICES, max_length=32)),
                ("level", models.PositiveSmallIntegerField(default=0)),
                ("opening_balance", money(default=Decimal("0.00"))),
                ("opening_balance_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("is_system", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="ledger_core.account")),
            ],
            options={
                "ordering": ("code",),
                "indexes": [
                    models.Index(fields=["type", "subtype"], name="account_type_subtype_idx"),
                    models.Index(fields=["parent"], name="account_parent_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                    models.Index(fields=["created_at"], name="audit_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="EntrySequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("prefix", models.CharField(max_length=10)),
                ("year", models.PositiveIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("prefix", "year"), name="uq_entry_sequence_prefix_year"),
                ],
            },
        ),
        migrations.CreateModel(
            name="FiscalYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("is_closed", models.BooleanField(default=False)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_by", user_fk()),
            ],
            options={
                "ordering": ("start_date",),
                "indexes": [
                    models.Index(fields=["start_date", "end_date"], name="fiscalyear_range_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_number", models.CharField(max_length=32, unique=True)),
                ("entry_date", models.DateField()),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("status", models.CharField(choices=[("draft", "Draft"), ("posted", "Posted"), ("void", "Void")], default="draft", max_length=10)),
                ("source", models.CharField(choices=SOURCE_CHOICES, default="manual", max_length=20)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("total_debit", money(default=Decimal("0.00"))),
                ("total_credit", money(default=Decimal("0.00"))),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_by", user_fk()),
                ("fiscal_year", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="journal_entries", to="ledger_core.fiscalyear")),
                ("posted_by", user_fk()),
                ("voided_by", user_fk()),
            ],
            options={
                "verbose_name_plural": "journal entries",
                "ordering": ("entry_date", "entry_number"),
                "indexes": [
                    models.Index(fields=["entry_date"], name="je_entry_date_idx"),
                    models.Index(fields=["status", "entry_date"], name="je_status_date_idx"),
                    models.Index(fields=["source", "source_id"], name="je_source_idx"),
                ],
            },
        ),
        migrations.AddField(
            model_name="fiscalyear",
            name="closing_entry",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry"),
        ),
        migrations.CreateModel(
            name="JournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("debit", money(default=Decimal("0.00"))),
                ("credit", money(default=Decimal("0.00"))),
                ("line_order", models.PositiveIntegerField(default=0)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="journal_lines", to="ledger_core.account")),
                ("journal_entry", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journalentry")),
            ],
            options={
                "ordering": ("line_order", "id"),
                "indexes": [
                    models.Index(fields=["account"], name="jel_account_idx"),
                    models.Index(fields=["journal_entry", "line_order"], name="jel_entry_order_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("debit__gte", 0), ("credit__gte", 0)), name="jel_non_negative_amounts"),
                    models.CheckConstraint(
                        condition=models.Q(models.Q(("debit", 0), ("credit__gt", 0)), models.Q(("debit__gt", 0), ("credit", 0)), _connector="OR"),
                        name="jel_debit_xor_credit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RecurringJournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("frequency", models.CharField(choices=[("daily", "Daily"), ("weekly", "Weekly"), ("monthly", "Monthly"), ("quarterly", "Quarterly"), ("yearly", "Yearly")], max_length=10)),
                ("day_of_week", models.PositiveSmallIntegerField(blank=True, choices=[(0, "Monday"), (1, "Tuesday"), (2, "Wednesday"), (3, "Thursday"), (4, "Friday"), (5, "Saturday"), (6, "Sunday")], null=True)),
                ("day_of_month", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("month_of_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("next_run_date", models.DateField(blank=True, null=True)),
                ("last_run_date", models.DateField(blank=True, null=True)),
                ("total_amount", money(default=Decimal("0.00"))),
                ("occurrences", models.PositiveIntegerField(default=0)),
                ("max_occurrences", models.PositiveIntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", user_fk()),
            ],
            options={
                "ordering": ("next_run_date", "name"),
                "indexes": [
                    models.Index(fields=["is_active", "next_run_date"], name="recurring_due_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RecurringJournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("debit", money(default=Decimal("0.00"))),
                ("credit", money(default=Decimal("0.00"))),
                ("line_order", models.PositiveIntegerField(default=0)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="recurring_lines", to="ledger_core.account")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.recurringjournalentry")),
            ],
            options={
                "ordering": ("line_order", "id"),
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("debit__gte", 0), ("credit__gte", 0)), name="rjel_non_negative_amounts"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RecurringRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("run_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("journal_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="recurring_run", to="ledger_core.journalentry")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="runs", to="ledger_core.recurringjournalentry")),
            ],
            options={
                "ordering": ("-run_date",),
                "constraints": [
                    models.UniqueConstraint(fields=("template", "run_date"), name="uq_recurring_run_per_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("bank_name", models.CharField(blank=True, default="", max_length=200)),
                ("account_number", models.CharField(blank=True, default="", max_length=50)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("opening_balance", money(default=Decimal("0.00"))),
                ("current_balance", money(default=Decimal("0.00"))),
                ("last_reconciled_date", models.DateField(blank=True, null=True)),
                ("last_reconciled_balance", money(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bank_accounts", to="ledger_core.account")),
            ],
            options={
                "ordering": ("name",),
                "constraints": [
                    models.UniqueConstraint(fields=("name",), name="uq_bankaccount_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_date", models.DateField()),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("amount", money()),
                ("type", models.CharField(choices=[("deposit", "Deposit"), ("withdrawal", "Withdrawal"), ("transfer", "Transfer"), ("fee", "Bank fee"), ("interest", "Interest"), ("other", "Other")], default="other", max_length=20)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("matched", "Matched"), ("reconciled", "Reconciled")], default="pending", max_length=20)),
                ("is_imported", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="ledger_core.bankaccount")),
                ("journal_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="bank_transactions", to="ledger_core.journalentry")),
            ],
            options={
                "ordering": ("transaction_date", "id"),
                "indexes": [
                    models.Index(fields=["bank_account", "transaction_date"], name="bt_account_date_idx"),
                    models.Index(fields=["bank_account", "status"], name="bt_account_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankReconciliation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("statement_date", models.DateField()),
                ("statement_balance", money()),
                ("opening_balance", money(default=Decimal("0.00"))),
                ("cleared_balance", money(default=Decimal("0.00"))),
                ("gl_balance", money(default=Decimal("0.00"))),
                ("difference", money(default=Decimal("0.00"))),
                ("status", models.CharField(choices=[("in_progress", "In progress"), ("completed", "Completed")], default="in_progress", max_length=20)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reconciliations", to="ledger_core.bankaccount")),
                ("cleared_transactions", models.ManyToManyField(blank=True, related_name="selected_in", to="ledger_core.banktransaction")),
                ("completed_by", user_fk()),
            ],
            options={
                "ordering": ("-statement_date", "-id"),
                "indexes": [
                    models.Index(fields=["bank_account", "status"], name="recon_account_status_idx"),
                ],
            },
        ),
        migrations.AddField(
            model_name="banktransaction",
            name="reconciliation",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reconciled_transactions", to="ledger_core.bankreconciliation"),
        ),
    ]
