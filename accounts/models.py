# accounts/models.py
"""
Cash ledgers for the hospital and its two corners.

Each Account keeps a running ``balance``. Every mutation goes through an
Account method so the balance and the ledger rows change together inside
one database transaction with the account row locked.
"""
import logging
from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction as db_transaction
from django.db.models import Q, Sum, Value, DecimalField
from django.db.models.functions import Coalesce

from core.middleware import get_current_user
from core.utils import get_local_today
from .exceptions import AccountError, InsufficientBalanceError, UnknownAccountError

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
_ONE_DAY = timedelta(days=1)


def _money_sum(field='amount', **filter_kwargs):
    aggregate = Sum(field, filter=Q(**filter_kwargs)) if filter_kwargs else Sum(field)
    return Coalesce(
        aggregate,
        Value(ZERO),
        output_field=DecimalField(max_digits=14, decimal_places=2)
    )


class LedgerQuerySet(models.QuerySet):
    date_field = 'date'

    def between(self, start=None, end=None):
        filters = {}
        if start:
            filters[f'{self.date_field}__gte'] = start
        if end:
            filters[f'{self.date_field}__lte'] = end
        return self.filter(**filters)

    def before(self, day):
        return self.filter(**{f'{self.date_field}__lt': day})

    def total(self):
        return self.aggregate(total=_money_sum())['total']


class FundTransactionQuerySet(LedgerQuerySet):
    date_field = 'date'

    def fund_in(self):
        return self.filter(type=FundTransaction.FUND_IN)

    def fund_out(self):
        return self.filter(type=FundTransaction.FUND_OUT)

    def totals(self):
        result = self.aggregate(
            fund_in=_money_sum(type=FundTransaction.FUND_IN),
            fund_out=_money_sum(type=FundTransaction.FUND_OUT),
        )
        result['net'] = result['fund_in'] - result['fund_out']
        return result


class TransactionQuerySet(LedgerQuerySet):
    date_field = 'transaction_date'

    def income(self):
        return self.filter(type=Transaction.INCOME)

    def expense(self):
        return self.filter(type=Transaction.EXPENSE)

    def search(self, term):
        term = (term or '').strip()
        if not term:
            return self
        return self.filter(
            Q(description__icontains=term) |
            Q(voucher_no__icontains=term) |
            Q(category_name__icontains=term)
        )

    def totals(self):
        result = self.aggregate(
            income=_money_sum(type=Transaction.INCOME),
            expense=_money_sum(type=Transaction.EXPENSE),
            count=models.Count('id'),
        )
        result['net'] = result['income'] - result['expense']
        return result


class Account(models.Model):
    HOSPITAL = 'hospital'
    MEDICINE = 'medicine'
    OPTICS = 'optics'

    KIND_CHOICES = [
        (HOSPITAL, 'Hospital'),
        (MEDICINE, 'Medicine Corner'),
        (OPTICS, 'Optics Corner'),
    ]

    # Voucher prefix letter and the role module guarding each account
    PREFIXES = {HOSPITAL: 'H', MEDICINE: 'M', OPTICS: 'O'}
    PERMISSIONS = {
        HOSPITAL: 'hospital_account',
        MEDICINE: 'medicine_account',
        OPTICS: 'optics_account',
    }

    kind = models.CharField(max_length=20, choices=KIND_CHOICES, unique=True)
    name = models.CharField(max_length=100)
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO,
        help_text='Manual opening balance carried in from before the ledger started'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['kind']

    def __str__(self):
        return self.name

    @classmethod
    def for_kind(cls, kind):
        """Get the account of a kind, creating it on first use"""
        labels = dict(cls.KIND_CHOICES)
        if kind not in labels:
            raise UnknownAccountError(f'Unknown account: {kind}')
        account, _ = cls.objects.get_or_create(
            kind=kind,
            defaults={'name': f'{labels[kind]} Account'}
        )
        return account

    @property
    def prefix(self):
        return self.PREFIXES[self.kind]

    @property
    def permission(self):
        return self.PERMISSIONS[self.kind]

    def _lock(self):
        return Account.objects.select_for_update().get(pk=self.pk)

    def _apply(self, locked, delta):
        locked.balance += delta
        locked.save(update_fields=['balance', 'updated_at'])
        self.balance = locked.balance

    @staticmethod
    def _clean_amount(amount):
        amount = Decimal(str(amount))
        if amount <= 0:
            raise AccountError('Amount must be greater than zero.')
        return amount

    def generate_voucher_no(self, code, on_date=None):
        """
        Next voucher number of the day, e.g. HFI-20240115-0003.

        ``code`` is FI/FO for fund transactions and I/E for income/expense.
        """
        on_date = on_date or get_local_today()
        prefix = f'{self.prefix}{code}-{on_date:%Y%m%d}-'
        model = FundTransaction if code.startswith('F') else Transaction
        last = (
            model.objects.filter(voucher_no__startswith=prefix)
            .order_by('-voucher_no')
            .values_list('voucher_no', flat=True)
            .first()
        )
        sequence = int(last.rsplit('-', 1)[1]) + 1 if last else 1
        return f'{prefix}{sequence:04d}'

    # Fund transactions

    def add_fund(self, amount, purpose, description='', date=None, user=None):
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            self._apply(locked, amount)
            fund = FundTransaction.objects.create(
                account=self,
                voucher_no=self.generate_voucher_no('FI'),
                type=FundTransaction.FUND_IN,
                amount=amount,
                purpose=purpose,
                description=description,
                date=date or get_local_today(),
                added_by=user or get_current_user(),
            )
        logger.info("%s fund in %s: %s", self.kind, fund.voucher_no, amount)
        return fund

    def withdraw_fund(self, amount, purpose, description='', date=None, user=None):
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            if amount > locked.balance:
                logger.warning(
                    "%s fund out of %s refused, balance is %s", self.kind, amount, locked.balance
                )
                raise InsufficientBalanceError(self, amount)
            self._apply(locked, -amount)
            fund = FundTransaction.objects.create(
                account=self,
                voucher_no=self.generate_voucher_no('FO'),
                type=FundTransaction.FUND_OUT,
                amount=amount,
                purpose=purpose,
                description=description,
                date=date or get_local_today(),
                added_by=user or get_current_user(),
            )
        logger.info("%s fund out %s: %s", self.kind, fund.voucher_no, amount)
        return fund

    def update_fund_transaction(self, fund, amount, purpose=None, description=None, date=None):
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            fund = FundTransaction.objects.select_for_update().get(pk=fund.pk, account=self)
            diff = amount - fund.amount
            delta = diff if fund.type == FundTransaction.FUND_IN else -diff
            if delta < 0 and -delta > locked.balance:
                raise InsufficientBalanceError(self, amount)
            self._apply(locked, delta)
            fund.amount = amount
            if purpose is not None:
                fund.purpose = purpose
            if description is not None:
                fund.description = description
            if date:
                fund.date = date
            fund.save()
        logger.info("%s fund %s updated by %s", self.kind, fund.voucher_no, delta)
        return fund

    def delete_fund_transaction(self, fund):
        with db_transaction.atomic():
            locked = self._lock()
            fund = FundTransaction.objects.select_for_update().get(pk=fund.pk, account=self)
            delta = -fund.amount if fund.type == FundTransaction.FUND_IN else fund.amount
            self._apply(locked, delta)
            voucher_no = fund.voucher_no
            fund.delete()
        logger.info("%s fund %s deleted, balance adjusted by %s", self.kind, voucher_no, delta)

    # Income and expense

    def add_income(self, amount, category, description='', date=None, user=None,
                   reference_type='', reference_id=None):
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            category_obj = AccountCategory.resolve(self, AccountCategory.INCOME, category)
            self._apply(locked, amount)
            txn = Transaction.objects.create(
                account=self,
                voucher_no=self.generate_voucher_no('I'),
                type=Transaction.INCOME,
                amount=amount,
                category=category_obj,
                category_name=category_obj.name if category_obj else '',
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                transaction_date=date or get_local_today(),
                created_by=user or get_current_user(),
            )
        logger.info("%s income %s (%s): %s", self.kind, txn.voucher_no, txn.category_name, amount)
        return txn

    def add_expense(self, amount, category, description='', date=None, user=None,
                    reference_type='', reference_id=None):
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            if amount > locked.balance:
                logger.warning(
                    "%s expense of %s refused, balance is %s", self.kind, amount, locked.balance
                )
                raise InsufficientBalanceError(self, amount)
            category_obj = AccountCategory.resolve(self, AccountCategory.EXPENSE, category)
            self._apply(locked, -amount)
            txn = Transaction.objects.create(
                account=self,
                voucher_no=self.generate_voucher_no('E'),
                type=Transaction.EXPENSE,
                amount=amount,
                category=category_obj,
                category_name=category_obj.name if category_obj else '',
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                transaction_date=date or get_local_today(),
                created_by=user or get_current_user(),
            )
        logger.info("%s expense %s (%s): %s", self.kind, txn.voucher_no, txn.category_name, amount)
        return txn

    def update_transaction(self, txn, amount, category=None, description=None, date=None):
        """Change a transaction and move the balance by the signed difference"""
        amount = self._clean_amount(amount)
        with db_transaction.atomic():
            locked = self._lock()
            txn = Transaction.objects.select_for_update().get(pk=txn.pk, account=self)
            diff = amount - txn.amount
            delta = diff if txn.type == Transaction.INCOME else -diff
            if txn.type == Transaction.EXPENSE and delta < 0 and -delta > locked.balance:
                raise InsufficientBalanceError(self, amount)
            self._apply(locked, delta)
            txn.amount = amount
            if category:
                category_obj = AccountCategory.resolve(self, txn.type, category)
                txn.category = category_obj
                txn.category_name = category_obj.name
            if description is not None:
                txn.description = description
            if date:
                txn.transaction_date = date
            txn.save()
        logger.info("%s transaction %s updated by %s", self.kind, txn.voucher_no, delta)
        return txn

    def delete_transaction(self, txn):
        with db_transaction.atomic():
            locked = self._lock()
            txn = Transaction.objects.select_for_update().get(pk=txn.pk, account=self)
            delta = -txn.amount if txn.type == Transaction.INCOME else txn.amount
            self._apply(locked, delta)
            voucher_no = txn.voucher_no
            txn.delete()
        logger.info("%s transaction %s deleted, balance adjusted by %s", self.kind, voucher_no, delta)

    # Figures

    def get_balance(self, as_on=None):
        """Current balance, or the balance at the end of ``as_on``"""
        if as_on is None:
            return self.balance
        return self.opening_balance_before(as_on + _ONE_DAY)

    def opening_balance_before(self, day):
        """opening balance + fund in - fund out + income - expense, before ``day``"""
        funds = self.fund_transactions.before(day).totals()
        txns = self.transactions.before(day).totals()
        return (
            self.opening_balance
            + funds['fund_in'] - funds['fund_out']
            + txns['income'] - txns['expense']
        )

    def summary(self, start=None, end=None):
        funds = self.fund_transactions.between(start, end).totals()
        txns = self.transactions.between(start, end).totals()
        return {
            'balance': self.balance,
            'total_income': txns['income'],
            'total_expense': txns['expense'],
            'net_profit': txns['net'],
            'total_fund_in': funds['fund_in'],
            'total_fund_out': funds['fund_out'],
            'net_fund': funds['net'],
            'transaction_count': txns['count'],
        }

    def monthly_report(self, year, month):
        start = date(year, month, 1)
        end = date(year, month, monthrange(year, month)[1])
        txns = self.transactions.between(start, end)
        totals = txns.totals()
        expense_by_category = list(
            txns.expense()
            .values('category_name')
            .annotate(total=_money_sum(), count=models.Count('id'))
            .order_by('-total')
        )
        return {
            'year': year,
            'month': month,
            'start': start,
            'end': end,
            'income': totals['income'],
            'expense': totals['expense'],
            'profit': totals['net'],
            'balance': self.balance,
            'expense_by_category': expense_by_category,
        }


class AccountCategory(models.Model):
    INCOME = 'income'
    EXPENSE = 'expense'
    TYPE_CHOICES = [
        (INCOME, 'Income'),
        (EXPENSE, 'Expense'),
    ]

    account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name='categories')
    category_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['category_type', 'name']
        verbose_name_plural = 'Account categories'
        constraints = [
            models.UniqueConstraint(
                fields=['account', 'category_type', 'name'],
                name='unique_account_category'
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.get_category_type_display()})"

    @classmethod
    def resolve(cls, account, category_type, category):
        """Accept a category object or a name; unknown names are created"""
        if not category:
            return None
        if isinstance(category, cls):
            return category
        category, _ = cls.objects.get_or_create(
            account=account,
            category_type=category_type,
            name=str(category).strip(),
            defaults={'is_active': True}
        )
        return category


class FundTransaction(models.Model):
    FUND_IN = 'fund_in'
    FUND_OUT = 'fund_out'
    TYPE_CHOICES = [
        (FUND_IN, 'Fund In'),
        (FUND_OUT, 'Fund Out'),
    ]

    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='fund_transactions')
    voucher_no = models.CharField(max_length=30, unique=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    purpose = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    date = models.DateField()
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fund_transactions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = FundTransactionQuerySet.as_manager()

    class Meta:
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['account', 'date'], name='fund_account_date_idx'),
        ]

    def __str__(self):
        return f"{self.voucher_no} - {self.get_type_display()} {self.amount}"

    @property
    def is_fund_in(self):
        return self.type == self.FUND_IN


class Transaction(models.Model):
    INCOME = 'income'
    EXPENSE = 'expense'
    TYPE_CHOICES = [
        (INCOME, 'Income'),
        (EXPENSE, 'Expense'),
    ]

    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='transactions')
    voucher_no = models.CharField(max_length=30, unique=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    category = models.ForeignKey(
        AccountCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions'
    )
    # Name kept on the row so renaming a category does not rewrite history
    category_name = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    reference_type = models.CharField(max_length=50, blank=True)
    reference_id = models.PositiveIntegerField(null=True, blank=True)
    transaction_date = models.DateField()
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='account_transactions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ['-transaction_date', '-created_at']
        indexes = [
            models.Index(fields=['account', 'transaction_date'], name='txn_account_date_idx'),
            models.Index(fields=['account', 'type', 'category_name'], name='txn_account_category_idx'),
        ]

    def __str__(self):
        return f"{self.voucher_no} - {self.get_type_display()} {self.amount}"

    @property
    def is_income(self):
        return self.type == self.INCOME
