# accounts/tests.py
"""
Tests for the hospital, medicine and optics ledgers
"""
import re
from datetime import date, timedelta
from decimal import Decimal

from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse

from core.utils import get_local_today
from reports.exports import XLSX_CONTENT_TYPE
from users.models import Role, User
from .exceptions import InsufficientBalanceError, UnknownAccountError
from .models import Account, AccountCategory, FundTransaction, Transaction
from .statements import MAX_STATEMENT_DAYS, build_account_statement, build_daily_statement


def make_user(username, role_name, **extra):
    role, _ = Role.objects.get_or_create(
        name=role_name,
        defaults={
            'display_name': dict(Role.ROLE_CHOICES)[role_name],
            'permissions': Role.default_permissions_for(role_name),
        }
    )
    return User.objects.create_user(username=username, password='testpass123', role=role, **extra)


class AccountLedgerTest(TestCase):
    """Balance bookkeeping on the Account model"""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.account = Account.for_kind(Account.HOSPITAL)

    def test_for_kind_creates_once(self):
        again = Account.for_kind(Account.HOSPITAL)
        self.assertEqual(again.pk, self.account.pk)
        self.assertEqual(self.account.name, 'Hospital Account')

    def test_for_kind_rejects_unknown(self):
        with self.assertRaises(UnknownAccountError):
            Account.for_kind('pharmacy')

    def test_fund_in_increases_balance(self):
        fund = self.account.add_fund(Decimal('1000.00'), 'Owner investment')
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('1000.00'))
        self.assertEqual(fund.type, FundTransaction.FUND_IN)
        self.assertRegex(fund.voucher_no, r'^HFI-\d{8}-0001$')

    def test_voucher_numbers_increase_per_day(self):
        first = self.account.add_income(100, 'OPD Income')
        second = self.account.add_income(100, 'OPD Income')
        self.assertRegex(first.voucher_no, r'^HI-\d{8}-0001$')
        self.assertTrue(second.voucher_no.endswith('-0002'))

    def test_voucher_prefix_follows_account(self):
        optics = Account.for_kind(Account.OPTICS)
        optics.add_fund(50, 'Float')
        expense = optics.add_expense(20, 'Optics Purchase')
        self.assertTrue(re.match(r'^OE-\d{8}-0001$', expense.voucher_no))

    def test_fund_out_over_balance_is_refused(self):
        self.account.add_fund(100, 'Float')
        with self.assertRaises(InsufficientBalanceError):
            self.account.withdraw_fund(500, 'Bank deposit')

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('100.00'))
        self.assertEqual(self.account.fund_transactions.fund_out().count(), 0)

    def test_expense_over_balance_is_refused(self):
        with self.assertRaises(InsufficientBalanceError):
            self.account.add_expense(10, 'House Rent')
        self.assertFalse(Transaction.objects.exists())

    def test_income_creates_category_by_name(self):
        txn = self.account.add_income(250, 'Medical Test', description='Blood sugar')
        self.assertEqual(txn.category_name, 'Medical Test')
        self.assertTrue(
            AccountCategory.objects.filter(
                account=self.account, category_type=AccountCategory.INCOME, name='Medical Test'
            ).exists()
        )

    def test_update_transaction_moves_balance_by_difference(self):
        self.account.add_fund(1000, 'Float')
        expense = self.account.add_expense(300, 'House Rent')
        self.account.update_transaction(expense, 200)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('800.00'))

        income = self.account.add_income(100, 'OPD Income')
        self.account.update_transaction(income, 150)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('950.00'))

    def test_delete_reverses_the_entry(self):
        self.account.add_fund(1000, 'Float')
        expense = self.account.add_expense(400, 'House Rent')
        self.account.delete_transaction(expense)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('1000.00'))

        fund = self.account.fund_transactions.get()
        self.account.delete_fund_transaction(fund)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('0.00'))

    def test_summary_and_monthly_report(self):
        self.account.add_fund(1000, 'Float')
        self.account.add_income(500, 'OPD Income')
        self.account.add_expense(120, 'House Rent')
        self.account.add_expense(80, 'House Rent')

        summary = self.account.summary()
        self.assertEqual(summary['total_income'], Decimal('500.00'))
        self.assertEqual(summary['total_expense'], Decimal('200.00'))
        self.assertEqual(summary['net_profit'], Decimal('300.00'))
        self.assertEqual(summary['total_fund_in'], Decimal('1000.00'))

        today = get_local_today()
        report = self.account.monthly_report(today.year, today.month)
        self.assertEqual(report['profit'], Decimal('300.00'))
        self.assertEqual(report['expense_by_category'][0]['category_name'], 'House Rent')
        self.assertEqual(report['expense_by_category'][0]['count'], 2)


class StatementTest(TestCase):
    """Daily and account statements"""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.account = Account.for_kind(Account.HOSPITAL)
        self.today = get_local_today()
        self.yesterday = self.today - timedelta(days=1)

    def test_daily_statement_columns_and_closing_balance(self):
        self.account.add_fund(1000, 'Float')
        self.account.add_income(500, 'OPD Income')
        self.account.add_income(200, 'Donation')
        self.account.add_expense(300, 'House Rent')

        statement = build_daily_statement(self.account, self.today, self.today)
        row = statement['rows'][0]

        self.assertEqual(len(statement['rows']), 1)
        self.assertEqual(row['income']['OPD Income'], Decimal('500.00'))
        self.assertEqual(row['other_income'], Decimal('200.00'))
        self.assertEqual(row['expense']['House Rent'], Decimal('300.00'))
        self.assertEqual(row['total_credit'], Decimal('1700.00'))
        self.assertEqual(row['total_debit'], Decimal('300.00'))

        self.account.refresh_from_db()
        self.assertEqual(statement['closing_balance'], self.account.balance)

    def test_daily_statement_has_a_row_for_every_day(self):
        start = self.today - timedelta(days=6)
        statement = build_daily_statement(self.account, start, self.today)
        self.assertEqual(len(statement['rows']), 7)
        self.assertEqual(statement['closing_balance'], Decimal('0.00'))

    def test_long_daily_statement_is_clamped(self):
        self.account.add_fund(1000, 'Float', date=self.today - timedelta(days=400))
        statement = build_daily_statement(self.account, date(1900, 1, 1), self.today)

        self.assertTrue(statement['clamped'])
        self.assertEqual(len(statement['rows']), MAX_STATEMENT_DAYS)
        self.assertEqual(statement['from_date'], self.today - timedelta(days=MAX_STATEMENT_DAYS - 1))
        self.assertEqual(statement['opening_balance'], Decimal('1000.00'))
        self.assertEqual(statement['closing_balance'], Decimal('1000.00'))

        statement = build_daily_statement(self.account, self.yesterday, self.today)
        self.assertFalse(statement['clamped'])

    def test_opening_balance_carries_earlier_entries(self):
        self.account.add_fund(1000, 'Float', date=self.yesterday)
        self.account.add_expense(100, 'House Rent', date=self.yesterday)
        self.account.add_income(50, 'OPD Income')

        statement = build_account_statement(self.account, self.today, self.today)
        summary = statement['summary']
        self.assertEqual(summary['opening_balance'], Decimal('900.00'))
        self.assertEqual(summary['total_deposit'], Decimal('50.00'))
        self.assertEqual(summary['closing_balance'], Decimal('950.00'))
        self.assertEqual(summary['transaction_count'], 1)

    def test_account_statement_running_balance_ends_at_balance(self):
        self.account.add_fund(1000, 'Float')
        self.account.add_expense(250, 'House Rent')
        self.account.withdraw_fund(100, 'Bank deposit')
        self.account.add_income(75, 'OPD Income')

        statement = build_account_statement(self.account, self.yesterday, self.today)
        entries = statement['transactions']
        self.account.refresh_from_db()

        self.assertEqual(len(entries), 4)
        self.assertEqual(entries[-1]['balance'], self.account.balance)
        self.assertEqual(statement['summary']['closing_balance'], Decimal('725.00'))
        self.assertEqual(self.account.get_balance(as_on=self.today), self.account.balance)


class AccountViewsTest(TestCase):
    """Ledger pages, modal endpoints and access control"""

    def setUp(self):
        self.accountant = make_user('accountant', Role.ACCOUNTANT)
        self.client.force_login(self.accountant)
        self.account = Account.for_kind(Account.HOSPITAL)

    def test_dashboard_renders(self):
        response = self.client.get(reverse('accounts:dashboard', kwargs={'kind': 'hospital'}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['account'], self.account)

    def test_unknown_account_is_404(self):
        response = self.client.get(reverse('accounts:dashboard', kwargs={'kind': 'pharmacy'}))
        self.assertEqual(response.status_code, 404)

    def test_account_requires_its_permission(self):
        seller = make_user('seller', Role.MEDICINE_SELLER)
        self.client.force_login(seller)

        response = self.client.get(reverse('accounts:dashboard', kwargs={'kind': 'hospital'}))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

        response = self.client.get(reverse('accounts:dashboard', kwargs={'kind': 'medicine'}))
        self.assertEqual(response.status_code, 200)

    def test_anonymous_user_goes_to_login(self):
        self.client.logout()
        response = self.client.get(reverse('accounts:transactions', kwargs={'kind': 'hospital'}))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('users:login'), response['Location'])

    def test_fund_in_post(self):
        response = self.client.post(
            reverse('accounts:fund_in', kwargs={'kind': 'hospital'}),
            {'amount': '1500.00', 'purpose': 'Owner investment'}
        )
        self.assertRedirects(
            response, reverse('accounts:dashboard', kwargs={'kind': 'hospital'}), fetch_redirect_response=False
        )
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('1500.00'))

    def test_fund_out_over_balance_reopens_modal(self):
        self.account.add_fund(100, 'Float')
        response = self.client.post(
            reverse('accounts:fund_out', kwargs={'kind': 'hospital'}),
            {'amount': '500.00', 'purpose': 'Bank deposit'}
        )
        self.assertEqual(response.status_code, 302)
        self.assertIn('modal=fund_out', response['Location'])

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('100.00'))
        self.assertEqual(FundTransaction.objects.filter(type=FundTransaction.FUND_OUT).count(), 0)

    def test_expense_needs_a_category(self):
        self.account.add_fund(100, 'Float')
        response = self.client.post(
            reverse('accounts:add_expense', kwargs={'kind': 'hospital'}),
            {'amount': '50.00'}
        )
        self.assertIn('modal=expense', response['Location'])
        self.assertEqual(self.account.transactions.count(), 0)

    def test_expense_with_new_category(self):
        self.account.add_fund(100, 'Float')
        self.client.post(
            reverse('accounts:add_expense', kwargs={'kind': 'hospital'}),
            {'amount': '40.00', 'new_category': 'Stationery'}
        )
        txn = self.account.transactions.get()
        self.assertEqual(txn.category_name, 'Stationery')
        self.assertEqual(txn.type, Transaction.EXPENSE)

    def test_next_param_must_be_local(self):
        response = self.client.post(
            reverse('accounts:fund_in', kwargs={'kind': 'hospital'}),
            {'amount': '10.00', 'purpose': 'Float', 'next': 'https://evil.example.com/'}
        )
        self.assertEqual(response['Location'], reverse('accounts:dashboard', kwargs={'kind': 'hospital'}))

    def test_transaction_list_search_and_totals(self):
        self.account.add_income(500, 'OPD Income', description='Morning shift')
        self.account.add_income(300, 'Medical Test', description='Sugar test')

        url = reverse('accounts:transactions', kwargs={'kind': 'hospital'})
        response = self.client.get(url, {'search': 'sugar'})
        self.assertEqual(len(response.context['transactions']), 1)
        self.assertEqual(response.context['totals']['income'], Decimal('300.00'))

        response = self.client.get(url, {'category': 'OPD Income'})
        self.assertEqual(response.context['totals']['income'], Decimal('500.00'))

    def test_transactions_excel_export(self):
        self.account.add_income(500, 'OPD Income')
        response = self.client.get(
            reverse('accounts:transactions', kwargs={'kind': 'hospital'}), {'export': 'excel'}
        )
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)
        self.assertIn('Hospital_Transactions_', response['Content-Disposition'])

    def test_fund_voucher_pdf(self):
        fund = self.account.add_fund(100, 'Float')
        response = self.client.get(
            reverse('accounts:fund_voucher', kwargs={'kind': 'hospital', 'pk': fund.pk})
        )
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_category_toggle_twice_restores_state(self):
        category = AccountCategory.objects.create(
            account=self.account, category_type=AccountCategory.EXPENSE, name='Salary'
        )
        url = reverse('accounts:category_toggle', kwargs={'kind': 'hospital', 'pk': category.pk})
        self.client.post(url)
        category.refresh_from_db()
        self.assertFalse(category.is_active)
        self.client.post(url)
        category.refresh_from_db()
        self.assertTrue(category.is_active)

    def test_statement_pages_render(self):
        self.account.add_fund(100, 'Float')
        for name in ('daily_statement', 'account_statement', 'balance_sheet', 'monthly_report', 'fund_history'):
            response = self.client.get(reverse(f'accounts:{name}', kwargs={'kind': 'hospital'}))
            self.assertEqual(response.status_code, 200, name)

    def test_daily_statement_page_clamps_long_range(self):
        today = get_local_today()
        response = self.client.get(
            reverse('accounts:daily_statement', kwargs={'kind': 'hospital'}),
            {'from_date': '1900-01-01', 'to_date': today.isoformat()},
        )
        start = today - timedelta(days=MAX_STATEMENT_DAYS - 1)
        self.assertEqual(response.context['filters']['from_date'], start.isoformat())
        self.assertEqual(len(response.context['statement']['rows']), MAX_STATEMENT_DAYS)
        warnings = [str(m) for m in response.context['messages']]
        self.assertTrue(any('at most 366 days' in text for text in warnings))
