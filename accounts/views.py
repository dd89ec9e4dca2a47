# accounts/views.py
"""
Ledger pages and modal form endpoints for the hospital, medicine and optics
accounts. Every URL carries the account kind; the role module guarding it
comes from Account.PERMISSIONS.
"""
import logging
from datetime import date
from functools import wraps

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.contrib.auth.mixins import LoginRequiredMixin
from django.db.models import Count
from django.http import Http404, HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST
from django.views.generic import ListView, TemplateView

from core.forms import add_form_error_messages
from core.models import AuditLog, SystemSetting
from core.utils import get_local_now, get_local_today, start_of_month
from reports.exports import build_excel_response, build_report_rows, excel_filename, render_pdf_response
from reports.utils import get_report_date_range
from .exceptions import AccountError
from .forms import AccountCategoryForm, FundTransactionForm, TransactionForm
from .models import Account, AccountCategory, FundTransaction, Transaction
from .statements import (
    MAX_STATEMENT_DAYS, build_account_statement, build_daily_statement, daily_statement_export_rows,
)
from .vouchers import render_fund_voucher

logger = logging.getLogger(__name__)


def _check_account_access(request, kind):
    """Returns (account, None) or (None, redirect response)"""
    if kind not in Account.PERMISSIONS:
        raise Http404('Unknown account')
    if not request.user.has_permission(Account.PERMISSIONS[kind]):
        messages.error(request, 'You do not have permission to access this account.')
        return None, redirect('core:dashboard')
    return Account.for_kind(kind), None


class AccountAccessMixin(LoginRequiredMixin):
    """Resolves self.account from the kind in the URL and checks the role"""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        self.account, denied = _check_account_access(request, kwargs.get('kind'))
        if denied:
            return denied
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['account'] = self.account
        context['kind'] = self.account.kind
        return context


def account_view(view_func):
    """Function-view counterpart of AccountAccessMixin"""
    @wraps(view_func)
    @login_required
    def _wrapped(request, kind, *args, **kwargs):
        account, denied = _check_account_access(request, kind)
        if denied:
            return denied
        return view_func(request, account, *args, **kwargs)
    return _wrapped


def _redirect_back(request, account, modal=None):
    """Back to the submitting page, reopening ``modal`` after a failure"""
    target = request.POST.get('next') or request.GET.get('next')
    if not target or not url_has_allowed_host_and_scheme(
        target, allowed_hosts={request.get_host()}, require_https=request.is_secure()
    ):
        target = reverse('accounts:dashboard', kwargs={'kind': account.kind})
    if modal:
        target = f"{target}{'&' if '?' in target else '?'}modal={modal}"
    return redirect(target)


def _period_label(from_date, to_date):
    return f"Period: {from_date:%d %b %Y} to {to_date:%d %b %Y}"


class AccountDashboardView(AccountAccessMixin, TemplateView):
    template_name = 'accounts/dashboard.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        account = self.account
        today = get_local_today()

        context.update({
            'today': today,
            'today_summary': account.summary(today, today),
            'month_summary': account.summary(start_of_month(today), today),
            'recent_transactions': account.transactions.select_related('created_by')[:10],
            'recent_funds': account.fund_transactions.select_related('added_by')[:5],
            'fund_in_form': FundTransactionForm(account=account, fund_type=FundTransaction.FUND_IN),
            'fund_out_form': FundTransactionForm(account=account, fund_type=FundTransaction.FUND_OUT),
            'expense_form': TransactionForm(account=account, transaction_type=Transaction.EXPENSE),
            'income_form': TransactionForm(account=account, transaction_type=Transaction.INCOME),
            'open_modal': self.request.GET.get('modal', ''),
        })
        return context


# Modal form endpoints

def _save_ledger_form(request, account, form, modal, success_message):
    if not form.is_valid():
        add_form_error_messages(request, form)
        return _redirect_back(request, account, modal=modal)

    try:
        entry = form.save(user=request.user)
    except AccountError as e:
        logger.warning("%s %s refused: %s", account.kind, modal, e)
        messages.error(request, str(e))
        return _redirect_back(request, account, modal=modal)
    except Exception as e:
        logger.error(f"Error saving {account.kind} {modal}: {str(e)}", exc_info=True)
        messages.error(request, 'An error occurred while saving. Please try again.')
        return _redirect_back(request, account, modal=modal)

    messages.success(request, success_message(entry))
    return _redirect_back(request, account)


@require_POST
@account_view
def fund_in(request, account):
    form = FundTransactionForm(request.POST, account=account, fund_type=FundTransaction.FUND_IN)
    return _save_ledger_form(
        request, account, form, 'fund_in',
        lambda fund: f'Fund in of ৳{fund.amount:,.2f} recorded ({fund.voucher_no}).'
    )


@require_POST
@account_view
def fund_out(request, account):
    form = FundTransactionForm(request.POST, account=account, fund_type=FundTransaction.FUND_OUT)
    return _save_ledger_form(
        request, account, form, 'fund_out',
        lambda fund: f'Fund out of ৳{fund.amount:,.2f} recorded ({fund.voucher_no}).'
    )


@require_POST
@account_view
def add_expense(request, account):
    form = TransactionForm(request.POST, account=account, transaction_type=Transaction.EXPENSE)
    return _save_ledger_form(
        request, account, form, 'expense',
        lambda txn: f'Expense of ৳{txn.amount:,.2f} added under {txn.category_name}.'
    )


@require_POST
@account_view
def add_income(request, account):
    form = TransactionForm(request.POST, account=account, transaction_type=Transaction.INCOME)
    return _save_ledger_form(
        request, account, form, 'income',
        lambda txn: f'Income of ৳{txn.amount:,.2f} added under {txn.category_name}.'
    )


@require_POST
@account_view
def transaction_update(request, account, pk):
    txn = get_object_or_404(Transaction, pk=pk, account=account)
    form = TransactionForm(request.POST, account=account, instance=txn)
    return _save_ledger_form(
        request, account, form, f'edit_transaction_{pk}',
        lambda updated: f'Transaction {updated.voucher_no} updated.'
    )


@require_POST
@account_view
def transaction_delete(request, account, pk):
    txn = get_object_or_404(Transaction, pk=pk, account=account)
    voucher_no = txn.voucher_no
    try:
        account.delete_transaction(txn)
    except Exception as e:
        logger.error(f"Error deleting transaction {voucher_no}: {str(e)}", exc_info=True)
        messages.error(request, 'An error occurred while deleting the transaction.')
        return _redirect_back(request, account)
    messages.success(request, f'Transaction {voucher_no} deleted and balance adjusted.')
    return _redirect_back(request, account)


@require_POST
@account_view
def fund_update(request, account, pk):
    fund = get_object_or_404(FundTransaction, pk=pk, account=account)
    form = FundTransactionForm(request.POST, account=account, instance=fund)
    return _save_ledger_form(
        request, account, form, f'edit_fund_{pk}',
        lambda updated: f'Fund transaction {updated.voucher_no} updated.'
    )


@require_POST
@account_view
def fund_delete(request, account, pk):
    fund = get_object_or_404(FundTransaction, pk=pk, account=account)
    voucher_no = fund.voucher_no
    try:
        account.delete_fund_transaction(fund)
    except Exception as e:
        logger.error(f"Error deleting fund transaction {voucher_no}: {str(e)}", exc_info=True)
        messages.error(request, 'An error occurred while deleting the fund transaction.')
        return _redirect_back(request, account)
    messages.success(request, f'Fund transaction {voucher_no} deleted and balance adjusted.')
    return _redirect_back(request, account)


@account_view
def fund_voucher(request, account, pk):
    fund = get_object_or_404(
        FundTransaction.objects.select_related('account', 'added_by'), pk=pk, account=account
    )
    response = HttpResponse(render_fund_voucher(fund), content_type='application/pdf')
    response['Content-Disposition'] = f'inline; filename="Voucher_{fund.voucher_no}.pdf"'
    return response


# Lists

class TransactionListView(AccountAccessMixin, ListView):
    """Income and expense list; totals cover every filtered row, not just the page"""
    template_name = 'accounts/transactions.html'
    context_object_name = 'transactions'

    def get_paginate_by(self, queryset):
        return SystemSetting.get_int_setting('reports_page_size')

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.GET
        self.from_date, self.to_date = get_report_date_range(params)

        queryset = self.account.transactions.between(self.from_date, self.to_date)
        queryset = queryset.select_related('created_by', 'category')

        txn_type = params.get('type', '')
        if txn_type in (Transaction.INCOME, Transaction.EXPENSE):
            queryset = queryset.filter(type=txn_type)

        category = params.get('category', '').strip()
        if category:
            queryset = queryset.filter(category_name=category)

        return queryset.search(params.get('search'))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update({
            'totals': self.object_list.totals(),
            'filters': {
                'from_date': self.from_date.isoformat(),
                'to_date': self.to_date.isoformat(),
                'type': self.request.GET.get('type', ''),
                'category': self.request.GET.get('category', ''),
                'search': self.request.GET.get('search', ''),
            },
            'categories': self.account.categories.order_by('name').values_list('name', flat=True).distinct(),
            'type_choices': Transaction.TYPE_CHOICES,
            'open_modal': self.request.GET.get('modal', ''),
        })
        return context

    def export_excel(self):
        queryset = self.get_queryset()
        totals = queryset.totals()
        data = [
            [
                txn.transaction_date.strftime('%d-%m-%Y'),
                txn.voucher_no,
                txn.get_type_display(),
                txn.category_name,
                txn.description,
                txn.amount if txn.is_income else '',
                '' if txn.is_income else txn.amount,
            ]
            for txn in queryset
        ]
        rows = build_report_rows(
            f'{self.account.name} Transactions',
            _period_label(self.from_date, self.to_date),
            ['Date', 'Voucher No', 'Type', 'Category', 'Description', 'Income', 'Expense'],
            data,
            ['TOTAL', '', '', '', f"Net {totals['net']}", totals['income'], totals['expense']],
        )
        filename = excel_filename(f'{self.account.get_kind_display()} Transactions', self.from_date, self.to_date)
        return build_excel_response(rows, filename, 'Transactions')


class FundHistoryView(AccountAccessMixin, ListView):
    template_name = 'accounts/fund_history.html'
    context_object_name = 'funds'

    def get_paginate_by(self, queryset):
        return SystemSetting.get_int_setting('reports_page_size')

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.GET
        self.from_date, self.to_date = get_report_date_range(params)

        queryset = self.account.fund_transactions.between(self.from_date, self.to_date)
        queryset = queryset.select_related('added_by')

        fund_type = params.get('type', '')
        if fund_type in (FundTransaction.FUND_IN, FundTransaction.FUND_OUT):
            queryset = queryset.filter(type=fund_type)

        purpose = params.get('purpose', '').strip()
        if purpose:
            queryset = queryset.filter(purpose__icontains=purpose)

        return queryset

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update({
            'totals': self.object_list.totals(),
            'filters': {
                'from_date': self.from_date.isoformat(),
                'to_date': self.to_date.isoformat(),
                'type': self.request.GET.get('type', ''),
                'purpose': self.request.GET.get('purpose', ''),
            },
            'type_choices': FundTransaction.TYPE_CHOICES,
        })
        return context

    def export_excel(self):
        queryset = self.get_queryset()
        totals = queryset.totals()
        data = [
            [
                fund.date.strftime('%d-%m-%Y'),
                fund.voucher_no,
                fund.get_type_display(),
                fund.purpose,
                fund.description,
                fund.amount if fund.is_fund_in else '',
                '' if fund.is_fund_in else fund.amount,
            ]
            for fund in queryset
        ]
        rows = build_report_rows(
            f'{self.account.name} Fund History',
            _period_label(self.from_date, self.to_date),
            ['Date', 'Voucher No', 'Type', 'Purpose', 'Description', 'Fund In', 'Fund Out'],
            data,
            ['TOTAL', '', '', '', f"Net {totals['net']}", totals['fund_in'], totals['fund_out']],
        )
        filename = excel_filename(f'{self.account.get_kind_display()} Fund History', self.from_date, self.to_date)
        return build_excel_response(rows, filename, 'Fund History')


# Categories

class CategoryListView(AccountAccessMixin, TemplateView):
    template_name = 'accounts/categories.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        categories = self.account.categories.annotate(usage_count=Count('transactions'))
        context.update({
            'income_categories': categories.filter(category_type=AccountCategory.INCOME),
            'expense_categories': categories.filter(category_type=AccountCategory.EXPENSE),
            'form': AccountCategoryForm(account=self.account),
            'open_modal': self.request.GET.get('modal', ''),
        })
        return context


@require_POST
@account_view
def category_create(request, account):
    form = AccountCategoryForm(request.POST, account=account)
    if not form.is_valid():
        add_form_error_messages(request, form)
        return redirect(f"{reverse('accounts:categories', kwargs={'kind': account.kind})}?modal=category")
    category = form.save()
    messages.success(request, f'Category "{category.name}" created.')
    return redirect('accounts:categories', kind=account.kind)


@require_POST
@account_view
def category_update(request, account, pk):
    category = get_object_or_404(AccountCategory, pk=pk, account=account)
    form = AccountCategoryForm(request.POST, instance=category, account=account)
    if not form.is_valid():
        add_form_error_messages(request, form)
        return redirect(f"{reverse('accounts:categories', kwargs={'kind': account.kind})}?modal=category_{pk}")
    form.save()
    messages.success(request, f'Category "{category.name}" updated.')
    return redirect('accounts:categories', kind=account.kind)


@require_POST
@account_view
def category_toggle(request, account, pk):
    category = get_object_or_404(AccountCategory, pk=pk, account=account)
    category.is_active = not category.is_active
    category.save(update_fields=['is_active'])
    state = 'activated' if category.is_active else 'deactivated'
    messages.success(request, f'Category "{category.name}" {state}.')
    return redirect('accounts:categories', kind=account.kind)


# Reports

class MonthlyReportView(AccountAccessMixin, TemplateView):
    template_name = 'accounts/monthly_report.html'

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_year_month(self):
        today = get_local_today()
        try:
            year = int(self.request.GET.get('year', today.year))
            month = int(self.request.GET.get('month', today.month))
        except (TypeError, ValueError):
            return today.year, today.month
        if not 1 <= month <= 12 or not 2000 <= year <= 2100:
            return today.year, today.month
        return year, month

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        year, month = self.get_year_month()
        context['report'] = self.account.monthly_report(year, month)
        context['months'] = [(number, date(2000, number, 1).strftime('%B')) for number in range(1, 13)]
        context['years'] = range(get_local_today().year, get_local_today().year - 6, -1)
        return context

    def export_excel(self):
        year, month = self.get_year_month()
        report = self.account.monthly_report(year, month)
        data = [[item['category_name'] or 'Uncategorized', item['count'], item['total']]
                for item in report['expense_by_category']]
        rows = build_report_rows(
            f"{self.account.name} Monthly Report",
            f"{report['start']:%B %Y}",
            ['Expense Category', 'Entries', 'Amount'],
            data,
            ['TOTAL', '', report['expense']],
        )
        rows.extend([
            [],
            ['Income', report['income']],
            ['Expense', report['expense']],
            ['Profit', report['profit']],
            ['Balance', report['balance']],
        ])
        filename = excel_filename(f"{self.account.get_kind_display()} Monthly Report {report['start']:%Y_%m}")
        return build_excel_response(rows, filename, 'Monthly Report')


class BalanceSheetView(AccountAccessMixin, TemplateView):
    template_name = 'accounts/balance_sheet.html'

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['sheet'] = self.account.summary()
        context['generated_at'] = get_local_now()
        return context

    def export_excel(self):
        sheet = self.account.summary()
        rows = build_report_rows(
            f'{self.account.name} Balance Sheet',
            f"As on {get_local_today():%d %b %Y}",
            ['Item', 'Amount'],
            [
                ['Current Balance', sheet['balance']],
                ['Total Income', sheet['total_income']],
                ['Total Expense', sheet['total_expense']],
                ['Net Profit', sheet['net_profit']],
                ['Total Fund In', sheet['total_fund_in']],
                ['Total Fund Out', sheet['total_fund_out']],
                ['Net Fund', sheet['net_fund']],
            ],
        )
        filename = excel_filename(f'{self.account.get_kind_display()} Balance Sheet {get_local_today()}')
        return build_excel_response(rows, filename, 'Balance Sheet')


class DailyStatementView(AccountAccessMixin, TemplateView):
    """One row per day with credit/debit columns and a running balance"""
    template_name = 'accounts/daily_statement.html'

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        from_date, to_date = get_report_date_range(self.request.GET)
        statement = build_daily_statement(self.account, from_date, to_date)
        if statement['clamped']:
            messages.warning(
                self.request,
                f'The daily statement covers at most {MAX_STATEMENT_DAYS} days. '
                f'Showing {statement["from_date"]:%d %b %Y} to {statement["to_date"]:%d %b %Y}.'
            )
        from_date, to_date = statement['from_date'], statement['to_date']
        context['statement'] = statement
        context['filters'] = {'from_date': from_date.isoformat(), 'to_date': to_date.isoformat()}
        context['from_date'] = from_date
        context['to_date'] = to_date
        return context

    def export_excel(self):
        from_date, to_date = get_report_date_range(self.request.GET)
        statement = build_daily_statement(self.account, from_date, to_date)
        from_date, to_date = statement['from_date'], statement['to_date']
        headers, data, total_row = daily_statement_export_rows(statement)
        rows = build_report_rows(
            f'{self.account.name} Daily Statement',
            f"{_period_label(from_date, to_date)} | Opening Balance {statement['opening_balance']}",
            headers, data, total_row,
        )
        filename = excel_filename(f'{self.account.get_kind_display()} Daily Statement', from_date, to_date)
        return build_excel_response(rows, filename, 'Daily Statement')


class AccountStatementView(AccountAccessMixin, TemplateView):
    template_name = 'accounts/account_statement.html'

    def get(self, request, *args, **kwargs):
        export_format = request.GET.get('export')
        if export_format == 'excel':
            return self.export_excel()
        if export_format == 'pdf':
            return self.export_pdf()
        return super().get(request, *args, **kwargs)

    def get_statement(self):
        self.from_date, self.to_date = get_report_date_range(self.request.GET)
        return build_account_statement(self.account, self.from_date, self.to_date)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_statement())
        context['filters'] = {'from_date': self.from_date.isoformat(), 'to_date': self.to_date.isoformat()}
        context['from_date'] = self.from_date
        context['to_date'] = self.to_date
        return context

    def export_excel(self):
        statement = self.get_statement()
        summary = statement['summary']
        data = [
            [
                entry['date'].strftime('%d-%m-%Y'),
                entry['voucher_no'],
                entry['type'],
                entry['description'],
                entry['deposit'] or '',
                entry['withdraw'] or '',
                entry['balance'],
                entry['created_by'],
            ]
            for entry in statement['transactions']
        ]
        rows = build_report_rows(
            f'{self.account.name} Account Statement',
            f"{_period_label(self.from_date, self.to_date)} | Opening Balance {summary['opening_balance']}",
            ['Date', 'Voucher No', 'Type', 'Description', 'Deposit', 'Withdraw', 'Balance', 'Created By'],
            data,
            ['TOTAL', '', '', '', summary['total_deposit'], summary['total_withdraw'], summary['closing_balance'], ''],
        )
        filename = excel_filename(f'{self.account.get_kind_display()} Account Statement', self.from_date, self.to_date)
        return build_excel_response(rows, filename, 'Account Statement')

    def export_pdf(self):
        context = self.get_statement()
        context.update({
            'account': self.account,
            'from_date': self.from_date,
            'to_date': self.to_date,
            'generated_at': get_local_now(),
            'generated_by': self.request.user.get_full_name() or self.request.user.username,
            'hospital_name': SystemSetting.get_setting('hospital_name'),
            'hospital_address': SystemSetting.get_setting('hospital_address'),
            'hospital_phone': SystemSetting.get_setting('hospital_phone'),
        })
        filename = excel_filename(
            f'{self.account.get_kind_display()} Account Statement', self.from_date, self.to_date, extension='pdf'
        )
        try:
            response = render_pdf_response('accounts/account_statement_pdf.html', context, filename)
        except Exception as e:
            logger.error(f"Error generating account statement PDF: {str(e)}", exc_info=True)
            response = None

        if response is None:
            messages.error(self.request, 'Error generating PDF. Please try again.')
            return redirect('accounts:account_statement', kind=self.account.kind)

        AuditLog.log_action(
            user=self.request.user,
            action='export',
            model_instance=self.account,
            request=self.request,
            description=f"Exported {self.account.name} statement {self.from_date} to {self.to_date}"
        )
        return response
