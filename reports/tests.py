# reports/tests.py
"""
Tests for the shared report helpers, template filters and the reports hub
"""
from datetime import date, timedelta
from decimal import Decimal

from django.db.models.signals import post_save, post_delete
from django.template import Context, Template
from django.test import RequestFactory, SimpleTestCase, TestCase
from django.urls import reverse

from accounts.models import Account
from core.utils import get_local_today, start_of_month
from users.models import Role, User
from .exports import build_report_rows, excel_filename
from .templatetags.report_filters import format_amount, format_currency, percent
from .utils import (
    apply_running_balance, build_stock_row, filter_records, get_preset_date_range,
    get_report_date_range, parse_date, profit_margin, stock_totals, toggle_expanded,
)


class ReportUtilsTest(SimpleTestCase):

    def test_parse_date(self):
        self.assertEqual(parse_date('2024-03-05'), date(2024, 3, 5))
        self.assertIsNone(parse_date('05/03/2024'))
        self.assertIsNone(parse_date(''))

    def test_report_date_range_defaults_to_this_month(self):
        today = get_local_today()
        self.assertEqual(get_report_date_range({}), (start_of_month(today), today))

    def test_report_date_range_swaps_reversed_dates(self):
        params = {'from_date': '2024-03-31', 'to_date': '2024-03-01'}
        self.assertEqual(get_report_date_range(params), (date(2024, 3, 1), date(2024, 3, 31)))

    def test_preset_ranges(self):
        today = get_local_today()
        self.assertEqual(get_preset_date_range('today'), (today, today))
        self.assertEqual(get_preset_date_range('last_7_days'), (today - timedelta(days=7), today))
        self.assertEqual(
            get_preset_date_range('custom', '2024-02-10', '2024-02-01'),
            (date(2024, 2, 1), date(2024, 2, 10))
        )
        # an incomplete custom range falls back to this month
        self.assertEqual(get_preset_date_range('custom', '2024-02-10', ''), (start_of_month(today), today))

    def test_filter_records(self):
        records = [{'name': 'Timolol', 'company': 'Acme'}, {'name': 'Latanoprost', 'company': None}]
        self.assertEqual(filter_records(records, 'ACME', ['name', 'company']), records[:1])
        self.assertEqual(filter_records(records, '  ', ['name']), records)

    def test_profit_margin_without_sales(self):
        self.assertEqual(profit_margin(0, 150), (Decimal('-150'), 0))
        profit, margin = profit_margin(Decimal('200'), Decimal('150'))
        self.assertEqual(profit, Decimal('50'))
        self.assertEqual(margin, 25.0)

    def test_running_balance(self):
        rows = [{'credit': Decimal('500'), 'debit': 0}, {'credit': 0, 'debit': Decimal('120')}]
        closing = apply_running_balance(rows, Decimal('100'))
        self.assertEqual([row['balance'] for row in rows], [Decimal('600'), Decimal('480')])
        self.assertEqual(closing, Decimal('480'))

    def test_toggle_expanded_twice_restores_state(self):
        expanded = toggle_expanded(['2'], '5')
        self.assertEqual(expanded, ['2', '5'])
        self.assertEqual(toggle_expanded(expanded, '5'), ['2'])

    def test_stock_row_derives_prices_and_profit(self):
        row = build_stock_row(
            'Frame', buy_qty=4, buy_total=Decimal('400'), sale_qty=2,
            sale_subtotal=Decimal('300'), sale_discount=Decimal('20'), sale_fitting=Decimal('10'),
            cost_of_sales=Decimal('200'), available_qty=2,
        )
        self.assertEqual(row['buy_price'], Decimal('100.00'))
        self.assertEqual(row['sale_price'], Decimal('150.00'))
        self.assertEqual(row['sale_total'], Decimal('290'))
        self.assertEqual(row['total_profit'], Decimal('90'))
        self.assertEqual(row['profit_per_unit'], Decimal('45.00'))

        empty = build_stock_row('Lens')
        self.assertEqual(empty['profit_per_unit'], Decimal('0.00'))
        self.assertEqual(stock_totals([row, empty])['available_qty'], 2)

    def test_export_layout(self):
        rows = build_report_rows('Stock', 'Period: today', ['Name', 'Qty'], [['Frame', 2]], ['TOTAL', 2])
        self.assertEqual(rows[2], [])
        self.assertEqual(rows[3], ['Name', 'Qty'])
        self.assertEqual(rows[-1], ['TOTAL', 2])
        self.assertEqual(
            excel_filename('Medicine Stock', date(2024, 1, 1), date(2024, 1, 31)),
            'Medicine_Stock_2024-01-01_to_2024-01-31.xlsx'
        )


class ReportFiltersTest(SimpleTestCase):

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('12500.40')), '৳12,500')
        self.assertEqual(format_currency(-1500), '-৳1,500')
        self.assertEqual(format_currency('abc'), '৳0')

    def test_format_amount_and_percent(self):
        self.assertEqual(format_amount('1234.5'), '1,234.50')
        self.assertEqual(format_amount(None), '0.00')
        self.assertEqual(percent(12.345), '12.3%')

    def test_query_transform_drops_empty_values(self):
        request = RequestFactory().get('/reports/', {'search': 'acme', 'page': '3'})
        template = Template('{% load report_filters %}{% query_transform page=2 search="" %}')
        self.assertEqual(template.render(Context({'request': request})), 'page=2')

    def test_toggle_url(self):
        request = RequestFactory().get('/stock/', {'expanded': '1,3'})
        template = Template('{% load report_filters %}{% toggle_url 3 %}|{% toggle_url 2 %}')
        collapse, expand = template.render(Context({'request': request})).split('|')
        self.assertEqual(collapse, 'expanded=1')
        self.assertEqual(expand, 'expanded=1%2C2%2C3')


class ReportsViewTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        role = Role.objects.create(
            name=Role.ACCOUNTANT,
            display_name='Accountant',
            permissions=Role.default_permissions_for(Role.ACCOUNTANT),
        )
        self.user = User.objects.create_user(username='accounts', password='testpass123', role=role)
        self.client.force_login(self.user)

        hospital = Account.for_kind(Account.HOSPITAL)
        hospital.add_income(1000, 'OPD Income')
        hospital.add_expense(200, 'Electricity')
        Account.for_kind(Account.MEDICINE).add_fund(500, 'Float')

    def test_combined_summary(self):
        response = self.client.get(reverse('reports:dashboard'), {'date_range': 'today'})
        self.assertEqual(response.status_code, 200)

        combined = response.context['combined']
        self.assertEqual(combined['total_income'], Decimal('1000.00'))
        self.assertEqual(combined['total_expense'], Decimal('200.00'))
        self.assertEqual(combined['net_profit'], Decimal('800.00'))
        self.assertEqual(combined['margin'], 80.0)
        self.assertEqual(combined['balance'], Decimal('1300.00'))
        self.assertEqual(combined['total_fund_in'], Decimal('500.00'))

        hospital = response.context['accounts'][0]
        self.assertEqual(hospital['kind'], Account.HOSPITAL)
        self.assertEqual(hospital['income_share'], 100.0)
        self.assertEqual(response.context['collection_rate'], 0)
        self.assertEqual(response.context['total_sales_due'], Decimal('0.00'))

    def test_range_outside_activity_is_empty(self):
        response = self.client.get(reverse('reports:dashboard'), {
            'date_range': 'custom', 'custom_start': '2020-01-01', 'custom_end': '2020-01-31',
        })
        self.assertEqual(response.context['start_date'], date(2020, 1, 1))
        self.assertEqual(response.context['combined']['total_income'], Decimal('0.00'))
        self.assertEqual(response.context['income_by_category'], [])

    def test_permission_required(self):
        role = Role.objects.create(
            name=Role.RECEPTIONIST,
            display_name='Receptionist',
            permissions=Role.default_permissions_for(Role.RECEPTIONIST),
        )
        self.client.force_login(User.objects.create_user(username='desk', password='testpass123', role=role))
        for name in ('dashboard', 'export_pdf'):
            response = self.client.get(reverse(f'reports:{name}'))
            self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    def test_pdf_export(self):
        response = self.client.get(reverse('reports:export_pdf'), {'date_range': 'today'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))
