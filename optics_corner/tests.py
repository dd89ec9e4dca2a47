# optics_corner/tests.py
"""
Tests for frame and lens stock, optics sales and the corner's report pages
"""
from datetime import timedelta
from decimal import Decimal

from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse

from accounts.models import Account
from core.utils import get_local_today
from reports.exports import XLSX_CONTENT_TYPE
from users.models import Role, User
from . import reports
from .exceptions import InsufficientOpticsStockError, OpticsStockError
from .models import Frame, LensType, OpticsPurchase, OpticsSale


class OpticsTestMixin:

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.today = get_local_today()
        self.yesterday = self.today - timedelta(days=1)
        self.account = Account.for_kind(Account.OPTICS)
        self.frame = Frame.objects.create(
            sku='RB-3025', brand='Ray-Ban', model='Aviator', selling_price=Decimal('3000.00')
        )
        self.lens = LensType.objects.create(
            name='CR-39 Single Vision', material='CR-39', selling_price=Decimal('800.00')
        )


class OpticsStockAndSaleTest(OpticsTestMixin, TestCase):

    def test_purchase_adds_stock(self):
        purchase = OpticsPurchase.record(self.frame, 10, '1500.00')
        self.frame.refresh_from_db()

        self.assertEqual(self.frame.stock_quantity, 10)
        self.assertEqual(self.frame.purchase_price, Decimal('1500.00'))
        self.assertEqual(purchase.total_cost, Decimal('15000.00'))
        self.assertRegex(purchase.purchase_no, r'^OPP-\d{8}-0001$')

    def test_purchase_paid_from_account(self):
        self.account.add_fund(5000, 'Float')
        OpticsPurchase.record(self.lens, 10, '300.00', pay_from_account=True)

        expense = self.account.transactions.get()
        self.assertEqual(expense.category_name, 'Optics Purchase')
        self.assertEqual(expense.amount, Decimal('3000.00'))

    def test_purchase_rejects_zero_quantity(self):
        with self.assertRaises(OpticsStockError):
            OpticsPurchase.record(self.frame, 0, '1500.00')

    def test_sale_with_items_and_fitting(self):
        OpticsPurchase.record(self.frame, 10, '1500.00')
        OpticsPurchase.record(self.lens, 10, '300.00')

        sale = OpticsSale.record(
            [(self.frame, 1, None), (self.lens, 2, None)],
            discount=Decimal('300.00'),
            fitting_charge=Decimal('100.00'),
            advance_payment=Decimal('2000.00'),
            customer_name='Karim',
        )

        self.assertEqual(sale.subtotal, Decimal('4600.00'))
        self.assertEqual(sale.total_amount, Decimal('4400.00'))
        self.assertEqual(sale.due_amount, Decimal('2400.00'))

        items = list(sale.items.all())
        self.assertEqual(sum(item.discount_share for item in items), Decimal('300.00'))
        self.assertEqual(sum(item.fitting_share for item in items), Decimal('100.00'))
        self.assertEqual(sum(item.due_share for item in items), Decimal('2400.00'))

        self.lens.refresh_from_db()
        self.assertEqual(self.lens.stock_quantity, 8)

        income = self.account.transactions.get()
        self.assertEqual(income.category_name, 'Optics Sale')
        self.assertEqual(income.amount, Decimal('2000.00'))

    def test_only_fitting_charge_sale(self):
        sale = OpticsSale.record([], fitting_charge='200.00', advance_payment='150.00')

        self.assertEqual(sale.total_amount, Decimal('200.00'))
        self.assertEqual(sale.due_amount, Decimal('50.00'))
        self.assertEqual(list(OpticsSale.objects.only_fitting()), [sale])
        self.assertEqual(self.account.transactions.get().category_name, 'Fitting Charge')

    def test_empty_sale_is_refused(self):
        with self.assertRaises(OpticsStockError):
            OpticsSale.record([])

    def test_sale_over_stock_is_rolled_back(self):
        OpticsPurchase.record(self.frame, 1, '1500.00')
        with self.assertRaises(InsufficientOpticsStockError):
            OpticsSale.record([(self.frame, 2, None)])
        self.frame.refresh_from_db()
        self.assertEqual(self.frame.stock_quantity, 1)
        self.assertFalse(OpticsSale.objects.exists())


class OpticsReportsTest(OpticsTestMixin, TestCase):

    def test_only_fitting_charge_joins_the_totals(self):
        OpticsSale.record([], fitting_charge='200.00', advance_payment='150.00')
        report = reports.buy_sale_stock_report(self.today, self.today)
        totals = report['totals']

        self.assertEqual(report['optics_totals']['sale_total'], Decimal('0.00'))
        self.assertEqual(totals['only_fitting_charge'], Decimal('200.00'))
        self.assertEqual(totals['only_fitting_charge_due'], Decimal('50.00'))
        self.assertEqual(totals['sale_total'], Decimal('200.00'))
        self.assertEqual(totals['sale_cash'], Decimal('150.00'))
        self.assertEqual(totals['total_profit'], Decimal('200.00'))

    def test_stock_rebuilt_for_a_past_period(self):
        OpticsPurchase.record(self.frame, 10, '1500.00', purchase_date=self.yesterday)
        OpticsSale.record([(self.frame, 2, None)])

        report = reports.buy_sale_stock_report(self.yesterday, self.yesterday, item_type='frames')
        row = report['rows'][0]
        self.assertEqual(len(report['rows']), 1)
        self.assertEqual(row['before_qty'], 0)
        self.assertEqual(row['buy_qty'], 10)
        self.assertEqual(row['sale_qty'], 0)
        self.assertEqual(row['available_qty'], 10)

        report = reports.buy_sale_stock_report(self.today, self.today, item_type='frames')
        row = report['rows'][0]
        self.assertEqual(row['before_qty'], 10)
        self.assertEqual(row['sale_qty'], 2)
        self.assertEqual(row['available_qty'], 8)
        self.assertEqual(row['total_profit'], Decimal('3000.00'))

    def test_search_filters_items(self):
        report = reports.buy_sale_stock_report(self.today, self.today, search='aviator')
        self.assertEqual([row['name'] for row in report['rows']], ['Ray-Ban Aviator'])

    def test_inventory_flags_low_stock(self):
        OpticsPurchase.record(self.frame, 20, '1500.00')
        OpticsPurchase.record(self.lens, 3, '300.00')

        data = reports.inventory()
        self.assertEqual(data['threshold'], 5)
        self.assertEqual(data['totals']['low_stock_count'], 1)
        self.assertEqual(data['totals']['cost_value'], Decimal('30900.00'))

        low = reports.inventory(low_only=True)
        self.assertEqual([row['name'] for row in low['rows']], ['CR-39 Single Vision'])


class OpticsViewsTest(OpticsTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        role = Role.objects.create(
            name=Role.OPTICS_SELLER,
            display_name='Optics Seller',
            permissions=Role.default_permissions_for(Role.OPTICS_SELLER),
        )
        self.user = User.objects.create_user(username='optics', password='testpass123', role=role)
        self.client.force_login(self.user)

    def test_pages_render(self):
        OpticsSale.record([], fitting_charge='200.00')
        response = self.client.get(reverse('optics_corner:buy_sale_stock'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Only Fitting Charge')

        response = self.client.get(reverse('optics_corner:inventory'), {'item_type': 'lenses'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['filters']['item_type'], 'lenses')

    def test_unknown_item_type_falls_back_to_all(self):
        response = self.client.get(reverse('optics_corner:buy_sale_stock'), {'item_type': 'contacts'})
        self.assertEqual(response.context['filters']['item_type'], 'all')

    def test_excel_export(self):
        response = self.client.get(reverse('optics_corner:inventory'), {'export': 'excel'})
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)

    def test_medicine_seller_is_redirected(self):
        role = Role.objects.create(
            name=Role.MEDICINE_SELLER,
            display_name='Medicine Seller',
            permissions=Role.default_permissions_for(Role.MEDICINE_SELLER),
        )
        seller = User.objects.create_user(username='med', password='testpass123', role=role)
        self.client.force_login(seller)
        response = self.client.get(reverse('optics_corner:inventory'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
