# medicine_corner/tests.py
"""
Tests for medicine stock, sales and the corner's report pages
"""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse

from accounts.models import Account, Transaction
from core.utils import get_local_today
from reports.exports import XLSX_CONTENT_TYPE
from users.models import Role, User
from . import reports
from .exceptions import InsufficientStockError, StockError
from .models import Medicine, MedicineSale, MedicineStock, allocate_shares


def make_user(username, role_name):
    role, _ = Role.objects.get_or_create(
        name=role_name,
        defaults={
            'display_name': dict(Role.ROLE_CHOICES)[role_name],
            'permissions': Role.default_permissions_for(role_name),
        }
    )
    return User.objects.create_user(username=username, password='testpass123', role=role)


class MedicineStockAndSaleTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.account = Account.for_kind(Account.MEDICINE)
        self.drops = Medicine.objects.create(
            name='Moxiflox', generic_name='Moxifloxacin', type='drop',
            manufacturer='Acme', standard_sale_price=Decimal('120.00')
        )
        self.tablet = Medicine.objects.create(
            name='Acetazol', generic_name='Acetazolamide', manufacturer='Beximco',
            standard_sale_price=Decimal('8.00')
        )

    def test_add_stock_uses_standard_sale_price(self):
        stock = self.drops.add_stock(10, '90.00')
        self.assertEqual(stock.available_quantity, 10)
        self.assertEqual(stock.sale_price, Decimal('120.00'))
        self.assertEqual(self.drops.total_stock, 10)
        self.assertFalse(Transaction.objects.exists())

    def test_add_stock_paid_from_account_posts_purchase(self):
        self.account.add_fund(5000, 'Float')
        stock = self.drops.add_stock(10, '90.00', pay_from_account=True)

        txn = self.account.transactions.get()
        self.assertEqual(txn.category_name, 'Medicine Purchase')
        self.assertEqual(txn.amount, Decimal('900.00'))
        self.assertEqual(txn.reference_id, stock.pk)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('4100.00'))

    def test_add_stock_rejects_zero_quantity(self):
        with self.assertRaises(StockError):
            self.drops.add_stock(0, '90.00')

    def test_sale_splits_discount_and_posts_income(self):
        drops_stock = self.drops.add_stock(10, '90.00')
        tablet_stock = self.tablet.add_stock(100, '5.00')

        sale = MedicineSale.record(
            [(drops_stock, 1, None), (tablet_stock, 10, Decimal('8.00'))],
            discount=Decimal('20.00'),
            paid_amount=Decimal('150.00'),
            customer_name='Rahim',
        )

        self.assertEqual(sale.subtotal, Decimal('200.00'))
        self.assertEqual(sale.total_amount, Decimal('180.00'))
        self.assertEqual(sale.due_amount, Decimal('30.00'))
        self.assertRegex(sale.invoice_number, r'^MS-\d{8}-0001$')

        items = list(sale.items.order_by('pk'))
        self.assertEqual(sum(item.discount_share for item in items), Decimal('20.00'))
        self.assertEqual(sum(item.due_share for item in items), Decimal('30.00'))
        self.assertEqual(items[0].discount_share, Decimal('12.00'))

        drops_stock.refresh_from_db()
        self.assertEqual(drops_stock.available_quantity, 9)

        income = self.account.transactions.get()
        self.assertEqual(income.amount, Decimal('150.00'))
        self.assertEqual(income.category_name, 'Medicine Sale')

    def test_small_discount_over_equal_lines_stays_non_negative(self):
        batches = [self.drops.add_stock(5, '6.00', sale_price='10.00') for _ in range(4)]
        sale = MedicineSale.record(
            [(batch, 1, None) for batch in batches],
            discount=Decimal('0.02'),
            paid_amount=Decimal('39.96'),
        )

        items = list(sale.items.order_by('pk'))
        self.assertTrue(all(item.discount_share >= 0 for item in items))
        self.assertTrue(all(item.due_share >= 0 for item in items))
        self.assertEqual(sum(item.discount_share for item in items), Decimal('0.02'))
        self.assertEqual(sum(item.due_share for item in items), Decimal('0.02'))

    def test_allocate_shares_caps_at_remaining(self):
        lines = [SimpleNamespace(total_price=Decimal('10.00')) for _ in range(4)]
        allocate_shares(lines, Decimal('40.00'), Decimal('0.02'), 'discount_share')
        self.assertEqual(
            [line.discount_share for line in lines],
            [Decimal('0.01'), Decimal('0.01'), Decimal('0.00'), Decimal('0.00')]
        )

    def test_sale_over_stock_is_rolled_back(self):
        stock = self.drops.add_stock(2, '90.00')
        with self.assertRaises(InsufficientStockError):
            MedicineSale.record([(stock, 5, None)])

        stock.refresh_from_db()
        self.assertEqual(stock.available_quantity, 2)
        self.assertFalse(MedicineSale.objects.exists())

    def test_empty_sale_is_refused(self):
        with self.assertRaises(StockError):
            MedicineSale.record([])


class MedicineReportsTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.today = get_local_today()
        self.yesterday = self.today - timedelta(days=1)
        self.medicine = Medicine.objects.create(name='Timolol', manufacturer='Acme')
        self.other = Medicine.objects.create(name='Latanoprost', manufacturer='Beximco')

    def test_buy_sale_stock_movement(self):
        old_batch = self.medicine.add_stock(10, '5.00', sale_price='10.00', purchase_date=self.yesterday)
        MedicineSale.record([(old_batch, 3, None)], sale_date=self.yesterday)
        new_batch = self.medicine.add_stock(5, '5.00', sale_price='10.00')
        MedicineSale.record([(new_batch, 2, None)])

        rows = reports.buy_sale_stock_rows(self.today, self.today)
        row = next(r for r in rows if r['name'] == 'Timolol')

        self.assertEqual(row['before_qty'], 7)
        self.assertEqual(row['before_value'], Decimal('35.00'))
        self.assertEqual(row['buy_qty'], 5)
        self.assertEqual(row['buy_total'], Decimal('25.00'))
        self.assertEqual(row['sale_qty'], 2)
        self.assertEqual(row['sale_total'], Decimal('20.00'))
        self.assertEqual(row['available_qty'], 10)
        self.assertEqual(row['available_value'], Decimal('50.00'))
        self.assertEqual(row['total_profit'], Decimal('10.00'))
        self.assertEqual(row['profit_per_unit'], Decimal('5.00'))

    def test_search_limits_rows(self):
        rows = reports.buy_sale_stock_rows(self.today, self.today, search='latano')
        self.assertEqual([row['name'] for row in rows], ['Latanoprost'])

    def test_company_rows_group_by_manufacturer(self):
        Medicine.objects.create(name='Brimonidine', manufacturer='Acme')
        rows = reports.buy_sale_stock_rows(self.today, self.today)
        companies = reports.company_stock_rows(rows)

        self.assertEqual([c['company'] for c in companies], ['Acme', 'Beximco'])
        self.assertEqual(companies[0]['medicine_count'], 2)
        self.assertEqual(companies[0]['key'], 'acme')
        self.assertEqual(companies[1]['key'], 'beximco')

    def test_analytics_with_no_sales(self):
        data = reports.analytics()
        self.assertEqual(len(data['trend']), 12)
        self.assertEqual(data['trend'][-1]['month'], self.today.replace(day=1))
        self.assertEqual(data['sales'], Decimal('0.00'))
        self.assertEqual(data['margin'], 0)

    def test_stock_value_summary(self):
        self.medicine.add_stock(4, '5.00', sale_price='9.00')
        summary = reports.stock_value_summary()
        self.assertEqual(summary['stock_value'], Decimal('20.00'))
        self.assertEqual(summary['retail_value'], Decimal('36.00'))
        self.assertEqual(summary['units_in_stock'], 4)
        self.assertEqual(summary['total_assets'], Decimal('20.00'))


class MedicineViewsTest(TestCase):

    def setUp(self):
        self.seller = make_user('medseller', Role.MEDICINE_SELLER)
        self.client.force_login(self.seller)
        Medicine.objects.create(name='Timolol', manufacturer='Acme')
        Medicine.objects.create(name='Latanoprost', manufacturer='Beximco')

    def test_pages_render(self):
        for name in ('buy_sale_stock', 'company_stock', 'stock_value', 'analytics'):
            response = self.client.get(reverse(f'medicine_corner:{name}'))
            self.assertEqual(response.status_code, 200, name)

    def test_optics_seller_is_redirected(self):
        self.client.force_login(make_user('opticsseller', Role.OPTICS_SELLER))
        response = self.client.get(reverse('medicine_corner:buy_sale_stock'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    def test_company_search_and_expand(self):
        response = self.client.get(
            reverse('medicine_corner:company_stock'), {'search': 'acme', 'expanded': 'acme'}
        )
        companies = response.context['companies']
        self.assertEqual(len(companies), 1)
        self.assertTrue(companies[0]['is_expanded'])

    def test_expanded_company_survives_search_change(self):
        url = reverse('medicine_corner:company_stock')
        response = self.client.get(url, {'expanded': 'beximco'})
        flags = {c['company']: c['is_expanded'] for c in response.context['companies']}
        self.assertEqual(flags, {'Acme': False, 'Beximco': True})

        response = self.client.get(url, {'search': 'bex', 'expanded': 'beximco'})
        companies = response.context['companies']
        self.assertEqual([c['company'] for c in companies], ['Beximco'])
        self.assertTrue(companies[0]['is_expanded'])

    def test_excel_export(self):
        response = self.client.get(reverse('medicine_corner:buy_sale_stock'), {'export': 'excel'})
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)
        self.assertIn('Medicine_Buy_Sale_Stock_Report_', response['Content-Disposition'])
