# optics_corner/views.py
from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin
from django.shortcuts import redirect
from django.views.generic import TemplateView

from reports.exports import build_excel_response, build_report_rows, excel_filename
from reports.utils import get_report_date_range
from . import reports

ITEM_TYPE_OPTIONS = [
    ('all', 'All Items'),
    ('frames', 'Frames'),
    ('lenses', 'Lenses'),
]

STOCK_HEADERS = [
    'SL', 'Item', 'Type',
    'Before Qty', 'Before Value',
    'Buy Qty', 'Buy Price', 'Buy Total',
    'Sale Qty', 'Sale Price', 'Sale Subtotal', 'Discount', 'Fitting', 'Sale Total', 'Due',
    'Available Qty', 'Available Value', 'Profit/Unit', 'Total Profit',
]


def stock_row_cells(row):
    return [
        row['sl'], row['name'], row['item_type'],
        row['before_qty'], row['before_value'],
        row['buy_qty'], row['buy_price'], row['buy_total'],
        row['sale_qty'], row['sale_price'], row['sale_subtotal'], row['sale_discount'], row['sale_fitting'],
        row['sale_total'], row['sale_due'],
        row['available_qty'], row['available_value'], row['profit_per_unit'], row['total_profit'],
    ]


class OpticsCornerMixin(LoginRequiredMixin):
    """Optics corner reports share the optics account permission"""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('optics_account'):
            messages.error(request, 'You do not have permission to access the optics corner.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_item_type(self):
        item_type = self.request.GET.get('item_type', 'all')
        return item_type if item_type in reports.ITEM_TYPE_FILTERS else 'all'


class BuySaleStockView(OpticsCornerMixin, TemplateView):
    template_name = 'optics_corner/buy_sale_stock.html'

    def get_report(self):
        self.from_date, self.to_date = get_report_date_range(self.request.GET)
        self.search = self.request.GET.get('search', '').strip()
        self.item_type = self.get_item_type()
        report = reports.buy_sale_stock_report(self.from_date, self.to_date, self.search, self.item_type)
        report['filters'] = {
            'from_date': self.from_date.isoformat(),
            'to_date': self.to_date.isoformat(),
            'search': self.search,
            'item_type': self.item_type,
        }
        return report

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_report())
        context['item_type_options'] = ITEM_TYPE_OPTIONS
        return context

    def export_excel(self):
        report = self.get_report()
        totals = report['totals']
        data = [stock_row_cells(row) for row in report['rows']]
        if totals['only_fitting_charge']:
            data.append([
                '', 'Only Fitting Charge', '', '', '', '', '', '', '', '', '', '',
                totals['only_fitting_charge'], totals['only_fitting_charge'],
                totals['only_fitting_charge_due'], '', '', '', totals['only_fitting_charge'],
            ])
        sheet = build_report_rows(
            'Optics Buy-Sale-Stock Report',
            f"Period: {self.from_date:%d %b %Y} to {self.to_date:%d %b %Y}",
            STOCK_HEADERS,
            data,
            [
                'TOTAL', '', '',
                totals['before_qty'], totals['before_value'],
                totals['buy_qty'], '', totals['buy_total'],
                totals['sale_qty'], '', totals['sale_subtotal'], totals['sale_discount'],
                totals['sale_fitting'] + totals['only_fitting_charge'],
                totals['sale_total'], totals['sale_due'],
                totals['available_qty'], totals['available_value'], '', totals['total_profit'],
            ],
        )
        filename = excel_filename('Optics Buy Sale Stock Report', self.from_date, self.to_date)
        return build_excel_response(sheet, filename, 'Buy-Sale-Stock')


class InventoryView(OpticsCornerMixin, TemplateView):
    template_name = 'optics_corner/inventory.html'

    def get_inventory(self):
        self.filters = {
            'item_type': self.get_item_type(),
            'search': self.request.GET.get('search', '').strip(),
            'low_only': self.request.GET.get('low_only') == '1',
        }
        return reports.inventory(**self.filters)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_inventory())
        context['filters'] = self.filters
        context['item_type_options'] = ITEM_TYPE_OPTIONS
        return context

    def export_excel(self):
        data = self.get_inventory()
        totals = data['totals']
        sheet = build_report_rows(
            'Optics Inventory',
            f"Low stock at or below {data['threshold']} units",
            ['SL', 'Item', 'Type', 'Code', 'Stock', 'Purchase Price', 'Selling Price',
             'Cost Value', 'Retail Value', 'Low Stock'],
            [
                [index, row['name'], row['item_type'], row['code'], row['stock_quantity'],
                 row['purchase_price'], row['selling_price'], row['cost_value'], row['retail_value'],
                 'Yes' if row['is_low_stock'] else '']
                for index, row in enumerate(data['rows'], start=1)
            ],
            ['TOTAL', '', '', '', totals['stock_quantity'], '', '',
             totals['cost_value'], totals['retail_value'], totals['low_stock_count']],
        )
        return build_excel_response(sheet, excel_filename('Optics Inventory'), 'Inventory')
