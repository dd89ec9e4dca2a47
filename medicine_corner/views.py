# medicine_corner/views.py
from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin
from django.shortcuts import redirect
from django.views.generic import TemplateView

from core.utils import get_local_today
from reports.exports import build_excel_response, build_report_rows, excel_filename
from reports.utils import filter_records, get_report_date_range, parse_expanded, stock_totals
from . import reports

STOCK_HEADERS = [
    'SL', 'Medicine', 'Generic Name', 'Manufacturer',
    'Before Qty', 'Before Value',
    'Buy Qty', 'Buy Price', 'Buy Total',
    'Sale Qty', 'Sale Price', 'Sale Subtotal', 'Discount', 'Sale Total', 'Due',
    'Available Qty', 'Available Value', 'Profit/Unit', 'Total Profit',
]


def stock_row_cells(row, sl=None):
    return [
        row['sl'] if sl is None else sl, row['name'], row.get('generic_name', ''), row.get('manufacturer', ''),
        row['before_qty'], row['before_value'],
        row['buy_qty'], row['buy_price'], row['buy_total'],
        row['sale_qty'], row['sale_price'], row['sale_subtotal'], row['sale_discount'], row['sale_total'],
        row['sale_due'],
        row['available_qty'], row['available_value'], row['profit_per_unit'], row['total_profit'],
    ]


def stock_total_cells(totals):
    return [
        'TOTAL', '', '', '',
        totals['before_qty'], totals['before_value'],
        totals['buy_qty'], '', totals['buy_total'],
        totals['sale_qty'], '', totals['sale_subtotal'], totals['sale_discount'], totals['sale_total'],
        totals['sale_due'],
        totals['available_qty'], totals['available_value'], '', totals['total_profit'],
    ]


class MedicineCornerMixin(LoginRequiredMixin):
    """Medicine corner reports share the medicine account permission"""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('medicine_account'):
            messages.error(request, 'You do not have permission to access the medicine corner.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_filters(self):
        self.from_date, self.to_date = get_report_date_range(self.request.GET)
        self.search = self.request.GET.get('search', '').strip()
        return {
            'from_date': self.from_date.isoformat(),
            'to_date': self.to_date.isoformat(),
            'search': self.search,
        }

    def period_label(self):
        return f"Period: {self.from_date:%d %b %Y} to {self.to_date:%d %b %Y}"


class BuySaleStockView(MedicineCornerMixin, TemplateView):
    template_name = 'medicine_corner/buy_sale_stock.html'

    def get_report(self):
        filters = self.get_filters()
        rows = reports.buy_sale_stock_rows(self.from_date, self.to_date, self.search)
        return filters, rows, stock_totals(rows)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filters, rows, totals = self.get_report()
        context.update({'rows': rows, 'totals': totals, 'filters': filters})
        return context

    def export_excel(self):
        filters, rows, totals = self.get_report()
        sheet = build_report_rows(
            'Medicine Buy-Sale-Stock Report',
            self.period_label(),
            STOCK_HEADERS,
            [stock_row_cells(row) for row in rows],
            stock_total_cells(totals),
        )
        filename = excel_filename('Medicine Buy Sale Stock Report', self.from_date, self.to_date)
        return build_excel_response(sheet, filename, 'Buy-Sale-Stock')


class CompanyStockView(MedicineCornerMixin, TemplateView):
    """Buy-sale-stock rolled up by manufacturer; each company row can be expanded"""
    template_name = 'medicine_corner/company_stock.html'

    def get_companies(self):
        filters = self.get_filters()
        rows = reports.buy_sale_stock_rows(self.from_date, self.to_date)
        companies = reports.company_stock_rows(rows)
        if self.search:
            companies = filter_records(companies, self.search, ['company'])
        return filters, companies

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filters, companies = self.get_companies()
        expanded = parse_expanded(self.request.GET.get('expanded'))
        for company in companies:
            company['is_expanded'] = company['key'] in expanded
        context.update({
            'companies': companies,
            'totals': stock_totals(companies) if companies else None,
            'filters': filters,
            'expanded': expanded,
        })
        return context

    def export_excel(self):
        filters, companies = self.get_companies()
        data = []
        for company in companies:
            data.append(stock_row_cells(dict(company, name=company['company']), sl=company['sl']))
            for row in company['medicines']:
                data.append(stock_row_cells(row, sl=''))
        sheet = build_report_rows(
            'Company Wise Stock Report',
            self.period_label(),
            STOCK_HEADERS,
            data,
            stock_total_cells(stock_totals(companies)) if companies else None,
        )
        filename = excel_filename('Company Stock Report', self.from_date, self.to_date)
        return build_excel_response(sheet, filename, 'Company Stock')


class StockValueView(MedicineCornerMixin, TemplateView):
    template_name = 'medicine_corner/stock_value.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['summary'] = reports.stock_value_summary()
        context['today'] = get_local_today()
        return context

    def export_excel(self):
        summary = reports.stock_value_summary()
        sheet = build_report_rows(
            'Medicine Stock Value',
            f"As on {get_local_today():%d %b %Y}",
            ['Item', 'Amount'],
            [
                ['Account Balance', summary['account_balance']],
                ['Stock Value (buy price)', summary['stock_value']],
                ['Stock Value (sale price)', summary['retail_value']],
                ['Total Investment', summary['total_investment']],
                ['Total Sold', summary['total_sold']],
                ['Total Due', summary['total_due']],
                ['Units In Stock', summary['units_in_stock']],
            ],
            ['TOTAL', summary['total_assets']],
        )
        return build_excel_response(sheet, excel_filename(f'Medicine Stock Value {get_local_today()}'), 'Stock Value')


class MedicineAnalyticsView(MedicineCornerMixin, TemplateView):
    template_name = 'medicine_corner/analytics.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['analytics'] = reports.analytics()
        return context

    def export_excel(self):
        data = reports.analytics()
        sheet = build_report_rows(
            'Medicine Corner Analytics',
            f"{data['trend'][0]['label']} to {data['trend'][-1]['label']}",
            ['Month', 'Income', 'Expense', 'Profit', 'Margin %'],
            [[m['label'], m['income'], m['expense'], m['profit'], m['margin']] for m in data['trend']],
            ['TOTAL', data['sales'], data['purchases'], data['profit'], data['margin']],
        )
        filename = excel_filename(f"Medicine Analytics {get_local_today()}")
        return build_excel_response(sheet, filename, 'Analytics')
