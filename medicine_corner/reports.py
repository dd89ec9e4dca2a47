# medicine_corner/reports.py
"""
Figures behind the medicine corner report pages.
"""
from collections import OrderedDict
from datetime import date

from django.db.models import DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils.text import slugify

from accounts.models import Account, AccountCategory
from core.utils import get_local_today
from reports.utils import ZERO, build_stock_row, profit_margin, stock_totals
from .models import Medicine, MedicineSale, MedicineSaleItem, MedicineStock

MONEY = DecimalField(max_digits=14, decimal_places=2)


def _money(expression):
    return Coalesce(Sum(expression, output_field=MONEY), Value(ZERO), output_field=MONEY)


def _by_medicine(queryset, key, **aggregates):
    return {
        row[key]: row
        for row in queryset.values(key).annotate(**aggregates).order_by()
    }


def buy_sale_stock_rows(from_date, to_date, search=None):
    """
    Per-medicine buy, sale and stock movement for a period.

    before = purchased before the period minus sold before the period
    available = before + bought - sold, valued at buy price
    """
    medicines = Medicine.objects.tracked().search(search).order_by('name')

    purchased_before = _by_medicine(
        MedicineStock.objects.filter(purchase_date__lt=from_date), 'medicine_id',
        qty=Sum('quantity'), value=_money(F('quantity') * F('buy_price')),
    )
    sold_before = _by_medicine(
        MedicineSaleItem.objects.filter(sale__sale_date__lt=from_date), 'stock__medicine_id',
        qty=Sum('quantity'), cost=_money(F('quantity') * F('buy_price')),
    )
    bought = _by_medicine(
        MedicineStock.objects.filter(purchase_date__gte=from_date, purchase_date__lte=to_date), 'medicine_id',
        qty=Sum('quantity'), total=_money(F('quantity') * F('buy_price')),
    )
    sold = _by_medicine(
        MedicineSaleItem.objects.filter(sale__sale_date__gte=from_date, sale__sale_date__lte=to_date),
        'stock__medicine_id',
        qty=Sum('quantity'),
        subtotal=_money('total_price'),
        discount=_money('discount_share'),
        due=_money('due_share'),
        cost=_money(F('quantity') * F('buy_price')),
    )

    rows = []
    for medicine in medicines:
        before_in = purchased_before.get(medicine.pk, {})
        before_out = sold_before.get(medicine.pk, {})
        buy = bought.get(medicine.pk, {})
        sale = sold.get(medicine.pk, {})

        before_qty = (before_in.get('qty') or 0) - (before_out.get('qty') or 0)
        before_value = before_in.get('value', ZERO) - before_out.get('cost', ZERO)
        buy_qty = buy.get('qty') or 0
        buy_total = buy.get('total', ZERO)
        sale_qty = sale.get('qty') or 0
        cost_of_sales = sale.get('cost', ZERO)

        rows.append(build_stock_row(
            medicine.name,
            before_qty=before_qty,
            before_value=before_value,
            buy_qty=buy_qty,
            buy_total=buy_total,
            sale_qty=sale_qty,
            sale_subtotal=sale.get('subtotal', ZERO),
            sale_discount=sale.get('discount', ZERO),
            sale_due=sale.get('due', ZERO),
            available_qty=before_qty + buy_qty - sale_qty,
            available_value=before_value + buy_total - cost_of_sales,
            cost_of_sales=cost_of_sales,
            id=medicine.pk,
            generic_name=medicine.generic_name or 'N/A',
            manufacturer=medicine.manufacturer or 'N/A',
            unit=medicine.unit,
        ))

    for index, row in enumerate(rows, start=1):
        row['sl'] = index
    return rows


def company_stock_rows(rows):
    """
    Group buy-sale-stock rows by manufacturer, keeping the medicines under each
    company. ``key`` is the slugged manufacturer, so an ?expanded= value names
    the same company whatever the search.
    """
    companies = OrderedDict()
    for row in sorted(rows, key=lambda r: (r['manufacturer'].lower(), r['name'].lower())):
        key = slugify(row['manufacturer']) or 'unknown'
        companies.setdefault(key, (row['manufacturer'], []))[1].append(row)

    result = []
    for index, (key, (company, medicines)) in enumerate(companies.items(), start=1):
        summary = stock_totals(medicines)
        summary.update({
            'sl': index,
            'key': key,
            'company': company,
            'medicine_count': len(medicines),
            'medicines': medicines,
        })
        result.append(summary)
    return result


def stock_value_summary():
    account = Account.for_kind(Account.MEDICINE)
    stocks = MedicineStock.objects.filter(is_active=True, medicine__is_active=True)
    figures = stocks.aggregate(
        stock_value=_money(F('available_quantity') * F('buy_price')),
        retail_value=_money(F('available_quantity') * F('sale_price')),
        total_investment=_money(F('quantity') * F('buy_price')),
        units_in_stock=Coalesce(Sum('available_quantity'), Value(0)),
    )
    sales = MedicineSale.objects.aggregate(
        total_sold=_money('total_amount'),
        total_due=_money('due_amount'),
    )
    today = get_local_today()
    figures.update(sales)
    figures.update({
        'account_balance': account.balance,
        'medicine_count': Medicine.objects.active().count(),
        'expired_batches': stocks.filter(expiry_date__lt=today, available_quantity__gt=0).count(),
        'total_assets': account.balance + figures['stock_value'],
    })
    return figures


def _months_back(today, count):
    """First day of each of the last ``count`` months, oldest first"""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def analytics(months=12, top_categories=5):
    """
    Monthly income and expense of the medicine account, profit and margin,
    and the largest expense categories over the same window.
    """
    account = Account.for_kind(Account.MEDICINE)
    month_starts = _months_back(get_local_today(), months)
    start = month_starts[0]

    txns = account.transactions.filter(transaction_date__gte=start)
    monthly = {
        (row['month'].year, row['month'].month, row['type']): row['total']
        for row in txns.annotate(month=TruncMonth('transaction_date'))
        .values('month', 'type')
        .annotate(total=_money('amount'))
        .order_by()
    }

    trend = []
    for month_start in month_starts:
        income = monthly.get((month_start.year, month_start.month, 'income'), ZERO)
        expense = monthly.get((month_start.year, month_start.month, 'expense'), ZERO)
        profit, margin = profit_margin(income, expense)
        trend.append({
            'month': month_start,
            'label': month_start.strftime('%b %Y'),
            'income': income,
            'expense': expense,
            'profit': profit,
            'margin': margin,
        })

    totals = txns.totals()
    profit, margin = profit_margin(totals['income'], totals['expense'])

    top_expenses = list(
        txns.expense()
        .values('category_name')
        .annotate(total=_money('amount'))
        .order_by('-total')[:top_categories]
    )
    for item in top_expenses:
        item['share'] = float(item['total'] / totals['expense'] * 100) if totals['expense'] else 0

    return {
        'trend': trend,
        'sales': totals['income'],
        'purchases': totals['expense'],
        'profit': profit,
        'margin': margin,
        'top_expenses': top_expenses,
        'expense_category_count': account.categories.filter(category_type=AccountCategory.EXPENSE).count(),
        'start': start,
    }
