# optics_corner/reports.py
"""
Figures behind the optics corner report pages.
"""
from django.db.models import DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce

from core.models import SystemSetting
from reports.utils import ZERO, build_stock_row, stock_totals, sum_column
from .models import Frame, LensType, OpticsPurchase, OpticsSale, OpticsSaleItem

MONEY = DecimalField(max_digits=14, decimal_places=2)

ITEM_TYPE_FILTERS = {
    'all': (Frame, LensType),
    'frames': (Frame,),
    'lenses': (LensType,),
}

ITEM_LABELS = {Frame: 'Frame', LensType: 'Lens'}


def _money(expression):
    return Coalesce(Sum(expression, output_field=MONEY), Value(ZERO), output_field=MONEY)


def _grouped(queryset, key, **aggregates):
    return {
        row[key]: row
        for row in queryset.values(key).annotate(**aggregates).order_by()
    }


def _item_rows(model, from_date, to_date, search):
    """
    Movement rows for frames or lenses. Current stock is authoritative, so the
    quantity at the end of the period is rebuilt from it by undoing later
    purchases and sales.
    """
    item_type = model.ITEM_TYPE
    key = f'{item_type}_id'
    purchases = OpticsPurchase.objects.filter(item_type=item_type)
    sale_items = OpticsSaleItem.objects.filter(item_type=item_type)

    bought = _grouped(
        purchases.filter(purchase_date__gte=from_date, purchase_date__lte=to_date), key,
        qty=Sum('quantity'), total=_money('total_cost'),
    )
    bought_after = _grouped(purchases.filter(purchase_date__gt=to_date), key, qty=Sum('quantity'))
    sold = _grouped(
        sale_items.filter(sale__sale_date__gte=from_date, sale__sale_date__lte=to_date), key,
        qty=Sum('quantity'),
        subtotal=_money('total_price'),
        discount=_money('discount_share'),
        fitting=_money('fitting_share'),
        due=_money('due_share'),
        cost=_money(F('quantity') * F('unit_cost')),
    )
    sold_after = _grouped(sale_items.filter(sale__sale_date__gt=to_date), key, qty=Sum('quantity'))

    rows = []
    for item in model.objects.search(search):
        buy = bought.get(item.pk, {})
        sale = sold.get(item.pk, {})
        buy_qty = buy.get('qty') or 0
        sale_qty = sale.get('qty') or 0

        available_qty = (
            item.stock_quantity
            - (bought_after.get(item.pk, {}).get('qty') or 0)
            + (sold_after.get(item.pk, {}).get('qty') or 0)
        )
        before_qty = available_qty - buy_qty + sale_qty

        rows.append(build_stock_row(
            item.display_name,
            before_qty=before_qty,
            before_value=before_qty * item.purchase_price,
            buy_qty=buy_qty,
            buy_total=buy.get('total', ZERO),
            sale_qty=sale_qty,
            sale_subtotal=sale.get('subtotal', ZERO),
            sale_discount=sale.get('discount', ZERO),
            sale_fitting=sale.get('fitting', ZERO),
            sale_due=sale.get('due', ZERO),
            available_qty=available_qty,
            available_value=available_qty * item.purchase_price,
            cost_of_sales=sale.get('cost', ZERO),
            id=item.pk,
            item_type=ITEM_LABELS[model],
        ))
    return rows


def buy_sale_stock_report(from_date, to_date, search=None, item_type='all'):
    """
    Frame and lens rows for the period plus sales that only charged for
    fitting. ``optics_totals`` covers the items alone; ``totals`` adds the
    only-fitting-charge sales.
    """
    models = ITEM_TYPE_FILTERS.get(item_type, ITEM_TYPE_FILTERS['all'])
    rows = []
    for model in models:
        rows.extend(_item_rows(model, from_date, to_date, search))
    for index, row in enumerate(rows, start=1):
        row['sl'] = index

    only_fitting = OpticsSale.objects.between(from_date, to_date).only_fitting().aggregate(
        charge=_money('glass_fitting_price'),
        due=_money('due_amount'),
    )

    optics_totals = stock_totals(rows)
    optics_totals['sale_cash'] = optics_totals['sale_total'] - optics_totals['sale_due']

    totals = dict(optics_totals)
    totals['only_fitting_charge'] = only_fitting['charge']
    totals['only_fitting_charge_due'] = only_fitting['due']
    totals['sale_total'] = optics_totals['sale_total'] + only_fitting['charge']
    totals['sale_due'] = optics_totals['sale_due'] + only_fitting['due']
    totals['sale_cash'] = totals['sale_total'] - totals['sale_due']
    totals['total_profit'] = optics_totals['total_profit'] + only_fitting['charge']

    return {'rows': rows, 'totals': totals, 'optics_totals': optics_totals}


def inventory(item_type='all', search=None, low_only=False):
    threshold = SystemSetting.get_int_setting('optics_low_stock_threshold')
    models = ITEM_TYPE_FILTERS.get(item_type, ITEM_TYPE_FILTERS['all'])

    rows = []
    for model in models:
        for item in model.objects.active().search(search):
            low = item.is_low_stock(threshold)
            if low_only and not low:
                continue
            rows.append({
                'id': item.pk,
                'item_type': ITEM_LABELS[model],
                'name': item.display_name,
                'code': getattr(item, 'sku', '') or getattr(item, 'material', ''),
                'stock_quantity': item.stock_quantity,
                'purchase_price': item.purchase_price,
                'selling_price': item.selling_price,
                'cost_value': item.cost_value,
                'retail_value': item.retail_value,
                'is_low_stock': low,
            })

    totals = {
        'stock_quantity': sum(row['stock_quantity'] for row in rows),
        'cost_value': sum_column(rows, 'cost_value'),
        'retail_value': sum_column(rows, 'retail_value'),
        'low_stock_count': sum(1 for row in rows if row['is_low_stock']),
        'item_count': len(rows),
    }
    totals['potential_profit'] = totals['retail_value'] - totals['cost_value']
    return {'rows': rows, 'totals': totals, 'threshold': threshold}
