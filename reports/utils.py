# reports/utils.py
"""
Helpers shared by every report page: date range parsing, in-memory search,
derived figures and running balances.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from core.utils import get_local_today, start_of_month

ZERO = Decimal('0.00')


def parse_date(value):
    """Parse a YYYY-MM-DD string, returning None when it is empty or malformed"""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except (ValueError, TypeError):
        return None


def get_report_date_range(params, from_key='from_date', to_key='to_date'):
    """
    Read the from/to filter of a report page.

    Defaults to the first of the current month through today. A malformed
    date falls back to its default and a reversed range is swapped.

    Returns:
        Tuple of (from_date, to_date)
    """
    today = get_local_today()
    from_date = parse_date(params.get(from_key)) or start_of_month(today)
    to_date = parse_date(params.get(to_key)) or today

    if from_date > to_date:
        from_date, to_date = to_date, from_date

    return from_date, to_date


def get_preset_date_range(date_range, custom_start=None, custom_end=None):
    """
    Calculate start and end dates for a named range

    Args:
        date_range: today, yesterday, last_7_days, last_30_days, this_month or custom
        custom_start: Custom start date string (YYYY-MM-DD)
        custom_end: Custom end date string (YYYY-MM-DD)
    """
    today = get_local_today()

    if date_range == 'today':
        return today, today
    if date_range == 'yesterday':
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if date_range == 'last_7_days':
        return today - timedelta(days=7), today
    if date_range == 'last_30_days':
        return today - timedelta(days=30), today
    if date_range == 'custom':
        start_date = parse_date(custom_start)
        end_date = parse_date(custom_end)
        if start_date and end_date:
            if start_date > end_date:
                start_date, end_date = end_date, start_date
            return start_date, end_date

    return start_of_month(today), today


def filter_records(records, term, fields):
    """
    Keep the records where any of ``fields`` contains ``term``,
    case-insensitively. Records may be dicts or objects.
    """
    term = (term or '').strip().lower()
    if not term:
        return list(records)

    def value_of(record, field):
        if isinstance(record, dict):
            value = record.get(field)
        else:
            value = getattr(record, field, None)
        return '' if value is None else str(value)

    return [
        record for record in records
        if any(term in value_of(record, field).lower() for field in fields)
    ]


def percentage(part, whole, places=1):
    if not whole:
        return 0
    return round(float(part) / float(whole) * 100, places)


def profit_margin(sales, purchases):
    """
    Profit and margin of a period.

    Returns:
        Tuple of (profit, margin) where margin is 0 when there were no sales
    """
    sales = Decimal(sales or 0)
    purchases = Decimal(purchases or 0)
    profit = sales - purchases
    return profit, percentage(profit, sales, places=2)


def sum_column(rows, key):
    return sum((Decimal(row.get(key) or 0) for row in rows), ZERO)


def sum_columns(rows, keys):
    return {key: sum_column(rows, key) for key in keys}


def build_stock_row(name, before_qty=0, before_value=ZERO, buy_qty=0, buy_total=ZERO,
                    sale_qty=0, sale_subtotal=ZERO, sale_discount=ZERO, sale_fitting=ZERO, sale_due=ZERO,
                    available_qty=0, available_value=ZERO, cost_of_sales=ZERO, **extra):
    """
    One row of a buy-sale-stock report. Average prices are derived from the
    quantities and totals.
    """
    sale_total = Decimal(sale_subtotal) - Decimal(sale_discount) + Decimal(sale_fitting)
    total_profit = sale_total - Decimal(cost_of_sales)
    row = {
        'name': name,
        'before_qty': before_qty,
        'before_value': Decimal(before_value),
        'buy_qty': buy_qty,
        'buy_price': (Decimal(buy_total) / buy_qty).quantize(Decimal('0.01')) if buy_qty else ZERO,
        'buy_total': Decimal(buy_total),
        'sale_qty': sale_qty,
        'sale_price': (Decimal(sale_subtotal) / sale_qty).quantize(Decimal('0.01')) if sale_qty else ZERO,
        'sale_subtotal': Decimal(sale_subtotal),
        'sale_discount': Decimal(sale_discount),
        'sale_fitting': Decimal(sale_fitting),
        'sale_total': sale_total,
        'sale_due': Decimal(sale_due),
        'available_qty': available_qty,
        'available_value': Decimal(available_value),
        'profit_per_unit': (total_profit / sale_qty).quantize(Decimal('0.01')) if sale_qty else ZERO,
        'total_profit': total_profit,
    }
    row.update(extra)
    return row


STOCK_TOTAL_KEYS = [
    'before_value', 'buy_total', 'sale_subtotal', 'sale_discount', 'sale_fitting',
    'sale_total', 'sale_due', 'available_value', 'total_profit',
]


def stock_totals(rows):
    totals = sum_columns(rows, STOCK_TOTAL_KEYS)
    for key in ('before_qty', 'buy_qty', 'sale_qty', 'available_qty'):
        totals[key] = sum(row[key] for row in rows)
    return totals


def apply_running_balance(rows, opening_balance, credit_key='credit', debit_key='debit'):
    """
    Add a ``balance`` to each row, starting from ``opening_balance``.
    Returns the closing balance.
    """
    balance = Decimal(opening_balance or 0)
    for row in rows:
        balance += Decimal(row.get(credit_key) or 0) - Decimal(row.get(debit_key) or 0)
        row['balance'] = balance
    return balance


def toggle_expanded(expanded, key):
    """
    Flip ``key`` in the set of expanded sections. Returns a new sorted list
    so that toggling the same key twice gives back the original state.
    """
    current = set(expanded or [])
    if key in current:
        current.remove(key)
    else:
        current.add(key)
    return sorted(current)


def parse_expanded(value):
    return [item for item in (value or '').split(',') if item]


def clamp_date_range(from_date, to_date, max_days):
    """
    Shorten a range to at most ``max_days`` days ending on ``to_date``.

    Returns:
        Tuple of (from_date, to_date, clamped)
    """
    earliest = to_date - timedelta(days=max_days - 1)
    if from_date < earliest:
        return earliest, to_date, True
    return from_date, to_date, False
