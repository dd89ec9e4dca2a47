# reports/templatetags/report_filters.py
from decimal import Decimal, InvalidOperation

from django import template

from reports.utils import parse_expanded, toggle_expanded

register = template.Library()

CURRENCY_SYMBOL = '৳'


@register.filter
def format_currency(value):
    """
    Format an amount as Taka rounded to whole units.
    Usage: {{ totals.income|format_currency }} -> ৳12,500
    """
    try:
        rounded = int(round(Decimal(str(value))))
    except (ValueError, TypeError, InvalidOperation):
        return f"{CURRENCY_SYMBOL}0"
    if rounded < 0:
        return f"-{CURRENCY_SYMBOL}{abs(rounded):,}"
    return f"{CURRENCY_SYMBOL}{rounded:,}"


@register.filter
def format_amount(value):
    """Two decimals with thousands separators, no symbol"""
    try:
        return f"{Decimal(str(value)):,.2f}"
    except (ValueError, TypeError, InvalidOperation):
        return "0.00"


@register.filter
def percent(value):
    try:
        return f"{float(value):.1f}%"
    except (ValueError, TypeError):
        return "0.0%"


@register.filter
def get_item(mapping, key):
    """Dictionary lookup with a variable key"""
    if not mapping:
        return None
    return mapping.get(key)


@register.filter
def status_label(value):
    return str(value or '').replace('_', ' ').title()


@register.simple_tag(takes_context=True)
def query_transform(context, **kwargs):
    """
    Current query string with the given params replaced, used by pagination
    and export links so that filters survive the round-trip.
    """
    params = context['request'].GET.copy()
    for key, value in kwargs.items():
        if value is None or value == '':
            params.pop(key, None)
        else:
            params[key] = value
    return params.urlencode()


@register.simple_tag(takes_context=True)
def toggle_url(context, key):
    """Query string that expands or collapses one section"""
    params = context['request'].GET.copy()
    expanded = toggle_expanded(parse_expanded(params.get('expanded')), str(key))
    if expanded:
        params['expanded'] = ','.join(expanded)
    else:
        params.pop('expanded', None)
    return params.urlencode()
