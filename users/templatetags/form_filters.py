# users/templatetags/form_filters.py
from django import template

from core.forms import get_field_label as _get_field_label

register = template.Library()


@register.filter
def get_field_label(form, field_name):
    """Readable label for a form field, for error lists above unlabelled grids"""
    return _get_field_label(form, field_name)
