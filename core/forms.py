from django import forms
from django.contrib import messages

from core.models import SystemSetting

INPUT_CLASS = 'mt-1 block w-full rounded-md border-gray-300 shadow-sm focus:border-primary-500 focus:ring-primary-500'


def get_field_label(form, field_name):
    """
    Get user-friendly label for a form field
    Used in error messages to show proper field names
    """
    if field_name == '__all__':
        return 'Form'

    if hasattr(form, 'fields') and field_name in form.fields:
        return form.fields[field_name].label or field_name.replace('_', ' ').title()

    return field_name.replace('_', ' ').title()


def add_form_error_messages(request, form):
    """Push every form error into the messages framework"""
    for field_name, errors in form.errors.items():
        label = get_field_label(form, field_name)
        for error in errors:
            if field_name == '__all__':
                messages.error(request, error)
            else:
                messages.error(request, f'{label}: {error}')


class SystemSettingsForm(forms.Form):
    """Single form for all system settings"""

    # Hospital identity
    hospital_name = forms.CharField(
        max_length=200,
        widget=forms.TextInput(attrs={
            'class': INPUT_CLASS,
            'placeholder': 'City Eye Hospital'
        }),
        help_text='Printed on every report header and voucher'
    )

    hospital_phone = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={
            'class': INPUT_CLASS,
            'placeholder': '+880 1700-000000'
        })
    )

    hospital_address = forms.CharField(
        widget=forms.Textarea(attrs={
            'class': INPUT_CLASS,
            'rows': 3,
        }),
        help_text='Full address (use Enter for line breaks)'
    )

    currency_symbol = forms.CharField(
        max_length=5,
        widget=forms.TextInput(attrs={'class': INPUT_CLASS})
    )

    # Dashboards and reports
    dashboard_refresh_seconds = forms.IntegerField(
        min_value=5,
        max_value=300,
        widget=forms.NumberInput(attrs={'class': INPUT_CLASS}),
        help_text='How often the vision test queue and doctor dashboard refresh'
    )

    reports_page_size = forms.IntegerField(
        min_value=5,
        max_value=200,
        widget=forms.NumberInput(attrs={'class': INPUT_CLASS}),
        help_text='Rows per page on transaction lists and fund history'
    )

    optics_low_stock_threshold = forms.IntegerField(
        min_value=0,
        widget=forms.NumberInput(attrs={'class': INPUT_CLASS}),
        help_text='Frames and lenses at or below this quantity are flagged'
    )

    reports_default_date_range = forms.ChoiceField(
        choices=[
            ('today', 'Today'),
            ('yesterday', 'Yesterday'),
            ('last_7_days', 'Last 7 days'),
            ('last_30_days', 'Last 30 days'),
            ('this_month', 'This month'),
        ],
        widget=forms.Select(attrs={'class': INPUT_CLASS})
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Load current values from database
        for field_name in self.fields:
            current_value = SystemSetting.get_setting(field_name, '')
            if current_value is not None and current_value != '':
                self.fields[field_name].initial = current_value

    def save(self, user=None):
        """Save all settings and return changes for audit log"""
        changes = {}

        for field_name, value in self.cleaned_data.items():
            old_value = SystemSetting.get_setting(field_name, '')
            new_value = str(value)

            if old_value != new_value:
                SystemSetting.set_setting(field_name, new_value)
                changes[field_name] = {
                    'old': old_value or '(empty)',
                    'new': new_value or '(empty)',
                    'label': self.fields[field_name].label or field_name.replace('_', ' ').title()
                }

        return changes
