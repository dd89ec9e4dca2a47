# patients/forms.py
from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError

from core.forms import INPUT_CLASS
from .models import PatientPayment, VisionTest


class PaymentForm(forms.ModelForm):
    """Payment taken against a visit from the patient view modal"""

    class Meta:
        model = PatientPayment
        fields = ['amount', 'payment_method', 'notes']
        widgets = {
            'amount': forms.NumberInput(attrs={'class': INPUT_CLASS, 'step': '0.01', 'min': '0.01'}),
            'payment_method': forms.Select(attrs={'class': INPUT_CLASS}),
            'notes': forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2}),
        }

    def __init__(self, *args, visit=None, **kwargs):
        self.visit = visit
        super().__init__(*args, **kwargs)
        self.fields['amount'].label = 'Amount'
        self.fields['payment_method'].label = 'Payment Method'

    def clean_amount(self):
        amount = self.cleaned_data.get('amount')
        if amount is None or amount <= 0:
            raise ValidationError('Amount must be greater than zero.')
        if self.visit is not None and amount > self.visit.total_due:
            raise ValidationError(f'Amount cannot exceed the due amount of {self.visit.total_due}.')
        return amount


class VisionTestForm(forms.ModelForm):

    class Meta:
        model = VisionTest
        fields = [
            'complains',
            'right_eye_vision_without_glass', 'left_eye_vision_without_glass',
            'right_eye_vision_with_glass', 'left_eye_vision_with_glass',
            'right_eye_sphere', 'left_eye_sphere',
            'right_eye_cylinder', 'left_eye_cylinder',
            'right_eye_axis', 'left_eye_axis',
            'right_eye_iop', 'left_eye_iop',
            'pupillary_distance',
            'right_eye_diagnosis', 'left_eye_diagnosis',
            'is_diabetic', 'is_hypertensive',
            'additional_notes',
        ]
        widgets = {
            'complains': forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2}),
            'additional_notes': forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name, field in self.fields.items():
            if not isinstance(field.widget, (forms.Textarea, forms.CheckboxInput)):
                field.widget.attrs.setdefault('class', INPUT_CLASS)

    def _clean_power(self, field_name):
        value = self.cleaned_data.get(field_name)
        if value is not None and not Decimal('-30') <= value <= Decimal('30'):
            raise ValidationError('Power must be between -30 and +30.')
        return value

    def clean_right_eye_sphere(self):
        return self._clean_power('right_eye_sphere')

    def clean_left_eye_sphere(self):
        return self._clean_power('left_eye_sphere')

    def clean_right_eye_cylinder(self):
        return self._clean_power('right_eye_cylinder')

    def clean_left_eye_cylinder(self):
        return self._clean_power('left_eye_cylinder')

    def clean(self):
        cleaned_data = super().clean()
        for side in ('right', 'left'):
            axis = cleaned_data.get(f'{side}_eye_axis')
            if axis is not None and axis > 180:
                self.add_error(f'{side}_eye_axis', 'Axis must be between 0 and 180.')
        return cleaned_data


class PatientSearchForm(forms.Form):
    query = forms.CharField(
        max_length=100,
        required=False,
        widget=forms.TextInput(attrs={
            'class': INPUT_CLASS,
            'placeholder': 'Name, patient ID or phone'
        }),
        label='Search'
    )
