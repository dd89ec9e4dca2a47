# accounts/forms.py
from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError

from core.forms import INPUT_CLASS
from core.utils import get_local_today
from .models import AccountCategory, FundTransaction, Transaction


class LedgerFormMixin:
    """Shared amount and date cleaning for ledger forms"""

    def clean_amount(self):
        amount = self.cleaned_data.get('amount')
        if amount is None or amount <= Decimal('0'):
            raise ValidationError('Amount must be greater than zero.')
        return amount

    def clean_date(self):
        value = self.cleaned_data.get('date')
        if value and value > get_local_today():
            raise ValidationError('Date cannot be in the future.')
        return value


class FundTransactionForm(LedgerFormMixin, forms.Form):
    amount = forms.DecimalField(
        max_digits=14,
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': INPUT_CLASS, 'step': '0.01', 'min': '0.01'})
    )
    purpose = forms.CharField(
        max_length=200,
        widget=forms.TextInput(attrs={'class': INPUT_CLASS, 'placeholder': 'e.g. Owner investment'})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2})
    )
    date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'class': INPUT_CLASS, 'type': 'date'})
    )

    def __init__(self, *args, account=None, fund_type=FundTransaction.FUND_IN, instance=None, **kwargs):
        self.account = account
        self.fund_type = instance.type if instance else fund_type
        self.instance = instance
        super().__init__(*args, **kwargs)

    def clean(self):
        cleaned_data = super().clean()
        amount = cleaned_data.get('amount')
        if self.fund_type == FundTransaction.FUND_OUT and self.account is not None and amount:
            available = self.account.balance
            if self.instance is not None:
                available += self.instance.amount
            if amount > available:
                raise ValidationError('Insufficient balance!')
        return cleaned_data

    def save(self, user=None):
        data = self.cleaned_data
        if self.instance is not None:
            return self.account.update_fund_transaction(
                self.instance,
                data['amount'],
                purpose=data['purpose'],
                description=data.get('description', ''),
                date=data.get('date'),
            )
        method = self.account.add_fund if self.fund_type == FundTransaction.FUND_IN else self.account.withdraw_fund
        return method(
            data['amount'],
            data['purpose'],
            data.get('description', ''),
            date=data.get('date'),
            user=user,
        )


class TransactionForm(LedgerFormMixin, forms.Form):
    """Expense or other income entry. The category may be picked or typed."""
    amount = forms.DecimalField(
        max_digits=14,
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': INPUT_CLASS, 'step': '0.01', 'min': '0.01'})
    )
    category = forms.ModelChoiceField(
        queryset=AccountCategory.objects.none(),
        required=False,
        widget=forms.Select(attrs={'class': INPUT_CLASS})
    )
    new_category = forms.CharField(
        max_length=100,
        required=False,
        label='Or new category',
        widget=forms.TextInput(attrs={'class': INPUT_CLASS})
    )
    description = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2})
    )
    date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'class': INPUT_CLASS, 'type': 'date'})
    )

    def __init__(self, *args, account=None, transaction_type=Transaction.EXPENSE, instance=None, **kwargs):
        self.account = account
        self.transaction_type = instance.type if instance else transaction_type
        self.instance = instance
        super().__init__(*args, **kwargs)
        if account is not None:
            self.fields['category'].queryset = account.categories.filter(
                category_type=self.transaction_type,
                is_active=True
            )

    def clean(self):
        cleaned_data = super().clean()
        category = cleaned_data.get('category')
        new_category = (cleaned_data.get('new_category') or '').strip()

        if not category and not new_category:
            raise ValidationError('Please choose a category or enter a new one.')
        cleaned_data['category_value'] = category or new_category

        amount = cleaned_data.get('amount')
        if self.transaction_type == Transaction.EXPENSE and self.account is not None and amount:
            available = self.account.balance
            if self.instance is not None:
                available += self.instance.amount
            if amount > available:
                raise ValidationError('Insufficient balance!')

        return cleaned_data

    def save(self, user=None):
        data = self.cleaned_data
        if self.instance is not None:
            return self.account.update_transaction(
                self.instance,
                data['amount'],
                category=data['category_value'],
                description=data.get('description', ''),
                date=data.get('date'),
            )
        method = self.account.add_income if self.transaction_type == Transaction.INCOME else self.account.add_expense
        return method(
            data['amount'],
            data['category_value'],
            data.get('description', ''),
            date=data.get('date'),
            user=user,
            reference_type='other_income' if self.transaction_type == Transaction.INCOME else '',
        )


class AccountCategoryForm(forms.ModelForm):

    class Meta:
        model = AccountCategory
        fields = ['name', 'category_type', 'description', 'is_active']
        widgets = {
            'name': forms.TextInput(attrs={'class': INPUT_CLASS}),
            'category_type': forms.Select(attrs={'class': INPUT_CLASS}),
            'description': forms.Textarea(attrs={'class': INPUT_CLASS, 'rows': 2}),
            'is_active': forms.CheckboxInput(attrs={
                'class': 'h-4 w-4 text-primary-600 focus:ring-primary-500 border-gray-300 rounded'
            }),
        }

    def __init__(self, *args, account=None, **kwargs):
        self.account = account
        super().__init__(*args, **kwargs)
        if account is not None:
            self.instance.account = account

    def clean_name(self):
        name = self.cleaned_data.get('name', '').strip()
        if not name:
            raise ValidationError('Category name is required.')
        return name

    def clean(self):
        cleaned_data = super().clean()
        name = cleaned_data.get('name')
        category_type = cleaned_data.get('category_type')
        if name and category_type and self.account is not None:
            duplicates = AccountCategory.objects.filter(
                account=self.account,
                category_type=category_type,
                name__iexact=name
            ).exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise ValidationError(f'A {category_type} category named "{name}" already exists.')
        return cleaned_data
