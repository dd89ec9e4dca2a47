# users/forms.py
from django import forms
from django.contrib.auth.forms import AuthenticationForm, PasswordChangeForm

INPUT_CLASS = (
    'mt-1 block w-full px-3 py-2 border border-gray-300 rounded-md shadow-sm '
    'placeholder-gray-400 focus:outline-none focus:ring-primary-500 focus:border-primary-500'
)


class CustomLoginForm(AuthenticationForm):
    """Login form with styled inputs"""
    username = forms.CharField(
        widget=forms.TextInput(attrs={
            'class': INPUT_CLASS,
            'placeholder': 'Username',
            'autofocus': True,
        })
    )
    password = forms.CharField(
        widget=forms.PasswordInput(attrs={
            'class': INPUT_CLASS,
            'placeholder': 'Password'
        })
    )


class StyledPasswordChangeForm(PasswordChangeForm):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.widget.attrs['class'] = INPUT_CLASS
