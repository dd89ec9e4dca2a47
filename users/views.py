# users/views.py
import logging

from django.shortcuts import redirect
from django.contrib.auth import logout
from django.contrib.auth.decorators import login_required
from django.contrib.auth.mixins import LoginRequiredMixin
from django.contrib.auth.views import LoginView, PasswordChangeView
from django.contrib import messages
from django.urls import reverse_lazy
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_http_methods

from .forms import CustomLoginForm, StyledPasswordChangeForm

logger = logging.getLogger(__name__)


class CustomLoginView(LoginView):
    template_name = 'registration/login.html'
    authentication_form = CustomLoginForm
    redirect_authenticated_user = True

    def form_valid(self, form):
        user = form.get_user()
        if user.role and user.role.is_archived and not user.is_superuser:
            # An archived role grants no module, so there is nowhere to land
            messages.error(self.request, 'Your role has been archived. Please contact the administrator.')
            logger.warning(f"Login refused for {user.username}: role {user.role.name} is archived")
            return self.form_invalid(form)
        logger.info(f"User {user.username} logged in as {user.role or 'no role'}")
        return super().form_valid(form)


class CustomPasswordChangeView(LoginRequiredMixin, PasswordChangeView):
    """Password change that stays on the same page with a success message"""
    template_name = 'registration/password_change_form.html'
    form_class = StyledPasswordChangeForm
    success_url = reverse_lazy('users:password_change')

    def form_valid(self, form):
        messages.success(self.request, 'Your password has been changed successfully.')
        return super().form_valid(form)


@never_cache
@require_http_methods(["GET", "POST"])
@login_required
def custom_logout(request):
    """
    Logout that clears the session and prevents caching.
    """
    username = request.user.username
    logout(request)
    logger.info(f"User {username} logged out")

    response = redirect('users:login')
    response['Cache-Control'] = 'no-cache, no-store, must-revalidate, max-age=0, private'
    response['Pragma'] = 'no-cache'
    response['Expires'] = '0'
    return response
