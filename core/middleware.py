# core/middleware.py
"""
Middleware that records the current user for audit logging and keeps
authenticated pages out of the browser cache.
"""

import threading

from django.urls import reverse
from django.contrib.auth.views import redirect_to_login
from django.utils.cache import add_never_cache_headers

_thread_locals = threading.local()


def get_current_user():
    """Get the current user from thread-local storage"""
    return getattr(_thread_locals, 'user', None)


def set_current_user(user):
    _thread_locals.user = user


class AuditMiddleware:
    """
    Stores the authenticated user in thread-local storage so that
    signal handlers can attribute changes.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        set_current_user(user if user and user.is_authenticated else None)
        try:
            return self.get_response(request)
        finally:
            set_current_user(None)


class SessionExpiredMiddleware:
    """
    Sends anonymous users who hit an error on a protected page back to
    the login page with a next parameter.
    """
    PROTECTED_PATHS = (
        '/dashboard/',
        '/patients/',
        '/accounts/',
        '/medicine/',
        '/optics/',
        '/reports/',
    )

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if request.user.is_authenticated:
            return None
        if request.path.startswith(self.PROTECTED_PATHS):
            return redirect_to_login(
                request.get_full_path(),
                login_url=reverse('users:login')
            )
        return None


class NoCacheMiddleware:
    """
    Prevents browser caching of authenticated pages so the back button
    does not show ledger data after logout.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if request.user.is_authenticated:
            add_never_cache_headers(response)
            response['Cache-Control'] = 'no-cache, no-store, must-revalidate, max-age=0'
            response['Pragma'] = 'no-cache'
            response['Expires'] = '0'

        return response
