#core/urls.py
from django.urls import path
from django.views.generic import RedirectView

from . import views

app_name = 'core'

urlpatterns = [
    path('', RedirectView.as_view(pattern_name='core:dashboard', permanent=False), name='home'),
    path('dashboard/', views.DashboardView.as_view(), name='dashboard'),

    # Maintenance module
    path('maintenance/', views.MaintenanceHubView.as_view(), name='maintenance_hub'),

    # Audit logs
    path('audit-logs/', views.AuditLogListView.as_view(), name='audit_logs'),

    # System settings
    path('maintenance/settings/', views.SystemSettingsView.as_view(), name='settings'),
]
