# core/views.py
import logging
from datetime import datetime

from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin
from django.shortcuts import redirect
from django.urls import reverse_lazy
from django.views.generic import FormView, ListView, TemplateView

from accounts.models import Account, Transaction
from core.forms import SystemSettingsForm
from core.utils import get_local_today, start_of_month
from patients.models import Doctor, Patient, PatientVisit
from users.models import Role, User
from .models import AuditLog, SystemSetting

logger = logging.getLogger(__name__)


class DashboardView(LoginRequiredMixin, TemplateView):
    """
    Landing page after login.

    Doctors go straight to their own dashboard and vision-test staff to the
    queue. Everyone else sees the balances of the accounts they can open.
    """
    template_name = 'core/dashboard.html'

    def get(self, request, *args, **kwargs):
        user = request.user
        if user.is_doctor and user.has_permission('doctor'):
            return redirect('patients:doctor_dashboard')
        if user.has_permission('vision_test') and not user.has_permission('hospital_account'):
            return redirect('patients:vision_queue')
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        user = self.request.user
        today = get_local_today()
        month_start = start_of_month(today)

        accounts = []
        for kind, label in Account.KIND_CHOICES:
            if not user.has_permission(Account.PERMISSIONS[kind]):
                continue
            account = Account.for_kind(kind)
            today_totals = account.transactions.between(today, today).totals()
            month_totals = account.transactions.between(month_start, today).totals()
            accounts.append({
                'kind': kind,
                'name': label,
                'balance': account.balance,
                'today_income': today_totals['income'],
                'today_expense': today_totals['expense'],
                'month_income': month_totals['income'],
                'month_expense': month_totals['expense'],
                'month_profit': month_totals['net'],
            })
        context['accounts'] = accounts

        if user.has_permission('patients'):
            todays_visits = PatientVisit.objects.today()
            context['visit_stats'] = {
                'total': todays_visits.count(),
                'awaiting_payment': todays_visits.filter(overall_status=PatientVisit.PAYMENT).count(),
                'vision_test': todays_visits.filter(overall_status=PatientVisit.VISION_TEST).count(),
                'prescription': todays_visits.filter(overall_status=PatientVisit.PRESCRIPTION).count(),
                'completed': todays_visits.filter(overall_status=PatientVisit.COMPLETED).count(),
            }

        context['recent_transactions'] = (
            Transaction.objects.filter(
                account__kind__in=[row['kind'] for row in accounts]
            ).select_related('account').order_by('-created_at')[:10]
        )
        context['today'] = today
        return context


class AuditLogListView(LoginRequiredMixin, ListView):
    """Audit logs with user, action, module and date filters"""
    model = AuditLog
    template_name = 'core/audit_log_list.html'
    context_object_name = 'logs'
    paginate_by = 50

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('maintenance'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get_queryset(self):
        queryset = AuditLog.objects.select_related('user').order_by('-timestamp')

        # Build active filters list for display
        self.active_filters = []

        user_filter = self.request.GET.get('user')
        if user_filter:
            try:
                user_id = int(user_filter)
                user = User.objects.get(id=user_id)
                queryset = queryset.filter(user_id=user_id)
                self.active_filters.append(f"User: {user.full_name}")
            except (ValueError, User.DoesNotExist):
                pass

        action_filter = self.request.GET.get('action')
        if action_filter:
            queryset = queryset.filter(action=action_filter)
            action_display = dict(AuditLog.ACTION_CHOICES).get(action_filter, action_filter)
            self.active_filters.append(f"Action: {action_display}")

        model_filter = self.request.GET.get('model_name')
        if model_filter:
            queryset = queryset.filter(model_name=model_filter)
            self.active_filters.append(f"Module: {model_filter}")

        date_from = self.request.GET.get('date_from')
        date_to = self.request.GET.get('date_to')

        if date_from:
            try:
                date_from_obj = datetime.strptime(date_from, '%Y-%m-%d').date()
                queryset = queryset.filter(timestamp__date__gte=date_from_obj)
                self.active_filters.append(f"From: {date_from_obj.strftime('%d %b %Y')}")
            except ValueError:
                pass

        if date_to:
            try:
                date_to_obj = datetime.strptime(date_to, '%Y-%m-%d').date()
                queryset = queryset.filter(timestamp__date__lte=date_to_obj)
                self.active_filters.append(f"To: {date_to_obj.strftime('%d %b %Y')}")
            except ValueError:
                pass

        return queryset

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['users'] = User.objects.filter(is_active=True).order_by('first_name', 'last_name')
        context['action_choices'] = AuditLog.ACTION_CHOICES
        context['model_choices'] = (
            AuditLog.objects.values_list('model_name', flat=True).distinct().order_by('model_name')
        )
        context['filters'] = {
            'user': self.request.GET.get('user', ''),
            'action': self.request.GET.get('action', ''),
            'model_name': self.request.GET.get('model_name', ''),
            'date_from': self.request.GET.get('date_from', ''),
            'date_to': self.request.GET.get('date_to', ''),
        }
        context['active_filters'] = getattr(self, 'active_filters', [])
        context['total_count'] = context['paginator'].count if context.get('paginator') else len(context['logs'])
        return context


class MaintenanceHubView(LoginRequiredMixin, TemplateView):
    """Maintenance hub for admin functions"""
    template_name = 'core/maintenance_hub.html'

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('maintenance'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['stats'] = {
            'users_count': User.objects.count(),
            'roles_count': Role.objects.count(),
            'doctors_count': Doctor.objects.count(),
            'patients_count': Patient.objects.count(),
            'visits_count': PatientVisit.objects.count(),
            'settings_count': SystemSetting.objects.count(),
        }
        return context


class SystemSettingsView(LoginRequiredMixin, FormView):
    """System settings management"""
    template_name = 'core/system_settings.html'
    form_class = SystemSettingsForm
    success_url = reverse_lazy('core:settings')

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('maintenance'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def form_valid(self, form):
        try:
            changes = form.save(user=self.request.user)
        except Exception as e:
            logger.error(f"Error saving system settings: {str(e)}", exc_info=True)
            messages.error(self.request, 'An error occurred while saving settings. Please try again.')
            return self.form_invalid(form)

        if changes:
            AuditLog.log_action(
                user=self.request.user,
                action='update',
                model_instance=SystemSetting.objects.first() or SystemSetting(key='settings'),
                changes=changes,
                request=self.request,
                description=f"Updated {len(changes)} system setting(s)"
            )
            messages.success(self.request, f'Settings updated successfully. {len(changes)} setting(s) changed.')
        else:
            messages.info(self.request, 'No changes were made.')

        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, 'Please correct the errors in the form.')
        return super().form_invalid(form)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['page_title'] = 'System Settings'
        return context
