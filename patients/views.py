# patients/views.py
import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.contrib.auth.mixins import LoginRequiredMixin
from django.db import transaction
from django.db.models import Prefetch
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse
from django.utils.functional import cached_property
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST
from django.views.generic import CreateView, DetailView, ListView, TemplateView

from accounts.exceptions import AccountError
from core.forms import add_form_error_messages
from core.models import SystemSetting
from reports.exports import build_excel_response, build_report_rows, excel_filename
from reports.utils import get_report_date_range
from .dashboards import doctor_dashboard_data, patient_stats, vision_queue_data
from .exceptions import PatientError
from .forms import PatientSearchForm, PaymentForm, VisionTestForm
from .models import Patient, PatientPayment, PatientVisit, Prescription, VisionTest
from .reports import INCOME_REPORT_TITLES, patient_income_report

logger = logging.getLogger(__name__)


def _is_ajax(request):
    return request.headers.get('X-Requested-With') == 'XMLHttpRequest'


def _redirect_next(request, fallback, modal=None):
    target = request.POST.get('next') or request.GET.get('next')
    if not target or not url_has_allowed_host_and_scheme(
        target, allowed_hosts={request.get_host()}, require_https=request.is_secure()
    ):
        target = fallback
    if modal:
        target = f"{target}{'&' if '?' in target else '?'}modal={modal}"
    return redirect(target)


def _get_doctor(user):
    return getattr(user, 'doctor_profile', None)


class DoctorRequiredMixin(LoginRequiredMixin):
    """Doctor pages need the doctor module and a doctor profile"""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('doctor'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        self.doctor = _get_doctor(request.user)
        if self.doctor is None:
            messages.error(request, 'Doctor profile not found.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)


class DoctorDashboardView(DoctorRequiredMixin, TemplateView):
    """Today's active visits for the logged in doctor, refreshed by polling"""
    template_name = 'patients/doctor_dashboard.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(doctor_dashboard_data(self.doctor, self.request.GET.get('search', '').strip()))
        context['refresh_seconds'] = SystemSetting.get_int_setting('dashboard_refresh_seconds')
        return context


@login_required
def doctor_dashboard_json(request):
    if not request.user.has_permission('doctor'):
        return JsonResponse({'error': 'Permission denied'}, status=403)
    doctor = _get_doctor(request.user)
    if doctor is None:
        return JsonResponse({'error': 'Doctor profile not found'}, status=404)
    return JsonResponse(doctor_dashboard_data(doctor, request.GET.get('search', '').strip()))


@login_required
@require_POST
def complete_visit(request, pk):
    """Doctor closes a visit once the prescription step is done"""
    fallback = reverse('patients:doctor_dashboard')
    doctor = _get_doctor(request.user)
    if not request.user.has_permission('doctor') or doctor is None:
        if _is_ajax(request):
            return JsonResponse({'success': False, 'error': 'Permission denied'}, status=403)
        messages.error(request, 'You do not have permission to perform this action.')
        return redirect('core:dashboard')

    visit = get_object_or_404(PatientVisit.objects.select_related('patient'), pk=pk)
    try:
        visit.complete_prescription(doctor=doctor)
    except PatientError as e:
        logger.warning("Complete visit %s refused for %s: %s", visit.visit_id, request.user.username, e)
        if _is_ajax(request):
            return JsonResponse({'success': False, 'error': str(e)}, status=400)
        messages.error(request, str(e))
        return _redirect_next(request, fallback)
    except Exception as e:
        logger.error(f"Error completing visit {visit.visit_id}: {str(e)}", exc_info=True)
        if _is_ajax(request):
            return JsonResponse({'success': False, 'error': 'An unexpected error occurred'}, status=500)
        messages.error(request, 'An error occurred while completing the visit. Please try again.')
        return _redirect_next(request, fallback)

    logger.info("Visit %s completed by %s", visit.visit_id, request.user.username)
    if _is_ajax(request):
        return JsonResponse({'success': True, 'visit_id': visit.visit_id})
    messages.success(request, f'Visit {visit.visit_id} for {visit.patient.name} marked as completed.')
    return _redirect_next(request, fallback)


class PatientDetailView(LoginRequiredMixin, DetailView):
    """Patient profile with every visit, vision test and prescription"""
    model = Patient
    template_name = 'patients/patient_view.html'
    context_object_name = 'patient'

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('patients'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get_queryset(self):
        return Patient.objects.prefetch_related(
            Prefetch(
                'visits',
                queryset=PatientVisit.objects.select_related('selected_doctor__user').prefetch_related(
                    Prefetch('payments', queryset=PatientPayment.objects.order_by('payment_date', 'created_at'))
                ).order_by('-created_at')
            ),
            Prefetch(
                'vision_tests',
                queryset=VisionTest.objects.select_related('performed_by').order_by('-test_date')
            ),
            Prefetch(
                'prescriptions',
                queryset=Prescription.objects.select_related('doctor__user').prefetch_related(
                    'medicines__medicine'
                ).order_by('-created_at')
            ),
        )

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        patient = self.object
        doctor = _get_doctor(self.request.user)
        visits = list(patient.visits.all())
        vision_tests = list(patient.vision_tests.all())
        context.update({
            'doctor': doctor,
            'visits': visits,
            'vision_tests': vision_tests,
            'prescriptions': patient.prescriptions.all(),
            'latest_visit': visits[0] if visits else None,
            'latest_vision_test': vision_tests[0] if vision_tests else None,
            'stats': patient_stats(patient, doctor),
            'payment_form': PaymentForm(),
            'open_modal': self.request.GET.get('modal', ''),
        })
        return context


@login_required
@require_POST
def record_payment(request, pk):
    """Take a payment on a visit; the amount is posted as OPD Income"""
    visit = get_object_or_404(PatientVisit.objects.select_related('patient'), pk=pk)
    fallback = reverse('patients:patient_detail', kwargs={'pk': visit.patient_id})

    if not request.user.has_permission('patients'):
        messages.error(request, 'You do not have permission to perform this action.')
        return redirect('core:dashboard')

    form = PaymentForm(request.POST, visit=visit)
    if not form.is_valid():
        add_form_error_messages(request, form)
        return _redirect_next(request, fallback, modal=f'payment-{visit.pk}')

    try:
        payment = visit.add_payment(
            form.cleaned_data['amount'],
            payment_method=form.cleaned_data['payment_method'],
            notes=form.cleaned_data['notes'],
            user=request.user,
        )
    except (PatientError, AccountError) as e:
        logger.warning("Payment on visit %s refused: %s", visit.visit_id, e)
        messages.error(request, str(e))
        return _redirect_next(request, fallback, modal=f'payment-{visit.pk}')
    except Exception as e:
        logger.error(f"Error recording payment for visit {visit.visit_id}: {str(e)}", exc_info=True)
        messages.error(request, 'An error occurred while recording the payment. Please try again.')
        return _redirect_next(request, fallback)

    messages.success(
        request,
        f'Payment {payment.payment_number} of {payment.amount} recorded for visit {visit.visit_id}.'
    )
    return _redirect_next(request, fallback)


class VisionTestAccessMixin(LoginRequiredMixin):

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('vision_test'):
            messages.error(request, 'You do not have permission to access the vision test queue.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)


class VisionQueueView(VisionTestAccessMixin, TemplateView):
    """Paid visits waiting for a vision test, first paid first served"""
    template_name = 'patients/vision_queue.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(vision_queue_data())
        context['refresh_seconds'] = SystemSetting.get_int_setting('dashboard_refresh_seconds')
        return context


@login_required
def vision_queue_json(request):
    if not request.user.has_permission('vision_test'):
        return JsonResponse({'error': 'Permission denied'}, status=403)
    return JsonResponse(vision_queue_data())


@login_required
@require_POST
def start_vision_test(request, pk):
    if not request.user.has_permission('vision_test'):
        messages.error(request, 'You do not have permission to perform this action.')
        return redirect('core:dashboard')

    visit = get_object_or_404(PatientVisit.objects.select_related('patient'), pk=pk)
    try:
        visit.start_vision_test()
    except PatientError as e:
        logger.warning("Vision test for %s not started: %s", visit.visit_id, e)
        if _is_ajax(request):
            return JsonResponse({'success': False, 'error': str(e)}, status=400)
        messages.error(request, str(e))
        return redirect('patients:vision_queue')

    logger.info("Vision test started for visit %s by %s", visit.visit_id, request.user.username)
    if _is_ajax(request):
        return JsonResponse({
            'success': True,
            'redirect': reverse('patients:record_vision_test', kwargs={'pk': visit.pk}),
        })
    messages.success(request, f'Vision test started for {visit.patient.name}.')
    return redirect('patients:record_vision_test', pk=visit.pk)


class RecordVisionTestView(VisionTestAccessMixin, CreateView):
    """Vision test form for one visit; saving it moves the visit to prescription"""
    model = VisionTest
    form_class = VisionTestForm
    template_name = 'patients/vision_test_form.html'

    @cached_property
    def visit(self):
        return get_object_or_404(PatientVisit.objects.select_related('patient'), pk=self.kwargs['pk'])

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['visit'] = self.visit
        context['patient'] = self.visit.patient
        return context

    def form_invalid(self, form):
        add_form_error_messages(self.request, form)
        return super().form_invalid(form)

    def form_valid(self, form):
        visit = self.visit
        try:
            with transaction.atomic():
                visit.check_ready_for_vision_test()
                form.instance.patient = visit.patient
                form.instance.visit = visit
                form.instance.performed_by = self.request.user
                self.object = form.save()
                visit.complete_vision_test()
        except PatientError as e:
            logger.warning("Vision test for %s not recorded: %s", visit.visit_id, e)
            messages.error(self.request, str(e))
            return redirect('patients:vision_queue')

        logger.info("Vision test recorded for visit %s", visit.visit_id)
        messages.success(
            self.request,
            f'Vision test completed for {visit.patient.name}. Patient ready for prescription.'
        )
        return redirect('patients:vision_queue')


class PatientSearchView(LoginRequiredMixin, ListView):
    """Search patients by name, patient ID or phone"""
    model = Patient
    template_name = 'patients/patient_search.html'
    context_object_name = 'patients'

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('patients'):
            messages.error(request, 'You do not have permission to access this page.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get_paginate_by(self, queryset):
        return SystemSetting.get_int_setting('reports_page_size')

    def get_queryset(self):
        form = PatientSearchForm(self.request.GET)
        if not form.is_valid() or not form.cleaned_data.get('query'):
            return Patient.objects.none()
        return Patient.objects.search(form.cleaned_data['query']).order_by('name')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['form'] = PatientSearchForm(self.request.GET)
        context['query'] = self.request.GET.get('query', '')
        return context


@login_required
def patient_quick_info(request, pk):
    """Return quick patient info as JSON for AJAX requests"""
    if not request.user.has_permission('patients'):
        return JsonResponse({'error': 'Permission denied'}, status=403)

    try:
        patient = Patient.objects.get(pk=pk)
    except Patient.DoesNotExist:
        return JsonResponse({'error': 'Patient not found'}, status=404)

    recent_visits = [
        {
            'visit_id': visit.visit_id,
            'date': visit.created_at.strftime('%Y-%m-%d'),
            'doctor': visit.selected_doctor.name if visit.selected_doctor else None,
            'status': visit.get_overall_status_display(),
            'total_due': visit.total_due,
        }
        for visit in patient.visits.select_related('selected_doctor__user').order_by('-created_at')[:3]
    ]
    latest_test = patient.vision_tests.order_by('-test_date').first()

    return JsonResponse({
        'id': patient.pk,
        'patient_id': patient.patient_id,
        'name': patient.name,
        'phone': patient.phone,
        'age': patient.age,
        'gender': patient.get_gender_display(),
        'medical_history': patient.medical_history,
        'recent_visits': recent_visits,
        'total_visits': patient.visits.count(),
        'last_vision_test_date': latest_test.test_date.strftime('%Y-%m-%d') if latest_test else None,
    })


INCOME_HEADERS = [
    'SL', 'Date', 'Visit ID', 'Patient ID', 'Patient', 'Phone', 'Doctor',
    'Fee', 'Discount', 'Final Amount', 'Paid', 'Due',
]


class PatientIncomeReportView(LoginRequiredMixin, TemplateView):
    """
    Per-visit OPD income of new or follow-up patients over a date range.

    Filters: from_date, to_date, search (patient name, patient ID, phone,
    visit ID or doctor). ?export=excel downloads the same rows.
    """
    template_name = 'patients/patient_income_report.html'

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('hospital_account'):
            messages.error(request, 'You do not have permission to access income reports.')
            return redirect('core:dashboard')
        self.patient_type = kwargs['patient_type']
        if self.patient_type not in INCOME_REPORT_TITLES:
            raise Http404('Unknown income report')
        return super().dispatch(request, *args, **kwargs)

    def get(self, request, *args, **kwargs):
        if request.GET.get('export') == 'excel':
            return self.export_excel()
        return super().get(request, *args, **kwargs)

    def get_report(self):
        self.from_date, self.to_date = get_report_date_range(self.request.GET)
        self.search = self.request.GET.get('search', '').strip()
        report = patient_income_report(self.patient_type, self.from_date, self.to_date, self.search)
        report['filters'] = {
            'from_date': self.from_date.isoformat(),
            'to_date': self.to_date.isoformat(),
            'search': self.search,
        }
        return report

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_report())
        context['title'] = INCOME_REPORT_TITLES[self.patient_type]
        context['patient_type'] = self.patient_type
        context['report_types'] = INCOME_REPORT_TITLES
        return context

    def export_excel(self):
        report = self.get_report()
        totals = report['totals']
        data = [
            [
                row['sl'], row['visit_date'], row['visit_id'], row['patient_id'], row['patient_name'],
                row['patient_phone'], row['doctor_name'], row['doctor_fee'], row['discount_amount'],
                row['final_amount'], row['total_paid'], row['total_due'],
            ]
            for row in report['rows']
        ]
        total_row = [
            'TOTAL', '', '', '', f"{totals['visit_count']} visits", '', '',
            totals['doctor_fee'], totals['discount_amount'], totals['final_amount'],
            totals['total_paid'], totals['total_due'],
        ]
        title = INCOME_REPORT_TITLES[self.patient_type]
        sheet = build_report_rows(
            title,
            f"Period: {self.from_date:%d %b %Y} to {self.to_date:%d %b %Y}",
            INCOME_HEADERS, data, total_row,
        )
        logger.info("%s exported %s (%s rows)", self.request.user.username, title, len(data))
        return build_excel_response(sheet, excel_filename(title, self.from_date, self.to_date), 'Patient Income')
