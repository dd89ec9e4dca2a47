# reports/views.py
import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.contrib.auth.mixins import LoginRequiredMixin
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.shortcuts import redirect
from django.views.generic import TemplateView

from accounts.models import Account, Transaction
from core.models import SystemSetting
from core.utils import get_local_now
from medicine_corner.models import MedicineSale
from optics_corner.models import OpticsSale
from patients.models import PatientPayment, PatientVisit
from .exports import render_pdf_response
from .utils import ZERO, get_preset_date_range, percentage, profit_margin

logger = logging.getLogger(__name__)

MONEY = DecimalField(max_digits=14, decimal_places=2)

DATE_RANGE_CHOICES = [
    ('today', 'Today'),
    ('yesterday', 'Yesterday'),
    ('last_7_days', 'Last 7 Days'),
    ('last_30_days', 'Last 30 Days'),
    ('this_month', 'This Month'),
    ('custom', 'Custom Range'),
]


def _money_sum(field, **filter_kwargs):
    condition = Q(**filter_kwargs) if filter_kwargs else None
    return Coalesce(Sum(field, filter=condition), Value(ZERO), output_field=MONEY)


class ReportsView(LoginRequiredMixin, TemplateView):
    """
    Financial summary across the hospital, medicine and optics accounts

    NOTES:
    - Account figures come from the ledgers (transaction_date / fund date)
    - Sales figures use the sale date; OPD collections use the payment date
    """
    template_name = 'reports/reports_dashboard.html'

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return self.handle_no_permission()
        if not request.user.has_permission('reports'):
            messages.error(request, 'You do not have permission to access reports.')
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_report_context(self.request))
        context['date_range_choices'] = DATE_RANGE_CHOICES
        return context

    def get_report_context(self, request):
        date_range = request.GET.get('date_range') or SystemSetting.get_setting('reports_default_date_range')
        custom_start = request.GET.get('custom_start')
        custom_end = request.GET.get('custom_end')

        start_date, end_date = get_preset_date_range(date_range, custom_start, custom_end)

        context = {
            'date_range': date_range,
            'start_date': start_date,
            'end_date': end_date,
            'custom_start': custom_start or '',
            'custom_end': custom_end or '',
        }
        context.update(self._get_account_reports(start_date, end_date))
        context.update(self._get_patient_reports(start_date, end_date))
        context.update(self._get_sales_reports(start_date, end_date))
        return context

    def _get_account_reports(self, start_date, end_date):
        """Per-account ledger summary plus the combined totals"""
        accounts = []
        for kind, label in Account.KIND_CHOICES:
            account = Account.for_kind(kind)
            summary = account.summary(start_date, end_date)
            summary['kind'] = kind
            summary['name'] = label
            accounts.append(summary)

        combined = {
            key: sum((row[key] for row in accounts), ZERO)
            for key in ('balance', 'total_income', 'total_expense', 'net_profit',
                        'total_fund_in', 'total_fund_out', 'net_fund')
        }
        profit, margin = profit_margin(combined['total_income'], combined['total_expense'])
        combined['net_profit'] = profit
        combined['margin'] = margin

        for row in accounts:
            row['income_share'] = percentage(row['total_income'], combined['total_income'])

        income_by_category = list(
            Transaction.objects.between(start_date, end_date).income()
            .values('account__kind', 'category_name')
            .annotate(total=_money_sum('amount'), count=Count('id'))
            .order_by('-total')[:10]
        )
        expense_by_category = list(
            Transaction.objects.between(start_date, end_date).expense()
            .values('account__kind', 'category_name')
            .annotate(total=_money_sum('amount'), count=Count('id'))
            .order_by('-total')[:10]
        )

        return {
            'accounts': accounts,
            'combined': combined,
            'income_by_category': income_by_category,
            'expense_by_category': expense_by_category,
        }

    def _get_patient_reports(self, start_date, end_date):
        visits = PatientVisit.objects.filter(
            created_at__date__gte=start_date,
            created_at__date__lte=end_date,
        )
        visit_stats = visits.aggregate(
            total=Count('id'),
            completed=Count('id', filter=Q(overall_status=PatientVisit.COMPLETED)),
            followups=Count('id', filter=Q(is_followup=True)),
            billed=_money_sum('final_amount'),
            discounts=_money_sum('discount_amount'),
            due=_money_sum('total_due'),
        )
        collected = PatientPayment.objects.filter(
            payment_date__gte=start_date,
            payment_date__lte=end_date,
        ).aggregate(total=_money_sum('amount'))['total']

        by_doctor = list(
            visits.values('selected_doctor__user__first_name', 'selected_doctor__user__last_name')
            .annotate(visits=Count('id'), fees=_money_sum('doctor_fee'))
            .order_by('-visits')
        )

        return {
            'visit_stats': visit_stats,
            'opd_collected': collected,
            'collection_rate': percentage(collected, visit_stats['billed']),
            'completion_rate': percentage(visit_stats['completed'], visit_stats['total']),
            'visits_by_doctor': by_doctor,
        }

    def _get_sales_reports(self, start_date, end_date):
        medicine = MedicineSale.objects.filter(
            sale_date__gte=start_date, sale_date__lte=end_date
        ).aggregate(
            count=Count('id'),
            total=_money_sum('total_amount'),
            discount=_money_sum('discount'),
            paid=_money_sum('paid_amount'),
            due=_money_sum('due_amount'),
        )
        optics = OpticsSale.objects.between(start_date, end_date).aggregate(
            count=Count('id'),
            total=_money_sum('total_amount'),
            discount=_money_sum('discount'),
            fitting=_money_sum('glass_fitting_price'),
            paid=_money_sum('advance_payment'),
            due=_money_sum('due_amount'),
        )
        return {
            'medicine_sales': medicine,
            'optics_sales': optics,
            'total_sales_due': medicine['due'] + optics['due'],
        }


@login_required
def export_reports_pdf(request):
    """Export the reports hub to PDF"""
    if not request.user.has_permission('reports'):
        messages.error(request, 'You do not have permission to export reports.')
        return redirect('core:dashboard')

    view = ReportsView()
    view.request = request
    context = view.get_report_context(request)
    context.update({
        'generated_at': get_local_now(),
        'generated_by': request.user.full_name,
        'hospital_name': SystemSetting.get_setting('hospital_name'),
        'hospital_address': SystemSetting.get_setting('hospital_address'),
        'hospital_phone': SystemSetting.get_setting('hospital_phone'),
    })

    try:
        filename = f"Reports_{context['start_date']}_to_{context['end_date']}.pdf"
        response = render_pdf_response('reports/reports_pdf.html', context, filename)
    except Exception as e:
        logger.error(f"Error generating reports PDF: {str(e)}", exc_info=True)
        messages.error(request, 'Error generating PDF. Please try again.')
        return redirect('reports:dashboard')

    if response is None:
        messages.error(request, 'Error generating PDF. Please try again.')
        return redirect('reports:dashboard')
    return response
