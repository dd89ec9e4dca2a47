# patients/reports.py
"""
OPD income reports: one row per visit for new or follow-up patients, with fee,
discount, paid and due figures.
"""
from django.db.models import Q

from core.utils import get_local_date
from reports.utils import sum_columns
from .models import PatientVisit

NEW_PATIENTS = 'new'
FOLLOWUP_PATIENTS = 'followup'

INCOME_REPORT_TITLES = {
    NEW_PATIENTS: 'New Patient Income Report',
    FOLLOWUP_PATIENTS: 'Follow-up Patient Income Report',
}

INCOME_TOTAL_KEYS = ['doctor_fee', 'discount_amount', 'final_amount', 'total_paid', 'total_due']


def patient_income_report(patient_type, from_date, to_date, search=''):
    visits = (
        PatientVisit.objects
        .filter(
            is_followup=(patient_type == FOLLOWUP_PATIENTS),
            created_at__date__gte=from_date,
            created_at__date__lte=to_date,
        )
        .select_related('patient', 'selected_doctor__user')
        .order_by('created_at', 'pk')
    )

    term = (search or '').strip()
    if term:
        visits = visits.filter(
            Q(patient__name__icontains=term)
            | Q(patient__patient_id__icontains=term)
            | Q(patient__phone__icontains=term)
            | Q(visit_id__icontains=term)
            | Q(selected_doctor__user__first_name__icontains=term)
            | Q(selected_doctor__user__last_name__icontains=term)
        )

    rows = []
    for sl, visit in enumerate(visits, start=1):
        doctor = visit.selected_doctor
        rows.append({
            'sl': sl,
            'visit_pk': visit.pk,
            'visit_id': visit.visit_id,
            'visit_date': get_local_date(visit.created_at),
            'patient_pk': visit.patient_id,
            'patient_name': visit.patient.name,
            'patient_id': visit.patient.patient_id,
            'patient_phone': visit.patient.phone,
            'doctor_name': doctor.name if doctor else '',
            'doctor_fee': visit.doctor_fee,
            'discount_amount': visit.discount_amount,
            'final_amount': visit.final_amount,
            'total_paid': visit.total_paid,
            'total_due': visit.total_due,
            'payment_status': visit.payment_status,
        })

    totals = sum_columns(rows, INCOME_TOTAL_KEYS)
    totals['visit_count'] = len(rows)
    return {'rows': rows, 'totals': totals}
