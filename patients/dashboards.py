# patients/dashboards.py
"""
Data behind the doctor dashboard and the vision-test queue. Both pages render
it directly and poll it again as JSON, so everything here is plain dicts.
"""
from django.db.models import Count, Exists, OuterRef, Sum
from django.utils.timesince import timesince

from core.utils import get_local_date, get_local_today
from reports.utils import ZERO, filter_records
from .models import PatientVisit, Prescription, VisionTest

VISIT_SEARCH_FIELDS = ['patient_name', 'patient_id', 'patient_phone', 'serial_number']


def waiting_since(moment):
    if not moment:
        return None
    return f"{timesince(moment)} ago"


def doctor_dashboard_data(doctor, search=''):
    today = get_local_today()
    todays_visits = PatientVisit.objects.for_doctor(doctor).today()

    active = (
        todays_visits.active()
        .select_related('patient')
        .annotate(
            has_vision_test=Exists(VisionTest.objects.filter(
                patient=OuterRef('patient'), test_date__date=today
            )),
            has_prescription=Exists(Prescription.objects.filter(
                patient=OuterRef('patient'), doctor=doctor, created_at__date=today
            )),
        )
        .order_by('created_at')
    )

    visits = []
    for serial, visit in enumerate(active, start=1):
        patient = visit.patient
        visits.append({
            'id': visit.pk,
            'visit_id': visit.visit_id,
            'serial_number': serial,
            'patient_pk': patient.pk,
            'patient_id': patient.patient_id,
            'patient_name': patient.name,
            'patient_phone': patient.phone,
            'patient_age': patient.age,
            'patient_gender': patient.get_gender_display(),
            'chief_complaint': visit.chief_complaint,
            'medical_history': patient.medical_history,
            'visit_time': visit.created_at,
            'overall_status': visit.overall_status,
            'payment_status': visit.payment_status,
            'vision_test_status': visit.vision_test_status,
            'has_vision_test': visit.has_vision_test,
            'has_prescription': visit.has_prescription,
            'waiting_time': waiting_since(visit.created_at),
            'final_amount': visit.final_amount,
            'total_paid': visit.total_paid,
            'total_due': visit.total_due,
            'can_complete': visit.overall_status == PatientVisit.PRESCRIPTION,
        })

    if search:
        visits = filter_records(visits, search, VISIT_SEARCH_FIELDS)

    prescriptions_today = Prescription.objects.filter(doctor=doctor, created_at__date=today)
    stats = {
        'total_visits': todays_visits.count(),
        'completed_visits': todays_visits.filter(overall_status=PatientVisit.COMPLETED).count(),
        'pending_prescriptions': todays_visits.ready_for_prescription().filter(
            payment_status=PatientVisit.PAID
        ).exclude(Exists(Prescription.objects.filter(
            visit=OuterRef('pk'), doctor=doctor, created_at__date=today
        ))).count(),
        'prescriptions_written': prescriptions_today.count(),
        'total_revenue': todays_visits.aggregate(total=Sum('doctor_fee'))['total'] or ZERO,
    }

    recent = (
        Prescription.objects.filter(doctor=doctor)
        .select_related('patient', 'visit')
        .annotate(medicines_count=Count('medicines'))
        .order_by('-created_at')[:5]
    )
    recent_prescriptions = [
        {
            'id': prescription.pk,
            'patient_pk': prescription.patient.pk,
            'patient_name': prescription.patient.name,
            'patient_id': prescription.patient.patient_id,
            'visit_id': prescription.visit.visit_id if prescription.visit else 'N/A',
            'created_at': prescription.created_at,
            'medicines_count': prescription.medicines_count,
        }
        for prescription in recent
    ]

    return {
        'doctor': {
            'id': doctor.pk,
            'name': doctor.name,
            'specialization': doctor.specialization,
            'consultation_fee': doctor.consultation_fee,
        },
        'visits': visits,
        'stats': stats,
        'recent_prescriptions': recent_prescriptions,
        'search': search,
    }


def vision_queue_data():
    today = get_local_today()
    waiting = PatientVisit.objects.waiting_for_vision_test().select_related(
        'patient', 'selected_doctor__user'
    )

    queue = []
    for position, visit in enumerate(waiting, start=1):
        patient = visit.patient
        queue.append({
            'id': visit.pk,
            'visit_id': visit.visit_id,
            'position': position,
            'patient_pk': patient.pk,
            'patient_id': patient.patient_id,
            'patient_name': patient.name,
            'patient_phone': patient.phone,
            'age': patient.age,
            'gender': patient.get_gender_display(),
            'chief_complaint': visit.chief_complaint,
            'doctor_name': visit.selected_doctor.name if visit.selected_doctor else 'No Doctor Selected',
            'payment_completed_at': visit.payment_completed_at,
            'waiting_time': waiting_since(visit.payment_completed_at),
            'final_amount': visit.final_amount,
            'total_paid': visit.total_paid,
            'vision_test_status': visit.vision_test_status,
            'is_in_progress': visit.vision_test_status == PatientVisit.STEP_IN_PROGRESS,
        })

    completed_today = PatientVisit.objects.filter(
        vision_test_status=PatientVisit.STEP_COMPLETED,
        vision_test_completed_at__date=today,
    )
    recent = completed_today.select_related('patient', 'selected_doctor__user').order_by(
        '-vision_test_completed_at'
    )[:10]
    recent_tests = []
    for visit in recent:
        duration = None
        if visit.payment_completed_at and visit.vision_test_completed_at:
            minutes = int((visit.vision_test_completed_at - visit.payment_completed_at).total_seconds() // 60)
            duration = f"{minutes} minutes"
        recent_tests.append({
            'id': visit.pk,
            'visit_id': visit.visit_id,
            'patient_id': visit.patient.patient_id,
            'patient_name': visit.patient.name,
            'doctor_name': visit.selected_doctor.name if visit.selected_doctor else 'No Doctor Selected',
            'completed_at': visit.vision_test_completed_at,
            'test_duration': duration,
        })

    stats = {
        'total_waiting': len(queue),
        'in_progress_tests': sum(1 for item in queue if item['is_in_progress']),
        'tests_completed_today': completed_today.count(),
    }
    return {'queue': queue, 'stats': stats, 'recent_tests': recent_tests}


def patient_stats(patient, doctor=None):
    """Totals shown at the top of the patient view"""
    visits = list(patient.visits.all())
    vision_tests = list(patient.vision_tests.all())
    prescriptions = list(patient.prescriptions.all())
    last_visit = max(visits, key=lambda v: v.created_at, default=None)
    last_test = max(vision_tests, key=lambda t: t.test_date, default=None)
    return {
        'total_visits': len(visits),
        'total_prescriptions': len(prescriptions),
        'total_vision_tests': len(vision_tests),
        'my_prescriptions': sum(1 for p in prescriptions if doctor and p.doctor_id == doctor.pk),
        'total_paid': sum((v.total_paid for v in visits), ZERO),
        'total_due': sum((v.total_due for v in visits), ZERO),
        'last_visit_date': get_local_date(last_visit.created_at) if last_visit else None,
        'last_vision_test_date': get_local_date(last_test.test_date) if last_test else None,
    }
