# patients/tests.py
"""
Tests for the visit workflow: fees, payments, vision tests and the doctor
and vision-test dashboards
"""
from datetime import date, timedelta
from decimal import Decimal

from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from accounts.models import Account
from core.utils import get_local_today
from reports.exports import XLSX_CONTENT_TYPE
from users.models import Role, User
from .dashboards import doctor_dashboard_data, patient_stats, vision_queue_data
from .exceptions import PaymentError, VisitOwnershipError, VisitStageError
from .models import Doctor, Patient, PatientVisit, VisionTest
from .reports import FOLLOWUP_PATIENTS, NEW_PATIENTS, patient_income_report

AJAX = {'HTTP_X_REQUESTED_WITH': 'XMLHttpRequest'}


def make_user(username, role_name, **extra):
    role, _ = Role.objects.get_or_create(
        name=role_name,
        defaults={
            'display_name': dict(Role.ROLE_CHOICES)[role_name],
            'permissions': Role.default_permissions_for(role_name),
        }
    )
    return User.objects.create_user(username=username, password='testpass123', role=role, **extra)


def make_doctor(username='dr_hasan', consultation_fee='500.00', follow_up_fee='300.00'):
    user = make_user(username, Role.DOCTOR, first_name='Mahmud', last_name='Hasan')
    return Doctor.objects.create(
        user=user,
        specialization='Glaucoma',
        consultation_fee=Decimal(consultation_fee),
        follow_up_fee=Decimal(follow_up_fee) if follow_up_fee else None,
    )


class PatientModelTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def test_patient_ids_are_sequential(self):
        first = Patient.objects.create(name='Ayesha Begum')
        second = Patient.objects.create(name='Rafiq Islam')
        year = get_local_today().year
        self.assertEqual(first.patient_id, f'EH-{year}-00001')
        self.assertEqual(second.patient_id, f'EH-{year}-00002')

    def test_age_from_date_of_birth(self):
        today = get_local_today()
        patient = Patient.objects.create(name='Test', date_of_birth=date(today.year - 40, 1, 1))
        self.assertEqual(patient.age, 40)
        self.assertIsNone(Patient(name='No DOB').age)

    def test_search_matches_name_id_and_phone(self):
        patient = Patient.objects.create(name='Nasrin Akter', phone='01711000000')
        Patient.objects.create(name='Someone Else', phone='01999999999')
        self.assertEqual(list(Patient.objects.search('nasrin')), [patient])
        self.assertEqual(list(Patient.objects.search('01711')), [patient])
        self.assertEqual(list(Patient.objects.search(patient.patient_id)), [patient])
        self.assertEqual(Patient.objects.search('').count(), 2)


class VisitFeeTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.doctor = make_doctor()
        self.patient = Patient.objects.create(name='Karim Uddin')

    def test_new_visit_uses_consultation_fee(self):
        visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor)
        self.assertEqual(visit.doctor_fee, Decimal('500.00'))
        self.assertEqual(visit.final_amount, Decimal('500.00'))
        self.assertEqual(visit.total_due, Decimal('500.00'))
        self.assertEqual(visit.overall_status, PatientVisit.PAYMENT)
        self.assertRegex(visit.visit_id, r'^PV\d{8}0001$')

    def test_followup_visit_uses_followup_fee(self):
        visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor, is_followup=True)
        self.assertEqual(visit.doctor_fee, Decimal('300.00'))

    def test_followup_without_followup_fee_is_free(self):
        doctor = make_doctor('dr_no_followup', follow_up_fee=None)
        visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=doctor, is_followup=True)
        self.assertEqual(visit.final_amount, Decimal('0.00'))

    def test_no_doctor_means_no_fee(self):
        visit = PatientVisit.objects.create(patient=self.patient)
        self.assertEqual(visit.total_amount, Decimal('0.00'))

    def test_percentage_discount(self):
        visit = PatientVisit.objects.create(
            patient=self.patient, selected_doctor=self.doctor,
            discount_type=PatientVisit.DISCOUNT_PERCENTAGE, discount_value=Decimal('10'),
        )
        self.assertEqual(visit.discount_amount, Decimal('50.00'))
        self.assertEqual(visit.final_amount, Decimal('450.00'))

    def test_fixed_discount_is_capped_at_total(self):
        visit = PatientVisit.objects.create(
            patient=self.patient, selected_doctor=self.doctor,
            discount_type=PatientVisit.DISCOUNT_FIXED, discount_value=Decimal('800'),
        )
        self.assertEqual(visit.discount_amount, Decimal('500.00'))
        self.assertEqual(visit.final_amount, Decimal('0.00'))

    def test_changing_doctor_recalculates(self):
        visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor)
        other = make_doctor('dr_other', consultation_fee='700.00')
        visit.selected_doctor = other
        visit.save()
        visit.refresh_from_db()
        self.assertEqual(visit.doctor_fee, Decimal('700.00'))
        self.assertEqual(visit.total_due, Decimal('700.00'))


class VisitWorkflowTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.doctor = make_doctor()
        self.patient = Patient.objects.create(name='Karim Uddin')
        self.visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor)

    def test_partial_then_full_payment(self):
        self.visit.add_payment(200)
        self.assertEqual(self.visit.payment_status, PatientVisit.PARTIAL)
        self.assertEqual(self.visit.overall_status, PatientVisit.PAYMENT)
        self.assertEqual(self.visit.total_due, Decimal('300.00'))

        self.visit.add_payment(300, payment_method='card')
        self.assertEqual(self.visit.payment_status, PatientVisit.PAID)
        self.assertEqual(self.visit.overall_status, PatientVisit.VISION_TEST)
        self.assertIsNotNone(self.visit.payment_completed_at)

    def test_payment_posts_opd_income(self):
        payment = self.visit.add_payment(500)
        hospital = Account.for_kind(Account.HOSPITAL)
        income = hospital.transactions.get()

        self.assertEqual(income.category_name, 'OPD Income')
        self.assertEqual(income.amount, Decimal('500.00'))
        self.assertEqual(income.reference_id, payment.pk)
        self.assertEqual(hospital.balance, Decimal('500.00'))

    def test_payment_over_due_is_refused(self):
        with self.assertRaises(PaymentError):
            self.visit.add_payment(600)
        self.assertFalse(self.visit.payments.exists())

    def test_paid_visit_takes_no_more_payments(self):
        self.visit.add_payment(500)
        with self.assertRaises(PaymentError):
            self.visit.add_payment(1)

    def test_vision_test_needs_payment(self):
        with self.assertRaises(VisitStageError):
            self.visit.start_vision_test()

    def test_full_progression(self):
        self.visit.add_payment(500)
        self.visit.start_vision_test()
        self.assertEqual(self.visit.vision_test_status, PatientVisit.STEP_IN_PROGRESS)

        self.visit.complete_vision_test()
        self.assertEqual(self.visit.overall_status, PatientVisit.PRESCRIPTION)
        with self.assertRaises(VisitStageError):
            self.visit.check_ready_for_vision_test()

        self.visit.complete_prescription(doctor=self.doctor)
        self.visit.refresh_from_db()
        self.assertEqual(self.visit.overall_status, PatientVisit.COMPLETED)
        self.assertEqual(self.visit.prescription_status, PatientVisit.STEP_COMPLETED)
        self.assertFalse(self.visit.is_active)

    def test_other_doctor_cannot_complete(self):
        self.visit.add_payment(500)
        self.visit.complete_vision_test()
        with self.assertRaises(VisitOwnershipError):
            self.visit.complete_prescription(doctor=make_doctor('dr_other'))

    def test_complete_before_prescription_stage(self):
        with self.assertRaises(VisitStageError):
            self.visit.complete_prescription(doctor=self.doctor)

    def test_patient_stats(self):
        self.visit.add_payment(200)
        stats = patient_stats(self.patient, self.doctor)
        self.assertEqual(stats['total_visits'], 1)
        self.assertEqual(stats['total_paid'], Decimal('200.00'))
        self.assertEqual(stats['total_due'], Decimal('300.00'))
        self.assertEqual(stats['last_visit_date'], get_local_today())


class DashboardDataTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.doctor = make_doctor()
        self.first = PatientVisit.objects.create(
            patient=Patient.objects.create(name='Ayesha Begum', phone='01711000000'),
            selected_doctor=self.doctor,
        )
        self.second = PatientVisit.objects.create(
            patient=Patient.objects.create(name='Rafiq Islam'),
            selected_doctor=self.doctor,
        )

    def test_doctor_dashboard_lists_active_visits_in_order(self):
        data = doctor_dashboard_data(self.doctor)
        self.assertEqual([v['serial_number'] for v in data['visits']], [1, 2])
        self.assertEqual(data['visits'][0]['patient_name'], 'Ayesha Begum')
        self.assertEqual(data['stats']['total_visits'], 2)

    def test_doctor_dashboard_search(self):
        data = doctor_dashboard_data(self.doctor, search='rafiq')
        self.assertEqual([v['patient_name'] for v in data['visits']], ['Rafiq Islam'])
        self.assertEqual(data['visits'][0]['serial_number'], 2)

    def test_completed_visits_leave_the_list(self):
        self.first.complete_prescription()
        data = doctor_dashboard_data(self.doctor)
        self.assertEqual(len(data['visits']), 1)
        self.assertEqual(data['stats']['completed_visits'], 1)

    def test_vision_queue_is_first_paid_first_served(self):
        self.second.add_payment(500)
        self.first.add_payment(500)
        data = vision_queue_data()
        self.assertEqual([item['visit_id'] for item in data['queue']],
                         [self.second.visit_id, self.first.visit_id])
        self.assertEqual(data['stats']['total_waiting'], 2)

    def test_unpaid_visits_are_not_queued(self):
        self.first.add_payment(100)
        self.assertEqual(vision_queue_data()['queue'], [])


class PatientViewsTest(TestCase):

    def setUp(self):
        self.doctor = make_doctor()
        self.patient = Patient.objects.create(name='Karim Uddin', phone='01811000000')
        self.visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor)
        self.receptionist = make_user('reception', Role.RECEPTIONIST)
        self.refractionist = make_user('refraction', Role.REFRACTIONIST)

    def test_patient_search(self):
        self.client.force_login(self.receptionist)
        response = self.client.get(reverse('patients:patient_search'), {'query': 'karim'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['patients']), [self.patient])

    def test_patient_view_renders(self):
        self.client.force_login(self.receptionist)
        response = self.client.get(reverse('patients:patient_detail', kwargs={'pk': self.patient.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['latest_visit'], self.visit)

    def test_record_payment(self):
        self.client.force_login(self.receptionist)
        response = self.client.post(
            reverse('patients:record_payment', kwargs={'pk': self.visit.pk}),
            {'amount': '500.00', 'payment_method': 'cash', 'notes': ''}
        )
        self.assertRedirects(
            response, reverse('patients:patient_detail', kwargs={'pk': self.patient.pk}),
            fetch_redirect_response=False
        )
        self.visit.refresh_from_db()
        self.assertEqual(self.visit.payment_status, PatientVisit.PAID)

    def test_payment_over_due_reopens_modal(self):
        self.client.force_login(self.receptionist)
        response = self.client.post(
            reverse('patients:record_payment', kwargs={'pk': self.visit.pk}),
            {'amount': '900.00', 'payment_method': 'cash'}
        )
        self.assertIn(f'modal=payment-{self.visit.pk}', response['Location'])
        self.assertFalse(self.visit.payments.exists())

    def test_quick_info_json(self):
        self.client.force_login(self.receptionist)
        response = self.client.get(reverse('patients:patient_quick_info', kwargs={'pk': self.patient.pk}))
        data = response.json()
        self.assertEqual(data['patient_id'], self.patient.patient_id)
        self.assertEqual(data['total_visits'], 1)

        response = self.client.get(reverse('patients:patient_quick_info', kwargs={'pk': 99999}))
        self.assertEqual(response.status_code, 404)

    def test_vision_test_flow(self):
        self.visit.add_payment(500)
        self.client.force_login(self.refractionist)

        response = self.client.get(reverse('patients:vision_queue'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats']['total_waiting'], 1)

        response = self.client.post(reverse('patients:start_vision_test', kwargs={'pk': self.visit.pk}), **AJAX)
        self.assertTrue(response.json()['success'])

        response = self.client.post(
            reverse('patients:record_vision_test', kwargs={'pk': self.visit.pk}),
            {'complains': 'Blurred distance vision', 'right_eye_sphere': '-1.25', 'left_eye_sphere': '-1.00'}
        )
        self.assertRedirects(response, reverse('patients:vision_queue'), fetch_redirect_response=False)

        self.visit.refresh_from_db()
        self.assertEqual(self.visit.overall_status, PatientVisit.PRESCRIPTION)
        test = VisionTest.objects.get(visit=self.visit)
        self.assertEqual(test.right_eye_sphere, Decimal('-1.25'))
        self.assertEqual(test.performed_by, self.refractionist)

    def test_vision_test_rejects_out_of_range_power(self):
        self.visit.add_payment(500)
        self.client.force_login(self.refractionist)
        response = self.client.post(
            reverse('patients:record_vision_test', kwargs={'pk': self.visit.pk}),
            {'right_eye_sphere': '-45.00'}
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(VisionTest.objects.exists())

    def test_start_unpaid_vision_test_is_400(self):
        self.client.force_login(self.refractionist)
        response = self.client.post(reverse('patients:start_vision_test', kwargs={'pk': self.visit.pk}), **AJAX)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_vision_queue_needs_permission(self):
        self.client.force_login(self.receptionist)
        response = self.client.get(reverse('patients:vision_queue'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        response = self.client.get(reverse('patients:vision_queue_data'))
        self.assertEqual(response.status_code, 403)


class DoctorViewsTest(TestCase):

    def setUp(self):
        self.doctor = make_doctor()
        self.patient = Patient.objects.create(name='Karim Uddin')
        self.visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=self.doctor)
        self.client.force_login(self.doctor.user)

    def test_dashboard_and_json(self):
        response = self.client.get(reverse('patients:doctor_dashboard'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['visits']), 1)

        response = self.client.get(reverse('patients:doctor_dashboard_data'), **AJAX)
        data = response.json()
        self.assertEqual(data['doctor']['name'], 'Mahmud Hasan')
        self.assertEqual(data['visits'][0]['visit_id'], self.visit.visit_id)

    def test_complete_visit_at_wrong_stage_is_400(self):
        response = self.client.post(reverse('patients:complete_visit', kwargs={'pk': self.visit.pk}), **AJAX)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])
        self.visit.refresh_from_db()
        self.assertEqual(self.visit.overall_status, PatientVisit.PAYMENT)

    def test_complete_visit(self):
        self.visit.add_payment(500)
        self.visit.complete_vision_test()
        response = self.client.post(reverse('patients:complete_visit', kwargs={'pk': self.visit.pk}), **AJAX)
        self.assertEqual(response.json(), {'success': True, 'visit_id': self.visit.visit_id})
        self.visit.refresh_from_db()
        self.assertEqual(self.visit.overall_status, PatientVisit.COMPLETED)

    def test_complete_visit_of_another_doctor_is_400(self):
        other = make_doctor('dr_other')
        visit = PatientVisit.objects.create(patient=self.patient, selected_doctor=other)
        visit.add_payment(500)
        visit.complete_vision_test()
        response = self.client.post(reverse('patients:complete_visit', kwargs={'pk': visit.pk}), **AJAX)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'This visit is not assigned to you.')

    def test_user_without_doctor_profile(self):
        admin = User.objects.create_superuser('root', 'root@example.com', 'testpass123')
        self.client.force_login(admin)
        response = self.client.get(reverse('patients:doctor_dashboard'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        response = self.client.get(reverse('patients:doctor_dashboard_data'))
        self.assertEqual(response.status_code, 404)


class PatientIncomeReportTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def setUp(self):
        self.today = get_local_today()
        self.doctor = make_doctor()
        self.other_doctor = Doctor.objects.create(
            user=make_user('dr_rahman', Role.DOCTOR, first_name='Selina', last_name='Rahman'),
            consultation_fee=Decimal('800.00'),
        )
        self.discounted = PatientVisit.objects.create(
            patient=Patient.objects.create(name='Karim Uddin', phone='01811000000'),
            selected_doctor=self.doctor,
            discount_type=PatientVisit.DISCOUNT_PERCENTAGE, discount_value=Decimal('10'),
        )
        self.discounted.add_payment(200)
        self.unpaid = PatientVisit.objects.create(
            patient=Patient.objects.create(name='Ayesha Begum'),
            selected_doctor=self.other_doctor,
        )
        self.followup = PatientVisit.objects.create(
            patient=self.discounted.patient, selected_doctor=self.doctor, is_followup=True,
        )

    def test_new_and_followup_visits_are_split(self):
        new = patient_income_report(NEW_PATIENTS, self.today, self.today)
        followup = patient_income_report(FOLLOWUP_PATIENTS, self.today, self.today)

        self.assertEqual([row['visit_pk'] for row in new['rows']], [self.discounted.pk, self.unpaid.pk])
        self.assertEqual([row['visit_pk'] for row in followup['rows']], [self.followup.pk])
        self.assertEqual(followup['rows'][0]['doctor_fee'], Decimal('300.00'))

    def test_totals_cover_fee_discount_paid_and_due(self):
        totals = patient_income_report(NEW_PATIENTS, self.today, self.today)['totals']
        self.assertEqual(totals['visit_count'], 2)
        self.assertEqual(totals['doctor_fee'], Decimal('1300.00'))
        self.assertEqual(totals['discount_amount'], Decimal('50.00'))
        self.assertEqual(totals['final_amount'], Decimal('1250.00'))
        self.assertEqual(totals['total_paid'], Decimal('200.00'))
        self.assertEqual(totals['total_due'], Decimal('1050.00'))

    def test_search_by_patient_or_doctor(self):
        by_patient = patient_income_report(NEW_PATIENTS, self.today, self.today, search='ayesha')
        self.assertEqual([row['visit_pk'] for row in by_patient['rows']], [self.unpaid.pk])

        by_doctor = patient_income_report(NEW_PATIENTS, self.today, self.today, search='rahman')
        self.assertEqual([row['doctor_name'] for row in by_doctor['rows']], ['Selina Rahman'])

        by_phone = patient_income_report(NEW_PATIENTS, self.today, self.today, search='01811')
        self.assertEqual(by_phone['totals']['visit_count'], 1)

    def test_visits_outside_the_range_are_left_out(self):
        PatientVisit.objects.filter(pk=self.unpaid.pk).update(
            created_at=timezone.now() - timedelta(days=10)
        )
        report = patient_income_report(NEW_PATIENTS, self.today - timedelta(days=2), self.today)
        self.assertEqual([row['visit_pk'] for row in report['rows']], [self.discounted.pk])
        self.assertEqual(report['totals']['total_due'], Decimal('250.00'))

    def test_report_page_renders_for_accountant(self):
        self.client.force_login(make_user('accounts', Role.ACCOUNTANT))
        response = self.client.get(
            reverse('patients:income_report', kwargs={'patient_type': 'new'}),
            {'from_date': self.today.isoformat(), 'to_date': self.today.isoformat(), 'search': 'karim'}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['title'], 'New Patient Income Report')
        self.assertEqual(len(response.context['rows']), 1)
        self.assertEqual(response.context['filters']['search'], 'karim')
        self.assertContains(response, 'Follow-up Patient Income Report')

    def test_excel_export(self):
        self.client.force_login(make_user('accounts', Role.ACCOUNTANT))
        response = self.client.get(
            reverse('patients:income_report', kwargs={'patient_type': 'followup'}), {'export': 'excel'}
        )
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)
        self.assertIn('Follow-up_Patient_Income_Report_', response['Content-Disposition'])

    def test_unknown_report_type_is_404(self):
        self.client.force_login(make_user('accounts', Role.ACCOUNTANT))
        response = self.client.get(reverse('patients:income_report', kwargs={'patient_type': 'walkin'}))
        self.assertEqual(response.status_code, 404)

    def test_receptionist_is_redirected(self):
        self.client.force_login(make_user('reception', Role.RECEPTIONIST))
        response = self.client.get(reverse('patients:income_report', kwargs={'patient_type': 'new'}))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
