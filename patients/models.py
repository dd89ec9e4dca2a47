# patients/models.py
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models, transaction as db_transaction
from django.db.models import Q, Sum

from accounts.models import Account
from core.utils import get_local_now, get_local_today
from .exceptions import PaymentError, VisitOwnershipError, VisitStageError

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


class PatientQuerySet(models.QuerySet):

    def search(self, term):
        """Case-insensitive substring match on name, patient ID and phone"""
        term = (term or '').strip()
        if not term:
            return self
        return self.filter(
            Q(name__icontains=term) |
            Q(patient_id__icontains=term) |
            Q(phone__icontains=term)
        )


class Patient(models.Model):
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]

    patient_id = models.CharField(max_length=20, unique=True, editable=False)
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    medical_history = models.TextField(blank=True)
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='registered_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PatientQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.patient_id})"

    def save(self, *args, **kwargs):
        if not self.patient_id:
            self.patient_id = self.generate_patient_id()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_patient_id(year=None):
        """EH-<year>-<5 digit sequence>, restarting every year"""
        year = year or get_local_today().year
        prefix = f'EH-{year}-'
        last = (
            Patient.objects.filter(patient_id__startswith=prefix)
            .order_by('-patient_id')
            .values_list('patient_id', flat=True)
            .first()
        )
        sequence = int(last.rsplit('-', 1)[1]) + 1 if last else 1
        return f'{prefix}{sequence:05d}'

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        today = get_local_today()
        years = today.year - self.date_of_birth.year
        if (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day):
            years -= 1
        return years


class Doctor(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='doctor_profile'
    )
    specialization = models.CharField(max_length=200, blank=True)
    qualification = models.CharField(max_length=200, blank=True)
    bio = models.TextField(blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    follow_up_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['user__first_name', 'user__last_name']

    def __str__(self):
        return f"Dr. {self.name}"

    @property
    def name(self):
        return self.user.full_name

    def fee_for(self, is_followup):
        if is_followup:
            return self.follow_up_fee or ZERO
        return self.consultation_fee


class PatientVisitQuerySet(models.QuerySet):

    def today(self):
        return self.filter(created_at__date=get_local_today())

    def for_doctor(self, doctor):
        return self.filter(selected_doctor=doctor)

    def active(self):
        return self.exclude(overall_status=PatientVisit.COMPLETED)

    def waiting_for_vision_test(self):
        """Paid visits not yet tested, first paid first served"""
        return self.filter(
            payment_status=PatientVisit.PAID,
            overall_status=PatientVisit.VISION_TEST,
        ).exclude(
            vision_test_status=PatientVisit.STEP_COMPLETED
        ).order_by('payment_completed_at', 'created_at')

    def ready_for_prescription(self):
        return self.filter(
            vision_test_status=PatientVisit.STEP_COMPLETED,
            prescription_status=PatientVisit.STEP_PENDING,
            overall_status=PatientVisit.PRESCRIPTION,
        )


class PatientVisit(models.Model):
    # payment_status
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'
    PAYMENT_STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (PARTIAL, 'Partial'),
        (PAID, 'Paid'),
    ]

    # vision_test_status / prescription_status
    STEP_PENDING = 'pending'
    STEP_IN_PROGRESS = 'in_progress'
    STEP_COMPLETED = 'completed'
    STEP_STATUS_CHOICES = [
        (STEP_PENDING, 'Pending'),
        (STEP_IN_PROGRESS, 'In Progress'),
        (STEP_COMPLETED, 'Completed'),
    ]

    # overall_status
    PAYMENT = 'payment'
    VISION_TEST = 'vision_test'
    PRESCRIPTION = 'prescription'
    COMPLETED = 'completed'
    OVERALL_STATUS_CHOICES = [
        (PAYMENT, 'Payment'),
        (VISION_TEST, 'Vision Test'),
        (PRESCRIPTION, 'Prescription'),
        (COMPLETED, 'Completed'),
    ]

    DISCOUNT_PERCENTAGE = 'percentage'
    DISCOUNT_FIXED = 'fixed'
    DISCOUNT_TYPE_CHOICES = [
        (DISCOUNT_PERCENTAGE, 'Percentage'),
        (DISCOUNT_FIXED, 'Fixed'),
    ]

    # Changing any of these recalculates the fees
    FEE_FIELDS = ('selected_doctor_id', 'is_followup', 'discount_type', 'discount_value')

    visit_id = models.CharField(max_length=20, unique=True, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='visits')
    selected_doctor = models.ForeignKey(
        Doctor,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='visits'
    )
    registration_fee = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    doctor_fee = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default=DISCOUNT_FIXED)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    final_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_paid = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_due = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)

    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PENDING)
    vision_test_status = models.CharField(max_length=20, choices=STEP_STATUS_CHOICES, default=STEP_PENDING)
    prescription_status = models.CharField(max_length=20, choices=STEP_STATUS_CHOICES, default=STEP_PENDING)
    overall_status = models.CharField(max_length=20, choices=OVERALL_STATUS_CHOICES, default=PAYMENT)
    payment_completed_at = models.DateTimeField(null=True, blank=True)
    vision_test_completed_at = models.DateTimeField(null=True, blank=True)
    prescription_completed_at = models.DateTimeField(null=True, blank=True)

    chief_complaint = models.TextField(blank=True)
    visit_notes = models.TextField(blank=True)
    is_followup = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_visits'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PatientVisitQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['overall_status', 'created_at'], name='visit_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.visit_id} - {self.patient.name}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_fee_values = {
            field: getattr(instance, field) for field in cls.FEE_FIELDS if field in field_names
        }
        return instance

    def _fee_fields_changed(self):
        loaded = getattr(self, '_loaded_fee_values', None)
        if loaded is None:
            return True
        return any(getattr(self, field) != value for field, value in loaded.items())

    def save(self, *args, **kwargs):
        if not self.visit_id:
            self.visit_id = self.generate_visit_id()
        if self._state.adding or self._fee_fields_changed():
            self.calculate_fees()
            if kwargs.get('update_fields') is not None:
                kwargs['update_fields'] = set(kwargs['update_fields']) | {
                    'registration_fee', 'doctor_fee', 'total_amount', 'discount_amount', 'final_amount', 'total_due',
                }
        super().save(*args, **kwargs)
        self._loaded_fee_values = {field: getattr(self, field) for field in self.FEE_FIELDS}

    @staticmethod
    def generate_visit_id(on_date=None):
        """PV<YYYYMMDD><4 digit sequence of the day>"""
        on_date = on_date or get_local_today()
        prefix = f'PV{on_date:%Y%m%d}'
        last = (
            PatientVisit.objects.filter(visit_id__startswith=prefix)
            .order_by('-visit_id')
            .values_list('visit_id', flat=True)
            .first()
        )
        sequence = int(last[-4:]) + 1 if last else 1
        return f'{prefix}{sequence:04d}'

    def calculate_fees(self):
        self.registration_fee = ZERO
        self.doctor_fee = self.selected_doctor.fee_for(self.is_followup) if self.selected_doctor_id else ZERO
        self.total_amount = self.registration_fee + self.doctor_fee
        self.discount_amount = self.calculate_discount()
        self.final_amount = self.total_amount - self.discount_amount
        self.total_due = max(ZERO, self.final_amount - (self.total_paid or ZERO))

    def calculate_discount(self):
        value = Decimal(self.discount_value or 0)
        if value <= 0:
            return ZERO
        if self.discount_type == self.DISCOUNT_PERCENTAGE:
            return (self.total_amount * value / 100).quantize(CENT, rounding=ROUND_HALF_UP)
        return min(value, self.total_amount)

    def update_totals(self):
        """
        Recompute paid and due from the payments and move the payment status.
        A fully paid visit goes on to the vision test; the first time it is
        fully paid is kept in payment_completed_at.
        """
        paid = self.payments.aggregate(total=Sum('amount'))['total'] or ZERO
        self.total_paid = paid
        self.total_due = max(ZERO, self.final_amount - paid)

        if self.total_due <= 0 and paid >= self.final_amount:
            if self.payment_status != self.PAID:
                self.payment_status = self.PAID
                self.overall_status = self.VISION_TEST
                self.payment_completed_at = self.payment_completed_at or get_local_now()
        elif paid > 0:
            self.payment_status = self.PARTIAL
        else:
            self.payment_status = self.PENDING

        self.save(update_fields=[
            'total_paid', 'total_due', 'payment_status', 'overall_status', 'payment_completed_at', 'updated_at'
        ])

    def add_payment(self, amount, payment_method='cash', notes='', user=None):
        """
        Take a payment for this visit, refresh the totals and post it as OPD
        Income on the hospital account.
        """
        amount = Decimal(str(amount or 0))
        if amount <= 0:
            raise PaymentError('Payment amount must be greater than zero.')

        with db_transaction.atomic():
            visit = PatientVisit.objects.select_for_update().get(pk=self.pk)
            if visit.payment_status == self.PAID:
                raise PaymentError('This visit is already fully paid.')
            if amount > visit.total_due:
                raise PaymentError(f'Payment exceeds the due amount of {visit.total_due}.')

            payment = PatientPayment.objects.create(
                payment_number=PatientPayment.generate_payment_number(),
                patient=visit.patient,
                visit=visit,
                amount=amount,
                payment_method=payment_method,
                payment_date=get_local_today(),
                notes=notes,
                received_by=user,
            )
            visit.update_totals()
            Account.for_kind(Account.HOSPITAL).add_income(
                amount,
                'OPD Income',
                f'Visit {visit.visit_id} - {visit.patient.name}',
                date=payment.payment_date,
                user=user,
                reference_type='patient_payment',
                reference_id=payment.pk,
            )

        self.refresh_from_db()
        logger.info("Payment %s of %s taken for visit %s", payment.payment_number, amount, self.visit_id)
        return payment

    def check_ready_for_vision_test(self):
        if self.payment_status != self.PAID:
            raise VisitStageError(
                f'Visit payment is not completed yet. Paid: {self.total_paid}, Due: {self.total_due}'
            )
        if self.vision_test_status == self.STEP_COMPLETED:
            raise VisitStageError('Vision test already completed for this visit.')

    def start_vision_test(self):
        if self.payment_status != self.PAID:
            # status may be stale if a payment was edited elsewhere
            self.update_totals()
        self.check_ready_for_vision_test()

        self.vision_test_status = self.STEP_IN_PROGRESS
        self.overall_status = self.VISION_TEST
        self.save(update_fields=['vision_test_status', 'overall_status', 'updated_at'])

    def complete_vision_test(self):
        self.vision_test_status = self.STEP_COMPLETED
        self.overall_status = self.PRESCRIPTION
        self.vision_test_completed_at = get_local_now()
        self.save(update_fields=['vision_test_status', 'overall_status', 'vision_test_completed_at', 'updated_at'])

    def complete_prescription(self, doctor=None):
        """
        Close the visit. With ``doctor`` the visit must be assigned to that
        doctor and be waiting for its prescription.
        """
        if doctor is not None:
            if self.selected_doctor_id != doctor.pk:
                raise VisitOwnershipError(self, doctor)
            if self.overall_status != self.PRESCRIPTION:
                raise VisitStageError(
                    f'Visit is at the {self.get_overall_status_display()} stage, not Prescription.'
                )

        self.prescription_status = self.STEP_COMPLETED
        self.overall_status = self.COMPLETED
        self.prescription_completed_at = get_local_now()
        self.save(update_fields=[
            'prescription_status', 'overall_status', 'prescription_completed_at', 'updated_at'
        ])

    @property
    def is_active(self):
        return self.overall_status != self.COMPLETED


class PatientPayment(models.Model):
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('mobile_banking', 'Mobile Banking'),
    ]

    payment_number = models.CharField(max_length=30, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='payments')
    visit = models.ForeignKey(PatientVisit, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    payment_date = models.DateField()
    notes = models.TextField(blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_payments'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-created_at']

    def __str__(self):
        return f"{self.payment_number} - {self.amount}"

    @staticmethod
    def generate_payment_number(on_date=None):
        on_date = on_date or get_local_today()
        prefix = f'PAY-{on_date:%Y%m%d}-'
        last = (
            PatientPayment.objects.filter(payment_number__startswith=prefix)
            .order_by('-payment_number')
            .values_list('payment_number', flat=True)
            .first()
        )
        sequence = int(last.rsplit('-', 1)[1]) + 1 if last else 1
        return f'{prefix}{sequence:04d}'


class VisionTest(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='vision_tests')
    visit = models.ForeignKey(
        PatientVisit,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vision_tests'
    )
    complains = models.TextField(blank=True)

    right_eye_vision_without_glass = models.CharField(max_length=20, blank=True)
    left_eye_vision_without_glass = models.CharField(max_length=20, blank=True)
    right_eye_vision_with_glass = models.CharField(max_length=20, blank=True)
    left_eye_vision_with_glass = models.CharField(max_length=20, blank=True)
    right_eye_sphere = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    left_eye_sphere = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    right_eye_cylinder = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    left_eye_cylinder = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    right_eye_axis = models.PositiveSmallIntegerField(null=True, blank=True)
    left_eye_axis = models.PositiveSmallIntegerField(null=True, blank=True)
    right_eye_iop = models.CharField('Right eye IOP', max_length=20, blank=True)
    left_eye_iop = models.CharField('Left eye IOP', max_length=20, blank=True)
    pupillary_distance = models.CharField(max_length=20, blank=True)

    right_eye_diagnosis = models.CharField(max_length=500, blank=True)
    left_eye_diagnosis = models.CharField(max_length=500, blank=True)
    is_diabetic = models.BooleanField(default=False)
    is_hypertensive = models.BooleanField(default=False)
    additional_notes = models.TextField(blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vision_tests'
    )
    test_date = models.DateTimeField(default=get_local_now)

    class Meta:
        ordering = ['-test_date']

    def __str__(self):
        return f"Vision test for {self.patient.name} on {self.test_date:%d %b %Y}"


class Prescription(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='prescriptions')
    visit = models.ForeignKey(
        PatientVisit,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prescriptions'
    )
    diagnosis = models.TextField(blank=True)
    advice = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    followup_date = models.DateField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_prescriptions'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Prescription for {self.patient.name} by {self.doctor}"


class PrescriptionMedicine(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='medicines')
    medicine = models.ForeignKey(
        'medicine_corner.Medicine',
        on_delete=models.PROTECT,
        related_name='prescribed_items'
    )
    dosage = models.CharField(max_length=100, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    duration = models.CharField(max_length=100, blank=True)
    instructions = models.TextField(blank=True)
    quantity = models.PositiveIntegerField(null=True, blank=True)

    def __str__(self):
        return f"{self.medicine.name} - {self.dosage}"
