from django.contrib import admin

from .models import Doctor, Patient, PatientPayment, PatientVisit, Prescription, PrescriptionMedicine, VisionTest


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['patient_id', 'name', 'phone', 'gender', 'date_of_birth', 'created_at']
    list_filter = ['gender', 'created_at']
    search_fields = ['patient_id', 'name', 'phone', 'email']
    readonly_fields = ['patient_id', 'created_at', 'updated_at']


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'specialization', 'consultation_fee', 'follow_up_fee', 'is_available']
    list_filter = ['is_available']
    search_fields = ['user__first_name', 'user__last_name', 'user__username', 'specialization']


class PatientPaymentInline(admin.TabularInline):
    model = PatientPayment
    extra = 0
    fields = ['payment_number', 'amount', 'payment_method', 'payment_date', 'received_by']
    readonly_fields = fields
    can_delete = False


@admin.register(PatientVisit)
class PatientVisitAdmin(admin.ModelAdmin):
    list_display = [
        'visit_id', 'patient', 'selected_doctor', 'final_amount', 'total_paid', 'total_due',
        'payment_status', 'vision_test_status', 'overall_status', 'created_at',
    ]
    list_filter = ['overall_status', 'payment_status', 'vision_test_status', 'is_followup', 'created_at']
    search_fields = ['visit_id', 'patient__name', 'patient__patient_id', 'patient__phone']
    readonly_fields = [
        'visit_id', 'registration_fee', 'doctor_fee', 'total_amount', 'discount_amount', 'final_amount',
        'total_paid', 'total_due', 'payment_completed_at', 'vision_test_completed_at',
        'prescription_completed_at',
    ]
    inlines = [PatientPaymentInline]


@admin.register(VisionTest)
class VisionTestAdmin(admin.ModelAdmin):
    list_display = ['patient', 'visit', 'test_date', 'performed_by']
    list_filter = ['test_date']
    search_fields = ['patient__name', 'patient__patient_id']


class PrescriptionMedicineInline(admin.TabularInline):
    model = PrescriptionMedicine
    extra = 1
    autocomplete_fields = ['medicine']


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ['patient', 'doctor', 'visit', 'followup_date', 'created_at']
    list_filter = ['doctor', 'created_at']
    search_fields = ['patient__name', 'patient__patient_id', 'diagnosis']
    inlines = [PrescriptionMedicineInline]
