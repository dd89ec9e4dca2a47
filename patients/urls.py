from django.urls import path
from . import views

app_name = 'patients'

urlpatterns = [
    # Doctor
    path('doctor/', views.DoctorDashboardView.as_view(), name='doctor_dashboard'),
    path('doctor/data/', views.doctor_dashboard_json, name='doctor_dashboard_data'),
    path('visits/<int:pk>/complete/', views.complete_visit, name='complete_visit'),

    # Patient records
    path('search/', views.PatientSearchView.as_view(), name='patient_search'),
    path('<int:pk>/', views.PatientDetailView.as_view(), name='patient_detail'),
    path('visits/<int:pk>/payment/', views.record_payment, name='record_payment'),

    # Vision test queue
    path('vision-tests/', views.VisionQueueView.as_view(), name='vision_queue'),
    path('vision-tests/data/', views.vision_queue_json, name='vision_queue_data'),
    path('visits/<int:pk>/vision-test/start/', views.start_vision_test, name='start_vision_test'),
    path('visits/<int:pk>/vision-test/', views.RecordVisionTestView.as_view(), name='record_vision_test'),

    # OPD income reports
    path('income/<str:patient_type>/', views.PatientIncomeReportView.as_view(), name='income_report'),

    # AJAX endpoints
    path('api/<int:pk>/quick-info/', views.patient_quick_info, name='patient_quick_info'),
]
