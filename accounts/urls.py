# accounts/urls.py
from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('<str:kind>/', views.AccountDashboardView.as_view(), name='dashboard'),

    # Modal form endpoints
    path('<str:kind>/fund-in/', views.fund_in, name='fund_in'),
    path('<str:kind>/fund-out/', views.fund_out, name='fund_out'),
    path('<str:kind>/expense/', views.add_expense, name='add_expense'),
    path('<str:kind>/income/', views.add_income, name='add_income'),

    # Transactions
    path('<str:kind>/transactions/', views.TransactionListView.as_view(), name='transactions'),
    path('<str:kind>/transactions/<int:pk>/update/', views.transaction_update, name='transaction_update'),
    path('<str:kind>/transactions/<int:pk>/delete/', views.transaction_delete, name='transaction_delete'),

    # Fund history
    path('<str:kind>/funds/', views.FundHistoryView.as_view(), name='fund_history'),
    path('<str:kind>/funds/<int:pk>/update/', views.fund_update, name='fund_update'),
    path('<str:kind>/funds/<int:pk>/delete/', views.fund_delete, name='fund_delete'),
    path('<str:kind>/funds/<int:pk>/voucher/', views.fund_voucher, name='fund_voucher'),

    # Categories
    path('<str:kind>/categories/', views.CategoryListView.as_view(), name='categories'),
    path('<str:kind>/categories/create/', views.category_create, name='category_create'),
    path('<str:kind>/categories/<int:pk>/update/', views.category_update, name='category_update'),
    path('<str:kind>/categories/<int:pk>/toggle/', views.category_toggle, name='category_toggle'),

    # Reports
    path('<str:kind>/monthly-report/', views.MonthlyReportView.as_view(), name='monthly_report'),
    path('<str:kind>/balance-sheet/', views.BalanceSheetView.as_view(), name='balance_sheet'),
    path('<str:kind>/daily-statement/', views.DailyStatementView.as_view(), name='daily_statement'),
    path('<str:kind>/statement/', views.AccountStatementView.as_view(), name='account_statement'),
]
