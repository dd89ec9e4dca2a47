# medicine_corner/urls.py
from django.urls import path
from . import views

app_name = 'medicine_corner'

urlpatterns = [
    path('reports/buy-sale-stock/', views.BuySaleStockView.as_view(), name='buy_sale_stock'),
    path('reports/company-stock/', views.CompanyStockView.as_view(), name='company_stock'),
    path('reports/stock-value/', views.StockValueView.as_view(), name='stock_value'),
    path('reports/analytics/', views.MedicineAnalyticsView.as_view(), name='analytics'),
]
