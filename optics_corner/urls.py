# optics_corner/urls.py
from django.urls import path
from . import views

app_name = 'optics_corner'

urlpatterns = [
    path('reports/buy-sale-stock/', views.BuySaleStockView.as_view(), name='buy_sale_stock'),
    path('inventory/', views.InventoryView.as_view(), name='inventory'),
]
