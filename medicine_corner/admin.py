from django.contrib import admin

from .models import Medicine, MedicineSale, MedicineSaleItem, MedicineStock


class MedicineStockInline(admin.TabularInline):
    model = MedicineStock
    extra = 0
    fields = ['batch_number', 'quantity', 'available_quantity', 'buy_price', 'sale_price', 'purchase_date', 'expiry_date']


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = ['name', 'generic_name', 'manufacturer', 'type', 'unit', 'track_stock', 'is_active']
    list_filter = ['type', 'track_stock', 'is_active']
    search_fields = ['name', 'generic_name', 'manufacturer']
    inlines = [MedicineStockInline]


@admin.register(MedicineStock)
class MedicineStockAdmin(admin.ModelAdmin):
    list_display = ['medicine', 'batch_number', 'available_quantity', 'quantity', 'buy_price', 'sale_price', 'expiry_date']
    list_filter = ['is_active', 'purchase_date']
    search_fields = ['medicine__name', 'batch_number']


class MedicineSaleItemInline(admin.TabularInline):
    model = MedicineSaleItem
    extra = 0
    readonly_fields = ['stock', 'quantity', 'unit_price', 'buy_price', 'total_price', 'discount_share', 'due_share']
    can_delete = False


@admin.register(MedicineSale)
class MedicineSaleAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'sale_date', 'customer_name', 'total_amount', 'paid_amount', 'due_amount', 'sold_by']
    list_filter = ['sale_date', 'payment_method']
    search_fields = ['invoice_number', 'customer_name', 'customer_phone']
    inlines = [MedicineSaleItemInline]
    readonly_fields = ['subtotal', 'discount', 'total_amount', 'paid_amount', 'due_amount']
