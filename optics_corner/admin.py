from django.contrib import admin

from .models import Frame, LensType, OpticsPurchase, OpticsSale, OpticsSaleItem


@admin.register(Frame)
class FrameAdmin(admin.ModelAdmin):
    list_display = ['sku', 'brand', 'model', 'frame_type', 'stock_quantity', 'purchase_price', 'selling_price', 'is_active']
    list_filter = ['frame_type', 'is_active']
    search_fields = ['sku', 'brand', 'model', 'color']


@admin.register(LensType)
class LensTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'material', 'coating', 'stock_quantity', 'purchase_price', 'selling_price', 'is_active']
    list_filter = ['type', 'is_active']
    search_fields = ['name', 'material', 'coating']


@admin.register(OpticsPurchase)
class OpticsPurchaseAdmin(admin.ModelAdmin):
    list_display = ['purchase_no', 'purchase_date', 'item_type', 'frame', 'lens', 'quantity', 'unit_cost', 'total_cost']
    list_filter = ['item_type', 'purchase_date']
    search_fields = ['purchase_no', 'frame__brand', 'frame__model', 'lens__name']
    readonly_fields = ['purchase_no', 'total_cost']


class OpticsSaleItemInline(admin.TabularInline):
    model = OpticsSaleItem
    extra = 0
    readonly_fields = ['item_type', 'item_name', 'quantity', 'unit_price', 'unit_cost', 'total_price',
                       'discount_share', 'fitting_share', 'due_share']
    exclude = ['frame', 'lens']
    can_delete = False


@admin.register(OpticsSale)
class OpticsSaleAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'sale_date', 'customer_name', 'total_amount', 'advance_payment', 'due_amount', 'status']
    list_filter = ['status', 'sale_date']
    search_fields = ['invoice_number', 'customer_name', 'customer_phone']
    inlines = [OpticsSaleItemInline]
    readonly_fields = ['subtotal', 'discount', 'glass_fitting_price', 'total_amount', 'advance_payment', 'due_amount']
