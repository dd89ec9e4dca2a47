from django.contrib import admin

from .models import Account, AccountCategory, FundTransaction, Transaction


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ['name', 'kind', 'balance', 'opening_balance', 'updated_at']
    # Balance only moves through ledger entries
    readonly_fields = ['balance', 'created_at', 'updated_at']


@admin.register(AccountCategory)
class AccountCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'account', 'category_type', 'is_active']
    list_filter = ['account', 'category_type', 'is_active']
    search_fields = ['name']


@admin.register(FundTransaction)
class FundTransactionAdmin(admin.ModelAdmin):
    list_display = ['voucher_no', 'account', 'type', 'amount', 'purpose', 'date', 'added_by']
    list_filter = ['account', 'type', 'date']
    search_fields = ['voucher_no', 'purpose', 'description']
    readonly_fields = [field.name for field in FundTransaction._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['voucher_no', 'account', 'type', 'amount', 'category_name', 'transaction_date', 'created_by']
    list_filter = ['account', 'type', 'transaction_date']
    search_fields = ['voucher_no', 'category_name', 'description']
    readonly_fields = [field.name for field in Transaction._meta.fields]

    def has_add_permission(self, request):
        return False
