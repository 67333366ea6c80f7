from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateFilter

from .models import (
    Vendor, Product, RawMaterial, BOMItem, StockLot, LotMovement,
    ManufacturingOrder, PurchaseOrder, PurchaseOrderLine, StockSettings,
)


class BOMItemInline(TabularInline):
    model = BOMItem
    extra = 0
    fields = ('material', 'quantity_per_unit', 'version', 'is_active')


class PurchaseOrderLineInline(TabularInline):
    model = PurchaseOrderLine
    extra = 0
    fields = ('material', 'quantity_ordered', 'quantity_received', 'unit_cost', 'line_total')
    readonly_fields = ('line_total',)


@admin.register(Vendor)
class VendorAdmin(ModelAdmin):
    list_display = ['name', 'code', 'email', 'lead_time_days', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'code']


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = ['sku', 'name', 'reorder_point', 'default_batch_size', 'is_active']
    list_filter = ['is_active']
    search_fields = ['sku', 'name']
    inlines = [BOMItemInline]


@admin.register(RawMaterial)
class RawMaterialAdmin(ModelAdmin):
    list_display = ['sku', 'name', 'category', 'preferred_vendor', 'reorder_point', 'is_active']
    list_filter = ['is_active', 'category', 'preferred_vendor']
    search_fields = ['sku', 'name']


@admin.register(StockLot)
class StockLotAdmin(ModelAdmin):
    list_display = ['lot_number', 'kind', 'item', 'fifo_date', 'quantity_on_hand', 'quantity_reserved', 'available', 'status']
    list_filter = ['kind', 'status', ('fifo_date', RangeDateFilter)]
    search_fields = ['lot_number', 'product__sku', 'material__sku']
    list_filter_submit = True
    # Reservations change only through the ledger service
    readonly_fields = ['quantity_reserved', 'version', 'created_at', 'updated_at']

    @display(description=_("Item"))
    def item(self, obj):
        return obj.product or obj.material

    @display(description=_("Available"))
    def available(self, obj):
        return obj.quantity_available


@admin.register(LotMovement)
class LotMovementAdmin(ModelAdmin):
    list_display = ['created_at', 'lot', 'movement_type', 'quantity', 'reserved_after', 'on_hand_after', 'reference_type', 'reference_id']
    list_filter = ['movement_type', 'reference_type']
    search_fields = ['lot__lot_number']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ManufacturingOrder)
class ManufacturingOrderAdmin(ModelAdmin):
    list_display = ['order_number', 'product', 'quantity_to_make', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['order_number', 'product__sku']
    readonly_fields = ['order_number', 'product', 'quantity_to_make', 'source_orders', 'material_requirements', 'created_at']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(ModelAdmin):
    list_display = ['order_number', 'vendor', 'status', 'total', 'created_at']
    list_filter = ['status', 'vendor']
    search_fields = ['order_number', 'vendor__name']
    inlines = [PurchaseOrderLineInline]
    readonly_fields = ['order_number', 'manufacturing_orders', 'created_at']


@admin.register(StockSettings)
class StockSettingsAdmin(ModelAdmin):
    list_display = ['__str__', 'auto_create_production', 'auto_create_purchase_orders']

    def has_add_permission(self, request):
        return not StockSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
