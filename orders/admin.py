from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter

from stock.services import ServiceError
from .models import Retailer, Order, OrderLine, ActivityLog
from .services import OrderService


STATUS_COLORS = {
    Order.Status.DRAFT: "info",
    Order.Status.SUBMITTED: "info",
    Order.Status.APPROVED: "warning",
    Order.Status.IN_FULFILLMENT: "warning",
    Order.Status.SHIPPED: "success",
    Order.Status.CANCELLED: "danger",
}


class OrderLineInline(TabularInline):
    model = OrderLine
    extra = 0
    fields = ('product', 'quantity_ordered', 'quantity_allocated', 'quantity_short', 'quantity_shipped')
    readonly_fields = ('quantity_allocated', 'quantity_short', 'quantity_shipped')

    # Lines are frozen once the order holds allocation records
    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.status != Order.Status.DRAFT:
            return self.fields
        return self.readonly_fields

    def has_add_permission(self, request, obj=None):
        if obj is not None and obj.status != Order.Status.DRAFT:
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.status != Order.Status.DRAFT:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Retailer)
class RetailerAdmin(ModelAdmin):
    list_display = ['name', 'contact_email', 'contact_phone', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'contact_email']


@admin.register(Order)
class OrderAdmin(ModelAdmin):
    list_display = ['order_number', 'retailer', 'status_badge', 'lines_count', 'tracking_number', 'created_at']
    list_filter = [
        'status',
        ('created_at', RangeDateTimeFilter),
        'retailer',
    ]
    search_fields = ['order_number', 'external_reference', 'retailer__name', 'tracking_number']
    list_filter_submit = True
    list_fullwidth = True
    inlines = [OrderLineInline]
    actions = ['submit_orders', 'approve_orders', 'cancel_orders']
    readonly_fields = [
        'order_number', 'status', 'submitted_at', 'approved_at', 'approved_by',
        'shipped_at', 'cancelled_at', 'created_at', 'updated_at',
    ]

    fieldsets = (
        (_('Order Information'), {
            'fields': ('order_number', 'retailer', 'external_reference', 'status', 'requested_ship_date', 'notes')
        }),
        (_('Shipping'), {
            'fields': ('tracking_number', 'carrier')
        }),
        (_('Timestamps'), {
            'fields': ('submitted_at', 'approved_at', 'approved_by', 'shipped_at', 'cancelled_at', 'created_at', 'updated_at')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.status != Order.Status.DRAFT:
            return self.readonly_fields + ["retailer", "external_reference"]
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        # Past draft an order owns reservations or their history; use cancel instead
        if obj is not None and obj.status != Order.Status.DRAFT:
            return False
        return super().has_delete_permission(request, obj)

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    @display(description=_("Status"), label=STATUS_COLORS)
    def status_badge(self, obj):
        return obj.status

    @display(description=_("Lines"))
    def lines_count(self, obj):
        return obj.lines.count()

    def _run(self, request, queryset, operation, verb):
        done = 0
        for order in queryset:
            try:
                operation(order.id, user_id=request.user.id)
                done += 1
            except ServiceError as e:
                self.message_user(request, f"{order.order_number}: {e.message}", messages.ERROR)
        if done:
            self.message_user(request, f"{done} order(s) {verb}", messages.SUCCESS)

    @admin.action(description=_("Submit and allocate selected orders"))
    def submit_orders(self, request, queryset):
        self._run(request, queryset, OrderService.submit_order, "submitted")

    @admin.action(description=_("Approve selected orders"))
    def approve_orders(self, request, queryset):
        self._run(request, queryset, OrderService.approve_order, "approved")

    @admin.action(description=_("Cancel selected orders"))
    def cancel_orders(self, request, queryset):
        self._run(request, queryset, OrderService.cancel_order, "cancelled")


@admin.register(ActivityLog)
class ActivityLogAdmin(ModelAdmin):
    list_display = ['created_at', 'entity_type', 'entity_id', 'action', 'summary']
    list_filter = ['entity_type', 'action', ('created_at', RangeDateTimeFilter)]
    search_fields = ['entity_id', 'summary']
    list_filter_submit = True
    readonly_fields = [f.name for f in ActivityLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
