"""
Wholesale order models.
"""

import uuid

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class Retailer(models.Model):
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True, default="")
    contact_phone = models.CharField(max_length=50, blank=True, default="")
    shipping_address = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Order(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SUBMITTED = "SUBMITTED", "Submitted"
        APPROVED = "APPROVED", "Approved"
        IN_FULFILLMENT = "IN_FULFILLMENT", "In Fulfillment"
        SHIPPED = "SHIPPED", "Shipped"
        CANCELLED = "CANCELLED", "Cancelled"

    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    order_number = models.CharField(max_length=50, unique=True)
    retailer = models.ForeignKey(
        Retailer, on_delete=models.PROTECT, related_name="orders"
    )
    external_reference = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
    )

    requested_ship_date = models.DateField(null=True, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    carrier = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_wholesale_orders",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_wholesale_orders",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["retailer", "external_reference"],
                condition=~models.Q(external_reference=""),
                name="order_unique_external_reference",
            ),
        ]

    def __str__(self):
        return f"{self.order_number} ({self.get_status_display()})"


class OrderLine(models.Model):
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(
        "stock.Product", on_delete=models.PROTECT, related_name="order_lines"
    )
    quantity_ordered = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_allocated = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    quantity_short = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    quantity_shipped = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    # [{"lot_id": int, "lot_number": str, "quantity": "decimal string"}]
    allocation_details = models.JSONField(default=list, blank=True)
    unit_price = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.product} × {self.quantity_ordered}"


class ActivityLog(models.Model):
    """Audit trail entry for a significant state change."""

    class EntityType(models.TextChoices):
        ORDER = "ORDER", "Order"
        MANUFACTURING_ORDER = "MANUFACTURING_ORDER", "Manufacturing Order"
        PURCHASE_ORDER = "PURCHASE_ORDER", "Purchase Order"
        STOCK_LOT = "STOCK_LOT", "Stock Lot"
        PRODUCT = "PRODUCT", "Product"
        MATERIAL = "MATERIAL", "Raw Material"

    entity_type = models.CharField(max_length=30, choices=EntityType.choices, db_index=True)
    entity_id = models.CharField(max_length=64, db_index=True)
    action = models.CharField(max_length=50)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity_logs",
    )
    summary = models.TextField()
    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    diff = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    tags = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self):
        return f"[{self.entity_type}:{self.entity_id}] {self.action}"
