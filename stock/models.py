import uuid as uuid_lib

from django.conf import settings
from django.db import models


class Vendor(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    code = models.CharField(max_length=20, unique=True, blank=True, null=True)
    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=100, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    lead_time_days = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Product(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    sku = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    unit_of_measure = models.CharField(max_length=20, default="unit")
    default_batch_size = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    reorder_point = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    lead_time_days = models.PositiveIntegerField(default=0)
    wholesale_price = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.sku} – {self.name}"


class RawMaterial(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    sku = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    unit_of_measure = models.CharField(max_length=20, default="unit")
    category = models.CharField(max_length=100, blank=True, default="")
    preferred_vendor = models.ForeignKey(
        Vendor,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="preferred_materials",
    )
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_point = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.sku} – {self.name}"


class BOMItem(models.Model):
    """One material line in a product's bill of materials, per finished unit."""

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="bom_items"
    )
    material = models.ForeignKey(
        RawMaterial, on_delete=models.PROTECT, related_name="bom_items"
    )
    quantity_per_unit = models.DecimalField(max_digits=15, decimal_places=4)
    version = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("product", "material")]
        verbose_name = "BOM item"

    def __str__(self):
        return f"{self.product.sku} ← {self.material.sku} × {self.quantity_per_unit}"


class StockLot(models.Model):
    """
    A physical lot of on-hand stock. Either a finished-goods lot (product set)
    or a raw-material lot (material set). quantity_reserved is only ever changed
    through relative updates in StockLedgerService.
    """

    class Kind(models.TextChoices):
        PRODUCT = "PRODUCT", "Finished Goods"
        MATERIAL = "MATERIAL", "Raw Material"

    class Status(models.TextChoices):
        AVAILABLE = "AVAILABLE", "Available"
        QUARANTINED = "QUARANTINED", "Quarantined"
        DAMAGED = "DAMAGED", "Damaged"
        DEPLETED = "DEPLETED", "Depleted"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    lot_number = models.CharField(max_length=100)
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.PRODUCT)
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="lots",
    )
    material = models.ForeignKey(
        RawMaterial,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="lots",
    )
    quantity_on_hand = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_reserved = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    # FIFO key: production date for finished goods, receipt date for materials
    fifo_date = models.DateField(db_index=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.AVAILABLE
    )
    version = models.PositiveIntegerField(default=0)
    location = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["fifo_date", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_reserved__gte=0),
                name="stocklot_reserved_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_reserved__lte=models.F("quantity_on_hand")),
                name="stocklot_reserved_within_on_hand",
            ),
        ]
        indexes = [
            models.Index(fields=["product", "status", "fifo_date"]),
            models.Index(fields=["material", "status", "fifo_date"]),
        ]

    def __str__(self):
        return f"Lot {self.lot_number}"

    @property
    def quantity_available(self):
        return self.quantity_on_hand - self.quantity_reserved


class LotMovement(models.Model):
    class MovementType(models.TextChoices):
        RESERVE = "RESERVE", "Reservation"
        RELEASE = "RELEASE", "Reservation Release"
        CONSUME = "CONSUME", "Consumption"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    lot = models.ForeignKey(StockLot, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(
        max_length=20, choices=MovementType.choices, db_index=True
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    reserved_before = models.DecimalField(max_digits=15, decimal_places=4)
    reserved_after = models.DecimalField(max_digits=15, decimal_places=4)
    on_hand_before = models.DecimalField(max_digits=15, decimal_places=4)
    on_hand_after = models.DecimalField(max_digits=15, decimal_places=4)

    # Generic reference to source document
    reference_type = models.CharField(max_length=50, blank=True, default="")
    reference_id = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["reference_type", "reference_id"]),
        ]

    def __str__(self):
        return f"{self.get_movement_type_display()} {self.quantity} @ {self.lot}"


class ManufacturingOrder(models.Model):
    class Status(models.TextChoices):
        PLANNED = "PLANNED", "Planned"
        IN_PROGRESS = "IN_PROGRESS", "In Progress"
        BLOCKED = "BLOCKED", "Blocked"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    order_number = models.CharField(max_length=50, unique=True)
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="manufacturing_orders"
    )
    quantity_to_make = models.DecimalField(max_digits=15, decimal_places=4)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PLANNED
    )
    source_orders = models.ManyToManyField(
        "orders.Order", blank=True, related_name="manufacturing_orders"
    )
    # Snapshot of the BOM expansion at creation time
    material_requirements = models.JSONField(default=list, blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_manufacturing_orders",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.order_number


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SENT = "SENT", "Sent"
        PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED", "Partially Received"
        RECEIVED = "RECEIVED", "Received"
        CANCELLED = "CANCELLED", "Cancelled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    order_number = models.CharField(max_length=50, unique=True)
    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT
    )
    manufacturing_orders = models.ManyToManyField(
        ManufacturingOrder, blank=True, related_name="purchase_orders"
    )
    total = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    expected_date = models.DateField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_purchase_orders",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.order_number


class PurchaseOrderLine(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="lines"
    )
    material = models.ForeignKey(
        RawMaterial, on_delete=models.PROTECT, related_name="+"
    )
    quantity_ordered = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_received = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    line_total = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("purchase_order", "material")]

    def __str__(self):
        return f"{self.material.name} × {self.quantity_ordered}"


class StockSettings(models.Model):
    """
    Singleton settings table. Use StockSettings.load() to get the instance.
    """

    # Shortage cascade
    auto_create_production = models.BooleanField(default=True)
    auto_create_purchase_orders = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "stock settings"
        verbose_name_plural = "stock settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def __str__(self):
        return "Stock Settings"
