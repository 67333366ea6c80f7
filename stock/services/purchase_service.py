from typing import Dict, Any, List, Iterable, Tuple
from decimal import Decimal
from django.db import transaction

from stock.models import PurchaseOrder, PurchaseOrderLine, RawMaterial, Vendor
from stock.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, InvalidStateError,
    to_quantity, round_decimal, generate_number,
)


class PurchaseOrderService(BaseService):
    model = PurchaseOrder

    TRANSITIONS = {
        "send": ([PurchaseOrder.Status.DRAFT], PurchaseOrder.Status.SENT),
        "cancel": (
            [PurchaseOrder.Status.DRAFT, PurchaseOrder.Status.SENT],
            PurchaseOrder.Status.CANCELLED,
        ),
    }

    @classmethod
    def serialize(cls, po: PurchaseOrder) -> Dict[str, Any]:
        return {
            "id": po.id,
            "uuid": str(po.uuid),
            "order_number": po.order_number,
            "vendor_id": po.vendor_id,
            "vendor_name": po.vendor.name,
            "status": po.status,
            "status_display": po.get_status_display(),
            "total": str(po.total),
            "manufacturing_order_ids": sorted(po.manufacturing_orders.values_list("id", flat=True)),
            "lines": [
                {
                    "id": line.id,
                    "material_id": line.material_id,
                    "material_sku": line.material.sku,
                    "material_name": line.material.name,
                    "quantity_ordered": str(line.quantity_ordered),
                    "quantity_received": str(line.quantity_received),
                    "unit_cost": str(line.unit_cost),
                    "line_total": str(line.line_total),
                }
                for line in po.lines.select_related("material").order_by("material_id")
            ],
            "created_at": po.created_at.isoformat(),
        }

    @classmethod
    def get(cls, po_id: int) -> Dict[str, Any]:
        po = cls.get_or_404(po_id)
        return success_response({"purchase_order": cls.serialize(po)})

    @classmethod
    @transaction.atomic
    def create_draft(cls,
                     vendor_id: int,
                     lines: List[Tuple[int, Decimal]],
                     manufacturing_order_ids: Iterable[int] = (),
                     user_id: int = None,
                     notes: str = "") -> PurchaseOrder:
        """One draft PO for a vendor; `lines` holds (material_id, quantity) pairs, one per material."""
        if not lines:
            raise ValidationError("Purchase order needs at least one line", "lines")

        try:
            vendor = Vendor.objects.get(id=vendor_id)
        except Vendor.DoesNotExist:
            raise NotFoundError("Vendor", vendor_id)

        material_ids = [material_id for material_id, _ in lines]
        if len(set(material_ids)) != len(material_ids):
            raise ValidationError("Each material may appear only once per purchase order", "lines")
        materials = RawMaterial.objects.in_bulk(material_ids)

        po = PurchaseOrder.objects.create(
            order_number=generate_number("PO", PurchaseOrder),
            vendor=vendor,
            created_by_id=user_id,
            notes=notes,
        )

        total = Decimal("0")
        for material_id, quantity in lines:
            material = materials.get(material_id)
            if not material:
                raise NotFoundError("Raw material", material_id)
            quantity = to_quantity(quantity)
            if quantity <= 0:
                raise ValidationError("Quantity must be positive", "quantity")
            line_total = round_decimal(quantity * material.unit_cost)
            PurchaseOrderLine.objects.create(
                purchase_order=po,
                material=material,
                quantity_ordered=quantity,
                unit_cost=material.unit_cost,
                line_total=line_total,
            )
            total += line_total

        po.total = round_decimal(total, 2)
        po.save(update_fields=["total", "updated_at"])

        manufacturing_order_ids = sorted(set(manufacturing_order_ids))
        if manufacturing_order_ids:
            po.manufacturing_orders.set(manufacturing_order_ids)
        return po

    @classmethod
    @transaction.atomic
    def _transition(cls, po_id: int, action: str, user_id: int = None, reason: str = "") -> Dict[str, Any]:
        po = cls.get_by_id(po_id)
        if not po:
            raise NotFoundError("Purchase order", po_id)

        allowed, target = cls.TRANSITIONS[action]
        if po.status not in allowed:
            raise InvalidStateError("Purchase order", po.order_number, po.status, [s.value for s in allowed])

        previous = po.status
        po.status = target
        if reason:
            po.notes = f"{po.notes}\n{action.title()}: {reason}".strip()
        po.save(update_fields=["status", "notes", "updated_at"])

        from orders.services.activity_service import ActivityLogService
        ActivityLogService.log_action(
            entity_type="PURCHASE_ORDER",
            entity_id=po.id,
            action=action,
            user_id=user_id,
            summary=f"{po.order_number} for {po.vendor.name} moved from {previous} to {target}",
            before={"status": previous},
            after={"status": target},
            details={"order_number": po.order_number, "vendor_id": po.vendor_id, "reason": reason},
            tags=["purchasing", action],
        )
        return success_response({"purchase_order": cls.serialize(po)}, f"Purchase order {target.lower()}")

    @classmethod
    def send(cls, po_id: int, user_id: int = None) -> Dict[str, Any]:
        return cls._transition(po_id, "send", user_id)

    @classmethod
    def cancel(cls, po_id: int, reason: str = "", user_id: int = None) -> Dict[str, Any]:
        return cls._transition(po_id, "cancel", user_id, reason)
