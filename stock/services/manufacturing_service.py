from typing import Dict, Any, List, Iterable
from decimal import Decimal
from django.db import transaction
from django.utils import timezone

from stock.models import ManufacturingOrder, Product
from stock.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, InvalidStateError,
    to_quantity, round_decimal, generate_number,
)


class ManufacturingOrderService(BaseService):
    model = ManufacturingOrder

    # Status is the only field that changes after creation
    TRANSITIONS = {
        ManufacturingOrder.Status.PLANNED: [
            ManufacturingOrder.Status.IN_PROGRESS,
            ManufacturingOrder.Status.BLOCKED,
            ManufacturingOrder.Status.CANCELLED,
        ],
        ManufacturingOrder.Status.BLOCKED: [
            ManufacturingOrder.Status.PLANNED,
            ManufacturingOrder.Status.IN_PROGRESS,
            ManufacturingOrder.Status.CANCELLED,
        ],
        ManufacturingOrder.Status.IN_PROGRESS: [
            ManufacturingOrder.Status.BLOCKED,
            ManufacturingOrder.Status.COMPLETED,
            ManufacturingOrder.Status.CANCELLED,
        ],
    }

    @classmethod
    def serialize(cls, mo: ManufacturingOrder) -> Dict[str, Any]:
        return {
            "id": mo.id,
            "uuid": str(mo.uuid),
            "order_number": mo.order_number,
            "product_id": mo.product_id,
            "product_sku": mo.product.sku,
            "product_name": mo.product.name,
            "quantity_to_make": str(mo.quantity_to_make),
            "status": mo.status,
            "status_display": mo.get_status_display(),
            "source_order_ids": sorted(mo.source_orders.values_list("id", flat=True)),
            "material_requirements": mo.material_requirements,
            "started_at": mo.started_at.isoformat() if mo.started_at else None,
            "completed_at": mo.completed_at.isoformat() if mo.completed_at else None,
            "created_at": mo.created_at.isoformat(),
        }

    @classmethod
    def get(cls, mo_id: int) -> Dict[str, Any]:
        mo = cls.get_or_404(mo_id)
        return success_response({"manufacturing_order": cls.serialize(mo)})

    @classmethod
    @transaction.atomic
    def create(cls,
               product_id: int,
               quantity: Decimal,
               requirements: List[Dict[str, Any]],
               source_order_ids: Iterable[int] = (),
               user_id: int = None) -> ManufacturingOrder:
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity to make must be positive", "quantity")
        if not Product.objects.filter(id=product_id).exists():
            raise NotFoundError("Product", product_id)

        mo = ManufacturingOrder.objects.create(
            order_number=generate_number("MO", ManufacturingOrder),
            product_id=product_id,
            quantity_to_make=round_decimal(quantity),
            material_requirements=requirements,
            created_by_id=user_id,
        )
        source_order_ids = sorted(set(source_order_ids))
        if source_order_ids:
            mo.source_orders.set(source_order_ids)
        return mo

    @classmethod
    @transaction.atomic
    def set_status(cls, mo_id: int, status: str, user_id: int = None) -> Dict[str, Any]:
        mo = cls.get_by_id(mo_id)
        if not mo:
            raise NotFoundError("Manufacturing order", mo_id)

        if status not in ManufacturingOrder.Status.values:
            raise ValidationError(f"Unknown status: {status}", "status")

        allowed = cls.TRANSITIONS.get(mo.status, [])
        if status not in allowed:
            raise InvalidStateError(
                "Manufacturing order", mo.order_number, mo.status,
                [s.value for s in allowed] or ["a non-terminal status"],
            )

        previous = mo.status
        mo.status = status
        update_fields = ["status", "updated_at"]
        if status == ManufacturingOrder.Status.IN_PROGRESS and not mo.started_at:
            mo.started_at = timezone.now()
            update_fields.append("started_at")
        if status == ManufacturingOrder.Status.COMPLETED:
            mo.completed_at = timezone.now()
            update_fields.append("completed_at")
        mo.save(update_fields=update_fields)

        from orders.services.activity_service import ActivityLogService
        ActivityLogService.log_action(
            entity_type="MANUFACTURING_ORDER",
            entity_id=mo.id,
            action="status_changed",
            user_id=user_id,
            summary=f"{mo.order_number} moved from {previous} to {status}",
            before={"status": previous},
            after={"status": status},
            details={"order_number": mo.order_number, "product_id": mo.product_id},
            tags=["manufacturing", status.lower()],
        )

        return success_response({
            "manufacturing_order": cls.serialize(mo)
        }, "Manufacturing order updated")
