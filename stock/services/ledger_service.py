"""
Inventory ledger primitives for stock lots.

Every mutation of quantity_reserved / quantity_on_hand is a relative update
guarded by the lot invariant (0 <= reserved <= on_hand) in the WHERE clause,
so a concurrent writer can never push a lot out of range. When the guard
matches no row the lot moved underneath us and ReservationConflictError is
raised; callers recompute from current ledger state and try again.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, Iterable, Optional

from django.db import transaction
from django.db.models import F, Sum, Value, DecimalField, ExpressionWrapper
from django.db.models.functions import Coalesce
from django.utils import timezone

from stock.models import StockLot, LotMovement
from stock.services.base_service import (
    BaseService, ValidationError, ReservationConflictError,
    success_response, to_decimal, to_quantity, round_decimal,
)

logger = logging.getLogger(__name__)

QUANTITY_FIELD = DecimalField(max_digits=15, decimal_places=4)

AVAILABLE_QUANTITY = ExpressionWrapper(
    F("quantity_on_hand") - F("quantity_reserved"),
    output_field=QUANTITY_FIELD,
)


class StockLedgerService(BaseService):
    model = StockLot

    # ==================== QUERIES ====================

    @classmethod
    def available_lots(cls,
                       product_id: int = None,
                       material_id: int = None,
                       lock: bool = False):
        """Lots with free quantity, oldest first; ties broken by lot id."""
        queryset = StockLot.objects.filter(
            status=StockLot.Status.AVAILABLE,
            quantity_on_hand__gt=F("quantity_reserved"),
        )
        if product_id is not None:
            queryset = queryset.filter(kind=StockLot.Kind.PRODUCT, product_id=product_id)
        elif material_id is not None:
            queryset = queryset.filter(kind=StockLot.Kind.MATERIAL, material_id=material_id)
        else:
            raise ValidationError("product_id or material_id is required")

        if lock:
            queryset = queryset.select_for_update()
        return queryset.order_by("fifo_date", "id")

    @classmethod
    def _sum_available(cls, queryset) -> Decimal:
        total = queryset.aggregate(
            total=Coalesce(
                Sum(AVAILABLE_QUANTITY),
                Value(Decimal("0")),
                output_field=QUANTITY_FIELD,
            )
        )["total"]
        return round_decimal(to_decimal(total))

    @classmethod
    def available_for_product(cls, product_id: int) -> Decimal:
        return cls._sum_available(StockLot.objects.filter(
            kind=StockLot.Kind.PRODUCT,
            product_id=product_id,
            status=StockLot.Status.AVAILABLE,
        ))

    @classmethod
    def available_for_material(cls, material_id: int) -> Decimal:
        return cls._sum_available(StockLot.objects.filter(
            kind=StockLot.Kind.MATERIAL,
            material_id=material_id,
            status=StockLot.Status.AVAILABLE,
        ))

    # ==================== MUTATIONS ====================

    @classmethod
    def _positive(cls, quantity) -> Decimal:
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", "quantity")
        return quantity

    @classmethod
    def _record_movement(cls,
                         lot_id: int,
                         movement_type: str,
                         quantity: Decimal,
                         reserved_delta: Decimal,
                         on_hand_delta: Decimal,
                         reference_type: str,
                         reference_id: Optional[int]) -> Dict[str, Any]:
        lot = StockLot.objects.get(id=lot_id)
        movement = LotMovement.objects.create(
            lot=lot,
            movement_type=movement_type,
            quantity=quantity,
            reserved_before=lot.quantity_reserved - reserved_delta,
            reserved_after=lot.quantity_reserved,
            on_hand_before=lot.quantity_on_hand - on_hand_delta,
            on_hand_after=lot.quantity_on_hand,
            reference_type=reference_type or "",
            reference_id=reference_id,
        )
        return {
            "movement_id": movement.id,
            "lot_id": lot.id,
            "lot_number": lot.lot_number,
            "quantity": str(quantity),
            "quantity_on_hand": str(lot.quantity_on_hand),
            "quantity_reserved": str(lot.quantity_reserved),
        }

    @classmethod
    @transaction.atomic
    def reserve(cls,
                lot_id: int,
                quantity: Decimal,
                reference_type: str = "",
                reference_id: int = None) -> Dict[str, Any]:
        quantity = cls._positive(quantity)

        updated = StockLot.objects.filter(
            id=lot_id,
            status=StockLot.Status.AVAILABLE,
            quantity_on_hand__gte=F("quantity_reserved") + quantity,
        ).update(
            quantity_reserved=F("quantity_reserved") + quantity,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            raise ReservationConflictError(lot_id, "reserve", quantity)

        logger.debug(f"Reserved {quantity} on lot {lot_id} for {reference_type}:{reference_id}")
        return success_response(cls._record_movement(
            lot_id, LotMovement.MovementType.RESERVE, quantity,
            reserved_delta=quantity,
            on_hand_delta=Decimal("0"),
            reference_type=reference_type,
            reference_id=reference_id,
        ), "Stock reserved")

    @classmethod
    @transaction.atomic
    def release(cls,
                lot_id: int,
                quantity: Decimal,
                reference_type: str = "",
                reference_id: int = None) -> Dict[str, Any]:
        quantity = cls._positive(quantity)

        updated = StockLot.objects.filter(
            id=lot_id,
            quantity_reserved__gte=quantity,
        ).update(
            quantity_reserved=F("quantity_reserved") - quantity,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            raise ReservationConflictError(lot_id, "release", quantity)

        logger.debug(f"Released {quantity} on lot {lot_id} for {reference_type}:{reference_id}")
        return success_response(cls._record_movement(
            lot_id, LotMovement.MovementType.RELEASE, quantity,
            reserved_delta=-quantity,
            on_hand_delta=Decimal("0"),
            reference_type=reference_type,
            reference_id=reference_id,
        ), "Reservation released")

    @classmethod
    @transaction.atomic
    def consume(cls,
                lot_id: int,
                quantity: Decimal,
                reference_type: str = "",
                reference_id: int = None) -> Dict[str, Any]:
        """Destructive step: takes reserved stock off the shelf."""
        quantity = cls._positive(quantity)

        updated = StockLot.objects.filter(
            id=lot_id,
            quantity_reserved__gte=quantity,
            quantity_on_hand__gte=quantity,
        ).update(
            quantity_on_hand=F("quantity_on_hand") - quantity,
            quantity_reserved=F("quantity_reserved") - quantity,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            raise ReservationConflictError(lot_id, "consume", quantity)

        StockLot.objects.filter(
            id=lot_id,
            status=StockLot.Status.AVAILABLE,
            quantity_on_hand__lte=0,
        ).update(status=StockLot.Status.DEPLETED)

        logger.debug(f"Consumed {quantity} from lot {lot_id} for {reference_type}:{reference_id}")
        return success_response(cls._record_movement(
            lot_id, LotMovement.MovementType.CONSUME, quantity,
            reserved_delta=-quantity,
            on_hand_delta=-quantity,
            reference_type=reference_type,
            reference_id=reference_id,
        ), "Stock consumed")

    # ==================== ALLOCATION RECORDS ====================

    @classmethod
    @transaction.atomic
    def release_records(cls,
                        records: Iterable,
                        reference_type: str = "",
                        reference_id: int = None) -> Decimal:
        total = Decimal("0")
        for record in records:
            cls.release(record.lot_id, record.quantity, reference_type, reference_id)
            total += record.quantity
        return total

    @classmethod
    @transaction.atomic
    def consume_records(cls,
                        records: Iterable,
                        reference_type: str = "",
                        reference_id: int = None) -> Decimal:
        total = Decimal("0")
        for record in records:
            cls.consume(record.lot_id, record.quantity, reference_type, reference_id)
            total += record.quantity
        return total
