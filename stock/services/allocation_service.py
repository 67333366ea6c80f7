"""
FIFO allocation of finished-goods stock.

    plan()      read-only: which lots would cover the demand right now
    allocate()  plan + reserve each chosen lot through the ledger

The allocator never retries. If a lot is taken by a concurrent reservation
between planning and reserving, ReservationConflictError propagates and the
caller runs allocate() again from scratch; since the plan is recomputed from
ledger state every call, a retry is always safe.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, List

from django.db import transaction

from stock.models import Product, StockLot
from stock.services.base_service import (
    BaseService, ValidationError, NotFoundError, to_decimal, to_quantity, decimal_str,
)
from stock.services.ledger_service import StockLedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRecord:
    lot_id: int
    lot_number: str
    quantity: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_id": self.lot_id,
            "lot_number": self.lot_number,
            "quantity": decimal_str(self.quantity),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AllocationRecord":
        return cls(
            lot_id=int(data["lot_id"]),
            lot_number=data.get("lot_number", ""),
            quantity=to_decimal(data["quantity"]),
        )


@dataclass
class AllocationResult:
    product_id: int
    quantity_requested: Decimal
    quantity_allocated: Decimal = Decimal("0")
    quantity_short: Decimal = Decimal("0")
    records: List[AllocationRecord] = field(default_factory=list)

    @property
    def fully_allocated(self) -> bool:
        return self.quantity_short == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity_requested": decimal_str(self.quantity_requested),
            "quantity_allocated": decimal_str(self.quantity_allocated),
            "quantity_short": decimal_str(self.quantity_short),
            "allocations": [r.to_dict() for r in self.records],
        }


class FifoAllocator(BaseService):
    model = StockLot

    @classmethod
    def _check_demand(cls, product_id: int, quantity) -> Decimal:
        quantity = to_quantity(quantity)
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative", "quantity")
        if not Product.objects.filter(id=product_id).exists():
            raise NotFoundError("Product", product_id)
        return quantity

    @classmethod
    def _walk(cls, product_id: int, quantity: Decimal, lots) -> AllocationResult:
        result = AllocationResult(product_id=product_id, quantity_requested=quantity)
        remaining = quantity

        for lot in lots:
            if remaining <= 0:
                break
            available = lot.quantity_on_hand - lot.quantity_reserved
            if available <= 0:
                continue
            take = min(available, remaining)
            result.records.append(AllocationRecord(lot.id, lot.lot_number, take))
            remaining -= take

        result.quantity_allocated = quantity - remaining
        result.quantity_short = remaining
        return result

    @classmethod
    def plan(cls, product_id: int, quantity: Decimal) -> AllocationResult:
        quantity = cls._check_demand(product_id, quantity)
        if quantity == 0:
            return AllocationResult(product_id=product_id, quantity_requested=quantity)
        lots = StockLedgerService.available_lots(product_id=product_id)
        return cls._walk(product_id, quantity, lots)

    @classmethod
    @transaction.atomic
    def allocate(cls,
                 product_id: int,
                 quantity: Decimal,
                 reference_type: str = "",
                 reference_id: int = None) -> AllocationResult:
        quantity = cls._check_demand(product_id, quantity)
        if quantity == 0:
            return AllocationResult(product_id=product_id, quantity_requested=quantity)

        lots = StockLedgerService.available_lots(product_id=product_id, lock=True)
        result = cls._walk(product_id, quantity, lots)

        for record in result.records:
            StockLedgerService.reserve(
                record.lot_id, record.quantity,
                reference_type=reference_type,
                reference_id=reference_id,
            )

        if result.quantity_short > 0:
            logger.info(
                f"Product {product_id}: allocated {result.quantity_allocated} of {quantity}, "
                f"short {result.quantity_short}"
            )
        else:
            logger.debug(f"Product {product_id}: allocated {quantity} from {len(result.records)} lot(s)")
        return result
