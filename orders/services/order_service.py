"""
Wholesale order lifecycle.

    DRAFT -> SUBMITTED -> APPROVED -> IN_FULFILLMENT -> SHIPPED
    DRAFT / SUBMITTED / APPROVED / IN_FULFILLMENT -> CANCELLED

Submit reserves stock line by line (FIFO) and hands whatever could not be
reserved to the shortage cascade in a single batch. Ship is the only step
that takes stock off the shelf. Cancel releases every reservation the order
still holds. Each transition runs inside one transaction with the order row
locked, so either every line is processed or nothing is written.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Any, List

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from orders.models import Order, OrderLine, Retailer
from orders.services.activity_service import ActivityLogService
from stock.models import Product
from stock.services import (
    BaseService, ValidationError, NotFoundError, BusinessRuleError, InvalidStateError,
    ConflictError, ReservationConflictError, success_response, to_quantity,
    decimal_str, generate_number,
    FifoAllocator, AllocationRecord, AllocationResult, StockLedgerService,
    ShortageCascade, ProductShortage,
)

logger = logging.getLogger(__name__)


class OrderService(BaseService):
    model = Order

    CANCELLABLE = [
        Order.Status.DRAFT,
        Order.Status.SUBMITTED,
        Order.Status.APPROVED,
        Order.Status.IN_FULFILLMENT,
    ]
    SHIPPABLE = [Order.Status.APPROVED, Order.Status.IN_FULFILLMENT]
    # Statuses in which the allocation records on the lines are live reservations
    HOLDS_RESERVATIONS = [
        Order.Status.SUBMITTED,
        Order.Status.APPROVED,
        Order.Status.IN_FULFILLMENT,
    ]

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize_line(cls, line: OrderLine) -> Dict[str, Any]:
        return {
            "id": line.id,
            "product_id": line.product_id,
            "product_sku": line.product.sku,
            "product_name": line.product.name,
            "quantity_ordered": str(line.quantity_ordered),
            "quantity_allocated": str(line.quantity_allocated),
            "quantity_short": str(line.quantity_short),
            "quantity_shipped": str(line.quantity_shipped),
            "allocations": line.allocation_details,
            "unit_price": str(line.unit_price) if line.unit_price is not None else None,
        }

    @classmethod
    def serialize(cls, order: Order) -> Dict[str, Any]:
        return {
            "id": order.id,
            "uuid": str(order.uuid),
            "order_number": order.order_number,
            "retailer_id": order.retailer_id,
            "retailer_name": order.retailer.name,
            "external_reference": order.external_reference,
            "status": order.status,
            "status_display": order.get_status_display(),
            "tracking_number": order.tracking_number,
            "carrier": order.carrier,
            "requested_ship_date": order.requested_ship_date.isoformat() if order.requested_ship_date else None,
            "submitted_at": order.submitted_at.isoformat() if order.submitted_at else None,
            "approved_at": order.approved_at.isoformat() if order.approved_at else None,
            "approved_by_id": order.approved_by_id,
            "shipped_at": order.shipped_at.isoformat() if order.shipped_at else None,
            "cancelled_at": order.cancelled_at.isoformat() if order.cancelled_at else None,
            "lines": [
                cls.serialize_line(line)
                for line in order.lines.select_related("product").order_by("id")
            ],
            "created_at": order.created_at.isoformat(),
        }

    @staticmethod
    def _snapshot(order: Order) -> Dict[str, Any]:
        return {
            "status": order.status,
            "tracking_number": order.tracking_number,
            "carrier": order.carrier,
            "approved_by_id": order.approved_by_id,
        }

    # ==================== HELPERS ====================

    @classmethod
    def _get_order(cls, order_id: int, lock: bool = False) -> Order:
        queryset = Order.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Order", order_id)

    @staticmethod
    def _require_status(order: Order, allowed: List[str]):
        if order.status not in allowed:
            raise InvalidStateError("Order", order.order_number, order.status, [s.value for s in allowed])

    @staticmethod
    def line_records(line: OrderLine) -> List[AllocationRecord]:
        return [AllocationRecord.from_dict(d) for d in line.allocation_details or []]

    @classmethod
    def reserved_quantity(cls, order_id: int) -> Decimal:
        """Stock currently held in reservation on behalf of this order."""
        order = cls._get_order(order_id)
        if order.status not in cls.HOLDS_RESERVATIONS:
            return Decimal("0")
        return sum(
            (r.quantity for line in order.lines.all() for r in cls.line_records(line)),
            Decimal("0"),
        )

    @classmethod
    def get(cls, order_id: int) -> Dict[str, Any]:
        order = cls._get_order(order_id)
        return success_response({"order": cls.serialize(order)})

    @classmethod
    def history(cls, order_id: int, limit: int = 50) -> Dict[str, Any]:
        order = cls._get_order(order_id)
        return success_response({
            "order_id": order.id,
            "order_number": order.order_number,
            "history": ActivityLogService.get_entity_history("ORDER", order.id, limit),
        })

    # ==================== CREATE ====================

    @classmethod
    @transaction.atomic
    def create_order(cls,
                     retailer_id: int,
                     lines: List[Dict[str, Any]],
                     external_reference: str = "",
                     requested_ship_date=None,
                     notes: str = "",
                     user_id: int = None) -> Dict[str, Any]:
        if not lines:
            raise ValidationError("Order must have at least one line item", "lines")

        try:
            retailer = Retailer.objects.get(id=retailer_id)
        except (Retailer.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Retailer", retailer_id)
        if not retailer.is_active:
            raise BusinessRuleError(f"Retailer {retailer.name} is inactive", "retailer_active")

        parsed = []
        for index, item in enumerate(lines, start=1):
            try:
                product_id = int(item.get("product_id"))
            except (TypeError, ValueError):
                raise ValidationError(f"Line {index}: product_id is required", "product_id")
            quantity = to_quantity(item.get("quantity"))
            if quantity <= 0:
                raise ValidationError(f"Line {index}: quantity must be positive", "quantity")
            unit_price = item.get("unit_price")
            if unit_price is not None:
                unit_price = to_quantity(unit_price, "unit_price")
                if unit_price < 0:
                    raise ValidationError(f"Line {index}: unit_price cannot be negative", "unit_price")
            parsed.append((product_id, quantity, unit_price))

        products = Product.objects.in_bulk({product_id for product_id, _, _ in parsed})
        for product_id, _, _ in parsed:
            if product_id not in products:
                raise NotFoundError("Product", product_id)

        external_reference = (external_reference or "").strip()
        if external_reference and Order.objects.filter(
            retailer=retailer, external_reference=external_reference
        ).exists():
            raise ConflictError(
                f"Order with reference {external_reference} already exists for {retailer.name}",
                {"retailer_id": retailer.id, "external_reference": external_reference},
            )

        order = Order.objects.create(
            order_number=generate_number("ORD", Order),
            retailer=retailer,
            external_reference=external_reference,
            requested_ship_date=requested_ship_date,
            notes=notes,
            created_by_id=user_id,
        )
        for product_id, quantity, unit_price in parsed:
            product = products[product_id]
            OrderLine.objects.create(
                order=order,
                product=product,
                quantity_ordered=quantity,
                unit_price=unit_price if unit_price is not None else product.wholesale_price,
            )

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="created",
            user_id=user_id,
            summary=f"{order.order_number} created for {retailer.name} with {len(parsed)} line(s)",
            after=cls._snapshot(order),
            details={
                "order_number": order.order_number,
                "retailer_id": retailer.id,
                "retailer_name": retailer.name,
                "lines": [
                    {"product_sku": products[p].sku, "quantity": decimal_str(q)}
                    for p, q, _ in parsed
                ],
            },
            tags=["order", "created"],
        )

        return success_response({"order": cls.serialize(order)}, "Order created")

    # ==================== SUBMIT ====================

    @classmethod
    def _allocate_line(cls, order: Order, line: OrderLine) -> AllocationResult:
        attempts = max(1, getattr(settings, "FULFILLMENT", {}).get("ALLOCATION_RETRY_ATTEMPTS", 3))

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    return FifoAllocator.allocate(
                        line.product_id,
                        line.quantity_ordered,
                        reference_type="ORDER",
                        reference_id=order.id,
                    )
            except ReservationConflictError as e:
                logger.warning(
                    f"{order.order_number} line {line.id}: lot {e.lot_id} changed during "
                    f"allocation (attempt {attempt}/{attempts})"
                )

        raise ConflictError(
            f"Could not allocate {line.product.sku} for {order.order_number} "
            f"after {attempts} attempts",
            {"order_id": order.id, "line_id": line.id, "product_id": line.product_id},
        )

    @classmethod
    @transaction.atomic
    def submit_order(cls, order_id: int, user_id: int = None) -> Dict[str, Any]:
        order = cls._get_order(order_id, lock=True)
        cls._require_status(order, [Order.Status.DRAFT])

        lines = list(order.lines.select_related("product").order_by("id"))
        if not lines:
            raise ValidationError("Order has no line items", "lines")

        before = cls._snapshot(order)
        order.status = Order.Status.SUBMITTED
        order.submitted_at = timezone.now()
        order.save(update_fields=["status", "submitted_at", "updated_at"])

        # One entry per product so repeated lines cascade as a single shortage
        shortages: "OrderedDict[int, ProductShortage]" = OrderedDict()
        line_summary = []
        for line in lines:
            result = cls._allocate_line(order, line)
            line.quantity_allocated = result.quantity_allocated
            line.quantity_short = result.quantity_short
            line.allocation_details = [r.to_dict() for r in result.records]
            line.save(update_fields=[
                "quantity_allocated", "quantity_short", "allocation_details", "updated_at",
            ])

            line_summary.append({
                "line_id": line.id,
                "product_sku": line.product.sku,
                "quantity_ordered": decimal_str(line.quantity_ordered),
                "quantity_allocated": decimal_str(result.quantity_allocated),
                "quantity_short": decimal_str(result.quantity_short),
                "lots": [r.to_dict() for r in result.records],
            })

            if result.quantity_short > 0:
                entry = shortages.get(line.product_id)
                if entry is None:
                    entry = shortages[line.product_id] = ProductShortage(
                        product_id=line.product_id,
                        quantity_short=Decimal("0"),
                        source_order_ids=[order.id],
                    )
                entry.quantity_short += result.quantity_short

        cascade = ShortageCascade.resolve(list(shortages.values()), user_id=user_id)

        product_skus = {line.product_id: line.product.sku for line in lines}
        shortage_rows = [
            {
                "product_id": s.product_id,
                "product_sku": product_skus[s.product_id],
                "short_quantity": decimal_str(s.quantity_short),
            }
            for s in shortages.values()
        ]
        allocated = not shortage_rows

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="submitted",
            user_id=user_id,
            summary=(
                f"{order.order_number} submitted; "
                + ("fully allocated" if allocated else f"{len(shortage_rows)} product(s) short")
            ),
            before=before,
            after=cls._snapshot(order),
            details={
                "order_number": order.order_number,
                "retailer_name": order.retailer.name,
                "lines": line_summary,
                "shortages": shortage_rows,
                **cascade.to_dict(),
            },
            tags=["order", "submitted", "allocation"] + ([] if allocated else ["shortage"]),
        )

        return success_response({
            "order": cls.serialize(order),
            "allocated": allocated,
            "shortages": shortage_rows,
            "manufacturing_order_ids": cascade.manufacturing_order_ids,
            "purchase_order_ids": cascade.purchase_order_ids,
            "unresolved_materials": cascade.unresolved_materials,
        }, "Order submitted" if allocated else "Order submitted with shortages")

    # ==================== APPROVE / FULFILL ====================

    @classmethod
    @transaction.atomic
    def approve_order(cls, order_id: int, user_id: int = None) -> Dict[str, Any]:
        order = cls._get_order(order_id, lock=True)
        cls._require_status(order, [Order.Status.SUBMITTED])

        before = cls._snapshot(order)
        order.status = Order.Status.APPROVED
        order.approved_by_id = user_id
        order.approved_at = timezone.now()
        order.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="approved",
            user_id=user_id,
            summary=f"{order.order_number} approved",
            before=before,
            after=cls._snapshot(order),
            details={"order_number": order.order_number, "retailer_name": order.retailer.name},
            tags=["order", "approved"],
        )
        return success_response({"order": cls.serialize(order)}, "Order approved")

    @classmethod
    @transaction.atomic
    def start_fulfillment(cls, order_id: int, user_id: int = None) -> Dict[str, Any]:
        order = cls._get_order(order_id, lock=True)
        cls._require_status(order, [Order.Status.APPROVED])

        before = cls._snapshot(order)
        order.status = Order.Status.IN_FULFILLMENT
        order.save(update_fields=["status", "updated_at"])

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="fulfillment_started",
            user_id=user_id,
            summary=f"{order.order_number} moved to fulfillment",
            before=before,
            after=cls._snapshot(order),
            details={"order_number": order.order_number},
            tags=["order", "fulfillment"],
        )
        return success_response({"order": cls.serialize(order)}, "Order in fulfillment")

    # ==================== SHIP ====================

    @classmethod
    @transaction.atomic
    def ship_order(cls,
                   order_id: int,
                   tracking_number: str = "",
                   carrier: str = "",
                   user_id: int = None) -> Dict[str, Any]:
        order = cls._get_order(order_id, lock=True)
        cls._require_status(order, cls.SHIPPABLE)

        before = cls._snapshot(order)
        consumed = []
        for line in order.lines.select_related("product").order_by("id"):
            records = cls.line_records(line)
            shipped = StockLedgerService.consume_records(records, "ORDER", order.id)
            line.quantity_shipped = shipped
            line.save(update_fields=["quantity_shipped", "updated_at"])
            consumed.append({
                "line_id": line.id,
                "product_sku": line.product.sku,
                "quantity_shipped": decimal_str(shipped),
                "lots": [r.to_dict() for r in records],
            })

        order.status = Order.Status.SHIPPED
        order.shipped_at = timezone.now()
        order.tracking_number = tracking_number or ""
        order.carrier = carrier or ""
        order.save(update_fields=["status", "shipped_at", "tracking_number", "carrier", "updated_at"])

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="shipped",
            user_id=user_id,
            summary=(
                f"{order.order_number} shipped to {order.retailer.name}"
                + (f", tracking {order.tracking_number}" if order.tracking_number else "")
            ),
            before=before,
            after=cls._snapshot(order),
            details={"order_number": order.order_number, "lines": consumed},
            tags=["order", "shipped", "fulfillment"],
        )
        return success_response({"order": cls.serialize(order)}, "Order shipped")

    # ==================== CANCEL ====================

    @classmethod
    @transaction.atomic
    def cancel_order(cls, order_id: int, reason: str = "", user_id: int = None) -> Dict[str, Any]:
        order = cls._get_order(order_id, lock=True)
        cls._require_status(order, cls.CANCELLABLE)

        before = cls._snapshot(order)
        released = []
        if order.status != Order.Status.DRAFT:
            for line in order.lines.select_related("product").order_by("id"):
                records = cls.line_records(line)
                total = StockLedgerService.release_records(records, "ORDER", order.id)
                if records:
                    released.append({
                        "line_id": line.id,
                        "product_sku": line.product.sku,
                        "quantity_released": decimal_str(total),
                        "lots": [r.to_dict() for r in records],
                    })
                line.quantity_allocated = Decimal("0")
                line.quantity_short = Decimal("0")
                line.allocation_details = []
                line.save(update_fields=[
                    "quantity_allocated", "quantity_short", "allocation_details", "updated_at",
                ])

        order.status = Order.Status.CANCELLED
        order.cancelled_at = timezone.now()
        if reason:
            order.notes = f"{order.notes}\nCancelled: {reason}".strip()
        order.save(update_fields=["status", "cancelled_at", "notes", "updated_at"])

        ActivityLogService.log_action(
            entity_type="ORDER",
            entity_id=order.id,
            action="cancelled",
            user_id=user_id,
            summary=f"{order.order_number} cancelled" + (f": {reason}" if reason else ""),
            before=before,
            after=cls._snapshot(order),
            details={"order_number": order.order_number, "released": released, "reason": reason},
            tags=["order", "cancelled"] + (["reservation-release"] if released else []),
        )
        return success_response({"order": cls.serialize(order)}, "Order cancelled")
