"""
Stock Services - inventory ledger, allocation and shortage cascade

Usage:
    from stock.services import FifoAllocator, ShortageCascade, ProductShortage

    # Reserve finished goods oldest-lot-first
    result = FifoAllocator.allocate(product_id=1, quantity=Decimal("100"))

    # Turn what could not be reserved into manufacturing and purchase orders
    ShortageCascade.resolve([ProductShortage(1, result.quantity_short, [order.id])])
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    BusinessRuleError,
    InvalidStateError,
    ConflictError,
    ReservationConflictError,
    NoBOMDefinedError,
    success_response,
    to_decimal,
    to_quantity,
    round_decimal,
    decimal_str,
    generate_number,
    BaseService,
)

# Inventory ledger & allocation
from .ledger_service import StockLedgerService
from .allocation_service import FifoAllocator, AllocationRecord, AllocationResult

# BOM & derived orders
from .bom_service import BOMResolver, MaterialRequirement
from .manufacturing_service import ManufacturingOrderService
from .purchase_service import PurchaseOrderService
from .cascade_service import (
    ShortageCascade,
    ProductShortage,
    ManufacturingPlan,
    MaterialShortage,
    CascadeResult,
)

# Planning
from .reorder_service import ReorderService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "BusinessRuleError",
    "InvalidStateError",
    "ConflictError",
    "ReservationConflictError",
    "NoBOMDefinedError",
    "success_response",
    "to_decimal",
    "to_quantity",
    "round_decimal",
    "decimal_str",
    "generate_number",
    "BaseService",

    # Inventory ledger & allocation
    "StockLedgerService",
    "FifoAllocator",
    "AllocationRecord",
    "AllocationResult",

    # BOM & derived orders
    "BOMResolver",
    "MaterialRequirement",
    "ManufacturingOrderService",
    "PurchaseOrderService",
    "ShortageCascade",
    "ProductShortage",
    "ManufacturingPlan",
    "MaterialShortage",
    "CascadeResult",

    # Planning
    "ReorderService",
]
