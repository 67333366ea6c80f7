"""
Order Services - wholesale order lifecycle and audit trail

Usage:
    from orders.services import OrderService

    result = OrderService.create_order(retailer_id=1, lines=[{"product_id": 3, "quantity": 100}])
    OrderService.submit_order(result["order"]["id"])
"""

from .activity_service import ActivityLogService
from .order_service import OrderService


__all__ = [
    "ActivityLogService",
    "OrderService",
]
