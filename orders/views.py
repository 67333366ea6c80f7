from django.utils.dateparse import parse_date

from orders.services import OrderService
from stock.views import BaseStockView, handle_service_error, error_response


class OrderListView(BaseStockView):
    """POST /api/orders/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            ship_date = data.get("requested_ship_date")
            result = OrderService.create_order(
                retailer_id=data.get("retailer_id"),
                lines=data.get("lines") or [],
                external_reference=data.get("external_reference", ""),
                requested_ship_date=parse_date(ship_date) if ship_date else None,
                notes=data.get("notes", ""),
                user_id=self.get_user_id(request),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class OrderDetailView(BaseStockView):
    """GET /api/orders/<id>/"""

    def get(self, request, order_id):
        try:
            return self.success(OrderService.get(order_id))
        except Exception as e:
            return handle_service_error(e)


class OrderHistoryView(BaseStockView):
    """GET /api/orders/<id>/history/"""

    def get(self, request, order_id):
        try:
            return self.success(OrderService.history(order_id))
        except Exception as e:
            return handle_service_error(e)


class OrderActionView(BaseStockView):
    """POST /api/orders/<id>/<action>/"""

    def post(self, request, order_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request)

            if action == "submit":
                result = OrderService.submit_order(order_id, user_id=user_id)
            elif action == "approve":
                result = OrderService.approve_order(order_id, user_id=user_id)
            elif action == "fulfill":
                result = OrderService.start_fulfillment(order_id, user_id=user_id)
            elif action == "ship":
                result = OrderService.ship_order(
                    order_id,
                    tracking_number=data.get("tracking_number", ""),
                    carrier=data.get("carrier", ""),
                    user_id=user_id,
                )
            elif action == "cancel":
                result = OrderService.cancel_order(order_id, reason=data.get("reason", ""), user_id=user_id)
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)
