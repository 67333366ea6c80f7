import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from stock.services import (
    ServiceError, ValidationError, NotFoundError, BusinessRuleError, InvalidStateError,
    ConflictError, NoBOMDefinedError,
    BOMResolver, ManufacturingOrderService, PurchaseOrderService, ReorderService,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ValidationError):
        return error_response(str(e), "validation_error", 400, {"field": e.field})
    elif isinstance(e, NotFoundError):
        return error_response(str(e), "not_found", 404, e.details)
    elif isinstance(e, InvalidStateError):
        return error_response(str(e), "invalid_state", 409, e.details)
    elif isinstance(e, ConflictError):
        return error_response(str(e), "conflict", 409, e.details)
    elif isinstance(e, NoBOMDefinedError):
        return error_response(str(e), "no_bom_defined", 422, e.details)
    elif isinstance(e, BusinessRuleError):
        return error_response(str(e), "business_rule", 422, e.details)
    elif isinstance(e, ServiceError):
        return error_response(str(e), e.code.lower(), 400, e.details)
    else:
        logger.exception("Unhandled error in API view")
        return error_response(str(e), "server_error", 500)


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        return super().dispatch(request, *args, **kwargs)

    def get_json_body(self, request):
        try:
            return json.loads(request.body) if request.body else {}
        except json.JSONDecodeError:
            return {}

    def get_user_id(self, request):
        if request.user.is_authenticated:
            return request.user.id
        return None

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


class ManufacturingOrderDetailView(BaseStockView):
    """GET /api/stock/manufacturing-orders/<id>/"""

    def get(self, request, mo_id):
        try:
            return self.success(ManufacturingOrderService.get(mo_id))
        except Exception as e:
            return handle_service_error(e)


class ManufacturingOrderStatusView(BaseStockView):
    """POST /api/stock/manufacturing-orders/<id>/status/"""

    def post(self, request, mo_id):
        try:
            data = self.get_json_body(request)
            result = ManufacturingOrderService.set_status(
                mo_id, data.get("status", ""), user_id=self.get_user_id(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderDetailView(BaseStockView):
    """GET /api/stock/purchase-orders/<id>/"""

    def get(self, request, po_id):
        try:
            return self.success(PurchaseOrderService.get(po_id))
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderActionView(BaseStockView):
    """POST /api/stock/purchase-orders/<id>/<action>/"""

    def post(self, request, po_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request)

            if action == "send":
                result = PurchaseOrderService.send(po_id, user_id=user_id)
            elif action == "cancel":
                result = PurchaseOrderService.cancel(po_id, reason=data.get("reason", ""), user_id=user_id)
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class MaterialRequirementsView(BaseStockView):
    """GET /api/stock/products/<id>/material-requirements/?quantity=N"""

    def get(self, request, product_id):
        try:
            quantity = request.GET.get("quantity", "1")
            return self.success(BOMResolver.check_material_requirements(product_id, quantity))
        except Exception as e:
            return handle_service_error(e)


class ReorderCheckView(BaseStockView):
    """GET /api/stock/reorder-check/"""

    def get(self, request):
        try:
            return self.success(ReorderService.scan())
        except Exception as e:
            return handle_service_error(e)
