from typing import Dict, Any
from decimal import Decimal

from stock.models import Product, RawMaterial
from stock.services.base_service import success_response, decimal_str
from stock.services.ledger_service import StockLedgerService


class ReorderService:
    """Reorder-point scan. Runs outside the allocation path and only suggests."""

    @classmethod
    def scan_products(cls):
        suggestions = []
        for product in Product.objects.filter(is_active=True, reorder_point__gt=0).order_by("id"):
            available = StockLedgerService.available_for_product(product.id)
            if available >= product.reorder_point:
                continue
            suggestions.append({
                "product_id": product.id,
                "sku": product.sku,
                "name": product.name,
                "available": decimal_str(available),
                "reorder_point": decimal_str(product.reorder_point),
                "suggested_quantity": decimal_str(product.default_batch_size or product.reorder_point),
            })
        return suggestions

    @classmethod
    def scan_materials(cls):
        suggestions = []
        materials = RawMaterial.objects.filter(is_active=True, reorder_point__gt=0).select_related("preferred_vendor")
        for material in materials.order_by("id"):
            available = StockLedgerService.available_for_material(material.id)
            if available >= material.reorder_point:
                continue
            shortfall = material.reorder_point - available
            quantity = material.reorder_quantity if material.reorder_quantity > 0 else shortfall
            suggestions.append({
                "material_id": material.id,
                "sku": material.sku,
                "name": material.name,
                "available": decimal_str(available),
                "reorder_point": decimal_str(material.reorder_point),
                "suggested_quantity": decimal_str(max(quantity, Decimal("0"))),
                "preferred_vendor_id": material.preferred_vendor_id,
                "preferred_vendor": material.preferred_vendor.name if material.preferred_vendor else None,
            })
        return suggestions

    @classmethod
    def scan(cls) -> Dict[str, Any]:
        products = cls.scan_products()
        materials = cls.scan_materials()
        return success_response({
            "products": products,
            "materials": materials,
            "total": len(products) + len(materials),
        }, "Reorder scan complete")
