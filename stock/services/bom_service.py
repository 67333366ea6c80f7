from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any, List, Optional

from stock.models import Product, BOMItem
from stock.services.base_service import (
    BaseService, ValidationError, NotFoundError, NoBOMDefinedError,
    to_quantity, round_decimal, decimal_str,
)
from stock.services.ledger_service import StockLedgerService


@dataclass(frozen=True)
class MaterialRequirement:
    """Material need for one production quantity. Computed on demand, never stored on its own."""

    material_id: int
    material_sku: str
    material_name: str
    unit_of_measure: str
    quantity_per_unit: Decimal
    quantity_required: Decimal
    quantity_available: Decimal
    quantity_short: Decimal
    preferred_vendor_id: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "material_sku": self.material_sku,
            "material_name": self.material_name,
            "unit_of_measure": self.unit_of_measure,
            "quantity_per_unit": decimal_str(self.quantity_per_unit),
            "quantity_required": decimal_str(self.quantity_required),
            "quantity_available": decimal_str(self.quantity_available),
            "quantity_short": decimal_str(self.quantity_short),
            "preferred_vendor_id": self.preferred_vendor_id,
        }


class BOMResolver(BaseService):
    model = BOMItem

    @classmethod
    def active_items(cls, product_id: int):
        return (
            BOMItem.objects
            .filter(product_id=product_id, is_active=True)
            .select_related("material")
            .order_by("material_id")
        )

    @classmethod
    def expand(cls, product_id: int, quantity: Decimal) -> List[MaterialRequirement]:
        try:
            product = Product.objects.get(id=product_id)
        except Product.DoesNotExist:
            raise NotFoundError("Product", product_id)

        quantity = to_quantity(quantity)
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative", "quantity")

        items = list(cls.active_items(product.id))
        if not items:
            raise NoBOMDefinedError(product.id, product.sku)

        requirements = []
        for item in items:
            material = item.material
            required = round_decimal(item.quantity_per_unit * quantity)
            available = StockLedgerService.available_for_material(material.id)
            requirements.append(MaterialRequirement(
                material_id=material.id,
                material_sku=material.sku,
                material_name=material.name,
                unit_of_measure=material.unit_of_measure,
                quantity_per_unit=item.quantity_per_unit,
                quantity_required=required,
                quantity_available=available,
                quantity_short=max(Decimal("0"), required - available),
                preferred_vendor_id=material.preferred_vendor_id,
            ))
        return requirements

    @classmethod
    def check_material_requirements(cls, product_id: int, quantity: Decimal) -> Dict[str, Any]:
        requirements = cls.expand(product_id, quantity)
        return {
            "product_id": product_id,
            "quantity": decimal_str(quantity),
            "can_produce": all(r.quantity_short == 0 for r in requirements),
            "requirements": [r.to_dict() for r in requirements],
        }
