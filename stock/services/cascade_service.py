"""
Shortage cascade: product shortages in, derived work orders out.

    derive_manufacturing  ->  BOM expansion per shortage (no writes)
    create_manufacturing  ->  one ManufacturingOrder per shortage entry
    aggregate_materials   ->  quantity_short summed per material across the run
    group_by_vendor       ->  preferred vendor per material, unresolved ones split out
    create_purchasing     ->  one draft PurchaseOrder per vendor, one line per material

Each stage is a classmethod taking the previous stage's output, so it can be
exercised on its own. Ordering is deterministic throughout: shortages keep the
caller's order, materials are processed by id, vendors by id.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple

from django.db import transaction

from stock.models import Vendor, StockSettings
from stock.services.base_service import ValidationError, to_quantity, decimal_str
from stock.services.bom_service import BOMResolver, MaterialRequirement
from stock.services.manufacturing_service import ManufacturingOrderService
from stock.services.purchase_service import PurchaseOrderService

logger = logging.getLogger(__name__)


@dataclass
class ProductShortage:
    product_id: int
    quantity_short: Decimal
    source_order_ids: List[int] = field(default_factory=list)


@dataclass
class ManufacturingPlan:
    shortage: ProductShortage
    requirements: List[MaterialRequirement]
    manufacturing_order_id: Optional[int] = None


@dataclass
class MaterialShortage:
    material_id: int
    material_sku: str
    quantity_short: Decimal
    preferred_vendor_id: Optional[int]
    manufacturing_order_ids: List[int] = field(default_factory=list)


@dataclass
class CascadeResult:
    manufacturing_order_ids: List[int] = field(default_factory=list)
    purchase_order_ids: List[int] = field(default_factory=list)
    unresolved_materials: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "manufacturing_order_ids": self.manufacturing_order_ids,
            "purchase_order_ids": self.purchase_order_ids,
            "unresolved_materials": self.unresolved_materials,
        }


class ShortageCascade:

    @classmethod
    @transaction.atomic
    def resolve(cls, shortages: List[ProductShortage], user_id: int = None) -> CascadeResult:
        result = CascadeResult()
        shortages = [s for s in shortages if to_quantity(s.quantity_short) > 0]
        if not shortages:
            return result

        stock_settings = StockSettings.load()
        if not stock_settings.auto_create_production:
            logger.info(f"Automatic production disabled; {len(shortages)} shortage(s) left to planners")
            return result

        plans = cls.derive_manufacturing(shortages)
        cls.create_manufacturing(plans, user_id)
        result.manufacturing_order_ids = [p.manufacturing_order_id for p in plans]

        if not stock_settings.auto_create_purchase_orders:
            return result

        material_shortages = cls.aggregate_materials(plans)
        groups, unresolved = cls.group_by_vendor(material_shortages)
        result.unresolved_materials = unresolved
        result.purchase_order_ids = cls.create_purchasing(groups, user_id)

        logger.info(
            f"Cascade created {len(result.manufacturing_order_ids)} manufacturing order(s), "
            f"{len(result.purchase_order_ids)} purchase order(s), "
            f"{len(unresolved)} unresolved material shortage(s)"
        )
        return result

    # ==================== STAGES ====================

    @classmethod
    def derive_manufacturing(cls, shortages: List[ProductShortage]) -> List[ManufacturingPlan]:
        plans = []
        for shortage in shortages:
            quantity = to_quantity(shortage.quantity_short, "quantity_short")
            if quantity <= 0:
                raise ValidationError("Shortage quantity must be positive", "quantity_short")
            requirements = BOMResolver.expand(shortage.product_id, quantity)
            plans.append(ManufacturingPlan(shortage=shortage, requirements=requirements))
        return plans

    @classmethod
    def create_manufacturing(cls, plans: List[ManufacturingPlan], user_id: int = None) -> List[ManufacturingPlan]:
        from orders.services.activity_service import ActivityLogService

        for plan in plans:
            mo = ManufacturingOrderService.create(
                product_id=plan.shortage.product_id,
                quantity=plan.shortage.quantity_short,
                requirements=[r.to_dict() for r in plan.requirements],
                source_order_ids=plan.shortage.source_order_ids,
                user_id=user_id,
            )
            plan.manufacturing_order_id = mo.id

            short_materials = [r.material_sku for r in plan.requirements if r.quantity_short > 0]
            ActivityLogService.log_action(
                entity_type="MANUFACTURING_ORDER",
                entity_id=mo.id,
                action="created",
                user_id=user_id,
                summary=(
                    f"{mo.order_number} planned for {decimal_str(mo.quantity_to_make)} x "
                    f"{mo.product.sku} to cover order shortage"
                ),
                after={"status": mo.status, "quantity_to_make": decimal_str(mo.quantity_to_make)},
                details={
                    "order_number": mo.order_number,
                    "product_id": mo.product_id,
                    "product_sku": mo.product.sku,
                    "source_order_ids": sorted(set(plan.shortage.source_order_ids)),
                    "materials_short": short_materials,
                },
                tags=["manufacturing", "shortage", "auto-created"],
            )
        return plans

    @classmethod
    def aggregate_materials(cls, plans: List[ManufacturingPlan]) -> List[MaterialShortage]:
        totals: Dict[int, MaterialShortage] = {}
        for plan in plans:
            for req in plan.requirements:
                if req.quantity_short <= 0:
                    continue
                entry = totals.get(req.material_id)
                if entry is None:
                    entry = totals[req.material_id] = MaterialShortage(
                        material_id=req.material_id,
                        material_sku=req.material_sku,
                        quantity_short=Decimal("0"),
                        preferred_vendor_id=req.preferred_vendor_id,
                    )
                entry.quantity_short += req.quantity_short
                if plan.manufacturing_order_id is not None:
                    entry.manufacturing_order_ids.append(plan.manufacturing_order_id)
        return [totals[material_id] for material_id in sorted(totals)]

    @classmethod
    def group_by_vendor(cls,
                        material_shortages: List[MaterialShortage]
                        ) -> Tuple["OrderedDict[int, List[MaterialShortage]]", List[Dict[str, Any]]]:
        vendor_ids = {m.preferred_vendor_id for m in material_shortages if m.preferred_vendor_id}
        vendors = Vendor.objects.in_bulk(vendor_ids)

        groups: Dict[int, List[MaterialShortage]] = {}
        unresolved = []
        for shortage in material_shortages:
            vendor = vendors.get(shortage.preferred_vendor_id) if shortage.preferred_vendor_id else None
            if vendor is None:
                reason = "no_preferred_vendor"
            elif not vendor.is_active:
                reason = "vendor_inactive"
            else:
                groups.setdefault(vendor.id, []).append(shortage)
                continue

            logger.warning(
                f"Material {shortage.material_sku} short {shortage.quantity_short} "
                f"has no usable vendor ({reason}); no purchase order created"
            )
            unresolved.append({
                "material_id": shortage.material_id,
                "material_sku": shortage.material_sku,
                "quantity_short": decimal_str(shortage.quantity_short),
                "reason": reason,
            })

        return OrderedDict((vendor_id, groups[vendor_id]) for vendor_id in sorted(groups)), unresolved

    @classmethod
    def create_purchasing(cls,
                          groups: "OrderedDict[int, List[MaterialShortage]]",
                          user_id: int = None) -> List[int]:
        from orders.services.activity_service import ActivityLogService

        purchase_order_ids = []
        for vendor_id, shortages in groups.items():
            mo_ids = sorted({mo_id for s in shortages for mo_id in s.manufacturing_order_ids})
            po = PurchaseOrderService.create_draft(
                vendor_id=vendor_id,
                lines=[(s.material_id, s.quantity_short) for s in shortages],
                manufacturing_order_ids=mo_ids,
                user_id=user_id,
                notes="Auto-created for material shortages",
            )
            purchase_order_ids.append(po.id)

            ActivityLogService.log_action(
                entity_type="PURCHASE_ORDER",
                entity_id=po.id,
                action="created",
                user_id=user_id,
                summary=(
                    f"{po.order_number} drafted for {po.vendor.name} with "
                    f"{len(shortages)} material line(s)"
                ),
                after={"status": po.status, "total": str(po.total)},
                details={
                    "order_number": po.order_number,
                    "vendor_id": vendor_id,
                    "vendor_name": po.vendor.name,
                    "manufacturing_order_ids": mo_ids,
                    "lines": [
                        {"material_sku": s.material_sku, "quantity": decimal_str(s.quantity_short)}
                        for s in shortages
                    ],
                },
                tags=["purchasing", "shortage", "auto-created"],
            )
        return purchase_order_ids
