from decimal import Decimal

from django.test import TestCase

from orders.models import Retailer, Order, ActivityLog
from stock.models import ManufacturingOrder, PurchaseOrder, PurchaseOrderLine, StockSettings
from stock.services import (
    ShortageCascade, ProductShortage, ManufacturingPlan, MaterialRequirement, NoBOMDefinedError,
)
from stock.tests.helpers import make_vendor, make_product, make_material, add_bom, make_lot


def requirement(material_id, short, vendor_id=None, sku="M"):
    return MaterialRequirement(
        material_id=material_id,
        material_sku=sku,
        material_name=sku,
        unit_of_measure="unit",
        quantity_per_unit=Decimal("1"),
        quantity_required=short,
        quantity_available=Decimal("0"),
        quantity_short=short,
        preferred_vendor_id=vendor_id,
    )


class CascadeStageTests(TestCase):
    def test_aggregate_sums_shortages_per_material(self):
        plans = [
            ManufacturingPlan(
                shortage=ProductShortage(1, Decimal("5")),
                requirements=[requirement(7, Decimal("5"), 1), requirement(3, Decimal("0"), 1)],
                manufacturing_order_id=11,
            ),
            ManufacturingPlan(
                shortage=ProductShortage(2, Decimal("5")),
                requirements=[requirement(7, Decimal("5"), 1), requirement(4, Decimal("2"), 1)],
                manufacturing_order_id=12,
            ),
        ]

        shortages = ShortageCascade.aggregate_materials(plans)

        self.assertEqual([s.material_id for s in shortages], [4, 7])
        self.assertEqual(shortages[1].quantity_short, Decimal("10"))
        self.assertEqual(shortages[1].manufacturing_order_ids, [11, 12])

    def test_group_by_vendor_separates_unresolved_materials(self):
        active = make_vendor("Active")
        inactive = make_vendor("Dormant", is_active=False)
        plans = [ManufacturingPlan(
            shortage=ProductShortage(1, Decimal("1")),
            requirements=[
                requirement(1, Decimal("3"), active.id, "M-1"),
                requirement(2, Decimal("4"), None, "M-2"),
                requirement(3, Decimal("5"), inactive.id, "M-3"),
            ],
        )]

        groups, unresolved = ShortageCascade.group_by_vendor(ShortageCascade.aggregate_materials(plans))

        self.assertEqual(list(groups), [active.id])
        self.assertEqual([s.material_id for s in groups[active.id]], [1])
        self.assertEqual(
            [(u["material_sku"], u["reason"]) for u in unresolved],
            [("M-2", "no_preferred_vendor"), ("M-3", "vendor_inactive")],
        )


class ShortageCascadeTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor("Vendor V")
        self.material = make_material(name="Material M", vendor=self.vendor, unit_cost=Decimal("2.50"))
        self.widget = make_product(name="Widget")
        self.gizmo = make_product(name="Gizmo")
        add_bom(self.widget, self.material, 1)
        add_bom(self.gizmo, self.material, 1)
        retailer = Retailer.objects.create(name="Corner Shop")
        self.order = Order.objects.create(order_number="ORD-TEST-0001", retailer=retailer)

    def test_two_manufacturing_orders_share_one_purchase_order_line(self):
        result = ShortageCascade.resolve([
            ProductShortage(self.widget.id, Decimal("5"), [self.order.id]),
            ProductShortage(self.gizmo.id, Decimal("5"), [self.order.id]),
        ])

        self.assertEqual(len(result.manufacturing_order_ids), 2)
        self.assertEqual(len(result.purchase_order_ids), 1)

        po = PurchaseOrder.objects.get(id=result.purchase_order_ids[0])
        self.assertEqual(po.vendor, self.vendor)
        self.assertEqual(po.status, PurchaseOrder.Status.DRAFT)
        lines = list(po.lines.all())
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0].material, self.material)
        self.assertEqual(lines[0].quantity_ordered, Decimal("10"))
        self.assertEqual(po.total, Decimal("25.00"))
        self.assertEqual(
            sorted(po.manufacturing_orders.values_list("id", flat=True)),
            sorted(result.manufacturing_order_ids),
        )

    def test_manufacturing_order_keeps_sources_and_requirement_snapshot(self):
        make_lot(material=self.material, on_hand=3)

        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("5"), [self.order.id])])

        mo = ManufacturingOrder.objects.get(id=result.manufacturing_order_ids[0])
        self.assertEqual(mo.status, ManufacturingOrder.Status.PLANNED)
        self.assertEqual(mo.quantity_to_make, Decimal("5"))
        self.assertEqual(list(mo.source_orders.values_list("id", flat=True)), [self.order.id])
        self.assertEqual(mo.material_requirements[0]["material_id"], self.material.id)
        self.assertEqual(mo.material_requirements[0]["quantity_short"], "2.0000")
        self.assertTrue(mo.order_number.startswith("MO-"))

    def test_material_without_vendor_is_reported_not_dropped(self):
        orphan = make_material(name="Orphan")
        add_bom(self.widget, orphan, 1)

        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("4"), [self.order.id])])

        self.assertEqual(len(result.purchase_order_ids), 1)
        self.assertEqual(
            result.unresolved_materials,
            [{
                "material_id": orphan.id,
                "material_sku": orphan.sku,
                "quantity_short": "4.0000",
                "reason": "no_preferred_vendor",
            }],
        )
        self.assertFalse(PurchaseOrderLine.objects.filter(material=orphan).exists())

    def test_one_purchase_order_per_vendor(self):
        other_vendor = make_vendor("Vendor W")
        other = make_material(name="Material N", vendor=other_vendor)
        add_bom(self.gizmo, other, 3)

        result = ShortageCascade.resolve([ProductShortage(self.gizmo.id, Decimal("2"), [self.order.id])])

        vendors = list(
            PurchaseOrder.objects.filter(id__in=result.purchase_order_ids)
            .order_by("vendor_id").values_list("vendor__name", flat=True)
        )
        self.assertEqual(vendors, ["Vendor V", "Vendor W"])

    def test_no_purchase_order_when_materials_are_in_stock(self):
        make_lot(material=self.material, on_hand=100)

        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("5"), [self.order.id])])

        self.assertEqual(len(result.manufacturing_order_ids), 1)
        self.assertEqual(result.purchase_order_ids, [])

    def test_product_without_bom_raises(self):
        bare = make_product(name="Bare")
        with self.assertRaises(NoBOMDefinedError):
            ShortageCascade.resolve([ProductShortage(bare.id, Decimal("1"), [self.order.id])])
        self.assertFalse(ManufacturingOrder.objects.exists())

    def test_empty_input_creates_nothing(self):
        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("0"))])
        self.assertEqual(result.to_dict(), {
            "manufacturing_order_ids": [],
            "purchase_order_ids": [],
            "unresolved_materials": [],
        })

    def test_settings_switch_off_production(self):
        settings = StockSettings.load()
        settings.auto_create_production = False
        settings.save()

        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("5"), [self.order.id])])

        self.assertEqual(result.manufacturing_order_ids, [])
        self.assertFalse(ManufacturingOrder.objects.exists())

    def test_settings_switch_off_purchasing(self):
        settings = StockSettings.load()
        settings.auto_create_purchase_orders = False
        settings.save()

        result = ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("5"), [self.order.id])])

        self.assertEqual(len(result.manufacturing_order_ids), 1)
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_same_input_gives_same_shape(self):
        shortages = [
            ProductShortage(self.gizmo.id, Decimal("3"), [self.order.id]),
            ProductShortage(self.widget.id, Decimal("2"), [self.order.id]),
        ]
        first = ShortageCascade.resolve(shortages)
        second = ShortageCascade.resolve(shortages)

        def shape(result):
            mos = [ManufacturingOrder.objects.get(id=i) for i in result.manufacturing_order_ids]
            pos = [PurchaseOrder.objects.get(id=i) for i in result.purchase_order_ids]
            return (
                [(mo.product_id, mo.quantity_to_make) for mo in mos],
                [(po.vendor_id, [(l.material_id, l.quantity_ordered) for l in po.lines.order_by("material_id")]) for po in pos],
            )

        self.assertEqual(shape(first), shape(second))

    def test_creations_are_audited(self):
        ShortageCascade.resolve([ProductShortage(self.widget.id, Decimal("5"), [self.order.id])])

        actions = set(ActivityLog.objects.values_list("entity_type", "action"))
        self.assertIn(("MANUFACTURING_ORDER", "created"), actions)
        self.assertIn(("PURCHASE_ORDER", "created"), actions)
