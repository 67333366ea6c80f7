from datetime import date
from decimal import Decimal

from django.test import TestCase

from stock.models import StockLot
from stock.services import BOMResolver, NoBOMDefinedError, NotFoundError
from stock.tests.helpers import make_vendor, make_product, make_material, add_bom, make_lot


class BOMResolverTests(TestCase):
    def setUp(self):
        self.vendor = make_vendor()
        self.widget = make_product(name="Widget")
        self.steel = make_material(name="Steel", vendor=self.vendor)
        self.paint = make_material(name="Paint")
        add_bom(self.widget, self.steel, 2)
        add_bom(self.widget, self.paint, "0.5")

    def test_expand_multiplies_per_unit_quantity(self):
        make_lot(material=self.steel, on_hand=30, fifo_date=date(2024, 1, 1))
        make_lot(material=self.paint, on_hand=100)

        requirements = {r.material_id: r for r in BOMResolver.expand(self.widget.id, Decimal("40"))}

        steel = requirements[self.steel.id]
        self.assertEqual(steel.quantity_required, Decimal("80"))
        self.assertEqual(steel.quantity_available, Decimal("30"))
        self.assertEqual(steel.quantity_short, Decimal("50"))
        self.assertEqual(steel.preferred_vendor_id, self.vendor.id)

        paint = requirements[self.paint.id]
        self.assertEqual(paint.quantity_required, Decimal("20"))
        self.assertEqual(paint.quantity_short, Decimal("0"))
        self.assertIsNone(paint.preferred_vendor_id)

    def test_unavailable_material_lots_do_not_count(self):
        make_lot(material=self.steel, on_hand=500, status=StockLot.Status.DAMAGED)
        make_lot(material=self.steel, on_hand=10, reserved=4)

        steel = next(r for r in BOMResolver.expand(self.widget.id, Decimal("1")) if r.material_id == self.steel.id)

        self.assertEqual(steel.quantity_available, Decimal("6"))
        self.assertEqual(steel.quantity_short, Decimal("0"))

    def test_results_are_ordered_by_material(self):
        ids = [r.material_id for r in BOMResolver.expand(self.widget.id, Decimal("1"))]
        self.assertEqual(ids, sorted(ids))

    def test_inactive_lines_are_ignored(self):
        gadget = make_product(name="Gadget")
        add_bom(gadget, self.steel, 3, is_active=False)

        with self.assertRaises(NoBOMDefinedError) as ctx:
            BOMResolver.expand(gadget.id, Decimal("5"))
        self.assertEqual(ctx.exception.code, "NO_BOM_DEFINED")

    def test_product_without_bom_fails(self):
        bare = make_product(name="Bare")
        with self.assertRaises(NoBOMDefinedError):
            BOMResolver.expand(bare.id, Decimal("1"))

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            BOMResolver.expand(self.widget.id + 500, Decimal("1"))

    def test_check_material_requirements_summary(self):
        make_lot(material=self.steel, on_hand=1000)
        make_lot(material=self.paint, on_hand=1000)

        summary = BOMResolver.check_material_requirements(self.widget.id, Decimal("10"))

        self.assertTrue(summary["can_produce"])
        self.assertEqual(len(summary["requirements"]), 2)
