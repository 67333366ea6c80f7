from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from stock.models import ManufacturingOrder
from stock.services import (
    BOMResolver, FifoAllocator, StockLedgerService, ValidationError,
    generate_number, to_quantity,
)
from stock.tests.helpers import make_product, make_material, add_bom, make_lot


class ToQuantityTests(TestCase):
    def test_parses_and_rounds(self):
        self.assertEqual(to_quantity("12.34567"), Decimal("12.3457"))
        self.assertEqual(to_quantity(3), Decimal("3.0000"))

    def test_rejects_non_numbers(self):
        for value in (None, "abc", "NaN", "Infinity", "-Infinity", float("nan"), float("inf")):
            with self.assertRaises(ValidationError) as ctx:
                to_quantity(value)
            self.assertEqual(ctx.exception.field, "quantity")

    def test_rejects_values_beyond_column_range(self):
        for value in ("1e40", "-1e40", "100000000000", "99999999999.99999"):
            with self.assertRaises(ValidationError):
                to_quantity(value)
        self.assertEqual(to_quantity("99999999999.9999"), Decimal("99999999999.9999"))

    def test_field_name_is_reported(self):
        with self.assertRaises(ValidationError) as ctx:
            to_quantity("NaN", "unit_price")
        self.assertEqual(ctx.exception.field, "unit_price")


class NonFiniteQuantityTests(TestCase):
    def setUp(self):
        self.widget = make_product()
        add_bom(self.widget, make_material(), 2)
        self.lot = make_lot(self.widget, on_hand=10)

    def test_allocator_rejects_non_finite(self):
        for value in ("NaN", "Infinity", "1e40"):
            with self.assertRaises(ValidationError):
                FifoAllocator.allocate(self.widget.id, value)
            with self.assertRaises(ValidationError):
                FifoAllocator.plan(self.widget.id, value)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.quantity_reserved, Decimal("0"))

    def test_bom_rejects_non_finite(self):
        with self.assertRaises(ValidationError):
            BOMResolver.expand(self.widget.id, "Infinity")

    def test_ledger_rejects_non_finite(self):
        with self.assertRaises(ValidationError):
            StockLedgerService.reserve(self.lot.id, "NaN")


class GenerateNumberTests(TestCase):
    def setUp(self):
        self.widget = make_product()
        self.date_part = timezone.now().strftime("%Y%m%d")

    def make_mo(self, seq):
        return ManufacturingOrder.objects.create(
            order_number=f"MO-{self.date_part}-{seq}",
            product=self.widget,
            quantity_to_make=Decimal("1"),
        )

    def test_first_number_of_the_day(self):
        self.assertEqual(generate_number("MO", ManufacturingOrder), f"MO-{self.date_part}-0001")

    def test_sequence_continues_past_four_digits(self):
        self.make_mo("9998")
        self.make_mo("9999")
        self.assertEqual(generate_number("MO", ManufacturingOrder), f"MO-{self.date_part}-10000")

        self.make_mo("10000")
        self.assertEqual(generate_number("MO", ManufacturingOrder), f"MO-{self.date_part}-10001")
