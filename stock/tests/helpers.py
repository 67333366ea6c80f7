from datetime import date
from decimal import Decimal
from itertools import count

from stock.models import Vendor, Product, RawMaterial, BOMItem, StockLot

_seq = count(1)


def make_vendor(name="Acme Supply", **kwargs):
    return Vendor.objects.create(name=name, **kwargs)


def make_product(sku=None, name="Widget", **kwargs):
    return Product.objects.create(sku=sku or f"SKU-{next(_seq)}", name=name, **kwargs)


def make_material(sku=None, name="Material M", vendor=None, **kwargs):
    return RawMaterial.objects.create(
        sku=sku or f"MAT-{next(_seq)}", name=name, preferred_vendor=vendor, **kwargs
    )


def add_bom(product, material, per_unit, **kwargs):
    return BOMItem.objects.create(
        product=product, material=material, quantity_per_unit=Decimal(str(per_unit)), **kwargs
    )


def make_lot(product=None, material=None, on_hand=0, reserved=0, fifo_date=None, lot_number=None, **kwargs):
    return StockLot.objects.create(
        lot_number=lot_number or f"LOT-{next(_seq)}",
        kind=StockLot.Kind.MATERIAL if material else StockLot.Kind.PRODUCT,
        product=product,
        material=material,
        quantity_on_hand=Decimal(str(on_hand)),
        quantity_reserved=Decimal(str(reserved)),
        fifo_date=fifo_date or date(2024, 1, 1),
        **kwargs,
    )
