from datetime import date

from django.test import TestCase

from orders.models import Retailer, Order
from stock.models import ManufacturingOrder, PurchaseOrder
from stock.tests.helpers import make_vendor, make_product, make_material, add_bom, make_lot


class OrderApiTests(TestCase):
    def setUp(self):
        self.retailer = Retailer.objects.create(name="Corner Shop")
        self.widget = make_product(name="Widget")
        make_lot(self.widget, on_hand=60, fifo_date=date(2024, 1, 1), lot_number="A")

    def post(self, url, payload=None):
        return self.client.post(url, payload or {}, content_type="application/json")

    def create(self, quantity=10, **extra):
        payload = {
            "retailer_id": self.retailer.id,
            "lines": [{"product_id": self.widget.id, "quantity": str(quantity)}],
            **extra,
        }
        return self.post("/api/orders/", payload)

    def test_create_and_fetch(self):
        response = self.create(10, external_reference="PO-1", requested_ship_date="2024-06-01")

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["order"]["status"], "DRAFT")
        self.assertEqual(body["order"]["requested_ship_date"], "2024-06-01")

        detail = self.client.get(f"/api/orders/{body['order']['id']}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["order"]["lines"][0]["quantity_ordered"], "10.0000")

    def test_create_validation_error(self):
        response = self.post("/api/orders/", {"retailer_id": self.retailer.id, "lines": []})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "validation_error")

    def test_nan_quantity_is_a_validation_error(self):
        response = self.post("/api/orders/", {
            "retailer_id": self.retailer.id,
            "lines": [{"product_id": self.widget.id, "quantity": float("nan")}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "validation_error")

    def test_history_endpoint(self):
        order_id = self.create(5).json()["order"]["id"]
        self.post(f"/api/orders/{order_id}/submit/")

        response = self.client.get(f"/api/orders/{order_id}/history/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([h["action"] for h in response.json()["history"]], ["submitted", "created"])
        self.assertEqual(self.client.get("/api/orders/999999/history/").status_code, 404)

    def test_duplicate_reference_is_conflict(self):
        self.create(1, external_reference="PO-1")
        response = self.create(1, external_reference="PO-1")
        self.assertEqual(response.status_code, 409)

    def test_unknown_order_is_not_found(self):
        response = self.client.get("/api/orders/999999/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "not_found")

    def test_full_lifecycle(self):
        order_id = self.create(40).json()["order"]["id"]

        submitted = self.post(f"/api/orders/{order_id}/submit/").json()
        self.assertTrue(submitted["allocated"])
        self.assertEqual(self.post(f"/api/orders/{order_id}/approve/").status_code, 200)
        self.assertEqual(self.post(f"/api/orders/{order_id}/fulfill/").status_code, 200)
        shipped = self.post(f"/api/orders/{order_id}/ship/", {"tracking_number": "1Z1", "carrier": "UPS"})

        self.assertEqual(shipped.status_code, 200)
        self.assertEqual(shipped.json()["order"]["status"], "SHIPPED")
        self.assertEqual(shipped.json()["order"]["tracking_number"], "1Z1")

    def test_invalid_transition_is_conflict(self):
        order_id = self.create(5).json()["order"]["id"]

        response = self.post(f"/api/orders/{order_id}/approve/")

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "invalid_state")
        self.assertEqual(error["details"]["current_status"], "DRAFT")

    def test_unknown_action(self):
        order_id = self.create(5).json()["order"]["id"]
        response = self.post(f"/api/orders/{order_id}/explode/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_action")

    def test_missing_bom_is_unprocessable(self):
        order_id = self.create(100).json()["order"]["id"]

        response = self.post(f"/api/orders/{order_id}/submit/")

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "no_bom_defined")
        self.assertEqual(Order.objects.get(id=order_id).status, Order.Status.DRAFT)

    def test_cancel_with_reason(self):
        order_id = self.create(5).json()["order"]["id"]
        self.post(f"/api/orders/{order_id}/submit/")

        response = self.post(f"/api/orders/{order_id}/cancel/", {"reason": "duplicate"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["order"]["status"], "CANCELLED")
        self.assertEqual(response.json()["order"]["lines"][0]["allocations"], [])


class DerivedOrderApiTests(TestCase):
    def setUp(self):
        retailer = Retailer.objects.create(name="Corner Shop")
        self.widget = make_product(name="Widget")
        self.material = make_material(vendor=make_vendor("Vendor V"), unit_cost="2.00")
        add_bom(self.widget, self.material, 2)
        make_lot(material=self.material, on_hand=30)

        response = self.client.post("/api/orders/", {
            "retailer_id": retailer.id,
            "lines": [{"product_id": self.widget.id, "quantity": 40}],
        }, content_type="application/json")
        order_id = response.json()["order"]["id"]
        self.submitted = self.client.post(f"/api/orders/{order_id}/submit/", content_type="application/json").json()

    def test_submit_reports_derived_orders(self):
        self.assertFalse(self.submitted["allocated"])
        self.assertEqual(len(self.submitted["manufacturing_order_ids"]), 1)
        self.assertEqual(len(self.submitted["purchase_order_ids"]), 1)
        self.assertEqual(self.submitted["unresolved_materials"], [])

    def test_manufacturing_order_endpoints(self):
        mo_id = self.submitted["manufacturing_order_ids"][0]

        detail = self.client.get(f"/api/stock/manufacturing-orders/{mo_id}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["manufacturing_order"]["quantity_to_make"], "40.0000")

        started = self.client.post(
            f"/api/stock/manufacturing-orders/{mo_id}/status/",
            {"status": "IN_PROGRESS"},
            content_type="application/json",
        )
        self.assertEqual(started.status_code, 200)
        self.assertEqual(ManufacturingOrder.objects.get(id=mo_id).status, "IN_PROGRESS")

        bad = self.client.post(
            f"/api/stock/manufacturing-orders/{mo_id}/status/",
            {"status": "PLANNED"},
            content_type="application/json",
        )
        self.assertEqual(bad.status_code, 409)

    def test_purchase_order_endpoints(self):
        po_id = self.submitted["purchase_order_ids"][0]

        detail = self.client.get(f"/api/stock/purchase-orders/{po_id}/").json()
        self.assertEqual(detail["purchase_order"]["lines"][0]["quantity_ordered"], "50.0000")
        self.assertEqual(detail["purchase_order"]["total"], "100.00")

        sent = self.client.post(f"/api/stock/purchase-orders/{po_id}/send/", content_type="application/json")
        self.assertEqual(sent.status_code, 200)
        self.assertEqual(PurchaseOrder.objects.get(id=po_id).status, PurchaseOrder.Status.SENT)

    def test_material_requirements_endpoint(self):
        response = self.client.get(f"/api/stock/products/{self.widget.id}/material-requirements/?quantity=20")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["can_produce"])
        self.assertEqual(body["requirements"][0]["quantity_required"], "40.0000")
        self.assertEqual(body["requirements"][0]["quantity_short"], "10.0000")

    def test_material_requirements_rejects_nan(self):
        response = self.client.get(f"/api/stock/products/{self.widget.id}/material-requirements/?quantity=NaN")
        self.assertEqual(response.status_code, 400)

    def test_reorder_check_endpoint(self):
        response = self.client.get("/api/stock/reorder-check/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total"], 0)
