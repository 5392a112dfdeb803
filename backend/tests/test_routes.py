"""
HTTP API tests: sales, installments, inventory and system endpoints.
"""

import pytest

from salesdesk.services import installment_service, sales_service
from tests.conftest import SALE_DATE, item, on_hand


def _sale_payload(**overrides):
    payload = {
        "customer_ref": "C-001",
        "items": [
            {"stock_code": "SKU-A", "quantity": 3, "unit_price": "10.00", "tax_rate": 18},
            {"stock_code": "SKU-B", "quantity": 1, "unit_price": "5.00", "tax_rate": 18},
        ],
        "payment_method": "cash",
        "is_installment": False,
    }
    payload.update(overrides)
    return payload


class TestCreateSaleRoute:

    def test_created(self, client, sku_a, sku_b):
        resp = client.post("/api/sales/", json=_sale_payload())

        assert resp.status_code == 201
        data = resp.get_json()
        sale = data["sale"]
        assert data["sale_id"] == sale["id"]
        assert sale["subtotal_cents"] == 3500
        assert sale["tax_cents"] == 630
        assert sale["final_amount_cents"] == 4130
        assert sale["status"] == "completed"
        assert len(sale["items"]) == 2
        assert sale["installments"] == []
        assert on_hand("SKU-A") == 7

    def test_installment_sale(self, client, sku_a):
        resp = client.post("/api/sales/", json=_sale_payload(
            items=[{"stock_code": "SKU-A", "quantity": 1, "unit_price": 100, "tax_rate": 0}],
            payment_method="credit_card",
            is_installment=True,
            installment_count=3,
        ))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["status"] == "pending_installment"
        assert [i["amount_cents"] for i in sale["installments"]] == [3333, 3333, 3334]

    def test_insufficient_stock_conflict(self, client, scarce):
        resp = client.post("/api/sales/", json=_sale_payload(
            items=[{"stock_code": "SKU-SCARCE", "quantity": 5, "unit_price": "25.00", "tax_rate": 0}],
        ))

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "insufficient_stock"
        assert body["details"]["stock_code"] == "SKU-SCARCE"
        assert on_hand("SKU-SCARCE") == 2

    @pytest.mark.parametrize("overrides", [
        {"items": []},
        {"payment_method": ""},
        {"is_installment": "yes"},
        {"is_installment": True},
        {"items": [{"stock_code": "SKU-A", "quantity": 0, "unit_price": "1.00"}]},
        {"items": [{"stock_code": "SKU-A", "quantity": 1, "unit_price": "1.001"}]},
        {"items": [{"stock_code": "SKU-A", "quantity": 1, "unit_price": "1.00", "tax_rate": 101}]},
    ])
    def test_validation_errors(self, client, sku_a, overrides):
        resp = client.post("/api/sales/", json=_sale_payload(**overrides))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"
        assert on_hand("SKU-A") == 10

    def test_non_json_body(self, client, sku_a):
        resp = client.post("/api/sales/", data="not json", content_type="text/plain")
        assert resp.status_code == 400


class TestSaleReadAndLifecycleRoutes:

    @pytest.fixture
    def sale(self, db_session, sku_a):
        return sales_service.create_sale(
            customer_ref="C-1",
            items=[item("SKU-A", 2, 1000)],
            payment_method="credit_card",
            is_installment=True,
            installment_count=2,
            sale_date=SALE_DATE,
            session=db_session,
        )

    def test_get_and_list(self, client, sale):
        resp = client.get(f"/api/sales/{sale.id}")
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["id"] == sale.id

        resp = client.get("/api/sales/?status=pending_installment")
        assert [s["id"] for s in resp.get_json()["sales"]] == [sale.id]

    def test_get_missing(self, client, db_session):
        resp = client.get("/api/sales/777")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"

    def test_get_unexpected_failure_is_json(self, client, sale, monkeypatch):
        def _boom(sale_id, *, session=None):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(sales_service, "get_sale", _boom)

        resp = client.get(f"/api/sales/{sale.id}")

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error", "code": "internal_error"}

    def test_cancel(self, client, sale):
        resp = client.post(f"/api/sales/{sale.id}/cancel")

        assert resp.status_code == 200
        assert resp.get_json()["sale"]["status"] == "cancelled"
        assert on_hand("SKU-A") == 10
        assert client.get(f"/api/sales/{sale.id}").status_code == 404
        assert client.post(f"/api/sales/{sale.id}/cancel").status_code == 404

    def test_status_update(self, client, sale):
        resp = client.post(f"/api/sales/{sale.id}/status", json={"status": "pending"})
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["status"] == "pending"

        resp = client.post(f"/api/sales/{sale.id}/status", json={"status": "cancelled"})
        assert resp.status_code == 400

        resp = client.post(f"/api/sales/{sale.id}/status", json={})
        assert resp.status_code == 400

    def test_pay_installments(self, client, sale):
        first, second = [i.id for i in sale.installments]

        resp = client.post(f"/api/sales/{sale.id}/installments/{first}/pay")
        assert resp.status_code == 200
        assert resp.get_json()["installment"]["status"] == "paid"
        assert resp.get_json()["sale"]["status"] == "pending_installment"

        resp = client.post(f"/api/sales/{sale.id}/installments/{first}/pay")
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "already_paid"

        resp = client.post(f"/api/sales/{sale.id}/installments/{second}/pay")
        assert resp.get_json()["sale"]["status"] == "completed"

    def test_pay_unknown_installment(self, client, sale):
        resp = client.post(f"/api/sales/{sale.id}/installments/4040/pay")
        assert resp.status_code == 404

    def test_detect_overdue(self, client, sale):
        resp = client.post(
            f"/api/sales/{sale.id}/installments/detect-overdue", json={"as_of": "2026-02-18"}
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["changed"] == 1
        assert [i["status"] for i in body["installments"]] == ["overdue", "pending"]

    def test_detect_overdue_bad_date(self, client, sale):
        resp = client.post(
            f"/api/sales/{sale.id}/installments/detect-overdue", json={"as_of": "next tuesday"}
        )
        assert resp.status_code == 400


class TestInventoryRoutes:

    def test_get_product(self, client, sku_a):
        resp = client.get("/api/inventory/SKU-A")
        assert resp.status_code == 200
        assert resp.get_json()["product"]["quantity_on_hand"] == 10

    def test_missing_product(self, client, db_session):
        assert client.get("/api/inventory/NOPE").status_code == 404

    def test_adjust_and_movements(self, client, sku_a):
        resp = client.post("/api/inventory/SKU-A/adjust", json={"quantity": -4, "notes": "count"})
        assert resp.status_code == 200
        assert resp.get_json()["product"]["quantity_on_hand"] == 6

        movements = client.get("/api/inventory/SKU-A/movements").get_json()["movements"]
        assert [m["quantity_delta"] for m in movements] == [-4, 10]

    def test_adjust_below_zero(self, client, scarce):
        resp = client.post("/api/inventory/SKU-SCARCE/adjust", json={"quantity": -3})
        assert resp.status_code == 409

    def test_adjust_zero(self, client, sku_a):
        resp = client.post("/api/inventory/SKU-A/adjust", json={"quantity": 0})
        assert resp.status_code == 400

    def test_alerts(self, client, db_session):
        from salesdesk.services import inventory_service

        inventory_service.register_product(
            stock_code="SKU-LOW", name="Low", min_stock_level=3, opening_quantity=1, session=db_session
        )

        alerts = client.get("/api/inventory/alerts").get_json()["alerts"]
        assert [a["stock_code"] for a in alerts] == ["SKU-LOW"]
        assert client.get("/api/inventory/alerts?status=bogus").status_code == 400


class TestSystemRoutes:

    def test_health_healthy(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_health_degraded_when_sweep_lags(self, client, db_session, sku_a):
        sales_service.create_sale(
            customer_ref=None,
            items=[item("SKU-A", 1, 1000)],
            payment_method="credit_card",
            is_installment=True,
            installment_count=2,
            sale_date=SALE_DATE.replace(year=2020),
            session=db_session,
        )

        body = client.get("/health").get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["overdue_sweep"]["details"]["unswept_installments"] == 2

    def test_sweep_clears_degraded_health_for_any_sale_status(self, client, db_session, sku_a):
        sale = sales_service.create_sale(
            customer_ref=None,
            items=[item("SKU-A", 1, 900)],
            payment_method="credit_card",
            is_installment=True,
            installment_count=3,
            sale_date=SALE_DATE.replace(year=2020),
            session=db_session,
        )
        sales_service.update_sale_status(sale.id, "pending", session=db_session)
        assert client.get("/health").get_json()["status"] == "degraded"

        installment_service.sweep_overdue_installments(session=db_session)

        body = client.get("/health").get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["overdue_sweep"]["details"]["unswept_installments"] == 0

    def test_version(self, client):
        body = client.get("/version").get_json()
        assert body["api_version"] == "1.0.0"
