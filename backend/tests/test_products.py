# Overview: Pytest coverage for the products API, including manual stock adjustment.

import pytest

from bizledger.models import TransactionLine
from bizledger.services import products_service
from bizledger.services.transaction_service import create_transaction
from conftest import auth_headers, sale_lines


class TestProductsApi:

    def test_create_product(self, client, db_session, token_a):
        response = client.post('/api/products', json={
            "name": "Sprocket",
            "description": "Toothed wheel",
            "price_cents": 1250,
            "stock": 4,
            "category": "Hardware",
        }, headers=auth_headers(token_a))

        assert response.status_code == 201
        data = response.json["data"]
        assert data["stock"] == 4
        assert data["price_cents"] == 1250

    def test_stock_defaults_to_zero(self, client, db_session, token_a):
        response = client.post('/api/products', json={"name": "Bolt", "price_cents": 10},
                               headers=auth_headers(token_a))
        assert response.status_code == 201
        assert response.json["data"]["stock"] == 0

    @pytest.mark.parametrize("payload, field", [
        ({"name": "B", "price_cents": 10}, "name"),
        ({"name": "Bolt", "price_cents": -1}, "price_cents"),
        ({"name": "Bolt", "price_cents": 10.5}, "price_cents"),
        ({"name": "Bolt", "price_cents": 10, "stock": -3}, "stock"),
        ({"name": "Bolt", "price_cents": 10, "stock": "2.5"}, "stock"),
        ({"name": "Bolt", "price_cents": 10, "stock": 10**20}, "stock"),
        ({"name": "Bolt"}, "price_cents"),
        ({"name": "Bolt", "price_cents": 10, "category": ""}, "category"),
    ])
    def test_create_validation(self, client, db_session, token_a, payload, field):
        response = client.post('/api/products', json=payload, headers=auth_headers(token_a))
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == field

    def test_list_search_and_category(self, client, db_session, token_a, widget_a, gadget_a):
        response = client.get('/api/products', headers=auth_headers(token_a))
        assert [p["name"] for p in response.json["data"]] == ["Gadget", "Widget"]

        response = client.get('/api/products?q=WIDG', headers=auth_headers(token_a))
        assert [p["id"] for p in response.json["data"]] == [widget_a.id]

        response = client.get('/api/products?category=Other', headers=auth_headers(token_a))
        assert response.json["data"] == []

    def test_update_descriptive_fields(self, client, db_session, token_a, widget_a):
        response = client.put(f'/api/products/{widget_a.id}', json={"price_cents": 2499},
                              headers=auth_headers(token_a))
        assert response.status_code == 200
        assert response.json["data"]["price_cents"] == 2499
        assert response.json["data"]["stock"] == 10

    def test_update_cannot_set_stock(self, client, db_session, token_a, widget_a):
        response = client.put(f'/api/products/{widget_a.id}', json={"stock": 999},
                              headers=auth_headers(token_a))
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "stock"

    def test_delete_keeps_transaction_lines(self, client, db_session, business_a, token_a, customer_a, widget_a):
        tx = create_transaction(business_a.id, "sale", customer_a.id, sale_lines(widget_a, 1))

        response = client.delete(f'/api/products/{widget_a.id}', headers=auth_headers(token_a))
        assert response.status_code == 200

        response = client.get(f'/api/transactions/{tx.id}', headers=auth_headers(token_a))
        line = response.json["data"]["lines"][0]
        assert line["product_id"] is None
        assert line["product"] is None
        assert line["quantity"] == 1
        assert db_session.query(TransactionLine).count() == 1

    def test_get_store_fault_is_json_500(self, client, db_session, monkeypatch, token_a, widget_a):
        def failing_get(*args):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(products_service, "get_product", failing_get)

        response = client.get(f'/api/products/{widget_a.id}', headers=auth_headers(token_a))
        assert response.status_code == 500
        assert response.json == {"success": False, "message": "Internal server error"}


class TestStockAdjustmentApi:

    def test_increase(self, client, db_session, token_a, widget_a):
        response = client.patch(f'/api/products/{widget_a.id}/stock', json={"delta": 5},
                                headers=auth_headers(token_a))
        assert response.status_code == 200
        assert response.json["data"]["stock"] == 15

    def test_decrease(self, client, db_session, token_a, widget_a):
        response = client.patch(f'/api/products/{widget_a.id}/stock', json={"delta": -4},
                                headers=auth_headers(token_a))
        assert response.json["data"]["stock"] == 6

    def test_cannot_go_negative(self, client, db_session, token_a, widget_a):
        response = client.patch(f'/api/products/{widget_a.id}/stock', json={"delta": -11},
                                headers=auth_headers(token_a))
        assert response.status_code == 400
        assert response.json["errors"] == [{"product_id": widget_a.id, "available": 10, "requested": 11}]

        response = client.get(f'/api/products/{widget_a.id}', headers=auth_headers(token_a))
        assert response.json["data"]["stock"] == 10

    @pytest.mark.parametrize("payload", [
        {}, {"delta": 0}, {"delta": 1.5}, {"delta": "many"},
        {"delta": 10**20}, {"delta": -10**20}, {"delta": 1_000_001}, {"delta": "99999999999999999999"},
    ])
    def test_bad_delta(self, client, db_session, token_a, widget_a, payload):
        response = client.patch(f'/api/products/{widget_a.id}/stock', json=payload,
                                headers=auth_headers(token_a))
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "delta"

        response = client.get(f'/api/products/{widget_a.id}', headers=auth_headers(token_a))
        assert response.json["data"]["stock"] == 10

    def test_unknown_product(self, client, db_session, token_a):
        response = client.patch('/api/products/99999/stock', json={"delta": 1},
                                headers=auth_headers(token_a))
        assert response.status_code == 404
