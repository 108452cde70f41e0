# Overview: Pytest coverage for the transactions API.

import pytest
from sqlalchemy.exc import OperationalError

from bizledger.services import transaction_service
from conftest import auth_headers, sale_lines


def _get_stock(client, token, product_id):
    return client.get(f'/api/products/{product_id}', headers=auth_headers(token)).json["data"]["stock"]


class TestTransactionsApi:

    def test_create_sale(self, client, db_session, token_a, customer_a, widget_a):
        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": customer_a.id,
            "lines": sale_lines(widget_a, 3),
        }, headers=auth_headers(token_a))

        assert response.status_code == 201
        data = response.json["data"]
        assert data["total_amount_cents"] == 5997
        assert data["customer"]["name"] == "Alice Brown"
        assert data["lines"][0]["product"]["name"] == "Widget"
        assert _get_stock(client, token_a, widget_a.id) == 7

    def test_products_key_accepted(self, client, db_session, token_a, vendor_a, gadget_a):
        response = client.post('/api/transactions', json={
            "type": "purchase",
            "vendor_id": vendor_a.id,
            "products": sale_lines(gadget_a, 5),
        }, headers=auth_headers(token_a))

        assert response.status_code == 201
        assert _get_stock(client, token_a, gadget_a.id) == 7

    def test_insufficient_stock(self, client, db_session, token_a, customer_a, widget_a):
        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": customer_a.id,
            "lines": sale_lines(widget_a, 11),
        }, headers=auth_headers(token_a))

        assert response.status_code == 400
        assert response.json["success"] is False
        assert response.json["errors"][0]["product_id"] == widget_a.id
        assert _get_stock(client, token_a, widget_a.id) == 10

    def test_wrong_counterparty_field(self, client, db_session, token_a, vendor_a, widget_a):
        response = client.post('/api/transactions', json={
            "type": "sale",
            "vendor_id": vendor_a.id,
            "lines": sale_lines(widget_a, 1),
        }, headers=auth_headers(token_a))

        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "vendor_id"

    def test_bad_type(self, client, db_session, token_a, customer_a, widget_a):
        response = client.post('/api/transactions', json={
            "type": "gift",
            "customer_id": customer_a.id,
            "lines": sale_lines(widget_a, 1),
        }, headers=auth_headers(token_a))
        assert response.status_code == 400

    def test_non_object_body(self, client, db_session, token_a):
        response = client.post('/api/transactions', json=[1, 2], headers=auth_headers(token_a))
        assert response.status_code == 400

    def test_commit_failure_is_opaque_500_and_stock_restored(
        self, client, db_session, monkeypatch, token_a, customer_a, widget_a
    ):
        def failing_persist(**kwargs):
            raise OperationalError("INSERT INTO transactions", {}, Exception("database is locked"))

        monkeypatch.setattr(transaction_service, "_persist_transaction", failing_persist)

        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": customer_a.id,
            "lines": sale_lines(widget_a, 2),
        }, headers=auth_headers(token_a))

        assert response.status_code == 500
        assert response.json == {"success": False, "message": "Internal server error", "retriable": True}
        monkeypatch.undo()
        assert _get_stock(client, token_a, widget_a.id) == 10

    def test_unexpected_failure_is_opaque_500(
        self, client, db_session, monkeypatch, token_a, customer_a, widget_a
    ):
        def failing_persist(**kwargs):
            raise RuntimeError("secret internals")

        monkeypatch.setattr(transaction_service, "_persist_transaction", failing_persist)

        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": customer_a.id,
            "lines": sale_lines(widget_a, 2),
        }, headers=auth_headers(token_a))

        assert response.status_code == 500
        assert response.json == {"success": False, "message": "Internal server error"}

    def test_list_and_filter(self, client, db_session, business_a, token_a, customer_a, vendor_a, widget_a):
        transaction_service.create_transaction(business_a.id, "sale", customer_a.id, sale_lines(widget_a, 1))
        transaction_service.create_transaction(business_a.id, "purchase", vendor_a.id, sale_lines(widget_a, 2))

        response = client.get('/api/transactions', headers=auth_headers(token_a))
        assert len(response.json["data"]) == 2

        response = client.get('/api/transactions?type=sale', headers=auth_headers(token_a))
        assert [t["type"] for t in response.json["data"]] == ["sale"]

    def test_update_and_delete_leave_stock(self, client, db_session, business_a, token_a, customer_a, widget_a):
        tx = transaction_service.create_transaction(
            business_a.id, "sale", customer_a.id, sale_lines(widget_a, 3)
        )

        response = client.put(f'/api/transactions/{tx.id}', json={
            "lines": sale_lines(widget_a, 3, 1000),
        }, headers=auth_headers(token_a))
        assert response.status_code == 200
        assert response.json["data"]["total_amount_cents"] == 3000
        assert _get_stock(client, token_a, widget_a.id) == 7

        response = client.put(f'/api/transactions/{tx.id}', json={
            "lines": sale_lines(widget_a, 4),
        }, headers=auth_headers(token_a))
        assert response.status_code == 400

        response = client.delete(f'/api/transactions/{tx.id}', headers=auth_headers(token_a))
        assert response.status_code == 200
        assert _get_stock(client, token_a, widget_a.id) == 7

        response = client.get(f'/api/transactions/{tx.id}', headers=auth_headers(token_a))
        assert response.status_code == 404

    @pytest.mark.parametrize("line, field", [
        ({"quantity": 10**20, "unit_price_cents": 100}, "lines[0].quantity"),
        ({"quantity": 1_000_001, "unit_price_cents": 100}, "lines[0].quantity"),
        ({"quantity": 1, "unit_price_cents": 10**20}, "lines[0].unit_price_cents"),
        ({"quantity": 1, "unit_price_cents": 1_000_000_000}, "lines[0].unit_price_cents"),
    ])
    def test_oversized_numbers_are_validation_errors(
        self, client, db_session, token_a, customer_a, widget_a, line, field
    ):
        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": customer_a.id,
            "lines": [dict(line, product_id=widget_a.id)],
        }, headers=auth_headers(token_a))

        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == field
        assert _get_stock(client, token_a, widget_a.id) == 10

    def test_oversized_ids_are_rejected(self, client, db_session, token_a, customer_a, widget_a):
        response = client.post('/api/transactions', json={
            "type": "sale",
            "customer_id": 10**20,
            "lines": sale_lines(widget_a, 1),
        }, headers=auth_headers(token_a))
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "customer_id"

        response = client.get(f'/api/transactions/{10**20}', headers=auth_headers(token_a))
        assert response.status_code == 404

    def test_get_store_fault_is_json_500(self, client, db_session, monkeypatch, business_a, token_a,
                                         customer_a, widget_a):
        tx = transaction_service.create_transaction(business_a.id, "sale", customer_a.id, sale_lines(widget_a, 1))

        def failing_get(*args):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(transaction_service, "get_transaction", failing_get)

        response = client.get(f'/api/transactions/{tx.id}', headers=auth_headers(token_a))
        assert response.status_code == 500
        assert response.json == {"success": False, "message": "Internal server error"}


class TestHealth:

    def test_health_is_public(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["data"]["database"]["status"] == "healthy"
