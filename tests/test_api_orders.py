"""
HTTP surface for orders: envelopes, status codes, auth guards
"""
from unittest.mock import patch

import pytest

from app.models import Product


API = "/api/v1/orders"


def _order_body(*lines, region="Central", method="mobile_money"):
    return {
        "items": [{"productId": pid, "quantity": qty} for pid, qty in lines],
        "shippingAddress": {"region": region, "district": "Kampala", "address": "Plot 12 Kampala Rd"},
        "paymentMethod": method,
    }


class TestAuth:
    def test_missing_token(self, client):
        response = client.get(API)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": {"message": "Not authorized, no token"}}

    def test_garbage_token(self, client):
        response = client.get(API, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_suspended_user(self, client, db, buyer, auth_headers):
        buyer.is_suspended = True
        db.commit()

        response = client.get(API, headers=auth_headers(buyer))
        assert response.status_code == 403

    def test_buyer_cannot_use_farmer_routes(self, client, buyer, auth_headers):
        response = client.get(f"{API}/farmer", headers=auth_headers(buyer))
        assert response.status_code == 403


class TestCreateOrder:
    def test_created(self, client, buyer, tomatoes, auth_headers, reload):
        response = client.post(API, json=_order_body((tomatoes.id, 2)), headers=auth_headers(buyer))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Order created successfully"
        data = body["data"]
        assert data["total"] == 15000
        assert data["status"] == "pending"
        assert data["items"][0]["quantity"] == 2
        assert reload(Product, tomatoes.id).quantity_available == 8

    def test_insufficient_stock(self, client, buyer, tomatoes, auth_headers):
        response = client.post(API, json=_order_body((tomatoes.id, 50)), headers=auth_headers(buyer))

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Insufficient quantity for Tomatoes"

    def test_missing_product(self, client, buyer, auth_headers):
        response = client.post(API, json=_order_body((424242, 1)), headers=auth_headers(buyer))

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"productIds": [424242]}

    @pytest.mark.parametrize("body", [
        {"items": [], "shippingAddress": {"region": "Central", "district": "Kampala", "address": "x"}},
        {"items": [{"productId": 1, "quantity": 0}], "shippingAddress": {"region": "Central", "district": "Kampala", "address": "x"}},
        {"items": [{"productId": 1, "quantity": 1}]},
        {"items": [{"productId": 1, "quantity": 1}], "shippingAddress": {"region": "Central", "district": "Kampala", "address": "x"}, "paymentMethod": "barter"},
    ])
    def test_validation_errors(self, client, buyer, auth_headers, body):
        response = client.post(API, json=body, headers=auth_headers(buyer))

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Validation Error"
        assert isinstance(error["details"], list)

    def test_unexpected_error_is_500_without_internals(self, client, buyer, tomatoes, auth_headers):
        with patch("app.api.v1.orders.OrderService.create_order", side_effect=RuntimeError("db exploded")):
            response = client.post(API, json=_order_body((tomatoes.id, 1)), headers=auth_headers(buyer))

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": {"message": "Internal Server Error"}}


class TestReads:
    def test_list_is_paginated(self, client, buyer, tomatoes, place_order, auth_headers):
        for _ in range(3):
            place_order(buyer, [(tomatoes, 1)])

        response = client.get(API, params={"page": 1, "limit": 2}, headers=auth_headers(buyer))

        body = response.json()
        assert response.status_code == 200
        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "total": 3, "page": 1, "limit": 2, "totalPages": 2, "hasMore": True, "hasPrevious": False,
        }

    def test_list_only_own_orders(self, client, buyer, other_buyer, tomatoes, place_order, auth_headers):
        place_order(buyer, [(tomatoes, 1)])

        response = client.get(API, headers=auth_headers(other_buyer))
        assert response.json()["data"] == []

    def test_status_filter(self, client, buyer, tomatoes, place_order, auth_headers):
        place_order(buyer, [(tomatoes, 1)])

        pending = client.get(API, params={"status": "pending"}, headers=auth_headers(buyer)).json()
        assert pending["pagination"]["total"] == 1

        shipped = client.get(API, params={"status": "shipped"}, headers=auth_headers(buyer)).json()
        assert shipped["data"] == []

    def test_unknown_status_filter_is_400(self, client, buyer, farmer, auth_headers):
        response = client.get(API, params={"status": "lost"}, headers=auth_headers(buyer))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid status filter: lost"

        response = client.get(f"{API}/farmer", params={"status": "refunded"}, headers=auth_headers(farmer))
        assert response.status_code == 400

    def test_farmer_sees_only_own_lines(self, client, buyer, farmer, tomatoes, matooke, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1), (matooke, 1)])

        response = client.get(f"{API}/farmer", headers=auth_headers(farmer))

        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["product_name"] == "Tomatoes"
        assert data[0]["order_number"] == order.order_number
        assert data[0]["shipping_address"]["region"] == "Central"

    def test_detail_includes_history(self, client, buyer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.get(f"{API}/{order.id}", headers=auth_headers(buyer))

        data = response.json()["data"]
        assert data["order_number"] == order.order_number
        assert [h["status"] for h in data["statusHistory"]] == ["pending"]

    def test_farmer_on_order_can_view(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.get(f"{API}/{order.id}", headers=auth_headers(farmer))
        assert response.status_code == 200

    def test_stranger_cannot_view(self, client, buyer, other_buyer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.get(f"{API}/{order.id}", headers=auth_headers(other_buyer))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Not authorized to view this order"

    def test_unknown_order(self, client, buyer, auth_headers):
        response = client.get(f"{API}/9999", headers=auth_headers(buyer))
        assert response.status_code == 404

    def test_tracking_and_history(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])
        client.post(f"{API}/{order.id}/confirm", headers=auth_headers(farmer))
        client.post(f"{API}/{order.id}/ship", json={"trackingNumber": "TRK-1"}, headers=auth_headers(farmer))

        tracking = client.get(f"{API}/{order.id}/tracking", headers=auth_headers(buyer)).json()["data"]
        assert tracking["tracking_number"] == "TRK-1"
        assert tracking["status"] == "shipped"

        history = client.get(f"{API}/{order.id}/history", headers=auth_headers(buyer)).json()["data"]
        assert [h["status"] for h in history] == ["shipped", "confirmed", "pending"]

    def test_statistics(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 2)])
        client.post(f"{API}/{order.id}/confirm", headers=auth_headers(farmer))
        client.post(f"{API}/{order.id}/deliver", headers=auth_headers(buyer))
        place_order(buyer, [(tomatoes, 1)])

        farmer_stats = client.get(f"{API}/statistics/summary", headers=auth_headers(farmer)).json()["data"]
        assert farmer_stats["delivered"] == 1
        assert farmer_stats["pending"] == 1
        assert farmer_stats["totalRevenue"] == 10000

        buyer_stats = client.get(f"{API}/statistics/summary", headers=auth_headers(buyer)).json()["data"]
        assert buyer_stats["delivered"] == 1
        assert buyer_stats["totalSpent"] == 15000


class TestTransitions:
    def test_confirm_ship_deliver(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        confirmed = client.post(f"{API}/{order.id}/confirm", headers=auth_headers(farmer))
        assert confirmed.status_code == 200
        assert confirmed.json()["data"]["status"] == "confirmed"

        shipped = client.post(f"{API}/{order.id}/ship", headers=auth_headers(farmer))
        data = shipped.json()["data"]
        assert data["trackingNumber"].startswith("TRK")
        assert data["order"]["status"] == "shipped"

        delivered = client.post(f"{API}/{order.id}/deliver", headers=auth_headers(buyer))
        assert delivered.json()["data"]["status"] == "delivered"

    def test_invalid_transition(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.post(f"{API}/{order.id}/ship", headers=auth_headers(farmer))
        assert response.status_code == 400

    def test_cancel_with_reason(self, client, buyer, tomatoes, place_order, auth_headers, reload):
        order = place_order(buyer, [(tomatoes, 4)])

        response = client.post(f"{API}/{order.id}/cancel", json={"reason": "Ordered twice"}, headers=auth_headers(buyer))

        assert response.status_code == 200
        assert response.json()["data"]["cancellation_reason"] == "Ordered twice"
        assert reload(Product, tomatoes.id).quantity_available == 10

    def test_cancel_without_body(self, client, buyer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.post(f"{API}/{order.id}/cancel", headers=auth_headers(buyer))
        assert response.json()["data"]["status"] == "cancelled"

    def test_status_update(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.put(f"{API}/{order.id}/status", json={"status": "confirmed"}, headers=auth_headers(farmer))
        assert response.json()["data"]["status"] == "confirmed"

    def test_status_update_rejects_unknown_status(self, client, buyer, farmer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.put(f"{API}/{order.id}/status", json={"status": "lost"}, headers=auth_headers(farmer))
        assert response.status_code == 400


class TestRefunds:
    def test_request_then_process(self, client, db, admin, buyer, tomatoes, place_order, make_payment, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])
        make_payment(order, status="completed")
        order.payment_status = "completed"
        db.commit()

        requested = client.post(
            f"{API}/{order.id}/refund-request", json={"reason": "Bruised"}, headers=auth_headers(buyer)
        )
        assert requested.status_code == 200
        assert requested.json()["data"]["refund_requested"] is True

        processed = client.post(f"{API}/{order.id}/refund", json={"reason": "Bruised"}, headers=auth_headers(admin))
        assert processed.status_code == 200
        assert processed.json()["data"]["amount"] == order.total

    def test_refund_request_needs_reason(self, client, buyer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.post(f"{API}/{order.id}/refund-request", json={}, headers=auth_headers(buyer))
        assert response.status_code == 400

    def test_refund_is_admin_only(self, client, buyer, tomatoes, place_order, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])

        response = client.post(f"{API}/{order.id}/refund", headers=auth_headers(buyer))
        assert response.status_code == 403

    def test_refund_of_unpaid_order(self, client, admin, buyer, tomatoes, place_order, make_payment, auth_headers):
        order = place_order(buyer, [(tomatoes, 1)])
        make_payment(order, status="pending")

        response = client.post(f"{API}/{order.id}/refund", headers=auth_headers(admin))
        assert response.status_code == 400
