from datetime import timedelta

import pytest
from django.utils import timezone

from orders.models import Order, OrderStatus
from partners import geo
from partners.models import KYCStatus

S = OrderStatus
pytestmark = pytest.mark.django_db


def _post(client, url, body):
    return client.post(url, body, content_type="application/json")


def test_create_order_is_idempotent_by_number(client):
    body = {
        "order_number": "ORD-9001",
        "customer_id": 77,
        "total_amount": "450.00",
        "delivery_address": "27.7172,85.3240",
    }
    r = _post(client, "/orders", body)
    assert r.status_code == 201
    data = r.json()
    assert data["created"] is True
    assert data["status"] == S.PENDING
    assert data["sla"]["budget_minutes"] == 10

    again = _post(client, "/orders", body)
    assert again.status_code == 200
    assert again.json()["created"] is False
    assert again.json()["id"] == data["id"]
    assert Order.objects.count() == 1


def test_create_order_requires_fields(client):
    assert _post(client, "/orders", {"order_number": "ORD-1"}).status_code == 400
    r = client.post("/orders", "{no es json", content_type="application/json")
    assert r.status_code == 400


def test_update_status_flow(client, make_order):
    order = make_order(status=S.PENDING)
    url = f"/orders/{order.pk}/status"

    r = client.put(url, {"status": S.CONFIRMED}, content_type="application/json")
    assert r.status_code == 200
    assert r.json()["status"] == S.CONFIRMED

    r = client.patch(url, {"status": S.DELIVERED}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidTransition"

    r = client.get(f"/orders/{order.pk}/history")
    assert [e["status"] for e in r.json()["events"]] == [S.PENDING, S.CONFIRMED]


def test_update_status_unknown_order(client):
    r = client.put(
        "/orders/00000000-0000-0000-0000-000000000000/status",
        {"status": S.CONFIRMED},
        content_type="application/json",
    )
    assert r.status_code == 404


def test_update_status_by_other_partner_is_forbidden(client, make_order, make_partner):
    owner, other = make_partner(), make_partner()
    order = make_order(status=S.DISPATCHED, partner=owner)
    r = client.put(
        f"/orders/{order.pk}/status",
        {"status": S.OUT_FOR_DELIVERY, "partner_id": other.pk},
        content_type="application/json",
    )
    assert r.status_code == 403
    assert r.json()["error"] == "NotAssignedPartner"


def test_claim_race_over_http(client, make_order, make_partner):
    a, b = make_partner(), make_partner()
    order = make_order(status=S.READY_FOR_PICKUP)

    r = _post(client, f"/orders/{order.pk}/claim", {"partner_id": a.pk})
    assert r.status_code == 200
    assert r.json()["delivery_partner_id"] == a.pk

    r = _post(client, f"/orders/{order.pk}/claim", {"partner_id": b.pk})
    assert r.status_code == 409
    assert r.json() == {"ok": False, "error": "AlreadyClaimed", "reason": "order no longer available"}


def test_claim_without_kyc_is_forbidden(client, make_order, make_partner):
    partner = make_partner(kyc=KYCStatus.PENDING, online=False)
    order = make_order(status=S.READY_FOR_PICKUP)
    r = _post(client, f"/orders/{order.pk}/claim", {"partner_id": partner.pk})
    assert r.status_code == 403
    assert r.json()["error"] == "KYCNotApproved"


def test_reject_over_http(client, make_order, make_partner):
    partner = make_partner()
    order = make_order(status=S.DISPATCHED, partner=partner)
    r = _post(client, f"/orders/{order.pk}/reject", {"partner_id": partner.pk, "note": "moto averiada"})
    assert r.status_code == 200
    assert r.json()["status"] == S.READY_FOR_PICKUP
    assert r.json()["delivery_partner_id"] is None


def test_cancel_window(client, make_order):
    fresh = make_order(status=S.CONFIRMED)
    r = _post(client, f"/orders/{fresh.pk}/cancel", {"note": "cliente se arrepintió"})
    assert r.status_code == 200
    assert r.json()["status"] == S.CANCELLED

    old = make_order(status=S.CONFIRMED, created_at=timezone.now() - timedelta(minutes=2))
    r = _post(client, f"/orders/{old.pk}/cancel", {})
    assert r.status_code == 409
    assert r.json()["error"] == "CancellationWindowClosed"


def test_get_order_includes_clock_and_eta(client, make_order):
    order = make_order(status=S.CONFIRMED, created_at=timezone.now() - timedelta(minutes=11))
    r = client.get(f"/orders/{order.pk}")
    assert r.status_code == 200
    data = r.json()
    assert data["sla"]["overdue"] is True
    assert data["cancel_remaining_seconds"] == 0
    assert data["eta"] is None

    assert client.get(f"/orders/{order.pk}/eta").status_code == 404


def test_online_requires_kyc(client, make_partner):
    partner = make_partner(kyc=KYCStatus.NOT_SUBMITTED, online=False)
    r = _post(client, f"/partners/{partner.pk}/online", {"online": True})
    assert r.status_code == 403

    approved = make_partner(online=False)
    r = _post(client, f"/partners/{approved.pk}/online", {"online": True})
    assert r.status_code == 200
    assert r.json()["online"] is True


def test_available_orders_board(client, make_order, make_partner):
    partner = make_partner()
    ready = make_order(status=S.READY_FOR_PICKUP)
    mine = make_order(status=S.DISPATCHED, partner=partner)

    r = client.get(f"/partners/{partner.pk}/orders/available")
    assert r.status_code == 200
    assert [o["id"] for o in r.json()["available"]] == [str(ready.pk)]
    assert [o["id"] for o in r.json()["active"]] == [str(mine.pk)]


def test_location_accepted_and_eta_readable(client, make_order, make_partner, monkeypatch):
    monkeypatch.setattr(geo, "directions", lambda origin, destination: (3.0, 9.0))
    partner = make_partner()
    order = make_order(status=S.OUT_FOR_DELIVERY, partner=partner)

    r = _post(client, f"/partners/{partner.pk}/location", {"lat": 27.70, "lng": 85.30})
    assert r.status_code == 202
    assert r.json()["accepted"] is True

    r = client.get(f"/orders/{order.pk}/eta")
    assert r.status_code == 200
    assert r.json()["eta"]["duration_minutes"] == 9.0

    bad = _post(client, f"/partners/{partner.pk}/location", {"lat": "x", "lng": 1})
    assert bad.status_code == 400


def test_earnings_and_withdrawals(client, make_order, make_partner):
    partner = make_partner()
    make_order(status=S.DELIVERED, total="1000.00", partner=partner)

    r = client.get(f"/partners/{partner.pk}/earnings")
    assert r.status_code == 200
    assert r.json()["total"] == "150.00"
    assert r.json()["deliveries"] == 1

    r = _post(client, f"/partners/{partner.pk}/withdrawals",
              {"amount": "50", "method": "bank", "account_details": "ACC-1"})
    assert r.status_code == 400
    assert r.json()["error"] == "WithdrawalRejected"

    r = _post(client, f"/partners/{partner.pk}/withdrawals",
              {"amount": "120", "method": "bank", "account_details": "ACC-1"})
    assert r.status_code == 201
    wid = r.json()["id"]

    r = _post(client, f"/withdrawals/{wid}/process", {"approve": True, "notes": "pagado"})
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert _post(client, f"/withdrawals/{wid}/process", {"approve": False}).status_code == 409
    assert _post(client, "/withdrawals/999999/process", {"approve": True}).status_code == 404


@pytest.mark.parametrize("amount", ["abc", "-500", "0", "0.001", "NaN", "Infinity", True, None, "100000000"])
def test_create_order_rejects_bad_amount(client, amount):
    body = {
        "order_number": "ORD-BAD",
        "customer_id": 1,
        "total_amount": amount,
        "delivery_address": "27.7172,85.3240",
    }
    assert _post(client, "/orders", body).status_code == 400
    assert not Order.objects.filter(order_number="ORD-BAD").exists()


def test_create_order_rejects_blank_number(client):
    body = {"order_number": "  ", "customer_id": 1, "total_amount": "10", "delivery_address": "x"}
    assert _post(client, "/orders", body).status_code == 400


def test_create_order_rounds_amount_to_cents(client):
    body = {
        "order_number": "ORD-ROUND",
        "customer_id": 1,
        "total_amount": 99.995,
        "delivery_address": "27.7172,85.3240",
    }
    assert _post(client, "/orders", body).status_code == 201
    assert str(Order.objects.get(order_number="ORD-ROUND").total_amount) == "100.00"


def test_delivered_retry_over_http_succeeds(client, make_order):
    order = make_order(status=S.DELIVERED)
    url = f"/orders/{order.pk}/status"
    body = {"status": S.DELIVERED, "partner_id": order.delivery_partner_id}

    r = client.put(url, body, content_type="application/json")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["version"] == order.version

    r = client.get(f"/partners/{order.delivery_partner_id}/earnings")
    assert r.json()["deliveries"] == 1
    assert r.json()["total"] == "150.00"


def test_withdrawal_approve_must_be_boolean(client, make_order, make_partner):
    partner = make_partner()
    make_order(status=S.DELIVERED, total="1000.00", partner=partner)
    r = _post(client, f"/partners/{partner.pk}/withdrawals",
              {"amount": "120", "method": "bank", "account_details": "ACC-1"})
    wid = r.json()["id"]

    for flag in ("false", "true", 0, 1, None):
        assert _post(client, f"/withdrawals/{wid}/process", {"approve": flag}).status_code == 400

    r = _post(client, f"/withdrawals/{wid}/process", {"approve": False})
    assert r.json()["status"] == "rejected"


def test_online_flag_must_be_boolean(client, make_partner):
    partner = make_partner(online=False)
    assert _post(client, f"/partners/{partner.pk}/online", {"online": "false"}).status_code == 400
    partner.refresh_from_db()
    assert partner.is_online is False


def test_delivery_history_and_earnings_rows(client, make_order, make_partner):
    partner = make_partner()
    delivered = make_order(status=S.DELIVERED, total="1000.00", partner=partner)
    make_order(status=S.OUT_FOR_DELIVERY, partner=partner)

    r = client.get(f"/partners/{partner.pk}/orders/delivered")
    assert r.status_code == 200
    rows = r.json()["delivered"]
    assert [row["id"] for row in rows] == [str(delivered.pk)]
    assert rows[0]["delivery_duration_minutes"] == delivered.delivery_duration_minutes

    r = client.get(f"/partners/{partner.pk}/earnings")
    earning_rows = r.json()["earnings"]
    assert len(earning_rows) == 1
    assert earning_rows[0]["order_number"] == delivered.order_number
    assert earning_rows[0]["amount"] == "150.00"

    assert client.get("/partners/999999/orders/delivered").status_code == 404
