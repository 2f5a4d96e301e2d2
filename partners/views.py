from datetime import timezone as dt_timezone

from django.http import JsonResponse, HttpResponseBadRequest, HttpResponseNotFound
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_GET, require_POST

from orders.assignment import active_orders, claimable_orders, delivered_orders
from orders.validators import BadJSON, DispatchError, StaleTransition, parse_flag, parse_json_body
from orders.views import error_response, order_payload

from . import earnings, kyc, tracking
from .models import PartnerProfile, Withdrawal


def _json(data, status=200):
    return JsonResponse(data, status=status, json_dumps_params={"ensure_ascii": False})


def _earning_payload(e) -> dict:
    return {
        "order_id": e.order_id,
        "order_number": e.order.order_number,
        "amount": e.amount,
        "delivery_duration_minutes": e.delivery_duration_minutes,
        "created_at": e.created_at,
    }


def _withdrawal_payload(w: Withdrawal) -> dict:
    return {
        "id": w.pk,
        "partner_id": w.partner_id,
        "amount": w.amount,
        "method": w.method,
        "status": w.status,
        "created_at": w.created_at,
        "processed_at": w.processed_at,
    }


@require_GET
def available_orders(request, partner_id: int):
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")
    now = timezone.now()
    return _json({
        "partner_id": partner_id,
        "available": [order_payload(o, now) for o in claimable_orders(partner_id)],
        "active": [order_payload(o, now) for o in active_orders(partner_id)],
    })


@require_GET
def delivery_history(request, partner_id: int):
    """Entregas completadas del repartidor con su duración."""
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")
    return _json({
        "partner_id": partner_id,
        "delivered": [
            {
                "id": o.pk,
                "order_number": o.order_number,
                "delivery_address": o.delivery_address,
                "total_amount": o.total_amount,
                "delivered_at": o.delivered_at,
                "delivery_duration_minutes": o.delivery_duration_minutes,
            }
            for o in delivered_orders(partner_id)
        ],
    })


@require_POST
def set_online(request, partner_id: int):
    try:
        online = parse_flag(parse_json_body(request), "online")
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")
    try:
        kyc.set_online(partner_id, online)
    except DispatchError as e:
        return error_response(e)
    return _json({"ok": True, "partner_id": partner_id, "online": online})


@require_POST
def post_location(request, partner_id: int):
    """Muestra de ubicación fire-and-forget; 202 aunque se descarte."""
    try:
        body = parse_json_body(request)
        lat, lng = float(body["lat"]), float(body["lng"])
        captured_at = parse_datetime(body["captured_at"]) if body.get("captured_at") else None
    except (BadJSON, KeyError, TypeError, ValueError):
        return HttpResponseBadRequest("invalid payload")
    if captured_at is not None and timezone.is_naive(captured_at):
        captured_at = timezone.make_aware(captured_at, dt_timezone.utc)
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")

    try:
        etas = tracking.ingest_location(partner_id, lat, lng, captured_at)
    except ValueError:
        return HttpResponseBadRequest("invalid coordinates")
    return _json({"accepted": bool(etas), "etas": [e for e in etas if e]}, 202)


@require_GET
def partner_earnings(request, partner_id: int):
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")
    summary = earnings.earnings_summary(partner_id)
    summary["earnings"] = [_earning_payload(e) for e in earnings.earnings_history(partner_id)]
    summary["withdrawals"] = [
        _withdrawal_payload(w) for w in Withdrawal.objects.filter(partner_id=partner_id)[:50]
    ]
    return _json(summary)


@require_POST
def create_withdrawal(request, partner_id: int):
    try:
        body = parse_json_body(request)
        amount = body["amount"]
        method = body.get("method", "")
        account_details = body.get("account_details", "")
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")
    if not PartnerProfile.objects.filter(pk=partner_id).exists():
        return HttpResponseNotFound("partner not found")

    try:
        w = earnings.request_withdrawal(partner_id, amount, method, account_details)
    except DispatchError as e:
        return error_response(e)
    return _json({"ok": True, **_withdrawal_payload(w)}, 201)


@require_POST
def process_withdrawal(request, withdrawal_id: int):
    try:
        body = parse_json_body(request)
        approve = parse_flag(body, "approve")
        notes = body.get("notes")
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")

    try:
        w = earnings.process_withdrawal(withdrawal_id, approve, notes)
    except Withdrawal.DoesNotExist:
        return HttpResponseNotFound("withdrawal not found")
    except StaleTransition as e:
        return error_response(e)
    return _json({"ok": True, **_withdrawal_payload(w)})
