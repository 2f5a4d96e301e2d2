import logging

from django.db import IntegrityError
from django.http import JsonResponse, HttpResponseBadRequest, HttpResponseNotFound
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from partners.tracking import current_eta

from . import assignment, lifecycle, sla
from .models import Order
from .validators import (
    AlreadyClaimed,
    BadJSON,
    CancellationWindowClosed,
    DispatchError,
    InvalidTransition,
    KYCNotApproved,
    NotAssignedPartner,
    PartnerOffline,
    StaleTransition,
    WithdrawalRejected,
    parse_amount,
    parse_json_body,
)

logger = logging.getLogger(__name__)

# código HTTP por tipo de error del motor
_ERROR_STATUS = {
    InvalidTransition: 400,
    WithdrawalRejected: 400,
    KYCNotApproved: 403,
    PartnerOffline: 403,
    NotAssignedPartner: 403,
    StaleTransition: 409,
    AlreadyClaimed: 409,
    CancellationWindowClosed: 409,
}


def _json(data, status=200):
    return JsonResponse(data, status=status, json_dumps_params={"ensure_ascii": False})


def error_response(exc: DispatchError):
    status = _ERROR_STATUS.get(type(exc), 400)
    return _json({"ok": False, "error": type(exc).__name__, "reason": str(exc)}, status)


def order_payload(order: Order, now=None) -> dict:
    now = now or timezone.now()
    return {
        "id": order.pk,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "status": order.status,
        "version": order.version,
        "delivery_partner_id": order.delivery_partner_id,
        "total_amount": order.total_amount,
        "delivery_address": order.delivery_address,
        "destination": order.destination,
        "created_at": order.created_at,
        "accepted_at": order.accepted_at,
        "picked_up_at": order.picked_up_at,
        "delivered_at": order.delivered_at,
        "cancel_remaining_seconds": lifecycle.cancel_remaining_seconds(order, now),
        "sla": sla.snapshot(order, now),
    }


@require_GET
def get_order(request, order_id):
    try:
        o = Order.objects.get(pk=order_id)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    data = order_payload(o)
    data["eta"] = current_eta(o.pk)
    return _json(data)


@require_GET
def order_history(request, order_id):
    try:
        o = Order.objects.get(pk=order_id)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    events = o.events.values("status", "timestamp", "note")
    return _json({"id": o.pk, "events": list(events)})


@require_GET
def order_eta(request, order_id):
    if not Order.objects.filter(pk=order_id).exists():
        return HttpResponseNotFound("order not found")
    eta = current_eta(order_id)
    if eta is None:
        return _json({"id": order_id, "eta": None}, 404)
    return _json({"id": order_id, "eta": eta})


@require_POST
def create_order(request):
    """
    Lo invoca el colaborador de checkout; la orden nace en PENDING.
    order_number es la llave de idempotencia: un reintento (o una carrera)
    devuelve la orden existente con 200.
    """
    try:
        body = parse_json_body(request)
        order_number = body["order_number"]
        customer_id = str(body["customer_id"])
        total_amount = parse_amount(body["total_amount"])
        delivery_address = body["delivery_address"]
        if not isinstance(order_number, str) or not order_number.strip():
            raise BadJSON("order_number vacío")
        if not isinstance(delivery_address, str) or not delivery_address.strip():
            raise BadJSON("delivery_address vacía")
    except (BadJSON, KeyError) as e:
        return HttpResponseBadRequest(f"invalid payload: {e}")

    try:
        order = lifecycle.create_order(order_number, customer_id, total_amount, delivery_address)
    except IntegrityError:
        existing = Order.objects.filter(order_number=order_number).first()
        if existing is None:
            raise
        return _json({"created": False, **order_payload(existing)}, 200)
    return _json({"created": True, **order_payload(order)}, 201)


@require_http_methods(["PUT", "PATCH"])
def update_status(request, order_id):
    """
    Ruta crítica:
    - Valida la arista contra la tabla de transiciones.
    - UPDATE condicional por (id, estado esperado): 409 si otro actor ganó.
    - Publica el evento EDA después del commit.
    """
    try:
        body = parse_json_body(request)
        new_status = body["status"]
        partner_id = body.get("partner_id")
        note = body.get("note")
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")

    try:
        order = lifecycle.transition(order_id, new_status, acting_partner=partner_id, note=note)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    except DispatchError as e:
        return error_response(e)

    return _json({"ok": True, **order_payload(order)})


@require_POST
def cancel_order(request, order_id):
    try:
        note = parse_json_body(request).get("note")
    except BadJSON:
        return HttpResponseBadRequest("invalid payload")

    try:
        order = lifecycle.cancel(order_id, note=note)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    except DispatchError as e:
        return error_response(e)
    return _json({"ok": True, **order_payload(order)})


@require_POST
def claim_order(request, order_id):
    try:
        partner_id = parse_json_body(request)["partner_id"]
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")

    try:
        order = assignment.claim(order_id, partner_id)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    except AlreadyClaimed:
        # el perdedor no reintenta: la orden ya no está disponible
        return _json({"ok": False, "error": "AlreadyClaimed", "reason": "order no longer available"}, 409)
    except DispatchError as e:
        return error_response(e)
    return _json({"ok": True, **order_payload(order)})


@require_POST
def reject_order(request, order_id):
    try:
        body = parse_json_body(request)
        partner_id = body["partner_id"]
        note = body.get("note")
    except (BadJSON, KeyError):
        return HttpResponseBadRequest("invalid payload")

    try:
        order = assignment.reject(order_id, partner_id, note=note)
    except Order.DoesNotExist:
        return HttpResponseNotFound("order not found")
    except DispatchError as e:
        return error_response(e)
    return _json({"ok": True, **order_payload(order)})
