"""
Reloj de SLA: funciones puras sobre los timestamps de la orden y "ahora".

El presupuesto es global por despliegue (settings.SLA_BUDGET_MINUTES), no por
orden. Al llegar a DELIVERED el reloj se congela en delivered_at.
"""
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import OrderStatus

ACTIVE_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.DISPATCHED,
    OrderStatus.OUT_FOR_DELIVERY,
)


def total_budget() -> timedelta:
    return timedelta(minutes=settings.SLA_BUDGET_MINUTES)


def _clock_end(order, now):
    if order.status == OrderStatus.DELIVERED and order.delivered_at is not None:
        return order.delivered_at
    return now or timezone.now()


def elapsed(order, now=None) -> timedelta:
    return _clock_end(order, now) - order.created_at


def remaining(order, now=None) -> timedelta:
    return max(timedelta(0), total_budget() - elapsed(order, now))


def is_overdue(order, now=None) -> bool:
    return order.status != OrderStatus.DELIVERED and elapsed(order, now) > total_budget()


def is_running(order) -> bool:
    return order.status in ACTIVE_STATUSES


def partner_remaining(order, now=None) -> timedelta | None:
    """Sub-presupuesto del repartidor, desde accepted_at. Solo para la cuenta regresiva."""
    if order.accepted_at is None or order.status == OrderStatus.DELIVERED:
        return None
    now = now or timezone.now()
    left_at_accept = total_budget() - (order.accepted_at - order.created_at)
    return max(timedelta(0), left_at_accept - (now - order.accepted_at))


def final_duration_minutes(order) -> float:
    if order.delivered_at is None:
        raise ValueError(f"la orden {order.pk} no tiene delivered_at")
    return round((order.delivered_at - order.created_at).total_seconds() / 60, 2)


def format_clock(seconds: float) -> str:
    negative = seconds < 0
    seconds = int(abs(seconds))
    text = f"{seconds // 60:02d}:{seconds % 60:02d}"
    return f"-{text}" if negative else text


def snapshot(order, now=None) -> dict:
    now = now or timezone.now()
    el = elapsed(order, now)
    rem = remaining(order, now)
    partner = partner_remaining(order, now)
    return {
        "budget_minutes": settings.SLA_BUDGET_MINUTES,
        "elapsed_seconds": int(el.total_seconds()),
        "remaining_seconds": int(rem.total_seconds()),
        "elapsed": format_clock(el.total_seconds()),
        "remaining": format_clock(rem.total_seconds()),
        "overdue": is_overdue(order, now),
        "running": is_running(order),
        "partner_remaining_seconds": int(partner.total_seconds()) if partner is not None else None,
        "delivery_duration_minutes": order.delivery_duration_minutes,
    }
