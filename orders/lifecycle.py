"""
Máquina de estados de la orden.

Toda escritura de estado es un UPDATE condicional sobre (id, estado esperado):
si otra petición movió la orden entre la lectura y la escritura, el UPDATE
afecta 0 filas y se lanza StaleTransition. El evento de historial se inserta
en la misma transacción, y los eventos EDA se publican después del commit.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction, models
from django.utils import timezone

from . import publisher, sla
from .models import Order, OrderStatus, OrderStatusEvent, TERMINAL_STATUSES
from .validators import (
    CancellationWindowClosed,
    InvalidTransition,
    NotAssignedPartner,
    StaleTransition,
    validate_status_transition,
)

logger = logging.getLogger(__name__)

# campo de timestamp que se sella al entrar a cada estado
_STAMPS = {
    OrderStatus.DISPATCHED: "accepted_at",
    OrderStatus.OUT_FOR_DELIVERY: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def _fetch(order_id) -> Order:
    # lectura fresca, nunca desde una instancia cacheada
    return Order.objects.get(pk=order_id)


def append_event(order: Order, status: str, note: str | None, when) -> OrderStatusEvent:
    last = (
        OrderStatusEvent.objects.filter(order_id=order.pk)
        .order_by("-timestamp", "-id")
        .values_list("timestamp", flat=True)
        .first()
    )
    if last is not None and when < last:
        when = last  # timestamps no decrecientes por orden
    return OrderStatusEvent.objects.create(order_id=order.pk, status=status, note=note, timestamp=when)


def notify_status_change(order_id, status: str, version: int, meta: dict | None = None) -> None:
    publisher.publish_order_status_updated(order_id, status, version, meta=meta)
    if status == OrderStatus.READY_FOR_PICKUP:
        # import tardío: partners depende de orders
        from partners.kyc import eligible_partner_ids

        publisher.publish_order_claimable(order_id, version, eligible_partner_ids())


def notify_on_commit(order_id, status, meta=None):
    def _send():
        version = Order.objects.filter(pk=order_id).values_list("version", flat=True).first()
        notify_status_change(order_id, status, version or 0, meta=meta)

    transaction.on_commit(_send)


def create_order(order_number: str, customer_id: str, total_amount, delivery_address: str,
                 created_at=None, note: str | None = None) -> Order:
    """Punto de entrada del colaborador de checkout: la orden nace en PENDING."""
    validate_status_transition(None, OrderStatus.PENDING)
    created_at = created_at or timezone.now()
    with transaction.atomic():
        order = Order.objects.create(
            order_number=order_number,
            customer_id=customer_id,
            total_amount=total_amount,
            delivery_address=delivery_address,
            created_at=created_at,
        )
        append_event(order, OrderStatus.PENDING, note or "Order placed", created_at)
        transaction.on_commit(lambda: publisher.publish_order_created(order.pk, order.status))
    logger.info("order %s created (%s)", order.order_number, order.pk)
    return order


def transition(order_id, target_status: str, acting_partner=None, note: str | None = None, now=None) -> Order:
    """
    Aplica una transición validada contra la tabla.
    - acting_partner: id del repartidor que actúa; None = sistema/tienda.
    - Al llegar a DELIVERED congela el SLA y registra la ganancia.
    """
    if target_status == OrderStatus.CANCELLED:
        return cancel(order_id, note=note, now=now)

    now = now or timezone.now()
    with transaction.atomic():
        order = _fetch(order_id)
        current = order.status
        if order.delivery_partner_id is not None and acting_partner is not None \
                and str(acting_partner) != str(order.delivery_partner_id):
            raise NotAssignedPartner(
                f"la orden {order.pk} pertenece al repartidor {order.delivery_partner_id}"
            )

        if current == target_status == OrderStatus.DELIVERED:
            # reintento de una entrega ya aplicada (se perdió la respuesta): éxito sin cambios
            logger.info("order %s: delivered retry, nothing to do", order.pk)
            return order

        try:
            validate_status_transition(current, target_status)
        except InvalidTransition:
            logger.warning("order %s: rejected %s -> %s", order.pk, current, target_status)
            raise

        fields = {
            "status": target_status,
            "version": models.F("version") + 1,
            "updated_at": now,
        }
        stamp = _STAMPS.get(target_status)
        if stamp:
            fields[stamp] = now
        if target_status == OrderStatus.DELIVERED:
            order.delivered_at = now
            fields["delivery_duration_minutes"] = sla.final_duration_minutes(order)

        # UPDATE atómico condicionado al estado (y repartidor) leídos
        updated = Order.objects.filter(
            pk=order.pk, status=current, delivery_partner_id=order.delivery_partner_id
        ).update(**fields)
        if not updated:
            logger.info("order %s: stale transition %s -> %s", order.pk, current, target_status)
            raise StaleTransition(f"la orden {order.pk} ya no está en {current}")

        order.refresh_from_db()
        append_event(order, target_status, note or f"Status updated to {target_status}", now)

        if target_status == OrderStatus.DELIVERED:
            _close_delivery(order)

        notify_on_commit(order.pk, target_status)

    logger.info("order %s: %s -> %s (v%s)", order.pk, current, target_status, order.version)
    return order


def _close_delivery(order: Order) -> None:
    from partners.earnings import record_earning
    from partners.models import PartnerProfile

    PartnerProfile.objects.filter(pk=order.delivery_partner_id).update(
        delivery_count=models.F("delivery_count") + 1
    )
    record_earning(
        order.pk,
        order.delivery_partner_id,
        order.total_amount,
        order.delivery_duration_minutes,
    )


def cancellation_window() -> timedelta:
    return timedelta(seconds=settings.CANCELLATION_WINDOW_SECONDS)


def cancellation_deadline(order: Order):
    return order.created_at + cancellation_window()


def cancel_remaining_seconds(order: Order, now=None) -> int:
    now = now or timezone.now()
    remaining = (cancellation_deadline(order) - now).total_seconds()
    return max(0, int(remaining))


def cancel(order_id, note: str | None = None, now=None) -> Order:
    """
    Cancela dentro de la ventana. El chequeo de la ventana va dentro del mismo
    UPDATE condicional que compite con confirm/dispatch.
    """
    now = now or timezone.now()
    with transaction.atomic():
        order = _fetch(order_id)
        current = order.status
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(f"No permitido pasar de {current} a {OrderStatus.CANCELLED}")
        if now >= cancellation_deadline(order):
            raise CancellationWindowClosed(f"la ventana de cancelación de {order.pk} cerró")

        updated = Order.objects.filter(
            pk=order.pk, status=current, created_at__gt=now - cancellation_window()
        ).update(
            status=OrderStatus.CANCELLED,
            delivery_partner=None,
            cancelled_at=now,
            updated_at=now,
            version=models.F("version") + 1,
        )
        if not updated:
            raise StaleTransition(f"la orden {order.pk} ya no está en {current}")

        order.refresh_from_db()
        append_event(order, OrderStatus.CANCELLED, note or "Order cancelled", now)
        notify_on_commit(order.pk, OrderStatus.CANCELLED)

    logger.info("order %s: %s -> cancelled", order.pk, current)
    return order
