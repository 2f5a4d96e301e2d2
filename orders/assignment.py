"""
Protocolo de asignación: exactamente un repartidor captura una orden lista.

claim y reject son un único UPDATE condicional cada uno; nunca leer-y-escribir.
El perdedor de una carrera recibe AlreadyClaimed y no reintenta.
"""
import logging

from django.db import transaction, models
from django.utils import timezone

from .lifecycle import append_event, notify_on_commit
from .models import Order, OrderStatus, CLAIMABLE_STATUSES, IN_TRANSIT_STATUSES
from .validators import (
    AlreadyClaimed,
    InvalidTransition,
    KYCNotApproved,
    NotAssignedPartner,
    PartnerOffline,
    validate_status_transition,
)

logger = logging.getLogger(__name__)


def _partner_gate(partner_id):
    # import tardío: partners depende de orders
    from partners.models import KYCStatus, PartnerProfile

    return models.Exists(
        PartnerProfile.objects.filter(pk=partner_id, kyc_status=KYCStatus.APPROVED, is_online=True)
    )


def claim(order_id, partner_id, now=None) -> Order:
    from partners.kyc import ensure_can_claim

    # chequeo rápido para devolver el error preciso; el gate real va en el UPDATE
    ensure_can_claim(partner_id)
    now = now or timezone.now()

    with transaction.atomic():
        updated = Order.objects.filter(
            _partner_gate(partner_id),
            pk=order_id,
            delivery_partner__isnull=True,
            status__in=CLAIMABLE_STATUSES,
        ).update(
            delivery_partner_id=partner_id,
            status=OrderStatus.DISPATCHED,
            accepted_at=now,
            updated_at=now,
            version=models.F("version") + 1,
        )
        if not updated:
            if not Order.objects.filter(pk=order_id).exists():
                raise Order.DoesNotExist(order_id)
            # el KYC o el flag online pudieron cambiar entre el chequeo y el UPDATE
            ensure_can_claim(partner_id)
            logger.info("order %s: claim by partner %s lost", order_id, partner_id)
            raise AlreadyClaimed(f"la orden {order_id} ya no está disponible")

        order = Order.objects.get(pk=order_id)
        append_event(order, OrderStatus.DISPATCHED, f"Accepted by partner {partner_id}", now)
        notify_on_commit(order.pk, OrderStatus.DISPATCHED, meta={"partner_id": str(partner_id)})

    logger.info("order %s claimed by partner %s", order_id, partner_id)
    return order


def reject(order_id, partner_id, note: str | None = None, now=None) -> Order:
    """
    Devuelve la orden al pool. Solo el repartidor asignado y solo mientras
    esté DISPATCHED (antes de recoger).
    """
    now = now or timezone.now()
    with transaction.atomic():
        updated = Order.objects.filter(
            pk=order_id,
            delivery_partner_id=partner_id,
            status=OrderStatus.DISPATCHED,
        ).update(
            delivery_partner=None,
            status=OrderStatus.READY_FOR_PICKUP,
            accepted_at=None,
            updated_at=now,
            version=models.F("version") + 1,
        )
        if not updated:
            order = Order.objects.get(pk=order_id)
            if str(order.delivery_partner_id) != str(partner_id):
                raise NotAssignedPartner(f"la orden {order_id} no está asignada a {partner_id}")
            # ya avanzó (p. ej. OUT_FOR_DELIVERY): el rechazo no aplica
            validate_status_transition(order.status, OrderStatus.READY_FOR_PICKUP, via_assignment=True)
            raise InvalidTransition(f"No permitido rechazar la orden en {order.status}")

        order = Order.objects.get(pk=order_id)
        append_event(order, OrderStatus.READY_FOR_PICKUP, note or f"Rejected by partner {partner_id}", now)
        notify_on_commit(order.pk, OrderStatus.READY_FOR_PICKUP, meta={"rejected_by": str(partner_id)})

    logger.info("order %s rejected by partner %s", order_id, partner_id)
    return order


def claimable_orders(partner_id):
    """Órdenes que ve el tablero del repartidor; vacío si no pasa el gate."""
    from partners.kyc import ensure_can_claim

    try:
        ensure_can_claim(partner_id)
    except (KYCNotApproved, PartnerOffline):
        return Order.objects.none()
    return Order.objects.filter(
        delivery_partner__isnull=True, status__in=CLAIMABLE_STATUSES
    ).order_by("created_at")


def active_orders(partner_id):
    return Order.objects.filter(
        delivery_partner_id=partner_id, status__in=IN_TRANSIT_STATUSES
    ).order_by("accepted_at")


def delivered_orders(partner_id, limit: int = 50):
    """Historial de entregas del repartidor, la más reciente primero."""
    return Order.objects.filter(
        delivery_partner_id=partner_id, status=OrderStatus.DELIVERED
    ).order_by("-delivered_at")[:limit]
