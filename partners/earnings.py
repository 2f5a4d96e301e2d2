"""
Ledger de ganancias del repartidor.

Una ganancia por orden entregada (order_id es UNIQUE). Un reintento de la
transición a DELIVERED encuentra la fila existente y la devuelve como éxito.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction, models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from orders.validators import WithdrawalRejected, StaleTransition

from .models import DeliveryEarning, PartnerProfile, Withdrawal, WithdrawalStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def commission_rate() -> Decimal:
    return Decimal(str(settings.COMMISSION_RATE))


def earning_amount(order_total) -> Decimal:
    return (Decimal(str(order_total)) * commission_rate()).quantize(CENTS, rounding=ROUND_HALF_UP)


def record_earning(order_id, partner_id, order_total, duration_minutes) -> DeliveryEarning:
    existing = DeliveryEarning.objects.filter(order_id=order_id).first()
    if existing is not None:
        logger.info("earning for order %s already recorded", order_id)
        return existing
    try:
        # savepoint propio: un IntegrityError no invalida la transacción externa
        with transaction.atomic():
            earning = DeliveryEarning.objects.create(
                order_id=order_id,
                partner_id=partner_id,
                amount=earning_amount(order_total),
                delivery_duration_minutes=duration_minutes,
            )
    except IntegrityError:
        logger.info("earning for order %s already recorded (concurrent)", order_id)
        return DeliveryEarning.objects.get(order_id=order_id)
    logger.info("earning %s recorded for partner %s (order %s)", earning.amount, partner_id, order_id)
    return earning


def _sum(qs) -> Decimal:
    total = Coalesce(
        Sum("amount"), ZERO, output_field=models.DecimalField(max_digits=12, decimal_places=2)
    )
    # sqlite no respeta decimal_places en el agregado
    value = qs.aggregate(total=total)["total"]
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def total_earnings(partner_id) -> Decimal:
    return _sum(DeliveryEarning.objects.filter(partner_id=partner_id))


def available_balance(partner_id) -> Decimal:
    committed = Withdrawal.objects.filter(
        partner_id=partner_id,
        status__in=(WithdrawalStatus.COMPLETED, WithdrawalStatus.PENDING),
    )
    return total_earnings(partner_id) - _sum(committed)


def request_withdrawal(partner_id, amount, method: str, account_details: str) -> Withdrawal:
    try:
        amount = Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise WithdrawalRejected(f"monto inválido: {amount!r}")
    minimum = Decimal(str(settings.MIN_WITHDRAWAL_AMOUNT))
    if not method or not account_details:
        raise WithdrawalRejected("método y datos de cuenta son obligatorios")
    if amount < minimum:
        raise WithdrawalRejected(f"el monto mínimo de retiro es {minimum}")

    with transaction.atomic():
        # lock de la fila del repartidor: serializa retiros concurrentes
        PartnerProfile.objects.select_for_update().get(pk=partner_id)
        balance = available_balance(partner_id)
        if amount > balance:
            raise WithdrawalRejected(f"saldo insuficiente: disponible {balance}")
        withdrawal = Withdrawal.objects.create(
            partner_id=partner_id,
            amount=amount,
            method=method,
            account_details=account_details,
        )
    logger.info("withdrawal %s requested by partner %s (%s)", withdrawal.pk, partner_id, amount)
    return withdrawal


def process_withdrawal(withdrawal_id, approve: bool, notes: str | None = None) -> Withdrawal:
    """pending -> completed | rejected, con UPDATE condicional."""
    status = WithdrawalStatus.COMPLETED if approve else WithdrawalStatus.REJECTED
    updated = Withdrawal.objects.filter(pk=withdrawal_id, status=WithdrawalStatus.PENDING).update(
        status=status, admin_notes=notes, processed_at=timezone.now()
    )
    if not updated:
        Withdrawal.objects.get(pk=withdrawal_id)
        raise StaleTransition(f"el retiro {withdrawal_id} ya fue procesado")
    logger.info("withdrawal %s -> %s", withdrawal_id, status)
    return Withdrawal.objects.get(pk=withdrawal_id)


def earnings_summary(partner_id, today=None) -> dict:
    today = today or timezone.localdate()
    earnings = DeliveryEarning.objects.filter(partner_id=partner_id)
    return {
        "partner_id": partner_id,
        "total": total_earnings(partner_id),
        "today": _sum(earnings.filter(created_at__date=today)),
        "deliveries": earnings.count(),
        "available_balance": available_balance(partner_id),
        "commission_rate": commission_rate(),
        "min_withdrawal": Decimal(str(settings.MIN_WITHDRAWAL_AMOUNT)),
    }


def earnings_history(partner_id, limit: int = 50):
    """Una fila por entrega pagada, la más reciente primero."""
    return (
        DeliveryEarning.objects.filter(partner_id=partner_id)
        .select_related("order")
        .order_by("-created_at", "-pk")[:limit]
    )
