import json
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .models import OrderStatus

# Order.total_amount es DecimalField(max_digits=10, decimal_places=2)
MAX_ORDER_AMOUNT = Decimal("99999999.99")


class BadJSON(Exception):
    """Se lanza cuando el cuerpo no es JSON válido."""
    pass


class DispatchError(Exception):
    """Base de los errores del motor de despacho."""
    pass


class InvalidTransition(DispatchError):
    """Se lanza cuando la transición de estado no está en la tabla."""
    pass


class StaleTransition(DispatchError):
    """El estado guardado ya no coincide con el esperado (carrera perdida)."""
    pass


class AlreadyClaimed(DispatchError):
    """Otro repartidor tomó la orden primero."""
    pass


class CancellationWindowClosed(DispatchError):
    pass


class KYCNotApproved(DispatchError):
    pass


class PartnerOffline(DispatchError):
    pass


class NotAssignedPartner(DispatchError):
    """El repartidor no es el asignado a la orden."""
    pass


class GeoLookupFailed(DispatchError):
    """Falla del proveedor de mapas; nunca se propaga fuera del motor de ETA."""
    pass


class WithdrawalRejected(DispatchError):
    pass


def parse_json_body(request):
    """
    Intenta decodificar el body del request como JSON y retorna un dict.
    Lanza BadJSON si falla.
    """
    try:
        body = request.body.decode("utf-8") if request.body else "{}"
        data = json.loads(body or "{}")
    except Exception as e:
        raise BadJSON(f"JSON inválido: {e}")
    if not isinstance(data, dict):
        raise BadJSON("se esperaba un objeto JSON")
    return data


def parse_amount(value) -> Decimal:
    """Monto positivo con dos decimales; BadJSON si no lo es."""
    if isinstance(value, bool):
        raise BadJSON(f"monto inválido: {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise BadJSON(f"monto inválido: {value!r}")
    if not amount.is_finite():
        raise BadJSON(f"monto inválido: {value!r}")
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if amount <= 0 or amount > MAX_ORDER_AMOUNT:
        raise BadJSON(f"monto fuera de rango: {value!r}")
    return amount


def parse_flag(body: dict, key: str) -> bool:
    """Lee un booleano JSON real; "false" como texto no cuenta."""
    value = body[key]
    if not isinstance(value, bool):
        raise BadJSON(f"{key} debe ser true o false")
    return value


S = OrderStatus

# Tabla de transiciones. Las aristas hacia DISPATCHED y la vuelta
# DISPATCHED -> READY_FOR_PICKUP existen solo vía claim/reject.
_ALLOWED_TRANSITIONS = {
    S.PENDING:          {S.CONFIRMED, S.CANCELLED},
    S.CONFIRMED:        {S.READY_FOR_PICKUP, S.DISPATCHED, S.CANCELLED},
    S.READY_FOR_PICKUP: {S.DISPATCHED, S.CANCELLED},
    S.DISPATCHED:       {S.OUT_FOR_DELIVERY, S.READY_FOR_PICKUP, S.CANCELLED},
    S.OUT_FOR_DELIVERY: {S.DELIVERED, S.CANCELLED},
    S.DELIVERED:        set(),
    S.CANCELLED:        set(),
}

# aristas que transition() no puede tomar directamente
_ASSIGNMENT_ONLY = {
    (S.CONFIRMED, S.DISPATCHED),
    (S.READY_FOR_PICKUP, S.DISPATCHED),
    (S.DISPATCHED, S.READY_FOR_PICKUP),
}


def is_allowed(current_status: str, new_status: str) -> bool:
    return new_status in _ALLOWED_TRANSITIONS.get(current_status, set())


def validate_status_transition(current_status: str | None, new_status: str, via_assignment: bool = False) -> bool:
    """
    Valida que el cambio de estado sea válido.
    - Si current_status es None, solo se permite crear en PENDING.
    - Las aristas de asignación requieren via_assignment=True.
    - Lanza InvalidTransition si la transición no está permitida.
    """
    if new_status not in S.values:
        raise InvalidTransition(f"Estado desconocido: {new_status}")

    if current_status is None:
        if new_status != S.PENDING:
            raise InvalidTransition(f"Una orden nueva no puede nacer en {new_status}")
        return True

    if not is_allowed(current_status, new_status):
        raise InvalidTransition(f"No permitido pasar de {current_status} a {new_status}")
    if (current_status, new_status) in _ASSIGNMENT_ONLY and not via_assignment:
        raise InvalidTransition(
            f"{current_status} -> {new_status} solo es posible con claim/reject"
        )
    return True
