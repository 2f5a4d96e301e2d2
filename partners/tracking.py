"""
Ubicación del repartidor y ETA de la orden en tránsito.

- Solo se guarda la última muestra por repartidor (gana la de captured_at más
  reciente; las viejas se descartan con un UPDATE condicional).
- El destino se resuelve una vez y queda en la orden.
- El ETA se recalcula como mucho cada ETA_MIN_INTERVAL_SECONDS por orden y se
  guarda en la cache de Django; las lecturas nunca llaman al proveedor.
- Las fallas del proveedor nunca salen de aquí: se usa línea recta o el
  último ETA conocido.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db.models import Q
from django.utils import timezone

from orders.assignment import active_orders
from orders.models import Order
from orders.validators import GeoLookupFailed

from . import geo
from .models import PartnerProfile

logger = logging.getLogger(__name__)


def _eta_key(order_id) -> str:
    return f"eta:{order_id}"


def _throttle_key(order_id) -> str:
    return f"eta-throttle:{order_id}"


def _validate_point(lat, lng):
    lat, lng = float(lat), float(lng)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValueError(f"coordenadas fuera de rango: {lat},{lng}")
    return lat, lng


def ingest_location(partner_id, lat, lng, captured_at=None) -> list:
    """
    Registra una muestra y refresca el ETA de las órdenes activas del repartidor.
    Devuelve los ETA recalculados (lista vacía si la muestra se descartó).
    """
    lat, lng = _validate_point(lat, lng)
    captured_at = captured_at or timezone.now()

    orders = list(active_orders(partner_id))
    if not orders:
        logger.debug("partner %s: sample dropped, no order in transit", partner_id)
        return []

    updated = (
        PartnerProfile.objects.filter(pk=partner_id)
        .filter(Q(last_location_at__isnull=True) | Q(last_location_at__lt=captured_at))
        .update(last_lat=lat, last_lng=lng, last_location_at=captured_at)
    )
    if not updated:
        logger.debug("partner %s: stale sample at %s dropped", partner_id, captured_at)
        return []

    return [refresh_eta(order, origin=(lat, lng)) for order in orders]


def resolve_destination(order: Order):
    """Coordenadas de entrega; geocodifica como mucho una vez por orden."""
    if order.destination is not None:
        return order.destination

    coords = geo.parse_coordinates(order.delivery_address)
    if coords is None:
        coords = geo.geocode_address(order.delivery_address)

    Order.objects.filter(pk=order.pk, resolved_lat__isnull=True).update(
        resolved_lat=coords[0], resolved_lng=coords[1]
    )
    order.resolved_lat, order.resolved_lng = coords
    return coords


def straight_line_eta(origin, destination):
    distance = geo.straight_line_km(origin, destination) * settings.STRAIGHT_LINE_DETOUR_FACTOR
    return distance, distance / settings.AVG_SPEED_KMH * 60


def refresh_eta(order: Order, origin=None, force: bool = False, now=None):
    """
    Recalcula distancia y ETA desde la posición del repartidor.
    Con el throttle activo devuelve el último ETA guardado.
    """
    if not force and not cache.add(_throttle_key(order.pk), 1, timeout=settings.ETA_MIN_INTERVAL_SECONDS):
        return current_eta(order.pk)

    if origin is None:
        origin = (
            PartnerProfile.objects.filter(pk=order.delivery_partner_id)
            .values_list("last_lat", "last_lng")
            .first()
        )
        if origin is None or None in origin:
            return current_eta(order.pk)

    try:
        destination = resolve_destination(order)
    except GeoLookupFailed as e:
        logger.warning("order %s: destination unresolved, keeping last ETA: %s", order.pk, e)
        return current_eta(order.pk)

    try:
        distance_km, duration_min = geo.directions(origin, destination)
        source = "directions"
    except GeoLookupFailed as e:
        logger.warning("order %s: directions failed, using straight line: %s", order.pk, e)
        distance_km, duration_min = straight_line_eta(origin, destination)
        source = "straight_line"

    now = now or timezone.now()
    eta = {
        "order_id": str(order.pk),
        "distance_km": round(distance_km, 3),
        "duration_minutes": round(duration_min, 1),
        "source": source,
        "origin": list(origin),
        "destination": list(destination),
        "computed_at": now.isoformat(),
        "arrival_at": (now + timedelta(minutes=duration_min)).isoformat(),
    }
    cache.set(_eta_key(order.pk), eta, timeout=settings.ETA_CACHE_SECONDS)
    return eta


def current_eta(order_id):
    """Lectura sin red: último ETA calculado o None."""
    return cache.get(_eta_key(order_id))
