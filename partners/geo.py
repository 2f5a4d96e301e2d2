"""
Colaboradores de mapas: geocoding (geopy) y direcciones (OSRM vía HTTP).

Ambas llamadas tienen timeout y fallan con GeoLookupFailed; quien llama decide
el fallback. La distancia en línea recta se calcula localmente (geodésica).
"""
import logging
import re

import requests
from django.conf import settings
from geopy.distance import geodesic
from geopy.exc import GeopyError
from geopy.geocoders import GoogleV3, Nominatim

from orders.validators import GeoLookupFailed

logger = logging.getLogger(__name__)

_COORDS_RE = re.compile(r"^\s*\(?\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*\)?\s*$")


def parse_coordinates(address: str):
    """Devuelve (lat, lng) si la dirección ya codifica coordenadas "lat,lng"."""
    if not address:
        return None
    match = _COORDS_RE.match(address)
    if not match:
        return None
    lat, lng = float(match.group(1)), float(match.group(2))
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return (lat, lng)


def _geocoder():
    if settings.GEOCODER == "google" and settings.GOOGLE_MAPS_API_KEY:
        return GoogleV3(api_key=settings.GOOGLE_MAPS_API_KEY, timeout=settings.GEO_TIMEOUT_SECONDS)
    return Nominatim(user_agent=settings.GEOCODER_USER_AGENT, timeout=settings.GEO_TIMEOUT_SECONDS)


def geocode_address(address: str):
    try:
        location = _geocoder().geocode(address)
    except GeopyError as e:
        raise GeoLookupFailed(f"geocoding falló para {address!r}: {e}")
    if location is None:
        raise GeoLookupFailed(f"sin resultados para {address!r}")
    return (location.latitude, location.longitude)


def straight_line_km(origin, destination) -> float:
    return geodesic(origin, destination).kilometers


def directions(origin, destination):
    """
    Distancia (km) y duración (min) por carretera según OSRM.
    OSRM espera lon,lat (no lat,lon).
    """
    url = (
        f"{settings.OSRM_SERVER_URL}/route/v1/driving/"
        f"{origin[1]},{origin[0]};{destination[1]},{destination[0]}"
    )
    try:
        response = requests.get(
            url, params={"overview": "false"}, timeout=settings.GEO_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise GeoLookupFailed(f"OSRM falló: {e}")
    except ValueError as e:
        raise GeoLookupFailed(f"respuesta OSRM inválida: {e}")

    if data.get("code") != "Ok" or not data.get("routes"):
        raise GeoLookupFailed(f"OSRM sin ruta: {data.get('code')}")
    try:
        route = data["routes"][0]
        return route["distance"] / 1000, route["duration"] / 60
    except (KeyError, TypeError) as e:
        raise GeoLookupFailed(f"respuesta OSRM inválida: {e}")
