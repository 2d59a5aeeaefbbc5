"""
Nearby pharmacy lookup backed by the OpenStreetMap Overpass API.
"""
import logging
import math
from typing import Optional
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.core.cache import cache

from clinic.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371e3
CACHE_TTL = 300


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def directions_url(origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> str:
    query = urlencode({
        'api': 1,
        'origin': f"{origin_lat},{origin_lng}",
        'destination': f"{dest_lat},{dest_lng}",
        'travelmode': 'driving',
    })
    return f"https://www.google.com/maps/dir/?{query}"


def build_query(lat: float, lng: float, radius: int) -> str:
    return f"[out:json];node[amenity=pharmacy](around:{radius},{lat},{lng});out;"


def fetch_elements(lat: float, lng: float, radius: int) -> list[dict]:
    try:
        r = requests.post(
            settings.OVERPASS_URL,
            data={'data': build_query(lat, lng, radius)},
            timeout=settings.OVERPASS_TIMEOUT,
        )
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("overpass lookup failed for (%.3f, %.3f, r=%s): %s", lat, lng, radius, e)
        raise UpstreamUnavailable('Pharmacy lookup is temporarily unavailable.')
    return data.get('elements') or []


def _address(tags: dict) -> str:
    parts = [tags.get('addr:housenumber'), tags.get('addr:street'), tags.get('addr:city') or tags.get('city')]
    return ', '.join(p for p in parts if p)


def to_pharmacy(element: dict, lat: float, lng: float) -> Optional[dict]:
    el_lat, el_lng = element.get('lat'), element.get('lon')
    if el_lat is None or el_lng is None:
        return None
    tags = element.get('tags') or {}
    return {
        'id': element.get('id'),
        'name': tags.get('name') or 'Unnamed Pharmacy',
        'address': _address(tags),
        'lat': el_lat,
        'lng': el_lng,
        'distance': round(haversine(lat, lng, el_lat, el_lng), 1),
        'directionsUrl': directions_url(lat, lng, el_lat, el_lng),
    }


def nearby_pharmacies(lat: float, lng: float, *, radius: Optional[int] = None,
                      q: Optional[str] = None) -> list[dict]:
    radius = min(radius or settings.PHARMACY_DEFAULT_RADIUS, settings.PHARMACY_MAX_RADIUS)
    # ~100 m grid so nearby callers share the cached upstream answer
    cache_key = f"pharmacies:{lat:.3f}:{lng:.3f}:{radius}"
    elements = cache.get(cache_key)
    if elements is None:
        elements = fetch_elements(lat, lng, radius)
        cache.set(cache_key, elements, CACHE_TTL)

    pharmacies = [p for p in (to_pharmacy(el, lat, lng) for el in elements) if p]
    if q:
        needle = q.lower()
        pharmacies = [p for p in pharmacies if needle in p['name'].lower()]
    pharmacies.sort(key=lambda p: p['distance'])
    return pharmacies
