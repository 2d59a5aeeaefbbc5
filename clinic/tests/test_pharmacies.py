import pytest
import requests
from django.urls import reverse

from clinic.services import pharmacies
from clinic.services.pharmacies import directions_url, haversine

pytestmark = pytest.mark.django_db

ORIGIN = (52.5200, 13.4050)

OVERPASS_PAYLOAD = {
    'elements': [
        {'type': 'node', 'id': 2, 'lat': 52.5300, 'lon': 13.4050,
         'tags': {'amenity': 'pharmacy', 'name': 'Far Apotheke', 'addr:street': 'Hauptstr.',
                  'addr:housenumber': '5'}},
        {'type': 'node', 'id': 1, 'lat': 52.5210, 'lon': 13.4050, 'tags': {'amenity': 'pharmacy'}},
        {'type': 'node', 'id': 3, 'tags': {'name': 'No coordinates'}},
    ]
}


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        return self.payload


@pytest.fixture
def overpass(monkeypatch):
    calls = []

    def fake_post(url, data=None, timeout=None):
        calls.append({'url': url, 'data': data, 'timeout': timeout})
        return FakeResponse(OVERPASS_PAYLOAD)

    monkeypatch.setattr(pharmacies.requests, 'post', fake_post)
    return calls


def test_haversine_known_distance():
    # one thousandth of a degree of latitude is ~111 m
    assert haversine(52.52, 13.405, 52.521, 13.405) == pytest.approx(111.2, abs=0.5)
    assert haversine(*ORIGIN, *ORIGIN) == 0


def test_directions_url_points_to_google_maps():
    url = directions_url(1.5, 2.5, 3.5, 4.5)
    assert url.startswith('https://www.google.com/maps/dir/?api=1')
    assert 'origin=1.5%2C2.5' in url and 'destination=3.5%2C4.5' in url


def test_nearby_sorted_by_distance_with_fallback_name(api_client, overpass):
    r = api_client.get(reverse('pharmacies_nearby'), {'lat': ORIGIN[0], 'lng': ORIGIN[1]})
    assert r.status_code == 200
    data = r.data['data']
    assert [p['id'] for p in data] == [1, 2]
    assert data[0]['name'] == 'Unnamed Pharmacy'
    assert data[1]['address'] == '5, Hauptstr.'
    assert data[0]['distance'] < data[1]['distance']
    assert 'around:5000,' in overpass[0]['data']['data']


def test_radius_is_capped_and_results_cached(api_client, overpass):
    params = {'lat': ORIGIN[0], 'lng': ORIGIN[1], 'radius': 999999}
    api_client.get(reverse('pharmacies_nearby'), params)
    api_client.get(reverse('pharmacies_nearby'), params)
    assert len(overpass) == 1
    assert 'around:20000,' in overpass[0]['data']['data']


def test_name_filter(api_client, overpass):
    r = api_client.get(reverse('pharmacies_nearby'), {'lat': ORIGIN[0], 'lng': ORIGIN[1], 'q': 'apotheke'})
    assert [p['id'] for p in r.data['data']] == [2]


def test_missing_coordinates_rejected(api_client):
    r = api_client.get(reverse('pharmacies_nearby'), {'lat': 52.5})
    assert r.status_code == 400


@pytest.mark.parametrize('failure', [
    requests.ConnectionError('boom'),
    FakeResponse({}, status=504),
])
def test_upstream_failure_maps_to_502(api_client, monkeypatch, failure):
    def fake_post(url, data=None, timeout=None):
        if isinstance(failure, Exception):
            raise failure
        return failure

    monkeypatch.setattr(pharmacies.requests, 'post', fake_post)
    r = api_client.get(reverse('pharmacies_nearby'), {'lat': ORIGIN[0], 'lng': ORIGIN[1]})
    assert r.status_code == 502
    assert r.data['error']['code'] == 'upstream_unavailable'
