import pytest
from django.urls import reverse
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


def test_healthz_pings_database():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}


def test_metrics_expose_request_histogram(doctor):
    client = APIClient()
    client.get(reverse('users_doctors'))
    r = client.get('/metrics')
    assert r.status_code == 200
    body = r.content.decode()
    assert 'http_request_duration_ms_bucket' in body
    assert 'route="/api/users/doctors"' in body


def test_security_headers_present():
    r = APIClient().get(reverse('users_doctors'))
    assert r['X-Frame-Options'] == 'DENY'
    csp = r['Content-Security-Policy']
    assert "default-src 'self'" in csp
    assert "frame-ancestors 'none'" in csp


def test_doctor_directory_is_public_searchable_and_paginated(make_user):
    make_user('d_a', 'doctor', last_name='Adams', specialization='Cardiology')
    make_user('d_b', 'doctor', last_name='Brown', specialization='Neurology')
    make_user('p_c', 'patient', last_name='Clark')
    client = APIClient()

    r = client.get(reverse('users_doctors'))
    assert [d['username'] for d in r.data['data']] == ['d_a', 'd_b']
    assert 'email' not in r.data['data'][0]

    r = client.get(reverse('users_doctors'), {'specialization': 'neurology'})
    assert [d['username'] for d in r.data['data']] == ['d_b']

    r = client.get(reverse('users_doctors'), {'page': 2, 'pageSize': 1})
    assert [d['username'] for d in r.data['data']] == ['d_b']
    assert r.data['pagination']['total'] == 2


def test_patient_profiles_are_private(client_for, patient, doctor, make_user):
    other = make_user('pat2', 'patient')
    assert client_for(other).get(reverse('users_detail', args=[patient.id])).status_code == 404
    assert client_for(doctor).get(reverse('users_detail', args=[patient.id])).status_code == 404
    assert client_for(patient).get(reverse('users_detail', args=[doctor.id])).status_code == 200


def test_patients_list_is_staff_only(client_for, patient, doctor):
    assert client_for(patient).get(reverse('users_patients')).status_code == 403
    r = client_for(doctor).get(reverse('users_patients'))
    assert r.status_code == 200
    assert r.data['data'] == []


def test_profile_update_keeps_role(client_for, patient):
    r = client_for(patient).put(reverse('users_me'), {'phone': '555-0100', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.phone == '555-0100'
    assert patient.role == 'patient'


def test_profile_fields_lose_markup(client_for, doctor):
    r = client_for(doctor).put(reverse('users_me'), {'bio': '<i>Heart</i> <a href="http://x">care</a>'},
                               format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.bio == 'Heart care'
