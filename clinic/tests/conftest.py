import datetime

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from clinic.models import Availability, User

PASSWORD = 'Str0ng-pass-42'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and cached listings live in the locmem cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def make_user(db):
    def _make(username, role='patient', **extra):
        return User.objects.create_user(username=username, password=PASSWORD, role=role, **extra)
    return _make


@pytest.fixture
def patient(make_user):
    return make_user('pat', 'patient', first_name='Pat', last_name='Lee', email='pat@example.com')


@pytest.fixture
def doctor(make_user):
    return make_user('drwho', 'doctor', first_name='John', last_name='Smith', specialization='Cardiology')


@pytest.fixture
def admin_user(make_user):
    return make_user('root', 'admin')


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c
    return _client


@pytest.fixture
def tomorrow():
    return timezone.localdate() + datetime.timedelta(days=1)


@pytest.fixture
def open_day(doctor, tomorrow):
    return Availability.objects.create(doctor=doctor, date=tomorrow, slots=['09:00', '09:30', '10:00'])
