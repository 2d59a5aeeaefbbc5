"""
WSGI config for the MediLink project.

It exposes the WSGI callable as a module-level variable named
``application`` and starts the per-process notification scheduler once
Django is ready.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'medilink.settings')

application = get_wsgi_application()

from clinic.services.scheduler import start_default_scheduler  # noqa: E402

start_default_scheduler()
