from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from clinic.models import User

DEMO_SET = [
    ("admin1", User.ROLE_ADMIN, "", ""),
    ("dr_house", User.ROLE_DOCTOR, "Gregory", "Diagnostics"),
    ("dr_grey", User.ROLE_DOCTOR, "Meredith", "General Surgery"),
    ("patient1", User.ROLE_PATIENT, "Pat", ""),
]


class Command(BaseCommand):
    help = "Ensure demo users exist with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument('--password', default='demo-pass-123')

    def handle(self, *args, **opts):
        password = make_password(opts['password'])
        for username, role, first_name, specialization in DEMO_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "first_name": first_name,
                          "specialization": specialization, "is_active": True},
            )
            if not created:
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
