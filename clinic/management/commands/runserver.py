from django.conf import settings
from django.contrib.staticfiles.management.commands.runserver import Command as StaticfilesRunserverCommand


class Command(StaticfilesRunserverCommand):
    """``runserver`` listening on ``PORT`` unless an address is given."""
    default_port = str(settings.PORT)
