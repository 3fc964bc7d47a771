"""Django app configuration for elFinder app."""

from django.apps import AppConfig


class ElFinderConfig(AppConfig):
    """Configuration for elFinder connector app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.elfinder'
    verbose_name = 'elFinder'
