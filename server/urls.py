"""Main URL mapping configuration file."""

from django.urls import include, path

urlpatterns = [
    path('elfinder/', include('server.apps.elfinder.urls')),
]
