"""URL routes for elFinder app."""

from django.urls import path

from server.apps.elfinder import views

app_name = 'elfinder'

urlpatterns = [
    path('connector/', views.connector, name='connector'),
]
