from __future__ import annotations

from django.conf import settings
from django.urls import path

from api.api import api

urlpatterns = [
    path(f"{settings.API_BASE_PATH.strip('/')}/", api.urls),
]
