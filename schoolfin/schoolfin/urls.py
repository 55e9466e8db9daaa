"""
URL configuration for the schoolfin project.

The ledger is used through finances.services.SchoolLedger; the only web
surface is the Django admin, where the raw stored collections can be
inspected.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
