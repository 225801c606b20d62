"""
Manchengo ERP — Root URL Configuration

The lot ledger is invoked in-process by the surrounding application; only
the read-only admin is routed here.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import path

admin.site.site_header = 'Manchengo ERP Administration'
admin.site.site_title = 'Manchengo ERP'
admin.site.index_title = 'Lot Inventory Ledger'

urlpatterns = [
    path('admin/', admin.site.urls),
]
