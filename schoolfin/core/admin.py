"""
core/admin.py
─────────────
Admin registration for StoredCollection (read-only view of raw records).
"""

from django.contrib import admin

from .models import StoredCollection


@admin.register(StoredCollection)
class StoredCollectionAdmin(admin.ModelAdmin):
    list_display    = ('entity_type', 'record_count', 'updated_at')
    search_fields   = ('entity_type',)
    readonly_fields = ('entity_type', 'records', 'updated_at')

    @admin.display(description='Records')
    def record_count(self, obj):
        return len(obj.records or [])
