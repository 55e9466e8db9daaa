"""
core/models.py
──────────────
Database backing for the entity store.

StoredCollection – one row per entity type ("fees", "installments", …)
                   holding the whole collection as a JSON list.  The store
                   always reads and writes a collection in one piece.
"""

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class StoredCollection(models.Model):
    """
    The full list of raw records for a single entity type.
    """

    entity_type = models.CharField(
        max_length=50,
        unique=True,
        help_text='Collection name, e.g. "fees" or "installments".',
    )
    records = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text='Every record of this type, as plain JSON objects.',
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['entity_type']
        verbose_name = 'Stored Collection'
        verbose_name_plural = 'Stored Collections'

    def __str__(self):
        return f"{self.entity_type} ({len(self.records or [])} records)"
