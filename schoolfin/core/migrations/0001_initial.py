# core/migrations/0001_initial.py

import django.core.serializers.json
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='StoredCollection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(
                    help_text='Collection name, e.g. "fees" or "installments".',
                    max_length=50,
                    unique=True,
                )),
                ('records', models.JSONField(
                    blank=True,
                    default=list,
                    encoder=django.core.serializers.json.DjangoJSONEncoder,
                    help_text='Every record of this type, as plain JSON objects.',
                )),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Stored Collection',
                'verbose_name_plural': 'Stored Collections',
                'ordering': ['entity_type'],
            },
        ),
    ]
