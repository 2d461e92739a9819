import uuid

import django.db.models.deletion
import django.db.models.functions.text
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(choices=[('automotive', 'Automotive'), ('electronics', 'Electronics'), ('mechanical', 'Mechanical'), ('other', 'Other')], db_index=True, default='other', max_length=20)),
                ('usage_count', models.PositiveIntegerField(default=1)),
                ('last_used', models.DateTimeField(default=django.utils.timezone.now)),
                ('is_active', models.BooleanField(default=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_products', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'products',
                'ordering': ['-usage_count', 'name'],
                'indexes': [models.Index(fields=['-usage_count', '-last_used'], name='product_popularity_idx')],
                'constraints': [models.UniqueConstraint(django.db.models.functions.text.Lower('name'), name='product_name_ci_unique')],
            },
        ),
    ]
