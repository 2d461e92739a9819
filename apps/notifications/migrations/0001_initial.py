import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import apps.notifications.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('orders', '0001_initial'),
        ('tasks', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('type', models.CharField(choices=[('order_created', 'New order'), ('order_updated', 'Order updated'), ('order_completed', 'Order completed'), ('order_response', 'Order response'), ('task_assigned', 'Task assigned'), ('task_completed', 'Task completed'), ('material_shortage', 'Material shortage'), ('due_soon', 'Due soon'), ('overdue', 'Overdue'), ('system', 'System'), ('announcement', 'Announcement')], db_index=True, max_length=30)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High'), ('urgent', 'Urgent')], default='normal', max_length=10)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('is_global', models.BooleanField(db_index=True, default=False)),
                ('target_roles', models.JSONField(blank=True, default=list)),
                ('channels', models.JSONField(blank=True, default=apps.notifications.models.default_channels)),
                ('action_url', models.CharField(blank=True, max_length=255)),
                ('action_text', models.CharField(blank=True, max_length=50)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('related_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='orders.order')),
                ('related_task', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='tasks.task')),
                ('sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['is_global', 'created_at'], name='notif_global_created_idx'),
                    models.Index(fields=['type', 'created_at'], name='notif_type_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NotificationRecipient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_read', models.BooleanField(db_index=True, default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('web_sent', models.BooleanField(default=False)),
                ('web_sent_at', models.DateTimeField(blank=True, null=True)),
                ('email_sent', models.BooleanField(default=False)),
                ('email_sent_at', models.DateTimeField(blank=True, null=True)),
                ('email_error', models.TextField(blank=True)),
                ('whatsapp_sent', models.BooleanField(default=False)),
                ('whatsapp_sent_at', models.DateTimeField(blank=True, null=True)),
                ('whatsapp_error', models.TextField(blank=True)),
                ('notification', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipients', to='notifications.notification')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notification_receipts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notification_recipients',
                'indexes': [models.Index(fields=['user', 'is_read'], name='notif_recipient_read_idx')],
                'constraints': [models.UniqueConstraint(fields=('notification', 'user'), name='uniq_notification_recipient')],
            },
        ),
    ]
