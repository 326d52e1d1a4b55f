# Generated manually for the initial messaging schema

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Facility',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255)),
                ('district', models.CharField(blank=True, help_text="Tokyo ward or city (e.g., 'Setagaya')", max_length=100)),
                ('address', models.CharField(blank=True, max_length=500)),
                ('is_active', models.BooleanField(default=True)),
                ('operator', models.ForeignKey(help_text='Facility operator account that answers messages', on_delete=django.db.models.deletion.PROTECT, related_name='operated_facilities', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Facility',
                'verbose_name_plural': 'Facilities',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='MessagingProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('full_name', models.CharField(blank=True, help_text='Name shown to the other party', max_length=255)),
                ('user_type', models.CharField(choices=[('consumer', 'Consumer'), ('facility', 'Facility Operator')], default='consumer', max_length=20)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='messaging_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Messaging Profile',
                'verbose_name_plural': 'Messaging Profiles',
            },
        ),
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('last_message_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, help_text='Timestamp of most recent activity (denormalized for sorting)')),
                ('consumer', models.ForeignKey(help_text='Consumer who started the conversation', on_delete=django.db.models.deletion.CASCADE, related_name='facility_conversations', to=settings.AUTH_USER_MODEL)),
                ('facility', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversations', to='django_facility_dm.facility')),
            ],
            options={
                'verbose_name': 'Conversation',
                'verbose_name_plural': 'Conversations',
                'ordering': ['-last_message_at', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('content', models.TextField()),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, help_text='When the recipient first displayed the message', null=True)),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='django_facility_dm.conversation')),
                ('recipient', models.ForeignKey(help_text='The other party of the conversation at send time', on_delete=django.db.models.deletion.CASCADE, related_name='received_facility_messages', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_facility_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Message',
                'verbose_name_plural': 'Messages',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.AddIndex(
            model_name='facility',
            index=models.Index(fields=['operator'], name='fdm_facility_operator_idx'),
        ),
        migrations.AddIndex(
            model_name='facility',
            index=models.Index(fields=['district', 'is_active'], name='fdm_facility_district_idx'),
        ),
        migrations.AddIndex(
            model_name='conversation',
            index=models.Index(fields=['consumer', '-last_message_at'], name='fdm_conv_consumer_recent_idx'),
        ),
        migrations.AddIndex(
            model_name='conversation',
            index=models.Index(fields=['facility', '-last_message_at'], name='fdm_conv_facility_recent_idx'),
        ),
        migrations.AddConstraint(
            model_name='conversation',
            constraint=models.UniqueConstraint(fields=('consumer', 'facility'), name='unique_consumer_facility_conversation'),
        ),
        migrations.AddIndex(
            model_name='message',
            index=models.Index(fields=['conversation', 'created_at'], name='fdm_msg_conv_created_idx'),
        ),
        migrations.AddIndex(
            model_name='message',
            index=models.Index(fields=['conversation', 'is_read'], name='fdm_msg_conv_read_idx'),
        ),
        migrations.AddIndex(
            model_name='message',
            index=models.Index(fields=['recipient', 'is_read'], name='fdm_msg_recipient_read_idx'),
        ),
    ]
