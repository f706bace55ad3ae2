import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='notification',
            name='notification_type',
            field=models.CharField(choices=[('request_created', 'Request Created'), ('request_matched', 'Request Matched'), ('donation_recorded', 'Donation Recorded'), ('donation_verified', 'Donation Verified'), ('verification_approved', 'Verification Approved'), ('verification_rejected', 'Verification Rejected'), ('verification_resubmission_requested', 'Resubmission Requested'), ('verification_revoked', 'Verification Revoked'), ('reminder', 'Reminder'), ('badge_awarded', 'Badge Awarded'), ('chat_message', 'Chat Message'), ('system', 'System Notification')], db_index=True, max_length=50),
        ),
        migrations.AlterField(
            model_name='auditlog',
            name='action',
            field=models.CharField(choices=[('user_verified', 'User Verified'), ('user_rejected', 'User Rejected'), ('user_resubmission_requested', 'Resubmission Requested'), ('user_verification_revoked', 'Verification Revoked'), ('user_activated', 'User Activated'), ('user_deactivated', 'User Deactivated'), ('donation_verified', 'Donation Verified'), ('donation_rejected', 'Donation Rejected'), ('donation_locked', 'Donation Locked'), ('donation_unlocked', 'Donation Unlocked'), ('donation_override', 'Donation Override'), ('card_revoked', 'Card Revoked'), ('review_approved', 'Review Approved'), ('review_rejected', 'Review Rejected'), ('review_reports_cleared', 'Review Reports Cleared'), ('badge_assigned', 'Badge Assigned'), ('badge_revoked', 'Badge Revoked'), ('config_updated', 'Configuration Updated'), ('message_flagged', 'Message Flagged'), ('message_hidden', 'Message Hidden'), ('message_unhidden', 'Message Unhidden'), ('other', 'Other')], db_index=True, max_length=40),
        ),
        migrations.CreateModel(
            name='Chat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_message', models.CharField(blank=True, max_length=200)),
                ('last_message_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('blood_request', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='chats', to='core.bloodrequest')),
                ('participants', models.ManyToManyField(related_name='chats', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'chats',
                'ordering': ['-last_message_at', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ChatMessage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('content', models.TextField(max_length=2000)),
                ('message_type', models.CharField(choices=[('text', 'Text'), ('system', 'System')], default='text', max_length=10)),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('is_flagged', models.BooleanField(db_index=True, default=False)),
                ('flagged_at', models.DateTimeField(blank=True, null=True)),
                ('flag_reason', models.TextField(blank=True)),
                ('is_hidden', models.BooleanField(db_index=True, default=False)),
                ('hidden_at', models.DateTimeField(blank=True, null=True)),
                ('hidden_reason', models.TextField(blank=True)),
                ('report_count', models.PositiveIntegerField(db_index=True, default=0)),
                ('reports', models.JSONField(blank=True, default=list)),
                ('chat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='core.chat')),
                ('flagged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='flagged_messages', to=settings.AUTH_USER_MODEL)),
                ('hidden_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='hidden_messages', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='chat_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'chat_messages',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['chat', 'created_at'], name='chat_msg_chat_created_idx'),
                ],
            },
        ),
    ]
