import core.models
import core.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


BLOOD_TYPE_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'), ('B+', 'B+'), ('B-', 'B-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'), ('O+', 'O+'), ('O-', 'O-'),
]
VERIFICATION_STATUS_CHOICES = [('pending', 'Pending'), ('verified', 'Verified'), ('rejected', 'Rejected')]
BADGE_TIER_CHOICES = [
    ('None', 'None'), ('Bronze', 'Bronze'), ('Silver', 'Silver'),
    ('Gold', 'Gold'), ('Platinum', 'Platinum'), ('Diamond', 'Diamond'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('role', models.CharField(choices=[('donor', 'Donor'), ('recipient', 'Recipient'), ('admin', 'Administrator')], db_index=True, help_text='Type of user account', max_length=20)),
                ('phone_number', models.CharField(blank=True, help_text='Contact phone number', max_length=20, null=True, unique=True, validators=[core.validators.validate_phone_number])),
                ('blood_type', models.CharField(blank=True, choices=BLOOD_TYPE_CHOICES, db_index=True, max_length=3)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other')], max_length=10)),
                ('profile_picture', models.ImageField(blank=True, help_text='Profile picture (max 5MB)', null=True, upload_to=core.models.user_profile_picture_path, validators=[core.validators.validate_image_size])),
                ('verification_status', models.CharField(choices=VERIFICATION_STATUS_CHOICES, db_index=True, default='pending', max_length=20)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('verification_notes', models.TextField(blank=True)),
                ('resubmission_requested', models.BooleanField(default=False)),
                ('resubmission_reason', models.TextField(blank=True)),
                ('hospital_id_document', models.ImageField(blank=True, null=True, upload_to=core.models.hospital_id_path, validators=[core.validators.validate_image_size])),
                ('hospital_id_uploaded_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_profiles', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Profile',
                'verbose_name_plural': 'User Profiles',
                'db_table': 'user_profiles',
                'indexes': [
                    models.Index(fields=['role', 'verification_status'], name='user_profil_role_be7e31_idx'),
                    models.Index(fields=['latitude', 'longitude'], name='user_profil_latitud_505ce2_idx'),
                    models.Index(fields=['blood_type', 'role'], name='user_profil_blood_t_a4afdd_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DonorProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_donation_date', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('total_donations', models.PositiveIntegerField(default=0)),
                ('is_available', models.BooleanField(db_index=True, default=True)),
                ('availability_radius', models.PositiveIntegerField(default=50, help_text='Distance in km the donor is willing to travel', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(200)])),
                ('medical_history', models.JSONField(blank=True, default=dict)),
                ('preferred_donation_center', models.CharField(blank=True, max_length=200)),
                ('notification_enabled', models.BooleanField(default=True)),
                ('sms_notifications', models.BooleanField(default=True)),
                ('email_notifications', models.BooleanField(default=True)),
                ('urgent_only', models.BooleanField(default=False)),
                ('badge', models.CharField(choices=BADGE_TIER_CHOICES, default='None', max_length=20)),
                ('achievements', models.JSONField(blank=True, default=list)),
                ('schedule_enabled', models.BooleanField(default=False)),
                ('schedule_timezone', models.CharField(default='Asia/Dhaka', max_length=50)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='donor_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Donor Profile',
                'verbose_name_plural': 'Donor Profiles',
                'db_table': 'donor_profiles',
            },
        ),
        migrations.CreateModel(
            name='WeeklySlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('day_of_week', models.PositiveSmallIntegerField(choices=[(0, 'Sunday'), (1, 'Monday'), (2, 'Tuesday'), (3, 'Wednesday'), (4, 'Thursday'), (5, 'Friday'), (6, 'Saturday')], validators=[django.core.validators.MaxValueValidator(6)])),
                ('start_time', models.CharField(max_length=5, validators=[core.validators.validate_time_string])),
                ('end_time', models.CharField(max_length=5, validators=[core.validators.validate_time_string])),
                ('is_active', models.BooleanField(default=True)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='weekly_slots', to='core.donorprofile')),
            ],
            options={
                'db_table': 'weekly_slots',
                'ordering': ['day_of_week', 'start_time'],
            },
        ),
        migrations.CreateModel(
            name='CustomAvailability',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('start_time', models.CharField(blank=True, max_length=5, validators=[core.validators.validate_time_string])),
                ('end_time', models.CharField(blank=True, max_length=5, validators=[core.validators.validate_time_string])),
                ('is_available', models.BooleanField(default=False)),
                ('reason', models.CharField(blank=True, max_length=200)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='custom_availability', to='core.donorprofile')),
            ],
            options={
                'verbose_name_plural': 'Custom Availability',
                'db_table': 'custom_availability',
                'ordering': ['start_date'],
            },
        ),
        migrations.CreateModel(
            name='RecipientProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('emergency_contact', models.JSONField(default=dict)),
                ('medical_condition', models.TextField(blank=True)),
                ('total_requests', models.PositiveIntegerField(default=0)),
                ('fulfilled_requests', models.PositiveIntegerField(default=0)),
                ('cancelled_requests', models.PositiveIntegerField(default=0)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='recipient_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Recipient Profile',
                'verbose_name_plural': 'Recipient Profiles',
                'db_table': 'recipient_profiles',
            },
        ),
        migrations.CreateModel(
            name='AdminProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('department', models.CharField(max_length=100)),
                ('employee_id', models.CharField(max_length=50, unique=True)),
                ('permissions', models.JSONField(blank=True, default=list)),
                ('last_action_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='admin_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Administrator Profile',
                'verbose_name_plural': 'Administrator Profiles',
                'db_table': 'admin_profiles',
            },
        ),
        migrations.CreateModel(
            name='BloodRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('patient_name', models.CharField(max_length=150)),
                ('blood_type', models.CharField(choices=BLOOD_TYPE_CHOICES, db_index=True, max_length=3, validators=[core.validators.validate_blood_type])),
                ('units_required', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10)])),
                ('urgency', models.CharField(choices=[('critical', 'Critical'), ('urgent', 'Urgent'), ('normal', 'Normal')], db_index=True, default='normal', max_length=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('matched', 'Matched'), ('fulfilled', 'Fulfilled'), ('cancelled', 'Cancelled'), ('expired', 'Expired')], db_index=True, default='pending', max_length=20)),
                ('hospital_name', models.CharField(max_length=200)),
                ('hospital_contact', models.CharField(blank=True, max_length=30)),
                ('required_by', models.DateTimeField(db_index=True)),
                ('medical_reason', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('total_units_fulfilled', models.PositiveIntegerField(default=0)),
                ('cancelled_reason', models.TextField(blank=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('search_radius', models.PositiveIntegerField(default=50)),
                ('radius_expanded', models.BooleanField(default=False)),
                ('fallback_attempts', models.PositiveIntegerField(default=0)),
                ('last_fallback_attempt', models.DateTimeField(blank=True, null=True)),
                ('nearby_facilities', models.JSONField(blank=True, default=list)),
                ('admin_notified', models.BooleanField(default=False)),
                ('admin_notified_at', models.DateTimeField(blank=True, null=True)),
                ('radius_expansion_consent', models.BooleanField(blank=True, null=True)),
                ('is_locked', models.BooleanField(default=False)),
                ('lock_expires_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cancelled_requests', to=settings.AUTH_USER_MODEL)),
                ('locked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locked_requests', to=settings.AUTH_USER_MODEL)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='blood_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Blood Request',
                'verbose_name_plural': 'Blood Requests',
                'db_table': 'blood_requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'required_by'], name='blood_reque_status_257fe3_idx'),
                    models.Index(fields=['blood_type', 'status'], name='blood_reque_blood_t_d4bff4_idx'),
                    models.Index(fields=['recipient', 'status'], name='blood_reque_recipie_85abec_idx'),
                    models.Index(fields=['urgency', 'status'], name='blood_reque_urgency_4f746d_idx'),
                    models.Index(fields=['latitude', 'longitude', 'status'], name='blood_reque_latitud_7760e3_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RequestMatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('score', models.FloatField(default=0)),
                ('distance_km', models.FloatField(blank=True, null=True)),
                ('notified_at', models.DateTimeField(blank=True, null=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('response', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('declined', 'Declined')], db_index=True, default='pending', max_length=10)),
                ('decline_reason', models.TextField(blank=True)),
                ('blood_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='matches', to='core.bloodrequest')),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='request_matches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'request_matches',
                'ordering': ['-score'],
                'unique_together': {('blood_request', 'donor')},
            },
        ),
        migrations.CreateModel(
            name='DonationRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donation_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('blood_type', models.CharField(choices=BLOOD_TYPE_CHOICES, max_length=3)),
                ('units_provided', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('center_name', models.CharField(blank=True, max_length=200)),
                ('center_address', models.CharField(blank=True, max_length=255)),
                ('center_latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('center_longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('health_check_before', models.JSONField(blank=True, default=dict)),
                ('health_check_after', models.JSONField(blank=True, default=dict)),
                ('verification_status', models.CharField(choices=VERIFICATION_STATUS_CHOICES, db_index=True, default='pending', max_length=20)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('points_earned', models.PositiveIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('complications', models.TextField(blank=True)),
                ('follow_up', models.JSONField(blank=True, default=dict)),
                ('is_locked', models.BooleanField(default=False)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('override_history', models.JSONField(blank=True, default=list)),
                ('blood_request', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fulfilled_by', to='core.bloodrequest')),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donation_records', to=settings.AUTH_USER_MODEL)),
                ('locked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locked_donations', to=settings.AUTH_USER_MODEL)),
                ('recipient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_donations', to=settings.AUTH_USER_MODEL)),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_donations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Donation Record',
                'verbose_name_plural': 'Donation Records',
                'db_table': 'donation_records',
                'ordering': ['-donation_date'],
                'indexes': [
                    models.Index(fields=['donor', 'verification_status', '-donation_date'], name='donation_re_donor_i_d451dc_idx'),
                    models.Index(fields=['recipient', '-donation_date'], name='donation_re_recipie_f057e2_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DigitalDonationCard',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('card_number', models.CharField(db_index=True, max_length=40, unique=True)),
                ('qr_payload', models.JSONField(default=dict)),
                ('qr_image', models.TextField(blank=True, help_text='PNG data URL')),
                ('issued_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('valid_until', models.DateTimeField()),
                ('verification_count', models.PositiveIntegerField(default=0)),
                ('last_verified_at', models.DateTimeField(blank=True, null=True)),
                ('is_revoked', models.BooleanField(db_index=True, default=False)),
                ('revoked_at', models.DateTimeField(blank=True, null=True)),
                ('revoke_reason', models.TextField(blank=True)),
                ('donation', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='digital_card', to='core.donationrecord')),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donation_cards', to=settings.AUTH_USER_MODEL)),
                ('revoked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='revoked_cards', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Digital Donation Card',
                'verbose_name_plural': 'Digital Donation Cards',
                'db_table': 'digital_donation_cards',
                'ordering': ['-issued_at'],
            },
        ),
        migrations.CreateModel(
            name='Leaderboard',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('period', models.CharField(choices=[('all-time', 'All Time'), ('yearly', 'Yearly'), ('monthly', 'Monthly'), ('weekly', 'Weekly')], db_index=True, max_length=10)),
                ('year', models.PositiveIntegerField(default=0)),
                ('month', models.PositiveSmallIntegerField(default=0)),
                ('week', models.PositiveSmallIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
            ],
            options={
                'db_table': 'leaderboards',
                'unique_together': {('period', 'year', 'month', 'week')},
            },
        ),
        migrations.CreateModel(
            name='LeaderboardEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('points', models.PositiveIntegerField(db_index=True, default=0)),
                ('total_donations', models.PositiveIntegerField(default=0)),
                ('donation_points', models.PositiveIntegerField(default=0)),
                ('bonus_points', models.PositiveIntegerField(default=0)),
                ('milestone_points', models.PositiveIntegerField(default=0)),
                ('review_points', models.PositiveIntegerField(default=0)),
                ('badge', models.CharField(choices=BADGE_TIER_CHOICES, default='None', max_length=20)),
                ('rank', models.PositiveIntegerField(db_index=True, default=0)),
                ('previous_rank', models.PositiveIntegerField(blank=True, null=True)),
                ('rank_change', models.CharField(choices=[('up', 'Up'), ('down', 'Down'), ('same', 'Same'), ('new', 'New')], default='new', max_length=5)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='leaderboard_entries', to=settings.AUTH_USER_MODEL)),
                ('leaderboard', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='core.leaderboard')),
            ],
            options={
                'db_table': 'leaderboard_entries',
                'ordering': ['rank'],
                'unique_together': {('leaderboard', 'donor')},
            },
        ),
        migrations.CreateModel(
            name='Badge',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=50, unique=True, validators=[django.core.validators.MinLengthValidator(3)])),
                ('description', models.CharField(max_length=300)),
                ('icon', models.CharField(default='award', max_length=50)),
                ('color', models.CharField(default='#DC2626', max_length=7, validators=[core.validators.validate_hex_color])),
                ('category', models.CharField(choices=[('donation', 'Donation'), ('milestone', 'Milestone'), ('community', 'Community'), ('special', 'Special')], default='donation', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('criteria', models.JSONField(blank=True, default=dict)),
                ('auto_assign', models.BooleanField(default=False)),
                ('priority', models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MaxValueValidator(100)])),
                ('assignment_count', models.PositiveIntegerField(default=0)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_badges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'badges',
                'ordering': ['-priority', 'name'],
            },
        ),
        migrations.CreateModel(
            name='UserBadge',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reason', models.TextField(blank=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('revoked_at', models.DateTimeField(blank=True, null=True)),
                ('revoke_reason', models.TextField(blank=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_badges', to=settings.AUTH_USER_MODEL)),
                ('badge', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='core.badge')),
                ('revoked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='revoked_badges', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='user_badges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_badges',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('notification_type', models.CharField(choices=[('request_created', 'Request Created'), ('request_matched', 'Request Matched'), ('donation_recorded', 'Donation Recorded'), ('donation_verified', 'Donation Verified'), ('verification_approved', 'Verification Approved'), ('verification_rejected', 'Verification Rejected'), ('verification_resubmission_requested', 'Resubmission Requested'), ('verification_revoked', 'Verification Revoked'), ('reminder', 'Reminder'), ('badge_awarded', 'Badge Awarded'), ('system', 'System Notification')], db_index=True, max_length=50)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('data', models.JSONField(blank=True, default=dict)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('is_read', models.BooleanField(db_index=True, default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('related_model', models.CharField(blank=True, max_length=50)),
                ('related_id', models.CharField(blank=True, max_length=50)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'db_table': 'notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'is_read', '-created_at'], name='notificatio_user_id_c4e471_idx'),
                    models.Index(fields=['user', 'notification_type'], name='notificatio_user_id_63f199_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('performer_role', models.CharField(blank=True, max_length=20)),
                ('performer_name', models.CharField(blank=True, max_length=150)),
                ('performer_email', models.EmailField(blank=True, max_length=254)),
                ('action', models.CharField(choices=[('user_verified', 'User Verified'), ('user_rejected', 'User Rejected'), ('user_resubmission_requested', 'Resubmission Requested'), ('user_verification_revoked', 'Verification Revoked'), ('user_activated', 'User Activated'), ('user_deactivated', 'User Deactivated'), ('donation_verified', 'Donation Verified'), ('donation_rejected', 'Donation Rejected'), ('donation_locked', 'Donation Locked'), ('donation_unlocked', 'Donation Unlocked'), ('donation_override', 'Donation Override'), ('card_revoked', 'Card Revoked'), ('review_approved', 'Review Approved'), ('review_rejected', 'Review Rejected'), ('review_reports_cleared', 'Review Reports Cleared'), ('badge_assigned', 'Badge Assigned'), ('badge_revoked', 'Badge Revoked'), ('config_updated', 'Configuration Updated'), ('other', 'Other')], db_index=True, max_length=40)),
                ('category', models.CharField(choices=[('verification', 'Verification'), ('moderation', 'Moderation'), ('data_correction', 'Data Correction'), ('user_management', 'User Management'), ('system_config', 'System Configuration'), ('security', 'Security')], db_index=True, max_length=20)),
                ('description', models.TextField()),
                ('target_model', models.CharField(db_index=True, max_length=50)),
                ('target_id', models.CharField(db_index=True, max_length=50)),
                ('target_identifier', models.CharField(blank=True, max_length=200)),
                ('changes_before', models.JSONField(blank=True, default=dict)),
                ('changes_after', models.JSONField(blank=True, default=dict)),
                ('fields_changed', models.JSONField(blank=True, default=list)),
                ('reason', models.TextField(blank=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=255)),
                ('severity', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], db_index=True, default='medium', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('performed_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_actions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['target_model', 'target_id'], name='audit_logs_target__f350f5_idx'),
                    models.Index(fields=['performed_by', '-created_at'], name='audit_logs_perform_d86b9a_idx'),
                    models.Index(fields=['category', '-created_at'], name='audit_logs_categor_d000e9_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BlogPost',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('title', models.CharField(max_length=200)),
                ('slug', models.SlugField(max_length=255, unique=True)),
                ('excerpt', models.CharField(blank=True, max_length=500)),
                ('content', models.TextField()),
                ('cover_image', models.ImageField(blank=True, null=True, upload_to=core.models.blog_cover_path, validators=[core.validators.validate_image_size])),
                ('category', models.CharField(choices=[('awareness', 'Awareness'), ('health_tips', 'Health Tips'), ('success_stories', 'Success Stories'), ('news', 'News'), ('events', 'Events'), ('research', 'Research')], db_index=True, default='awareness', max_length=20)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('archived', 'Archived')], db_index=True, default='draft', max_length=10)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('author', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blog_posts', to=settings.AUTH_USER_MODEL)),
                ('likes', models.ManyToManyField(blank=True, related_name='liked_posts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'blog_posts',
                'ordering': ['-published_at', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BlogComment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('content', models.TextField(max_length=1000)),
                ('post', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='core.blogpost')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='blog_comments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'blog_comments',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='BloodCampEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('organizer', models.CharField(blank=True, max_length=200)),
                ('venue_name', models.CharField(max_length=200)),
                ('start_datetime', models.DateTimeField(db_index=True)),
                ('end_datetime', models.DateTimeField()),
                ('target_donors', models.PositiveIntegerField(default=0, help_text='0 means unlimited')),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('ongoing', 'Ongoing'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='upcoming', max_length=10)),
                ('is_published', models.BooleanField(db_index=True, default=False)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_events', to=settings.AUTH_USER_MODEL)),
                ('registered_donors', models.ManyToManyField(blank=True, related_name='registered_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'blood_camp_events',
                'ordering': ['start_datetime'],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('comment', models.TextField(blank=True, max_length=1000)),
                ('review_type', models.CharField(choices=[('donor_review', 'Donor Review'), ('recipient_review', 'Recipient Review'), ('platform_review', 'Platform Review')], default='donor_review', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='approved', max_length=10)),
                ('report_count', models.PositiveIntegerField(default=0)),
                ('reports', models.JSONField(blank=True, default=list)),
                ('moderated_at', models.DateTimeField(blank=True, null=True)),
                ('moderation_note', models.TextField(blank=True)),
                ('blood_request', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviews', to='core.bloodrequest')),
                ('moderated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='moderated_reviews', to=settings.AUTH_USER_MODEL)),
                ('reviewee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reviewee', 'status'], name='reviews_reviewe_ec2d4b_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SystemConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donation_settings', models.JSONField(blank=True, default=dict)),
                ('matching_settings', models.JSONField(blank=True, default=dict)),
                ('fallback_settings', models.JSONField(blank=True, default=dict)),
                ('points_settings', models.JSONField(blank=True, default=dict)),
                ('request_settings', models.JSONField(blank=True, default=dict)),
                ('notification_settings', models.JSONField(blank=True, default=dict)),
                ('maintenance_mode', models.BooleanField(default=False)),
                ('maintenance_message', models.CharField(blank=True, max_length=500)),
                ('change_history', models.JSONField(blank=True, default=list)),
                ('last_modified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='config_changes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'System Configuration',
                'verbose_name_plural': 'System Configuration',
                'db_table': 'system_config',
            },
        ),
    ]
