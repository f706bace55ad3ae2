# core/management/commands/seed_data.py
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from core.models import Badge, User, UserProfile
from core.services import AccountService, FallbackService, RequestService


DONORS = [
    ('rahim.donor@example.com', 'Rahim', 'Uddin', '01711000001', 'O+', Decimal('23.810300'), Decimal('90.412500')),
    ('karim.donor@example.com', 'Karim', 'Hossain', '01711000002', 'A+', Decimal('23.750000'), Decimal('90.390000')),
    ('nadia.donor@example.com', 'Nadia', 'Islam', '01711000003', 'B-', Decimal('23.780000'), Decimal('90.420000')),
    ('sadia.donor@example.com', 'Sadia', 'Akter', '01711000004', 'O-', Decimal('23.870000'), Decimal('90.400000')),
]

BADGES = [
    ('First Drop', 'Completed a first verified donation', 'droplet', '#DC2626', 1),
    ('Regular Hero', 'Ten verified donations', 'heart', '#B91C1C', 10),
    ('Lifesaver', 'Twenty five verified donations', 'shield', '#7F1D1D', 25),
]


class Command(BaseCommand):
    help = 'Seeds the database with sample donors, a recipient, an admin, requests and badges'

    def add_arguments(self, parser):
        parser.add_argument(
            '--password',
            default='password123',
            help='Password for every seeded account',
        )

    def handle(self, *args, **options):
        self.stdout.write('Seeding data...')
        password = options['password']
        now = timezone.now()

        admin = self._register({
            'email': 'admin@example.com',
            'password': password,
            'first_name': 'Site',
            'last_name': 'Admin',
            'role': UserProfile.ADMIN,
            'phone_number': '01711000009',
            'department': 'Blood Bank Operations',
            'employee_id': 'BB-ADMIN-001',
        })

        for email, first, last, phone, blood_type, lat, lng in DONORS:
            self._register({
                'email': email,
                'password': password,
                'first_name': first,
                'last_name': last,
                'role': UserProfile.DONOR,
                'phone_number': phone,
                'blood_type': blood_type,
                'date_of_birth': now.date() - timedelta(days=28 * 365),
                'location': 'Dhaka',
                'latitude': lat,
                'longitude': lng,
            })

        recipient = self._register({
            'email': 'recipient@example.com',
            'password': password,
            'first_name': 'Ayesha',
            'last_name': 'Rahman',
            'role': UserProfile.RECIPIENT,
            'phone_number': '01711000010',
            'blood_type': 'O+',
            'location': 'Dhaka Medical College Hospital',
            'latitude': Decimal('23.725600'),
            'longitude': Decimal('90.397700'),
            'emergency_contact': {'name': 'Farid Rahman', 'phone': '01711000011', 'relation': 'brother'},
        })

        # Seeded accounts skip the manual verification queue
        verified = UserProfile.objects.filter(
            user__email__endswith='@example.com'
        ).exclude(verification_status=UserProfile.VERIFIED).update(
            verification_status=UserProfile.VERIFIED,
            verified_by=admin,
            verified_at=now,
        )
        self.stdout.write(f'Verified {verified} seeded profile(s)')

        for name, description, icon, color, min_donations in BADGES:
            badge, created = Badge.objects.get_or_create(
                name=name,
                defaults={
                    'description': description,
                    'icon': icon,
                    'color': color,
                    'category': 'milestone',
                    'criteria': {'min_donations': min_donations},
                    'auto_assign': True,
                    'priority': min_donations,
                    'created_by': admin,
                }
            )
            if created:
                self.stdout.write(f'Created badge: {badge.name}')
            else:
                self.stdout.write(f'Badge already exists: {badge.name}')

        if recipient and not recipient.blood_requests.exists():
            result = RequestService.create_request(recipient, {
                'patient_name': 'Ayesha Rahman',
                'blood_type': 'O+',
                'units_required': 2,
                'urgency': 'urgent',
                'hospital_name': 'Dhaka Medical College Hospital',
                'hospital_contact': '01711000012',
                'required_by': now + timedelta(days=2),
                'medical_reason': 'Scheduled surgery',
                'location': 'Dhaka Medical College Hospital',
                'latitude': Decimal('23.725600'),
                'longitude': Decimal('90.397700'),
            })
            if result.success:
                self.stdout.write(
                    f"Created blood request {result.data['request'].id} "
                    f"({result.data['donors_notified']} donors notified)"
                )
            else:
                self.stdout.write(self.style.ERROR(f'✗ Request creation failed: {result.message}'))

        task = FallbackService.sync_schedule()
        self.stdout.write(f'Fallback schedule: every {task.interval.every}h, enabled={task.enabled}')

        self.stdout.write(self.style.SUCCESS('✓ Data seeded successfully!'))

    def _register(self, data):
        existing = User.objects.filter(email__iexact=data['email']).first()
        if existing:
            self.stdout.write(f"User already exists: {existing.username}")
            return existing

        result = AccountService.register(data)
        if not result.success:
            self.stdout.write(self.style.ERROR(f"✗ Could not create {data['email']}: {result.message}"))
            return None

        user = result.data['user']
        self.stdout.write(f'Created {data["role"]}: {user.username}')
        return user
