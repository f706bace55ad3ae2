"""
API Endpoint Tests
==================

Test suite for API permissions, role checks and endpoint behaviour.
Run with: python manage.py test api.tests -v 2
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework import status

from core.models import (
    UserProfile, DonorProfile, RecipientProfile, AdminProfile, BloodRequest,
    DonationRecord, Notification, Review, AuditLog, Badge, UserBadge, BlogPost,
    BloodCampEvent,
)
from core.services import DonationService, NotificationService

User = get_user_model()

DHAKA = (Decimal('23.810300'), Decimal('90.412500'))


def make_user(username, role, blood_type='O+', verified=True):
    user = User.objects.create_user(
        username=username,
        email=f'{username}@test.com',
        password='testpass123',
        first_name=username.title(),
    )
    UserProfile.objects.create(
        user=user,
        role=role,
        blood_type=blood_type if role != UserProfile.ADMIN else '',
        latitude=DHAKA[0],
        longitude=DHAKA[1],
        verification_status=UserProfile.VERIFIED if verified else UserProfile.PENDING,
    )
    if role == UserProfile.DONOR:
        DonorProfile.objects.create(user=user)
    elif role == UserProfile.RECIPIENT:
        RecipientProfile.objects.create(
            user=user,
            emergency_contact={'name': 'Contact', 'phone': '01711111111', 'relation': 'parent'},
        )
    else:
        AdminProfile.objects.create(user=user, department='Operations', employee_id=f'EMP-{username}')
    return user


def make_request(recipient, blood_type='O+'):
    return BloodRequest.objects.create(
        recipient=recipient,
        patient_name='Test Patient',
        blood_type=blood_type,
        units_required=1,
        hospital_name='Test Hospital',
        required_by=timezone.now() + timedelta(days=2),
        latitude=DHAKA[0],
        longitude=DHAKA[1],
    )


class RegistrationTests(TestCase):
    """Test account registration and token issue"""

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.payload = {
            'email': 'newdonor@test.com',
            'password': 'Bl00dBond#2026',
            'first_name': 'New',
            'last_name': 'Donor',
            'role': 'donor',
            'blood_type': 'A+',
            'latitude': '23.810300',
            'longitude': '90.412500',
        }

    def test_register_donor(self):
        """Test that a donor registers and receives tokens"""
        response = self.client.post('/api/v1/auth/register/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data['tokens'])
        self.assertEqual(response.data['user']['role'], 'donor')

        user = User.objects.get(email='newdonor@test.com')
        self.assertEqual(user.profile.verification_status, UserProfile.PENDING)
        self.assertTrue(DonorProfile.objects.filter(user=user).exists())

    def test_duplicate_email_rejected(self):
        """Test that an email can only be registered once"""
        self.client.post('/api/v1/auth/register/', self.payload, format='json')
        response = self.client.post('/api/v1/auth/register/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data['errors'])

    def test_donor_requires_blood_type(self):
        """Test that donors must state their blood type"""
        del self.payload['blood_type']
        response = self.client.post('/api/v1/auth/register/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('blood_type', response.data['errors'])

    def test_token_includes_role(self):
        """Test that the token response carries role and verification state"""
        self.client.post('/api/v1/auth/register/', self.payload, format='json')
        response = self.client.post('/api/v1/auth/token/', {
            'username': 'newdonor@test.com',
            'password': 'Bl00dBond#2026',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], 'donor')
        self.assertFalse(response.data['user']['is_verified'])

    def test_self_registered_admin_has_no_admin_access(self):
        """Test that an admin account stays locked out until verified"""
        payload = dict(self.payload, email='newadmin@test.com', role='admin',
                       department='Operations', employee_id='EMP-100')
        del payload['blood_type']
        response = self.client.post('/api/v1/auth/register/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.force_authenticate(user=User.objects.get(email='newadmin@test.com'))
        response = self.client.get('/api/v1/admin/users/pending/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProfileTests(TestCase):
    """Test profile access and updates"""

    def setUp(self):
        cache.clear()
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.other = make_user('donor2', UserProfile.DONOR)
        self.client = APIClient()
        self.client.force_authenticate(user=self.donor)

    def test_get_own_profile(self):
        response = self.client.get('/api/v1/users/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'donor')

    def test_update_profile(self):
        response = self.client.patch('/api/v1/users/me/', {'first_name': 'Updated'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.first_name, 'Updated')

    def test_user_list_only_shows_self(self):
        """Test that non admins cannot list other users"""
        response = self.client.get('/api/v1/users/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [user['id'] for user in response.data['results']]
        self.assertEqual(ids, [self.donor.id])

    def test_cannot_view_other_user(self):
        response = self.client.get(f'/api/v1/users/{self.other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_change_password_requires_current(self):
        response = self.client.post('/api/v1/users/change_password/', {
            'current_password': 'wrong-password',
            'new_password': 'An0ther#Secret',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_radius_bounds(self):
        response = self.client.patch('/api/v1/users/search_radius/', {'radius': 500}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch('/api/v1/users/search_radius/', {'radius': 25}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(DonorProfile.objects.get(user=self.donor).availability_radius, 25)


class BloodRequestTests(TestCase):
    """Test blood request creation, responses and visibility"""

    def setUp(self):
        cache.clear()
        self.recipient = make_user('recipient1', UserProfile.RECIPIENT, blood_type='A+')
        self.donor1 = make_user('donor1', UserProfile.DONOR)
        self.donor2 = make_user('donor2', UserProfile.DONOR, blood_type='O-')
        self.client = APIClient()

    def test_recipient_creates_request(self):
        self.client.force_authenticate(user=self.recipient)
        response = self.client.post('/api/v1/requests/', {
            'patient_name': 'Test Patient',
            'blood_type': 'O+',
            'units_required': 1,
            'urgency': 'urgent',
            'hospital_name': 'Dhaka Medical',
            'required_by': (timezone.now() + timedelta(days=1)).isoformat(),
            'latitude': '23.810300',
            'longitude': '90.412500',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['donors_notified'], 2)
        self.assertEqual(response.data['request']['status'], BloodRequest.PENDING)

    def test_donor_cannot_create_request(self):
        self.client.force_authenticate(user=self.donor1)
        response = self.client.post('/api/v1/requests/', {'patient_name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_donor_accepts_request(self):
        blood_request = make_request(self.recipient)
        self.client.force_authenticate(user=self.donor1)

        response = self.client.post(
            f'/api/v1/requests/{blood_request.id}/respond/', {'action': 'accept'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['request']['status'], BloodRequest.MATCHED)
        self.assertEqual(response.data['request']['locked_by'], self.donor1.id)

    def test_locked_request_conflict(self):
        """Test that another donor's active lock is reported as a conflict"""
        blood_request = make_request(self.recipient)
        blood_request.acquire_lock(self.donor1)
        self.client.force_authenticate(user=self.donor2)

        response = self.client.post(
            f'/api/v1/requests/{blood_request.id}/respond/', {'action': 'accept'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_invalid_response_action(self):
        blood_request = make_request(self.recipient)
        self.client.force_authenticate(user=self.donor1)

        response = self.client.post(
            f'/api/v1/requests/{blood_request.id}/respond/', {'action': 'maybe'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_visible_requests(self):
        make_request(self.recipient)
        make_request(self.recipient, blood_type='AB+')
        self.client.force_authenticate(user=self.donor2)

        response = self.client.get('/api/v1/requests/visible/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 2)
        self.assertIn('summary', response.data)

    def test_recipient_cancels_request(self):
        blood_request = make_request(self.recipient)
        self.client.force_authenticate(user=self.recipient)

        response = self.client.delete(f'/api/v1/requests/{blood_request.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.CANCELLED)

    def test_other_recipient_cannot_see_request(self):
        blood_request = make_request(self.recipient)
        other = make_user('recipient2', UserProfile.RECIPIENT)
        self.client.force_authenticate(user=other)

        response = self.client.get(f'/api/v1/requests/{blood_request.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_fallback_endpoints_admin_only(self):
        self.client.force_authenticate(user=self.recipient)
        response = self.client.get('/api/v1/requests/unmatched/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_run_fallback_rejects_bad_threshold(self):
        admin = make_user('admin1', UserProfile.ADMIN)
        self.client.force_authenticate(user=admin)

        response = self.client.post('/api/v1/requests/run_fallback/', {'threshold_hours': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/requests/unmatched/', {'threshold_hours': '0'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/requests/run_fallback/', {'threshold_hours': 6}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 0)


class DonationTests(TestCase):
    """Test donation recording, verification and immutability"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.pending_admin = make_user('admin2', UserProfile.ADMIN, verified=False)
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.other_donor = make_user('donor2', UserProfile.DONOR)
        self.client = APIClient()

    def _record(self):
        return DonationService.record_donation(self.donor, {'center_name': 'Central Blood Bank'}).data

    def test_donor_records_donation(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.post('/api/v1/donations/', {'center_name': 'Central Blood Bank'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['verification_status'], DonationRecord.PENDING)
        self.assertEqual(response.data['blood_type'], 'O+')

    def test_cooldown_blocks_second_donation(self):
        self._record()
        self.client.force_authenticate(user=self.donor)

        response = self.client.post('/api/v1/donations/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['eligibility']['eligible'])

    def test_admin_verifies_donation(self):
        donation = self._record()
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f'/api/v1/donations/{donation.id}/verify/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['donation']['is_locked'])
        self.assertTrue(response.data['card']['card_number'].startswith('BB-'))
        self.assertTrue(AuditLog.objects.filter(action='donation_verified').exists())

    def test_donor_cannot_verify(self):
        donation = self._record()
        self.client.force_authenticate(user=self.donor)

        response = self.client.post(f'/api/v1/donations/{donation.id}/verify/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unverified_admin_cannot_verify(self):
        donation = self._record()
        self.client.force_authenticate(user=self.pending_admin)

        response = self.client.post(f'/api/v1/donations/{donation.id}/verify/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_locked_donation_refuses_update(self):
        donation = self._record()
        DonationService.verify_donation(donation.id, self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(f'/api/v1/donations/{donation.id}/', {'notes': 'edited'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/v1/donations/{donation.id}/immutability/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['can_edit'])

    def test_override_requires_reason(self):
        donation = self._record()
        DonationService.verify_donation(donation.id, self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f'/api/v1/donations/{donation.id}/override/', {
            'fields': {'notes': 'corrected'},
            'reason': 'short',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/donations/{donation.id}/override/', {
            'fields': {'notes': 'corrected'},
            'reason': 'Center reported the wrong note',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['override_history']), 1)

    def test_other_donor_cannot_see_donation(self):
        donation = self._record()
        self.client.force_authenticate(user=self.other_donor)

        response = self.client.get(f'/api/v1/donations/{donation.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CardTests(TestCase):
    """Test digital donation cards"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.donor = make_user('donor1', UserProfile.DONOR)
        donation = DonationService.record_donation(self.donor, {}).data
        self.card = DonationService.verify_donation(donation.id, self.admin).data['card']
        self.client = APIClient()

    def test_public_qr_verification(self):
        """Test that anyone can verify a scanned card"""
        response = self.client.post('/api/v1/cards/verify/', {'qr_data': self.card.qr_payload}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['card_number'], self.card.card_number)

    def test_tampered_qr_rejected(self):
        payload = dict(self.card.qr_payload, donation_id=self.card.donation_id + 1)
        response = self.client.post('/api/v1/cards/verify/', {'qr_data': payload}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_donor_lists_own_cards(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.get('/api/v1/cards/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_other_donor_cannot_view_card(self):
        other = make_user('donor2', UserProfile.DONOR)
        self.client.force_authenticate(user=other)

        response = self.client.get(f'/api/v1/cards/{self.card.card_number}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class LeaderboardTests(TestCase):

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.donor = make_user('donor1', UserProfile.DONOR)
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)
        self.client = APIClient()
        self.client.force_authenticate(user=self.donor)

    def test_leaderboard_lists_verified_donor(self):
        response = self.client.get('/api/v1/leaderboard/', {'period': 'monthly'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_entries'], 1)

    def test_invalid_period(self):
        response = self.client.get('/api/v1/leaderboard/', {'period': 'daily'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_my_rank(self):
        response = self.client.get('/api/v1/leaderboard/my_rank/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rank'], 1)


class NotificationTests(TestCase):
    """Test notification read state and ownership"""

    def setUp(self):
        cache.clear()
        self.user = make_user('donor1', UserProfile.DONOR)
        self.other = make_user('donor2', UserProfile.DONOR)
        for i in range(3):
            NotificationService.create_notification(
                user=self.user,
                notification_type=Notification.SYSTEM,
                title=f'Notice {i}',
                message='Test message',
            )
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def test_unread_count_and_mark_all_read(self):
        response = self.client.get('/api/v1/notifications/unread_count/')
        self.assertEqual(response.data['unread_count'], 3)

        response = self.client.post('/api/v1/notifications/mark_all_read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

        response = self.client.get('/api/v1/notifications/unread_count/')
        self.assertEqual(response.data['unread_count'], 0)

    def test_cannot_delete_other_users_notification(self):
        notification = Notification.objects.filter(user=self.user).first()
        self.client.force_authenticate(user=self.other)

        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Notification.objects.filter(id=notification.id).exists())

    def test_delete_own_notification(self):
        notification = Notification.objects.filter(user=self.user).first()

        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class AdminVerificationTests(TestCase):
    """Test admin account review"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.pending_donor = make_user('donor1', UserProfile.DONOR, verified=False)
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def test_pending_lists_unverified_users(self):
        response = self.client.get('/api/v1/admin/users/pending/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [user['id'] for user in response.data['users']]
        self.assertIn(self.pending_donor.id, ids)

    def test_verify_user(self):
        response = self.client.post(f'/api/v1/admin/users/{self.pending_donor.id}/verify/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pending_donor.profile.refresh_from_db()
        self.assertEqual(self.pending_donor.profile.verification_status, UserProfile.VERIFIED)
        self.assertTrue(AuditLog.objects.filter(category='verification').exists())

    def test_donor_cannot_review_accounts(self):
        self.client.force_authenticate(user=self.pending_donor)
        response = self.client.get('/api/v1/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ConfigTests(TestCase):

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.client = APIClient()

    def test_admin_updates_section(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch('/api/v1/config/sections/donation_settings/', {
            'values': {'cooldown_days': 120},
            'reason': 'Policy change from board',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/config/')
        self.assertEqual(response.data['donation_settings']['cooldown_days'], 120)

    def test_unknown_section(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch('/api/v1/config/sections/unknown_settings/', {
            'values': {}, 'reason': 'Policy change from board',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_public_config_without_login(self):
        response = self.client.get('/api/v1/config/public/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('fallback_settings', response.data)

    def test_donor_cannot_read_full_config(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.get('/api/v1/config/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ReviewTests(TestCase):

    def setUp(self):
        cache.clear()
        self.recipient = make_user('recipient1', UserProfile.RECIPIENT)
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.client = APIClient()
        self.client.force_authenticate(user=self.recipient)

    def test_create_and_list_review(self):
        response = self.client.post('/api/v1/reviews/', {
            'reviewee': self.donor.id,
            'rating': 5,
            'comment': 'Arrived quickly',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get('/api/v1/reviews/', {'reviewee': self.donor.id})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/reviews/average/{self.donor.id}/')
        self.assertEqual(response.data['average_rating'], 5)

    def test_cannot_review_self(self):
        response = self.client.post('/api/v1/reviews/', {
            'reviewee': self.recipient.id, 'rating': 4,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_reviewer_can_delete(self):
        review = Review.objects.create(reviewer=self.recipient, reviewee=self.donor, rating=4)
        self.client.force_authenticate(user=self.donor)

        response = self.client.delete(f'/api/v1/reviews/{review.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AvailabilityTests(TestCase):

    def setUp(self):
        cache.clear()
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.recipient = make_user('recipient1', UserProfile.RECIPIENT)
        self.client = APIClient()
        self.client.force_authenticate(user=self.donor)

    def test_add_weekly_slot(self):
        response = self.client.post('/api/v1/availability/slots/', {
            'day_of_week': 1,
            'start_time': '09:00',
            'end_time': '17:00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['day_name'], 'Monday')

        response = self.client.get('/api/v1/availability/')
        self.assertEqual(len(response.data['weekly_slots']), 1)

    def test_slot_end_must_follow_start(self):
        response = self.client.post('/api/v1/availability/slots/', {
            'day_of_week': 1,
            'start_time': '17:00',
            'end_time': '09:00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_requires_boolean(self):
        response = self.client.post('/api/v1/availability/toggle/', {'enabled': 'yes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/availability/toggle/', {'enabled': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['enabled'])

    def test_recipient_has_no_schedule(self):
        self.client.force_authenticate(user=self.recipient)
        response = self.client.get('/api/v1/availability/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_public_schedule(self):
        self.client.force_authenticate(user=self.recipient)
        response = self.client.get(f'/api/v1/donors/{self.donor.id}/schedule/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['donor_id'], self.donor.id)


class ChatTests(TestCase):
    """Chat endpoints and admin moderation"""

    def setUp(self):
        cache.clear()
        self.recipient = make_user('recipient1', UserProfile.RECIPIENT)
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.client = APIClient()
        self.client.force_authenticate(user=self.recipient)

    def _open_chat(self):
        response = self.client.post('/api/v1/chats/', {'participant_id': self.donor.id}, format='json')
        return response.data['id']

    def test_create_chat_then_reuse(self):
        response = self.client.post('/api/v1/chats/', {'participant_id': self.donor.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual({p['id'] for p in response.data['participants']}, {self.recipient.id, self.donor.id})

        response = self.client.post('/api/v1/chats/', {'participant_id': self.donor.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_send_and_read_messages(self):
        chat_id = self._open_chat()

        response = self.client.post(f'/api/v1/chats/{chat_id}/messages/', {'content': 'Hello'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sender'], self.recipient.id)

        self.client.force_authenticate(user=self.donor)
        response = self.client.get('/api/v1/chats/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['unread_count'], 1)

        response = self.client.get(f'/api/v1/chats/{chat_id}/messages/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['content'], 'Hello')

        response = self.client.get('/api/v1/chats/')
        self.assertEqual(response.data['results'][0]['unread_count'], 0)

    def test_outsider_cannot_read_chat(self):
        chat_id = self._open_chat()
        outsider = make_user('donor2', UserProfile.DONOR)
        self.client.force_authenticate(user=outsider)

        response = self.client.get(f'/api/v1/chats/{chat_id}/messages/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_report_message(self):
        chat_id = self._open_chat()
        message_id = self.client.post(
            f'/api/v1/chats/{chat_id}/messages/', {'content': 'Pay me first'}, format='json'
        ).data['id']
        self.client.force_authenticate(user=self.donor)

        response = self.client.post(
            f'/api/v1/chats/messages/{message_id}/report/',
            {'reason': 'short', 'category': 'scam'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            f'/api/v1/chats/messages/{message_id}/report/',
            {'reason': 'Asked me for money', 'category': 'scam'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['report_count'], 1)

        response = self.client.post(
            f'/api/v1/chats/messages/{message_id}/report/',
            {'reason': 'Asked me for money', 'category': 'scam'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_admin_moderation(self):
        chat_id = self._open_chat()
        message_id = self.client.post(
            f'/api/v1/chats/{chat_id}/messages/', {'content': 'Pay me first'}, format='json'
        ).data['id']

        response = self.client.get('/api/v1/chats/admin/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            f'/api/v1/chats/admin/messages/{message_id}/hide/',
            {'reason': 'Payment request before donation'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_hidden'])

        response = self.client.post(
            f'/api/v1/chats/admin/messages/{message_id}/flag/', {'reason': 'bad'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/v1/chats/{chat_id}/admin/messages/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/chats/admin/stats/')
        self.assertEqual(response.data['hidden_messages'], 1)

        self.client.force_authenticate(user=self.donor)
        response = self.client.get(f'/api/v1/chats/{chat_id}/messages/')
        self.assertEqual(response.data['count'], 0)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/v1/chats/admin/messages/{message_id}/unhide/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(AuditLog.objects.filter(category='moderation').count(), 2)

    def test_admin_lists_all_chats(self):
        self._open_chat()
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/v1/chats/admin/all/', {'search': 'donor1'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/chats/admin/all/', {'search': 'nobody'})
        self.assertEqual(response.data['count'], 0)


class AnalyticsTests(TestCase):
    """Admin analytics endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.ADMIN)
        self.donor = make_user('donor1', UserProfile.DONOR)
        self.recipient = make_user('recipient1', UserProfile.RECIPIENT)
        make_request(self.recipient)
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def test_admin_only(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.get('/api/v1/analytics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard(self):
        response = self.client.get('/api/v1/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['requests']['active'], 1)
        self.assertEqual(response.data['users']['donors'], 1)

    def test_trend_months_validated(self):
        response = self.client.get('/api/v1/analytics/donation_trends/', {'months': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/analytics/request_trends/', {'months': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/analytics/request_trends/', {'months': 6})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['count'], 1)

    def test_blood_groups_and_urgency(self):
        response = self.client.get('/api/v1/analytics/blood_groups/')
        self.assertEqual(len(response.data), 8)

        response = self.client.get('/api/v1/analytics/urgency/')
        self.assertEqual([row['urgency'] for row in response.data], ['critical', 'urgent', 'normal'])

    def test_custom_range_validation(self):
        today = timezone.localdate()
        response = self.client.get('/api/v1/analytics/custom_range/', {'start_date': today.isoformat()})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/analytics/custom_range/', {
            'start_date': today.isoformat(),
            'end_date': (today - timedelta(days=1)).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/analytics/custom_range/', {
            'start_date': (today - timedelta(days=7)).isoformat(),
            'end_date': today.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['requests'], 1)


class BlogTests(TestCase):
    """Test blog visibility, views, likes and comments"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin', UserProfile.ADMIN)
        self.donor = make_user('donor', UserProfile.DONOR)
        self.published = BlogPost.objects.create(
            title='Why donate blood', content='Every donation helps', author=self.admin, status=BlogPost.PUBLISHED
        )
        self.draft = BlogPost.objects.create(title='Upcoming camp', content='Draft notes', author=self.admin)
        self.client = APIClient()

    def test_public_listing_shows_published_only(self):
        response = self.client.get('/api/v1/blog/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['slug'], self.published.slug)

    def test_admin_sees_drafts(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/v1/blog/')
        self.assertEqual(response.data['count'], 2)

    def test_retrieve_by_slug_increments_views(self):
        self.client.get(f'/api/v1/blog/{self.published.slug}/')
        response = self.client.get(f'/api/v1/blog/{self.published.slug}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.published.refresh_from_db()
        self.assertEqual(self.published.view_count, 2)

        response = self.client.get(f'/api/v1/blog/{self.draft.slug}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_like_toggles(self):
        self.client.force_authenticate(user=self.donor)

        response = self.client.post(f'/api/v1/blog/{self.published.slug}/like/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'liked': True, 'like_count': 1})

        response = self.client.post(f'/api/v1/blog/{self.published.slug}/like/')
        self.assertEqual(response.data, {'liked': False, 'like_count': 0})

    def test_comment_on_draft_refused(self):
        self.client.force_authenticate(user=self.donor)

        response = self.client.post(f'/api/v1/blog/{self.draft.slug}/comments/', {'content': 'Nice'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(f'/api/v1/blog/{self.published.slug}/comments/', {'content': 'Nice'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.published.comments.count(), 1)

    def test_only_admin_writes_posts(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.post('/api/v1/blog/', {'title': 'Mine', 'content': 'Text'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class EventTests(TestCase):
    """Test blood camp registration over the API"""

    def setUp(self):
        cache.clear()
        self.donor = make_user('donor', UserProfile.DONOR)
        start = timezone.now() + timedelta(days=7)
        self.event = BloodCampEvent.objects.create(
            title='Campus Blood Camp',
            venue_name='Central Library',
            start_datetime=start,
            end_datetime=start + timedelta(hours=6),
            target_donors=1,
            is_published=True,
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.donor)

    def register(self, event=None):
        return self.client.post(f'/api/v1/events/{(event or self.event).id}/register/')

    def test_register(self):
        response = self.register()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['registered_count'], 1)
        self.assertIn('qr_code', response.data)

    def test_duplicate_registration(self):
        self.register()
        response = self.register()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Already registered for this event')

    def test_capacity_limit(self):
        self.register()
        self.client.force_authenticate(user=make_user('donor2', UserProfile.DONOR))
        response = self.register()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'This event has reached its donor capacity')

    def test_unpublished_event_refused(self):
        start = timezone.now() + timedelta(days=3)
        hidden = BloodCampEvent.objects.create(
            title='Staff Camp',
            venue_name='Head Office',
            start_datetime=start,
            end_datetime=start + timedelta(hours=4),
        )

        response = self.register(hidden)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(hidden.registered_donors.exists())

    def test_recipient_cannot_register(self):
        self.client.force_authenticate(user=make_user('recipient', UserProfile.RECIPIENT))
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BadgeTests(TestCase):
    """Test badge assignment and soft deletion"""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin', UserProfile.ADMIN)
        self.donor = make_user('donor', UserProfile.DONOR)
        self.badge = Badge.objects.create(name='Lifesaver', description='Saved a life')
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def test_assign_and_duplicate_conflict(self):
        url = f'/api/v1/badges/{self.badge.id}/assign/'

        response = self.client.post(url, {'user': self.donor.id, 'reason': 'First donation'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(url, {'user': self.donor.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(UserBadge.objects.filter(user=self.donor, badge=self.badge).count(), 1)

    def test_revoke(self):
        self.client.post(f'/api/v1/badges/{self.badge.id}/assign/', {'user': self.donor.id}, format='json')

        response = self.client.post(
            f'/api/v1/badges/{self.badge.id}/revoke/', {'user': self.donor.id, 'reason': 'Mistake'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(UserBadge.objects.get(user=self.donor, badge=self.badge).is_active)

    def test_destroy_is_soft_delete(self):
        response = self.client.delete(f'/api/v1/badges/{self.badge.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.badge.refresh_from_db()
        self.assertFalse(self.badge.is_active)

        response = self.client.get('/api/v1/badges/')
        self.assertEqual(response.data['count'], 0)

    def test_donor_cannot_assign(self):
        self.client.force_authenticate(user=self.donor)
        response = self.client.post(f'/api/v1/badges/{self.badge.id}/assign/', {'user': self.donor.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
