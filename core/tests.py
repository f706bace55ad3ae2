"""
Domain Service Tests
====================

Matching, eligibility, request locking, donation verification, QR cards,
reviews, availability, configuration, fallback, chat and analytics.
Run with: python manage.py test core.tests -v 2
"""

from datetime import datetime, timedelta, date
import json
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django_celery_beat.models import IntervalSchedule, PeriodicTask

from core import choices
from core.models import (
    UserProfile, DonorProfile, RecipientProfile, AdminProfile, BloodRequest,
    RequestMatch, DonationRecord, DigitalDonationCard, Leaderboard,
    LeaderboardEntry, Notification, Review, WeeklySlot,
    CustomAvailability, AuditLog, Chat, ChatMessage, Badge, UserBadge, BlogPost,
    BloodCampEvent,
)
from core.services import (
    AnalyticsService, AuditService, BadgeService, BlogService, CardService, ChatService,
    ConfigService, DonationService, EligibilityService, EventService,
    FallbackService, LeaderboardService, MatchingService, NotificationService,
    RequestService, ReviewService, VerificationService, VisibilityService,
)
from core.cache import CacheManager
from core.utils import chat_group_name, format_distance, user_group_name
from core.services.base import ServiceResponse

User = get_user_model()

DHAKA = (Decimal('23.810300'), Decimal('90.412500'))
NEARBY = (Decimal('23.750000'), Decimal('90.390000'))      # ~7 km from DHAKA
CHITTAGONG = (Decimal('22.356900'), Decimal('91.783200'))  # ~210 km from DHAKA


def make_donor(username, blood_type='O+', coords=DHAKA, verified=True, **donor_fields):
    user = User.objects.create_user(username, f'{username}@test.com', 'testpass123')
    UserProfile.objects.create(
        user=user,
        role=UserProfile.DONOR,
        blood_type=blood_type,
        latitude=coords[0],
        longitude=coords[1],
        verification_status=UserProfile.VERIFIED if verified else UserProfile.PENDING,
    )
    DonorProfile.objects.create(user=user, **donor_fields)
    return user


def make_recipient(username='recipient', coords=DHAKA):
    user = User.objects.create_user(username, f'{username}@test.com', 'testpass123')
    UserProfile.objects.create(
        user=user,
        role=UserProfile.RECIPIENT,
        blood_type='A+',
        latitude=coords[0],
        longitude=coords[1],
        verification_status=UserProfile.VERIFIED,
    )
    RecipientProfile.objects.create(
        user=user,
        emergency_contact={'name': 'Contact', 'phone': '01711111111', 'relation': 'sibling'},
    )
    return user


def make_admin(username='admin'):
    user = User.objects.create_user(username, f'{username}@test.com', 'testpass123')
    UserProfile.objects.create(
        user=user,
        role=UserProfile.ADMIN,
        verification_status=UserProfile.VERIFIED,
    )
    AdminProfile.objects.create(user=user, department='Operations', employee_id=f'EMP-{username}')
    return user


def make_request(recipient, blood_type='O+', urgency=choices.URGENCY_NORMAL, coords=DHAKA, **extra):
    fields = {
        'recipient': recipient,
        'patient_name': 'Test Patient',
        'blood_type': blood_type,
        'units_required': 1,
        'urgency': urgency,
        'hospital_name': 'Test Hospital',
        'required_by': timezone.now() + timedelta(days=2),
        'latitude': coords[0],
        'longitude': coords[1],
    }
    fields.update(extra)
    return BloodRequest.objects.create(**fields)


def request_payload(blood_type='O+', urgency=choices.URGENCY_NORMAL, coords=DHAKA):
    return {
        'patient_name': 'Test Patient',
        'blood_type': blood_type,
        'units_required': 1,
        'urgency': urgency,
        'hospital_name': 'Test Hospital',
        'required_by': timezone.now() + timedelta(days=2),
        'latitude': coords[0],
        'longitude': coords[1],
    }


class CompatibilityTests(TestCase):
    """Blood type compatibility and badge tiers"""

    def test_universal_donor_and_recipient(self):
        for blood_type in choices.BLOOD_TYPES:
            self.assertTrue(choices.check_compatibility('O-', blood_type))
            self.assertTrue(choices.check_compatibility(blood_type, 'AB+'))

    def test_incompatible_pairs(self):
        self.assertFalse(choices.check_compatibility('A+', 'O+'))
        self.assertFalse(choices.check_compatibility('B+', 'A+'))
        self.assertFalse(choices.check_compatibility('AB-', 'B-'))

    def test_badge_tiers(self):
        self.assertEqual(choices.calculate_badge_tier(0), choices.BADGE_NONE)
        self.assertEqual(choices.calculate_badge_tier(1), choices.BADGE_BRONZE)
        self.assertEqual(choices.calculate_badge_tier(10), choices.BADGE_GOLD)
        self.assertEqual(choices.calculate_badge_tier(50), choices.BADGE_DIAMOND)


class EligibilityServiceTests(TestCase):
    """Donation eligibility rules"""

    def setUp(self):
        cache.clear()
        self.donor = make_donor('donor')

    def test_first_time_donor_is_eligible(self):
        result = EligibilityService.check_donation_eligibility(self.donor)
        self.assertTrue(result['eligible'])
        self.assertEqual(result['reason'], 'First time donor')
        self.assertTrue(result['is_first_time'])

    def test_cooldown_blocks_recent_donor(self):
        DonationRecord.objects.create(
            donor=self.donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=30),
            verification_status=DonationRecord.VERIFIED,
        )
        result = EligibilityService.check_donation_eligibility(self.donor)
        self.assertFalse(result['eligible'])
        self.assertEqual(result['reason'], 'Must wait 90 days between donations')
        self.assertEqual(result['days_remaining'], 60)

    def test_rejected_donation_does_not_count(self):
        DonationRecord.objects.create(
            donor=self.donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=10),
            verification_status=DonationRecord.REJECTED,
        )
        self.assertTrue(EligibilityService.is_eligible(self.donor))

    def test_eligible_after_cooldown(self):
        DonationRecord.objects.create(
            donor=self.donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=120),
            verification_status=DonationRecord.VERIFIED,
        )
        result = EligibilityService.check_donation_eligibility(self.donor)
        self.assertTrue(result['eligible'])

    def test_unverified_and_unavailable(self):
        pending = make_donor('pending', verified=False)
        self.assertEqual(
            EligibilityService.check_donation_eligibility(pending)['reason'],
            'Donor account not verified'
        )

        DonorProfile.objects.filter(user=self.donor).update(is_available=False)
        self.assertEqual(
            EligibilityService.check_donation_eligibility(User.objects.get(id=self.donor.id))['reason'],
            'Donor marked as unavailable'
        )

    def test_age_bounds(self):
        UserProfile.objects.filter(user=self.donor).update(
            date_of_birth=timezone.localdate() - timedelta(days=365 * 16)
        )
        result = EligibilityService.check_donation_eligibility(User.objects.get(id=self.donor.id))
        self.assertFalse(result['eligible'])
        self.assertIn('at least 18', result['reason'])

    def test_cached_eligibility_refreshes_on_donation(self):
        self.assertTrue(EligibilityService.check_donation_eligibility(self.donor, use_cache=True)['eligible'])
        self.assertIsNotNone(CacheManager.get_eligibility(self.donor.id))

        DonationRecord.objects.create(
            donor=self.donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=30),
            verification_status=DonationRecord.VERIFIED,
        )

        result = EligibilityService.check_donation_eligibility(self.donor, use_cache=True)
        self.assertFalse(result['eligible'])

    def test_cached_eligibility_follows_settings(self):
        admin = make_admin()
        DonationRecord.objects.create(
            donor=self.donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=60),
            verification_status=DonationRecord.VERIFIED,
        )
        self.assertFalse(EligibilityService.check_donation_eligibility(self.donor, use_cache=True)['eligible'])

        ConfigService.update_section(admin, 'donation_settings', {'cooldown_days': 45}, 'Shorter cooldown approved')

        self.assertTrue(EligibilityService.check_donation_eligibility(self.donor, use_cache=True)['eligible'])

    def test_cached_eligibility_is_reused(self):
        EligibilityService.check_donation_eligibility(self.donor, use_cache=True)
        DonorProfile.objects.filter(user=self.donor).update(is_available=False)

        fresh_donor = User.objects.get(id=self.donor.id)
        self.assertTrue(EligibilityService.check_donation_eligibility(fresh_donor, use_cache=True)['eligible'])
        self.assertFalse(EligibilityService.check_donation_eligibility(fresh_donor)['eligible'])

    def test_availability_toggle_clears_cached_eligibility(self):
        EligibilityService.check_donation_eligibility(self.donor, use_cache=True)
        donor_profile = DonorProfile.objects.get(user=self.donor)
        donor_profile.is_available = False
        donor_profile.save()

        fresh_donor = User.objects.get(id=self.donor.id)
        result = EligibilityService.check_donation_eligibility(fresh_donor, use_cache=True)
        self.assertEqual(result['reason'], 'Donor marked as unavailable')

    def test_future_donation_date_is_invalid(self):
        error = EligibilityService.validate_donation_date(timezone.now() + timedelta(days=1))
        self.assertEqual(error, "Donation date cannot be in the future")


class MatchingServiceTests(TestCase):
    """Compatible donor search and scoring"""

    def setUp(self):
        cache.clear()
        self.exact = make_donor('exact', blood_type='A+', coords=NEARBY)
        self.universal = make_donor('universal', blood_type='O-', coords=DHAKA)
        self.incompatible = make_donor('incompatible', blood_type='B+', coords=DHAKA)
        self.far = make_donor('far', blood_type='O-', coords=CHITTAGONG)
        self.unverified = make_donor('unverified', blood_type='A+', verified=False)

    def test_only_compatible_nearby_verified_donors(self):
        results = MatchingService.find_compatible_donors('A+', 23.8103, 90.4125, radius_km=50)
        donors = {result['donor'] for result in results}
        self.assertEqual(donors, {self.exact, self.universal})

    def test_scores_sorted_descending(self):
        results = MatchingService.find_compatible_donors('A+', 23.8103, 90.4125, radius_km=50)
        scores = [result['score'] for result in results]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_exclude_and_limit(self):
        results = MatchingService.find_compatible_donors(
            'A+', 23.8103, 90.4125, radius_km=50, exclude=[self.universal.id]
        )
        self.assertEqual([r['donor'] for r in results], [self.exact])

        results = MatchingService.find_compatible_donors('A+', 23.8103, 90.4125, radius_km=50, limit=1)
        self.assertEqual(len(results), 1)

    def test_donor_in_cooldown_is_skipped(self):
        DonationRecord.objects.create(
            donor=self.universal,
            blood_type='O-',
            donation_date=timezone.now() - timedelta(days=5),
        )
        results = MatchingService.find_compatible_donors('A+', 23.8103, 90.4125, radius_km=50)
        self.assertNotIn(self.universal, [r['donor'] for r in results])

    def test_match_score_formula(self):
        score = MatchingService.calculate_match_score(
            distance_km=10, total_donations=2, urgency=choices.URGENCY_CRITICAL,
            urgent_only=False, exact_match=True, last_login=timezone.now() - timedelta(days=2),
        )
        # 100 - 5 + 10 - 20 + 10 + 15
        self.assertEqual(score, 110)

        floored = MatchingService.calculate_match_score(
            distance_km=400, total_donations=0, urgency=choices.URGENCY_NORMAL,
            urgent_only=False, exact_match=False,
        )
        self.assertEqual(floored, 0)

    def test_search_requires_coordinates(self):
        response = MatchingService.search_donors({'blood_type': 'A+'})
        self.assertFalse(response.success)
        self.assertIn('latitude', response.message)


class BloodRequestLifecycleTests(TestCase):
    """Request creation, donor responses and locking"""

    def setUp(self):
        cache.clear()
        self.recipient = make_recipient()
        self.donor1 = make_donor('donor1', blood_type='O+')
        self.donor2 = make_donor('donor2', blood_type='O-', coords=NEARBY)

    def test_create_request_matches_and_notifies(self):
        response = RequestService.create_request(self.recipient, request_payload())

        self.assertTrue(response.success)
        blood_request = response.data['request']
        self.assertEqual(response.data['donors_notified'], 2)
        self.assertEqual(blood_request.matches.count(), 2)
        self.assertEqual(
            Notification.objects.filter(notification_type=Notification.REQUEST_CREATED).count(), 2
        )
        self.assertEqual(RecipientProfile.objects.get(user=self.recipient).total_requests, 1)

    def test_only_recipients_create_requests(self):
        response = RequestService.create_request(self.donor1, request_payload())
        self.assertFalse(response.success)
        self.assertEqual(response.message, "Only recipients can create blood requests")

    def test_required_by_must_be_future(self):
        payload = request_payload()
        payload['required_by'] = timezone.now() - timedelta(hours=1)
        response = RequestService.create_request(self.recipient, payload)
        self.assertFalse(response.success)

    def test_active_request_cap(self):
        for _ in range(3):
            self.assertTrue(RequestService.create_request(self.recipient, request_payload()).success)
        response = RequestService.create_request(self.recipient, request_payload())
        self.assertFalse(response.success)
        self.assertIn('at most 3', response.message)

    def test_accept_locks_request(self):
        blood_request = make_request(self.recipient)

        response = RequestService.respond_to_request(blood_request.id, self.donor1, RequestService.ACCEPT)

        self.assertTrue(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.MATCHED)
        self.assertTrue(blood_request.has_active_lock())
        self.assertEqual(blood_request.locked_by, self.donor1)
        self.assertEqual(response.data['match'].response, RequestMatch.ACCEPTED)
        self.assertTrue(
            Notification.objects.filter(user=self.recipient, notification_type=Notification.REQUEST_MATCHED).exists()
        )

    def test_second_donor_cannot_accept(self):
        blood_request = make_request(self.recipient)
        RequestService.respond_to_request(blood_request.id, self.donor1, RequestService.ACCEPT)

        response = RequestService.respond_to_request(blood_request.id, self.donor2, RequestService.ACCEPT)

        self.assertFalse(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.locked_by, self.donor1)

    def test_lock_conflict_on_pending_request(self):
        blood_request = make_request(self.recipient)
        blood_request.acquire_lock(self.donor1)

        response = RequestService.respond_to_request(blood_request.id, self.donor2, RequestService.ACCEPT)

        self.assertFalse(response.success)
        self.assertEqual(response.code, ServiceResponse.CONFLICT)

    def test_expired_lock_is_released_lazily(self):
        blood_request = make_request(self.recipient)
        blood_request.acquire_lock(self.donor1)
        BloodRequest.objects.filter(id=blood_request.id).update(
            lock_expires_at=timezone.now() - timedelta(minutes=1)
        )

        response = RequestService.respond_to_request(blood_request.id, self.donor2, RequestService.ACCEPT)

        self.assertTrue(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.locked_by, self.donor2)

    def test_lock_holder_decline_reverts_to_pending(self):
        blood_request = make_request(self.recipient)
        RequestService.respond_to_request(blood_request.id, self.donor1, RequestService.ACCEPT)

        response = RequestService.respond_to_request(
            blood_request.id, self.donor1, RequestService.DECLINE, reason='Feeling unwell'
        )

        self.assertTrue(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.PENDING)
        self.assertFalse(blood_request.is_locked)
        self.assertEqual(response.data['match'].decline_reason, 'Feeling unwell')

    def test_incompatible_donor_cannot_accept(self):
        blood_request = make_request(self.recipient, blood_type='O-')
        response = RequestService.respond_to_request(blood_request.id, self.donor1, RequestService.ACCEPT)
        self.assertFalse(response.success)
        self.assertIn('not compatible', response.message)

    def test_cancel_request(self):
        blood_request = make_request(self.recipient)
        response = RequestService.cancel_request(blood_request.id, self.recipient, 'Found blood elsewhere')

        self.assertTrue(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.CANCELLED)
        self.assertEqual(blood_request.cancelled_by, self.recipient)

        again = RequestService.cancel_request(blood_request.id, self.recipient)
        self.assertFalse(again.success)

    def test_other_user_cannot_cancel(self):
        blood_request = make_request(self.recipient)
        response = RequestService.cancel_request(blood_request.id, self.donor1)
        self.assertEqual(response.code, ServiceResponse.FORBIDDEN)

    def test_overdue_request_expires(self):
        blood_request = make_request(self.recipient)
        BloodRequest.objects.filter(id=blood_request.id).update(required_by=timezone.now() - timedelta(hours=1))

        self.assertEqual(RequestService.expire_overdue_requests(), 1)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.EXPIRED)

    def test_overdue_request_cannot_be_accepted(self):
        blood_request = make_request(self.recipient)
        BloodRequest.objects.filter(id=blood_request.id).update(required_by=timezone.now() - timedelta(hours=1))

        response = RequestService.respond_to_request(blood_request.id, self.donor1, RequestService.ACCEPT)

        self.assertFalse(response.success)
        self.assertIn('expired', response.message)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.EXPIRED)
        self.assertFalse(blood_request.is_locked)
        self.assertFalse(RequestMatch.objects.filter(blood_request=blood_request, donor=self.donor1).exists())

    def test_update_completing_units_counts_fulfilment(self):
        blood_request = make_request(self.recipient, units_required=3)
        BloodRequest.objects.filter(id=blood_request.id).update(total_units_fulfilled=2)

        response = RequestService.update_request(blood_request.id, self.recipient, {'units_required': 2})

        self.assertTrue(response.success)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.FULFILLED)
        self.assertEqual(RecipientProfile.objects.get(user=self.recipient).fulfilled_requests, 1)

    def test_search_radius_bounds(self):
        self.assertFalse(RequestService.update_search_radius(self.donor1, 500).success)
        response = RequestService.update_search_radius(self.donor1, 80)
        self.assertTrue(response.success)
        self.assertEqual(DonorProfile.objects.get(user=self.donor1).availability_radius, 80)


class VisibilityServiceTests(TestCase):
    """Which requests a donor can see"""

    def setUp(self):
        cache.clear()
        self.recipient = make_recipient()
        self.donor = make_donor('donor', blood_type='O+', availability_radius=50)

    def test_within_radius(self):
        blood_request = make_request(self.recipient, blood_type='A+', coords=NEARBY)
        result = VisibilityService.check_request_visibility(blood_request, self.donor)
        self.assertTrue(result['visible'])
        self.assertEqual(result['reason'], VisibilityService.WITHIN_CRITERIA)

    def test_outside_radius_hidden_unless_urgent(self):
        normal = make_request(self.recipient, coords=CHITTAGONG)
        critical = make_request(self.recipient, urgency=choices.URGENCY_CRITICAL, coords=CHITTAGONG)

        self.assertEqual(
            VisibilityService.check_request_visibility(normal, self.donor)['reason'],
            VisibilityService.OUTSIDE_RADIUS
        )
        result = VisibilityService.check_request_visibility(critical, self.donor)
        self.assertTrue(result['visible'])
        self.assertEqual(result['reason'], VisibilityService.URGENT_BYPASS)

    def test_incompatible_hidden(self):
        blood_request = make_request(self.recipient, blood_type='O-')
        result = VisibilityService.check_request_visibility(blood_request, self.donor)
        self.assertFalse(result['visible'])
        self.assertEqual(result['reason'], VisibilityService.INCOMPATIBLE)

    def test_visible_list_sorted_by_urgency(self):
        make_request(self.recipient, urgency=choices.URGENCY_NORMAL)
        critical = make_request(self.recipient, urgency=choices.URGENCY_CRITICAL)
        make_request(self.recipient, coords=CHITTAGONG)

        response = VisibilityService.get_visible_requests_for_donor(self.donor)

        self.assertTrue(response.success)
        self.assertEqual(response.data['summary']['total_visible'], 2)
        self.assertEqual(response.data['summary']['critical_count'], 1)
        self.assertEqual(response.data['results'][0]['request'], critical)


class DonationVerificationTests(TestCase):
    """Recording, verification, points, cards and immutability"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.recipient = make_recipient()
        self.donor = make_donor('donor', blood_type='O+')

    def test_record_against_request_fulfills_it(self):
        blood_request = make_request(self.recipient, units_required=2)

        response = DonationService.record_donation(self.donor, {
            'blood_request': blood_request.id,
            'units_provided': 2,
        })

        self.assertTrue(response.success)
        donation = response.data
        self.assertEqual(donation.verification_status, DonationRecord.PENDING)
        self.assertEqual(donation.recipient, self.recipient)
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.total_units_fulfilled, 2)
        self.assertEqual(blood_request.status, BloodRequest.FULFILLED)
        self.assertEqual(RecipientProfile.objects.get(user=self.recipient).fulfilled_requests, 1)
        self.assertTrue(
            RequestMatch.objects.filter(
                blood_request=blood_request, donor=self.donor, response=RequestMatch.ACCEPTED
            ).exists()
        )

    def test_record_refused_while_another_donor_holds_lock(self):
        other = make_donor('other', blood_type='O-')
        blood_request = make_request(self.recipient)
        RequestService.respond_to_request(blood_request.id, other, RequestService.ACCEPT)

        response = DonationService.record_donation(self.donor, {'blood_request': blood_request.id})

        self.assertFalse(response.success)
        self.assertEqual(response.code, ServiceResponse.CONFLICT)

    def test_record_refused_against_overdue_request(self):
        blood_request = make_request(self.recipient)
        BloodRequest.objects.filter(id=blood_request.id).update(required_by=timezone.now() - timedelta(hours=1))

        response = DonationService.record_donation(self.donor, {'blood_request': blood_request.id})

        self.assertFalse(response.success)
        self.assertFalse(DonationRecord.objects.filter(donor=self.donor).exists())
        blood_request.refresh_from_db()
        self.assertEqual(blood_request.status, BloodRequest.EXPIRED)
        self.assertEqual(blood_request.total_units_fulfilled, 0)

    def test_record_refused_during_cooldown(self):
        DonationService.record_donation(self.donor, {})
        response = DonationService.record_donation(self.donor, {})
        self.assertFalse(response.success)
        self.assertIn('Must wait', response.message)

    def test_verify_awards_points_and_issues_card(self):
        donation = DonationService.record_donation(self.donor, {}).data

        response = DonationService.verify_donation(donation.id, self.admin)

        self.assertTrue(response.success)
        donation.refresh_from_db()
        self.assertTrue(donation.is_locked)
        self.assertEqual(donation.verification_status, DonationRecord.VERIFIED)

        donor_profile = DonorProfile.objects.get(user=self.donor)
        self.assertEqual(donor_profile.total_donations, 1)
        self.assertEqual(donor_profile.badge, choices.BADGE_BRONZE)

        card = response.data['card']
        self.assertTrue(card.card_number.startswith('BB-'))
        self.assertTrue(card.qr_image.startswith('data:image/png;base64,'))
        self.assertTrue(card.is_valid)

        # 100 per donation + 50 first donation bonus, on every period
        for period in Leaderboard.PERIODS:
            entry = LeaderboardEntry.objects.get(leaderboard=Leaderboard.get_current(period), donor=self.donor)
            self.assertEqual(entry.points, 150)
            self.assertEqual(entry.rank, 1)

        self.assertTrue(AuditLog.objects.filter(action='donation_verified').exists())

    def test_verify_twice_fails(self):
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)

        response = DonationService.verify_donation(donation.id, self.admin)
        self.assertFalse(response.success)
        self.assertEqual(DigitalDonationCard.objects.count(), 1)

    def test_reject_requires_reason(self):
        donation = DonationService.record_donation(self.donor, {}).data
        self.assertFalse(DonationService.reject_donation(donation.id, self.admin, '').success)

        response = DonationService.reject_donation(donation.id, self.admin, 'Incomplete paperwork')
        self.assertTrue(response.success)
        self.assertEqual(response.data.verification_status, DonationRecord.REJECTED)

    def test_locked_record_refuses_update(self):
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)

        response = DonationService.update_donation(donation.id, self.admin, {'notes': 'changed'})

        self.assertFalse(response.success)
        self.assertIn('locked', response.message)

    def test_override_requires_reason_and_keeps_history(self):
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)

        short = DonationService.admin_override(donation.id, self.admin, {'notes': 'x'}, 'typo')
        self.assertFalse(short.success)

        response = DonationService.admin_override(
            donation.id, self.admin, {'units_provided': 2}, 'Corrected unit count from hospital log'
        )
        self.assertTrue(response.success)
        donation.refresh_from_db()
        self.assertEqual(donation.units_provided, 2)
        self.assertEqual(len(donation.override_history), 1)
        self.assertEqual(donation.override_history[0]['before'], {'units_provided': 1})
        self.assertTrue(AuditLog.objects.filter(category='data_correction', action='donation_override').exists())

    def test_unlock_then_update(self):
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)

        self.assertTrue(DonationService.unlock_donation(donation.id, self.admin, 'Correcting center name').success)
        response = DonationService.update_donation(donation.id, self.admin, {'center_name': 'City Blood Bank'})
        self.assertTrue(response.success)

    def test_count_validation_and_sync(self):
        donation = DonationService.record_donation(self.donor, {}).data
        DonationService.verify_donation(donation.id, self.admin)
        DonorProfile.objects.filter(user=self.donor).update(total_donations=7)

        self.assertFalse(DonationService.validate_donation_count(self.donor).data['is_valid'])
        result = DonationService.sync_all_donation_counts()
        self.assertEqual(result['fixed'], 1)
        self.assertEqual(DonorProfile.objects.get(user=self.donor).total_donations, 1)


class LeaderboardServiceTests(TestCase):
    """Points table and rankings"""

    def setUp(self):
        cache.clear()

    def test_donation_points(self):
        self.assertEqual(LeaderboardService.calculate_donation_points(1), 100)
        self.assertEqual(LeaderboardService.calculate_donation_points(1, choices.URGENCY_URGENT), 150)
        self.assertEqual(LeaderboardService.calculate_donation_points(3, choices.URGENCY_CRITICAL), 240)

    def test_milestone_bonus(self):
        self.assertEqual(LeaderboardService.milestone_bonus(1), 50)
        self.assertEqual(LeaderboardService.milestone_bonus(10), 500)
        self.assertEqual(LeaderboardService.milestone_bonus(11), 0)

    def test_rankings_and_rank_change(self):
        leaderboard = Leaderboard.get_current(Leaderboard.ALL_TIME)
        low = make_donor('low')
        high = make_donor('high')
        low_entry = LeaderboardEntry.objects.create(leaderboard=leaderboard, donor=low, points=300)
        high_entry = LeaderboardEntry.objects.create(leaderboard=leaderboard, donor=high, points=100)
        LeaderboardService.update_rankings(leaderboard)

        LeaderboardEntry.objects.filter(id=high_entry.id).update(points=500)
        LeaderboardService.update_rankings(leaderboard)

        high_entry.refresh_from_db()
        low_entry.refresh_from_db()
        self.assertEqual(high_entry.rank, 1)
        self.assertEqual(high_entry.rank_change, LeaderboardEntry.UP)
        self.assertEqual(low_entry.rank_change, LeaderboardEntry.DOWN)

    def test_unranked_donor(self):
        donor = make_donor('donor')
        response = LeaderboardService.get_donor_rank(donor)
        self.assertTrue(response.success)
        self.assertEqual(response.data['message'], 'Not ranked yet')

    def test_invalid_period(self):
        self.assertFalse(LeaderboardService.get_leaderboard('daily').success)


class CardServiceTests(TestCase):
    """Signed QR payloads"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.donor = make_donor('donor')
        donation = DonationService.record_donation(self.donor, {}).data
        self.card = DonationService.verify_donation(donation.id, self.admin).data['card']

    def test_valid_qr_counts_verification(self):
        response = CardService.verify_qr(self.card.qr_payload)

        self.assertTrue(response.success)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['card_number'], self.card.card_number)
        self.assertEqual(response.data['verification_count'], 1)

    def test_json_string_payload(self):
        response = CardService.verify_qr(json.dumps(self.card.qr_payload))
        self.assertTrue(response.success)

    def test_tampered_signature(self):
        payload = dict(self.card.qr_payload, donor_id=self.card.donor_id + 100)
        response = CardService.verify_qr(payload)
        self.assertFalse(response.success)
        self.assertEqual(response.message, "Invalid QR code signature")

    def test_malformed_payload(self):
        self.assertEqual(CardService.verify_qr('not json').message, "Invalid QR code format")
        self.assertEqual(CardService.verify_qr({'card_number': 'x'}).message, "Invalid QR code format")

    def test_old_payload_expired(self):
        payload = dict(self.card.qr_payload, timestamp=self.card.qr_payload['timestamp'] - CardService.QR_MAX_AGE_MS - 1000)
        response = CardService.verify_qr(payload)
        self.assertEqual(response.message, "QR code has expired")

    def test_revoked_card(self):
        self.assertFalse(CardService.revoke_card(self.card.id, self.admin, '').success)
        self.assertTrue(CardService.revoke_card(self.card.id, self.admin, 'Donation record disputed').success)

        response = CardService.verify_qr(self.card.qr_payload)
        self.assertFalse(response.success)
        self.assertEqual(response.message, "Card has been revoked")
        self.assertFalse(CardService.regenerate_qr(self.card.id, self.donor).success)

    def test_other_donor_cannot_view_card(self):
        other = make_donor('other')
        response = CardService.get_card(self.card.card_number, other)
        self.assertEqual(response.code, ServiceResponse.FORBIDDEN)

    def test_event_qr_signature(self):
        result = CardService.generate_event_qr(7, self.donor.id)
        expected = CardService.generate_signature({
            'event_id': 7,
            'donor_id': self.donor.id,
            'registration_id': f'7-{self.donor.id}',
        })
        self.assertEqual(result['qr_data']['signature'], expected)
        self.assertTrue(result['qr_code'].startswith('data:image/png;base64,'))


class ReviewServiceTests(TestCase):
    """Reviews, reports and moderation"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.recipient = make_recipient()
        self.donor = make_donor('donor')

    def test_no_self_review(self):
        response = ReviewService.create_review(self.donor, {'reviewee': self.donor, 'rating': 5})
        self.assertFalse(response.success)
        self.assertEqual(response.message, "You cannot review yourself")

    def test_rating_range(self):
        response = ReviewService.create_review(self.recipient, {'reviewee': self.donor, 'rating': 6})
        self.assertFalse(response.success)

    def test_review_points_for_ranked_donor(self):
        leaderboard = Leaderboard.get_current(Leaderboard.ALL_TIME)
        LeaderboardEntry.objects.create(leaderboard=leaderboard, donor=self.donor, points=100)

        response = ReviewService.create_review(self.recipient, {'reviewee': self.donor, 'rating': 5})

        self.assertTrue(response.success)
        entry = LeaderboardEntry.objects.get(leaderboard=leaderboard, donor=self.donor)
        self.assertEqual(entry.points, 110)
        self.assertEqual(entry.review_points, 10)
        self.assertEqual(ReviewService.get_average_rating(self.donor.id)['average_rating'], 5)

    def test_reports_auto_hide(self):
        review = ReviewService.create_review(self.recipient, {'reviewee': self.donor, 'rating': 1}).data
        reporters = [make_donor(f'reporter{i}') for i in range(Review.AUTO_HIDE_REPORTS)]

        for reporter in reporters[:-1]:
            self.assertFalse(ReviewService.report_review(review.id, reporter, 'spam').data['auto_hidden'])
        response = ReviewService.report_review(review.id, reporters[-1], 'spam')

        self.assertTrue(response.data['auto_hidden'])
        review.refresh_from_db()
        self.assertEqual(review.status, Review.PENDING)
        self.assertNotIn(review, ReviewService.list_reviews())

    def test_duplicate_and_own_report(self):
        review = ReviewService.create_review(self.recipient, {'reviewee': self.donor, 'rating': 4}).data
        self.assertTrue(ReviewService.report_review(review.id, self.donor).success)
        self.assertEqual(ReviewService.report_review(review.id, self.donor).code, ServiceResponse.CONFLICT)
        self.assertFalse(ReviewService.report_review(review.id, self.recipient).success)

    def test_reject_requires_reason(self):
        review = ReviewService.create_review(self.recipient, {'reviewee': self.donor, 'rating': 4}).data
        self.assertFalse(ReviewService.reject_review(review.id, self.admin, 'bad').success)

        response = ReviewService.reject_review(review.id, self.admin, 'Contains personal information')
        self.assertTrue(response.success)
        self.assertEqual(response.data.status, Review.REJECTED)


class AvailabilityTests(TestCase):
    """Weekly slots and custom overrides"""

    def setUp(self):
        cache.clear()
        self.donor = make_donor('donor')
        self.profile = DonorProfile.objects.get(user=self.donor)
        self.profile.schedule_enabled = True
        self.profile.save()
        tz = ZoneInfo(choices.DEFAULT_TIMEZONE)
        # Monday 10:00 and 20:00 in Dhaka
        self.monday_morning = datetime(2026, 10, 19, 10, 0, tzinfo=tz)
        self.monday_evening = datetime(2026, 10, 19, 20, 0, tzinfo=tz)

    def test_disabled_schedule_uses_flag(self):
        self.profile.schedule_enabled = False
        self.assertTrue(self.profile.is_available_at(self.monday_evening))

    def test_weekly_slot(self):
        WeeklySlot.objects.create(donor=self.profile, day_of_week=1, start_time='09:00', end_time='17:00')

        self.assertTrue(self.profile.is_available_at(self.monday_morning))
        available, reason = self.profile.availability_at(self.monday_evening)
        self.assertFalse(available)
        self.assertEqual(reason, "Outside scheduled availability")

    def test_custom_entry_overrides_slot(self):
        WeeklySlot.objects.create(donor=self.profile, day_of_week=1, start_time='09:00', end_time='17:00')
        CustomAvailability.objects.create(
            donor=self.profile,
            start_date=date(2026, 10, 18),
            end_date=date(2026, 10, 25),
            is_available=False,
            reason='On leave',
        )

        available, reason = self.profile.availability_at(self.monday_morning)
        self.assertFalse(available)
        self.assertEqual(reason, "Custom availability: On leave")

    def test_unavailable_flag_wins(self):
        self.profile.is_available = False
        self.assertFalse(self.profile.is_available_at(self.monday_morning))

    def test_service_validates_slot(self):
        from core.services import AvailabilityService

        response = AvailabilityService.add_weekly_slot(
            self.donor, {'day_of_week': 1, 'start_time': '17:00', 'end_time': '09:00'}
        )
        self.assertFalse(response.success)

        response = AvailabilityService.add_weekly_slot(
            self.donor, {'day_of_week': 0, 'start_time': '08:00', 'end_time': '12:00'}
        )
        self.assertTrue(response.success)
        self.assertEqual(self.profile.weekly_slots.count(), 1)


class ConfigServiceTests(TestCase):
    """Runtime configuration updates"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()

    def test_defaults(self):
        config = ConfigService.get_config()
        self.assertEqual(config['donation_settings']['cooldown_days'], 90)
        self.assertFalse(config['maintenance_mode']['enabled'])
        self.assertNotIn('fallback_settings', ConfigService.get_public_config())

    def test_reason_required(self):
        response = ConfigService.update_section(self.admin, 'donation_settings', {'cooldown_days': 120}, 'short')
        self.assertFalse(response.success)

    def test_range_validation(self):
        response = ConfigService.update_section(
            self.admin, 'donation_settings', {'cooldown_days': 10}, 'Policy change from board'
        )
        self.assertFalse(response.success)
        self.assertIn('cooldown_days', response.errors)

    def test_update_applies_and_records_history(self):
        response = ConfigService.update_section(
            self.admin, 'donation_settings', {'cooldown_days': 120}, 'Policy change from board'
        )

        self.assertTrue(response.success)
        self.assertEqual(ConfigService.get_setting('donation_settings', 'cooldown_days'), 120)
        history = ConfigService.get_history()
        self.assertEqual(history[0]['section'], 'donation_settings')
        self.assertTrue(AuditLog.objects.filter(category='system_config').exists())

    def test_cooldown_change_affects_eligibility(self):
        donor = make_donor('donor')
        DonationRecord.objects.create(
            donor=donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=100),
            verification_status=DonationRecord.VERIFIED,
        )
        self.assertTrue(EligibilityService.is_eligible(donor))

        ConfigService.update_section(self.admin, 'donation_settings', {'cooldown_days': 120}, 'Policy change from board')
        self.assertFalse(EligibilityService.is_eligible(donor))

    def test_fallback_settings_sync_beat_schedule(self):
        response = ConfigService.update_section(
            self.admin, 'fallback_settings',
            {'auto_run_enabled': True, 'auto_run_interval_hours': 6},
            'Enable automatic escalation',
        )
        self.assertTrue(response.success)

        task = PeriodicTask.objects.get(name=FallbackService.SCHEDULE_NAME)
        self.assertTrue(task.enabled)
        self.assertEqual(task.task, 'core.tasks.run_fallback_system')
        self.assertEqual(task.interval.every, 6)
        self.assertEqual(task.interval.period, IntervalSchedule.HOURS)

        ConfigService.update_section(
            self.admin, 'fallback_settings', {'auto_run_enabled': False}, 'Pause automatic escalation'
        )
        task.refresh_from_db()
        self.assertFalse(task.enabled)
        self.assertEqual(PeriodicTask.objects.filter(name=FallbackService.SCHEDULE_NAME).count(), 1)


class FallbackServiceTests(TestCase):
    """Escalation for unmatched requests"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.recipient = make_recipient()
        self.resting = make_donor('resting', blood_type='O-', is_available=False)

    def _stale_request(self, **kwargs):
        blood_request = make_request(self.recipient, **kwargs)
        BloodRequest.objects.filter(id=blood_request.id).update(created_at=timezone.now() - timedelta(hours=8))
        return blood_request

    def test_detects_only_stale_unmatched(self):
        stale = self._stale_request()
        make_request(self.recipient)
        accepted = self._stale_request()
        RequestMatch.objects.create(blood_request=accepted, donor=self.resting, response=RequestMatch.ACCEPTED)

        self.assertEqual(list(FallbackService.detect_unmatched_requests()), [stale])

    def test_process_critical_request(self):
        blood_request = self._stale_request(urgency=choices.URGENCY_CRITICAL)

        response = FallbackService.process_fallback(blood_request.id)

        self.assertTrue(response.success)
        self.assertEqual(response.data['actions'], [
            'radius_expanded',
            'notified_1_unavailable_donors',
            'facilities_suggested',
            'admin_notified',
        ])
        blood_request.refresh_from_db()
        self.assertTrue(blood_request.radius_expanded)
        self.assertEqual(blood_request.search_radius, 100)
        self.assertEqual(len(blood_request.nearby_facilities), 3)
        self.assertTrue(blood_request.admin_notified)
        self.assertTrue(Notification.objects.filter(user=self.admin).exists())

    def test_run_fallback_system(self):
        self._stale_request()
        result = FallbackService.run_fallback_system()
        self.assertEqual(result['total'], 1)
        self.assertEqual(result['successful'], 1)

    def test_consent_expands_radius(self):
        blood_request = make_request(self.recipient)
        response = FallbackService.set_expansion_consent(blood_request.id, self.recipient, True)

        self.assertTrue(response.success)
        self.assertTrue(response.data.radius_expanded)
        self.assertTrue(response.data.radius_expansion_consent)

    def test_only_recipient_gives_consent(self):
        blood_request = make_request(self.recipient)
        response = FallbackService.set_expansion_consent(blood_request.id, self.admin, True)
        self.assertEqual(response.code, ServiceResponse.FORBIDDEN)


class ChatServiceTests(TestCase):
    """Conversations, reports and moderation"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.recipient = make_recipient()
        self.donor = make_donor('donor')
        self.outsider = make_donor('outsider')

    def _open_chat(self, **kwargs):
        return ChatService.get_or_create_chat(self.recipient, self.donor.id, **kwargs).data['chat']

    def test_chat_is_reused_between_the_same_pair(self):
        first = ChatService.get_or_create_chat(self.recipient, self.donor.id)
        second = ChatService.get_or_create_chat(self.donor, self.recipient.id)

        self.assertTrue(first.data['created'])
        self.assertFalse(second.data['created'])
        self.assertEqual(first.data['chat'].id, second.data['chat'].id)
        self.assertEqual(first.data['chat'].participants.count(), 2)

    def test_chat_attaches_blood_request(self):
        blood_request = make_request(self.recipient)
        chat = self._open_chat(blood_request_id=blood_request.id)
        self.assertEqual(chat.blood_request, blood_request)

        response = ChatService.get_or_create_chat(self.recipient, self.donor.id, blood_request_id=99999)
        self.assertEqual(response.code, ServiceResponse.NOT_FOUND)

    def test_cannot_chat_with_self_or_unknown_user(self):
        self.assertFalse(ChatService.get_or_create_chat(self.donor, self.donor.id))
        response = ChatService.get_or_create_chat(self.donor, 99999)
        self.assertEqual(response.code, ServiceResponse.NOT_FOUND)

    def test_send_message_notifies_other_participant(self):
        chat = self._open_chat()

        response = ChatService.send_message(chat.id, self.recipient, '  Can you come tomorrow?  ')

        self.assertTrue(response.success)
        self.assertEqual(response.data.content, 'Can you come tomorrow?')
        chat.refresh_from_db()
        self.assertEqual(chat.last_message, 'Can you come tomorrow?')
        self.assertIsNotNone(chat.last_message_at)
        notification = Notification.objects.get(user=self.donor, notification_type=Notification.CHAT_MESSAGE)
        self.assertEqual(notification.data['chat_id'], chat.id)
        self.assertEqual(chat.unread_count(self.donor), 1)
        self.assertEqual(chat.unread_count(self.recipient), 0)

    def test_send_message_validation(self):
        chat = self._open_chat()
        self.assertFalse(ChatService.send_message(chat.id, self.recipient, '   '))
        self.assertFalse(ChatService.send_message(chat.id, self.recipient, 'x' * 2001))

    def test_non_participant_is_refused(self):
        chat = self._open_chat()
        ChatService.send_message(chat.id, self.recipient, 'Hello there')

        self.assertEqual(ChatService.send_message(chat.id, self.outsider, 'Hi').code, ServiceResponse.FORBIDDEN)
        self.assertEqual(ChatService.get_messages(chat.id, self.outsider).code, ServiceResponse.FORBIDDEN)

    def test_reading_messages_marks_them_read(self):
        chat = self._open_chat()
        ChatService.send_message(chat.id, self.recipient, 'Hello there')

        response = ChatService.get_messages(chat.id, self.donor)

        self.assertEqual(response.data.count(), 1)
        self.assertEqual(chat.unread_count(self.donor), 0)
        self.assertTrue(ChatMessage.objects.get(chat=chat).is_read)

    def test_report_rules(self):
        chat = self._open_chat()
        message = ChatService.send_message(chat.id, self.recipient, 'Send money first').data

        self.assertFalse(ChatService.report_message(message.id, self.donor, 'too short', 'scam'))
        self.assertFalse(ChatService.report_message(message.id, self.donor, 'Asked me for payment', 'fraud'))
        self.assertFalse(ChatService.report_message(message.id, self.recipient, 'Reporting myself here', 'spam'))
        self.assertEqual(
            ChatService.report_message(message.id, self.outsider, 'Asked me for payment', 'scam').code,
            ServiceResponse.FORBIDDEN
        )

        response = ChatService.report_message(message.id, self.donor, 'Asked me for payment', 'scam')
        self.assertTrue(response.success)
        self.assertEqual(response.data['report_count'], 1)

        again = ChatService.report_message(message.id, self.donor, 'Asked me for payment', 'scam')
        self.assertEqual(again.code, ServiceResponse.CONFLICT)

    def test_flag_and_hide_are_audited(self):
        chat = self._open_chat()
        message = ChatService.send_message(chat.id, self.recipient, 'Send money first').data

        self.assertFalse(ChatService.flag_message(message.id, self.admin, 'spam'))
        self.assertTrue(ChatService.flag_message(message.id, self.admin, 'Suspected payment scam'))
        self.assertEqual(
            ChatService.flag_message(message.id, self.admin, 'Suspected payment scam').code,
            ServiceResponse.CONFLICT
        )
        self.assertTrue(ChatService.hide_message(message.id, self.admin, 'Hidden pending review'))

        self.assertEqual(ChatService.get_messages(chat.id, self.donor).data.count(), 0)
        self.assertEqual(ChatService.get_chat_messages_admin(chat.id).data.count(), 1)
        self.assertEqual(
            set(AuditLog.objects.filter(category='moderation').values_list('action', flat=True)),
            {'message_flagged', 'message_hidden'}
        )

        self.assertTrue(ChatService.unhide_message(message.id, self.admin))
        self.assertFalse(ChatService.unhide_message(message.id, self.admin))
        self.assertEqual(ChatService.get_messages(chat.id, self.donor).data.count(), 1)

    def test_moderation_stats(self):
        chat = self._open_chat()
        reported = ChatService.send_message(chat.id, self.recipient, 'Send money first').data
        ChatService.send_message(chat.id, self.donor, 'No thanks')
        ChatService.report_message(reported.id, self.donor, 'Asked me for payment', 'scam')

        stats = ChatService.get_moderation_stats()
        self.assertEqual(stats['total_chats'], 1)
        self.assertEqual(stats['total_messages'], 2)
        self.assertEqual(stats['reported_messages'], 1)
        self.assertEqual(stats['total_reports'], 1)
        self.assertEqual(stats['pending_review'], 1)

        ChatService.flag_message(reported.id, self.admin, 'Suspected payment scam')
        stats = ChatService.get_moderation_stats()
        self.assertEqual(stats['flagged_messages'], 1)
        self.assertEqual(stats['pending_review'], 0)
        self.assertEqual(list(ChatService.reported_messages()), [reported])


@override_settings(CHANNEL_LAYERS={'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'}})
class RealtimePushTests(TestCase):
    """Notifications and chat messages reach websocket groups after commit"""

    def setUp(self):
        cache.clear()
        self.recipient = make_recipient()
        self.donor = make_donor('donor')
        self.layer = get_channel_layer()

    def _listen(self, group):
        channel = async_to_sync(self.layer.new_channel)()
        async_to_sync(self.layer.group_add)(group, channel)
        return channel

    def test_notification_pushed_to_user_group(self):
        channel = self._listen(user_group_name(self.donor.id))

        with self.captureOnCommitCallbacks(execute=True):
            notification = NotificationService.create_notification(
                user=self.donor,
                notification_type=Notification.SYSTEM,
                title='Welcome',
                message='Thanks for joining',
            )

        event = async_to_sync(self.layer.receive)(channel)
        self.assertEqual(event['type'], 'notification.message')
        self.assertEqual(event['message']['id'], notification.id)
        self.assertEqual(event['message']['title'], 'Welcome')

    def test_nothing_pushed_before_commit(self):
        self._listen(user_group_name(self.donor.id))

        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            NotificationService.create_notification(
                user=self.donor,
                notification_type=Notification.SYSTEM,
                title='Welcome',
                message='Thanks for joining',
            )

        self.assertEqual(len(callbacks), 1)

    def test_chat_message_pushed_to_chat_group(self):
        chat = ChatService.get_or_create_chat(self.recipient, self.donor.id).data['chat']
        channel = self._listen(chat_group_name(chat.id))

        with self.captureOnCommitCallbacks(execute=True):
            message = ChatService.send_message(chat.id, self.recipient, 'On my way').data

        event = async_to_sync(self.layer.receive)(channel)
        self.assertEqual(event['type'], 'chat.message')
        self.assertEqual(event['message']['id'], message.id)
        self.assertEqual(event['message']['sender'], self.recipient.id)


class AnalyticsServiceTests(TestCase):
    """Admin dashboard aggregates"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.recipient = make_recipient()
        self.donor = make_donor('donor', blood_type='O+')
        make_donor('second', blood_type='O+')
        make_donor('pending', blood_type='O-', verified=False)

    def _donation(self, **kwargs):
        fields = {
            'donor': self.donor,
            'blood_type': 'O+',
            'units_provided': 2,
            'verification_status': DonationRecord.VERIFIED,
        }
        fields.update(kwargs)
        return DonationRecord.objects.create(**fields)

    def test_dashboard_counts(self):
        make_request(self.recipient)
        make_request(self.recipient, status=BloodRequest.FULFILLED)
        self._donation()
        self._donation(verification_status=DonationRecord.PENDING)

        stats = AnalyticsService.get_dashboard_stats()

        self.assertEqual(stats['users']['donors'], 3)
        self.assertEqual(stats['users']['recipients'], 1)
        self.assertEqual(stats['users']['pending_verification'], 1)
        self.assertEqual(stats['requests']['total'], 2)
        self.assertEqual(stats['requests']['active'], 1)
        self.assertEqual(stats['requests']['fulfilled'], 1)
        self.assertEqual(stats['donations']['verified'], 1)
        self.assertEqual(stats['donations']['pending'], 1)
        self.assertEqual(stats['donations']['units'], 2)

    def test_dashboard_is_cached(self):
        AnalyticsService.get_dashboard_stats()
        make_request(self.recipient)
        self.assertEqual(AnalyticsService.get_dashboard_stats()['requests']['total'], 0)

        cache.clear()
        self.assertEqual(AnalyticsService.get_dashboard_stats()['requests']['total'], 1)

    def test_monthly_trends(self):
        self._donation()
        self._donation(donor=User.objects.get(username='second'), units_provided=1)
        self._donation(verification_status=DonationRecord.REJECTED)
        make_request(self.recipient, status=BloodRequest.FULFILLED)
        make_request(self.recipient)

        this_month = timezone.localdate().strftime('%Y-%m')
        self.assertEqual(
            AnalyticsService.get_donation_trends(12),
            [{'month': this_month, 'count': 2, 'units': 3}]
        )
        self.assertEqual(
            AnalyticsService.get_request_trends(12),
            [{'month': this_month, 'count': 2, 'fulfilled': 1}]
        )

    def test_blood_group_supply_and_demand(self):
        make_request(self.recipient, blood_type='O+')
        make_request(self.recipient, blood_type='A-')
        make_request(self.recipient, blood_type='B+', status=BloodRequest.CANCELLED)

        analysis = {row['blood_type']: row for row in AnalyticsService.get_blood_group_analysis()}

        self.assertEqual(len(analysis), 8)
        self.assertEqual(analysis['O+']['supply'], 2)
        self.assertEqual(analysis['O+']['demand'], 1)
        self.assertEqual(analysis['O+']['supply_demand_ratio'], 2.0)
        self.assertEqual(analysis['O+']['status'], 'Adequate')
        self.assertEqual(analysis['A-']['status'], 'Critical')
        self.assertEqual(analysis['O-']['supply'], 0)
        self.assertEqual(analysis['B+']['demand'], 0)
        self.assertIsNone(analysis['B+']['supply_demand_ratio'])
        self.assertEqual(analysis['B+']['status'], 'Adequate')

    def test_blood_group_low_supply(self):
        make_request(self.recipient, blood_type='O+')
        make_request(self.recipient, blood_type='O+')
        make_request(self.recipient, blood_type='O+')

        analysis = {row['blood_type']: row for row in AnalyticsService.get_blood_group_analysis()}
        self.assertEqual(analysis['O+']['status'], 'Low')
        self.assertEqual(analysis['O+']['supply_demand_ratio'], 0.67)

    def test_urgency_distribution(self):
        make_request(self.recipient, urgency=choices.URGENCY_CRITICAL, status=BloodRequest.FULFILLED)
        make_request(self.recipient, urgency=choices.URGENCY_CRITICAL)
        make_request(self.recipient)

        distribution = {row['urgency']: row for row in AnalyticsService.get_urgency_distribution()}

        self.assertEqual(distribution['critical']['total'], 2)
        self.assertEqual(distribution['critical']['active'], 1)
        self.assertEqual(distribution['critical']['fulfillment_rate'], 50.0)
        self.assertEqual(distribution['normal']['total'], 1)
        self.assertEqual(distribution['urgent']['total'], 0)
        self.assertEqual(distribution['urgent']['fulfillment_rate'], 0.0)

    def test_custom_range(self):
        make_request(self.recipient, blood_type='A-')
        make_request(self.recipient, blood_type='A-')
        make_request(self.recipient, blood_type='O+')
        self._donation()
        today = timezone.localdate()

        result = AnalyticsService.get_custom_range(today - timedelta(days=1), today)

        self.assertEqual(result['requests'], 3)
        self.assertEqual(result['donations'], 1)
        self.assertEqual(result['new_users'], User.objects.count())
        self.assertEqual(result['top_blood_types'][0], {'blood_type': 'A-', 'count': 2})

        earlier = AnalyticsService.get_custom_range(today - timedelta(days=30), today - timedelta(days=10))
        self.assertEqual(earlier['requests'], 0)

        with self.assertRaises(ValueError):
            AnalyticsService.get_custom_range(today, today - timedelta(days=1))


class NotificationServiceTests(TestCase):
    """Muting and email delivery rules"""

    def setUp(self):
        cache.clear()
        self.donor = make_donor('donor')
        self.admin = make_admin()

    def notify(self, notification_type=Notification.SYSTEM, priority=Notification.MEDIUM):
        return NotificationService.create_notification(
            user=self.donor,
            notification_type=notification_type,
            title='Notice',
            message='Test message',
            priority=priority,
        )

    def test_muted_donor_skips_routine_notifications(self):
        self.donor.donor_profile.notification_enabled = False
        self.donor.donor_profile.save()

        self.assertIsNone(self.notify(Notification.REQUEST_CREATED))
        self.assertIsNone(self.notify(Notification.REMINDER))
        self.assertIsNone(self.notify(Notification.SYSTEM))
        self.assertFalse(Notification.objects.filter(user=self.donor).exists())

    def test_muting_never_drops_high_priority_or_personal_notifications(self):
        self.donor.donor_profile.notification_enabled = False
        self.donor.donor_profile.save()

        self.assertIsNotNone(self.notify(Notification.REQUEST_CREATED, Notification.URGENT))
        self.assertIsNotNone(self.notify(Notification.SYSTEM, Notification.HIGH))
        self.assertIsNotNone(self.notify(Notification.DONATION_VERIFIED))
        self.assertEqual(Notification.objects.filter(user=self.donor).count(), 3)

    def test_high_priority_queues_email_after_commit(self):
        # One callback pushes over the websocket, the second queues the email
        with self.captureOnCommitCallbacks() as callbacks:
            self.notify(priority=Notification.HIGH)
        self.assertEqual(len(callbacks), 2)

        with self.captureOnCommitCallbacks() as callbacks:
            self.notify(priority=Notification.URGENT)
        self.assertEqual(len(callbacks), 2)

    def test_routine_priority_sends_no_email(self):
        with self.captureOnCommitCallbacks() as callbacks:
            self.notify(priority=Notification.MEDIUM)
        self.assertEqual(len(callbacks), 1)

    def test_email_respects_global_switch_and_donor_preference(self):
        ConfigService.update_section(
            self.admin, 'notification_settings', {'email_enabled': False}, 'Mail provider outage'
        )
        with self.captureOnCommitCallbacks() as callbacks:
            self.notify(priority=Notification.HIGH)
        self.assertEqual(len(callbacks), 1)

        ConfigService.update_section(
            self.admin, 'notification_settings', {'email_enabled': True}, 'Mail provider restored'
        )
        self.donor.donor_profile.email_notifications = False
        self.donor.donor_profile.save()
        with self.captureOnCommitCallbacks() as callbacks:
            self.notify(priority=Notification.HIGH)
        self.assertEqual(len(callbacks), 1)


class FormatDistanceTests(TestCase):

    def test_meters_below_one_km(self):
        self.assertEqual(format_distance(0.25), '250 m')
        self.assertEqual(format_distance(0.9994), '999 m')

    def test_one_decimal_below_ten_km(self):
        self.assertEqual(format_distance(1), '1.0 km')
        self.assertEqual(format_distance(7.46), '7.5 km')

    def test_whole_km_from_ten(self):
        self.assertEqual(format_distance(10), '10 km')
        self.assertEqual(format_distance(212.4), '212 km')

    def test_unknown_distance(self):
        self.assertEqual(format_distance(None), 'Unknown')
        self.assertEqual(format_distance(float('inf')), 'Unknown')


class NewlyEligibleDonorTests(TestCase):
    """Donors whose cooldown ends today"""

    def setUp(self):
        cache.clear()

    def donate(self, donor, days_ago, status=DonationRecord.VERIFIED):
        DonationRecord.objects.create(
            donor=donor,
            blood_type='O+',
            donation_date=timezone.now() - timedelta(days=days_ago),
            verification_status=status,
        )

    def test_only_donors_whose_cooldown_ends_today(self):
        due = make_donor('due')
        self.donate(due, 90)
        early = make_donor('early')
        self.donate(early, 89)
        late = make_donor('late')
        self.donate(late, 91)

        self.assertEqual(EligibilityService.get_newly_eligible_donors(), [due])

    def test_latest_verified_donation_counts(self):
        donor = make_donor('donor')
        self.donate(donor, 200)
        self.donate(donor, 90)
        self.donate(donor, 10, status=DonationRecord.REJECTED)

        self.assertEqual(EligibilityService.get_newly_eligible_donors(), [donor])

    def test_skips_unavailable_muted_and_inactive_donors(self):
        unavailable = make_donor('unavailable', is_available=False)
        muted = make_donor('muted', notification_enabled=False)
        inactive = make_donor('inactive')
        User.objects.filter(id=inactive.id).update(is_active=False)
        for donor in (unavailable, muted, inactive):
            self.donate(donor, 90)

        self.assertEqual(EligibilityService.get_newly_eligible_donors(), [])


class BadgeServiceTests(TestCase):
    """Badge assignment, automatic awards and soft deletion"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.donor = make_donor('donor')
        self.badge = Badge.objects.create(name='Lifesaver', description='Saved a life')

    def test_duplicate_assignment_conflicts(self):
        first = BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin, reason='First donation')
        self.assertTrue(first.success)

        second = BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin)
        self.assertFalse(second.success)
        self.assertEqual(second.code, ServiceResponse.CONFLICT)

        self.badge.refresh_from_db()
        self.assertEqual(self.badge.assignment_count, 1)
        self.assertTrue(Notification.objects.filter(
            user=self.donor, notification_type=Notification.BADGE_AWARDED
        ).exists())
        self.assertTrue(AuditLog.objects.filter(action='badge_assigned').exists())

    def test_inactive_badge_cannot_be_assigned(self):
        BadgeService.deactivate_badge(self.badge.id)
        response = BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin)
        self.assertFalse(response.success)

    def test_revoke_keeps_history_and_allows_reassignment(self):
        BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin)

        response = BadgeService.revoke_badge(self.badge.id, self.donor, self.admin, reason='Awarded by mistake')
        self.assertTrue(response.success)
        user_badge = UserBadge.objects.get(user=self.donor, badge=self.badge)
        self.assertFalse(user_badge.is_active)
        self.assertEqual(user_badge.revoked_by, self.admin)
        self.assertEqual(list(BadgeService.get_user_badges(self.donor)), [])

        again = BadgeService.revoke_badge(self.badge.id, self.donor, self.admin)
        self.assertEqual(again.code, ServiceResponse.NOT_FOUND)

        self.assertTrue(BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin).success)
        self.assertEqual(BadgeService.get_assignment_history(self.donor).count(), 2)

    def test_auto_assign_by_min_donations(self):
        five = Badge.objects.create(
            name='Five Drops', description='Five donations', auto_assign=True, criteria={'min_donations': 5}
        )
        ten = Badge.objects.create(
            name='Ten Drops', description='Ten donations', auto_assign=True, criteria={'min_donations': 10}
        )
        self.donor.donor_profile.total_donations = 6
        self.donor.donor_profile.save()

        awarded = BadgeService.auto_assign_badges(self.donor)

        self.assertEqual([user_badge.badge for user_badge in awarded], [five])
        self.assertFalse(UserBadge.objects.filter(user=self.donor, badge=ten).exists())
        self.assertEqual(BadgeService.auto_assign_badges(self.donor), [])

    def test_deactivate_is_soft_delete(self):
        BadgeService.assign_badge(self.badge.id, self.donor, assigned_by=self.admin)

        self.assertTrue(BadgeService.deactivate_badge(self.badge.id).success)
        self.badge.refresh_from_db()
        self.assertFalse(self.badge.is_active)
        self.assertTrue(UserBadge.objects.filter(badge=self.badge).exists())
        self.assertNotIn(self.badge, BadgeService.list_badges())
        self.assertEqual(BadgeService.deactivate_badge(9999).code, ServiceResponse.NOT_FOUND)


class AuditServiceTests(TestCase):
    """Audit log queries and statistics"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.other_admin = make_admin('admin2')
        AuditService.log_action(
            performed_by=self.admin,
            action='user_verified',
            category='user_management',
            description='Verified donor@test.com',
            target_model='User',
            target_id=10,
            target_identifier='donor@test.com',
        )
        AuditService.log_action(
            performed_by=self.admin,
            action='user_verification_revoked',
            category='user_management',
            description='Revoked recipient@test.com',
            target_model='User',
            target_id=11,
            target_identifier='recipient@test.com',
            severity='high',
        )
        AuditService.log_action(
            performed_by=self.other_admin,
            action='config_updated',
            category='system_config',
            description='Updated donation_settings',
            target_model='SystemConfig',
            target_id=1,
        )

    def test_filter_by_fields(self):
        self.assertEqual(AuditService.filter_logs({'category': 'user_management'}).count(), 2)
        self.assertEqual(AuditService.filter_logs({'severity': 'high'}).count(), 1)
        self.assertEqual(AuditService.filter_logs({'target_model': 'SystemConfig'}).count(), 1)
        self.assertEqual(AuditService.filter_logs({'performed_by': self.other_admin.id}).count(), 1)
        self.assertEqual(AuditService.filter_logs({}).count(), 3)

    def test_filter_by_search_and_dates(self):
        logs = AuditService.filter_logs({'search': 'recipient@'})
        self.assertEqual([log.action for log in logs], ['user_verification_revoked'])

        today = timezone.localdate()
        self.assertEqual(AuditService.filter_logs({'start_date': today, 'end_date': today}).count(), 3)
        self.assertEqual(AuditService.filter_logs({'start_date': today + timedelta(days=1)}).count(), 0)

    def test_statistics(self):
        response = AuditService.get_statistics(days=7)

        self.assertTrue(response.success)
        stats = response.data
        self.assertEqual(stats['period_days'], 7)
        self.assertEqual(stats['total'], 3)
        self.assertEqual(stats['by_category'], {'user_management': 2, 'system_config': 1})
        self.assertEqual(stats['by_severity']['high'], 1)
        self.assertEqual(stats['top_performers'][0]['performed_by'], self.admin.id)
        self.assertEqual(stats['top_performers'][0]['count'], 2)

    def test_critical_logs(self):
        self.assertEqual([log.action for log in AuditService.get_critical()], ['user_verification_revoked'])


class VerificationServiceTests(TestCase):
    """Admin verification workflow guards"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.donor = make_donor('donor')
        self.pending = make_donor('pending', verified=False)

    def test_resubmission_refused_for_verified_user(self):
        response = VerificationService.request_resubmission(self.donor.id, self.admin, reason='Blurry ID photo')
        self.assertFalse(response.success)
        self.assertEqual(response.message, 'Cannot request resubmission from a verified user')

    def test_resubmission_for_pending_user(self):
        response = VerificationService.request_resubmission(self.pending.id, self.admin, reason='Blurry ID photo')

        self.assertTrue(response.success)
        profile = UserProfile.objects.get(user=self.pending)
        self.assertTrue(profile.resubmission_requested)
        self.assertTrue(Notification.objects.filter(
            user=self.pending, notification_type=Notification.VERIFICATION_RESUBMISSION
        ).exists())

    def test_revoke_requires_reason(self):
        response = VerificationService.revoke_verification(self.donor.id, self.admin, reason='fraud')
        self.assertFalse(response.success)
        self.assertEqual(UserProfile.objects.get(user=self.donor).verification_status, UserProfile.VERIFIED)

        response = VerificationService.revoke_verification(
            self.donor.id, self.admin, reason='Document found to be forged'
        )
        self.assertTrue(response.success)
        self.assertEqual(UserProfile.objects.get(user=self.donor).verification_status, UserProfile.PENDING)
        self.assertTrue(AuditLog.objects.filter(action='user_verification_revoked', severity='high').exists())

    def test_revoke_only_verified_users(self):
        response = VerificationService.revoke_verification(
            self.pending.id, self.admin, reason='Document found to be forged'
        )
        self.assertFalse(response.success)

    def test_admin_cannot_deactivate_self(self):
        response = VerificationService.set_active(self.admin.id, self.admin, False, reason='Leaving')
        self.assertFalse(response.success)
        self.assertEqual(response.message, 'You cannot deactivate your own account')
        self.admin.refresh_from_db()
        self.assertTrue(self.admin.is_active)

    def test_deactivate_and_reactivate_user(self):
        response = VerificationService.set_active(self.donor.id, self.admin, False, reason='Spam reports')
        self.assertTrue(response.success)
        self.donor.refresh_from_db()
        self.assertFalse(self.donor.is_active)
        self.assertTrue(AuditLog.objects.filter(action='user_deactivated').exists())

        VerificationService.set_active(self.donor.id, self.admin, True)
        self.donor.refresh_from_db()
        self.assertTrue(self.donor.is_active)


class BlogServiceTests(TestCase):
    """Published visibility, views, likes and comments"""

    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.donor = make_donor('donor')
        self.published = BlogPost.objects.create(
            title='Why donate blood', content='Every donation helps', author=self.admin, status=BlogPost.PUBLISHED
        )
        self.draft = BlogPost.objects.create(title='Upcoming camp', content='Draft notes', author=self.admin)

    def test_non_admin_lists_published_only(self):
        self.assertEqual(list(BlogService.list_posts(self.donor, {})), [self.published])
        self.assertEqual(list(BlogService.list_posts(None, {})), [self.published])
        self.assertEqual(BlogService.list_posts(self.admin, {}).count(), 2)
        self.assertEqual(list(BlogService.list_posts(self.admin, {'status': BlogPost.DRAFT})), [self.draft])

    def test_get_post_counts_views(self):
        BlogService.get_post(self.published.slug, self.donor)
        response = BlogService.get_post(self.published.slug, self.donor)

        self.assertTrue(response.success)
        self.assertEqual(response.data.view_count, 2)
        self.assertEqual(BlogService.get_post(self.draft.slug, self.donor).code, ServiceResponse.NOT_FOUND)

    def test_toggle_like(self):
        response = BlogService.toggle_like(self.published.id, self.donor)
        self.assertEqual(response.data, {'liked': True, 'like_count': 1})

        response = BlogService.toggle_like(self.published.id, self.donor)
        self.assertEqual(response.data, {'liked': False, 'like_count': 0})

    def test_cannot_comment_on_draft(self):
        response = BlogService.add_comment(self.draft.id, self.donor, 'Nice post')
        self.assertEqual(response.code, ServiceResponse.NOT_FOUND)

        response = BlogService.add_comment(self.published.id, self.donor, '   ')
        self.assertFalse(response.success)

        response = BlogService.add_comment(self.published.id, self.donor, 'Nice post')
        self.assertTrue(response.success)
        self.assertEqual(self.published.comments.count(), 1)


class EventServiceTests(TestCase):
    """Blood camp registration rules"""

    def setUp(self):
        cache.clear()
        self.recipient = make_recipient()
        start = timezone.now() + timedelta(days=7)
        self.event = BloodCampEvent.objects.create(
            title='Campus Blood Camp',
            venue_name='Central Library',
            start_datetime=start,
            end_datetime=start + timedelta(hours=6),
            target_donors=2,
            is_published=True,
        )

    def test_register_returns_check_in_qr(self):
        donor = make_donor('donor')
        response = EventService.register_donor(self.event.id, donor)

        self.assertTrue(response.success)
        self.assertEqual(response.data['registered_count'], 1)
        self.assertTrue(response.data['qr_code'])
        self.assertIn(donor, self.event.registered_donors.all())

    def test_duplicate_registration_refused(self):
        donor = make_donor('donor')
        EventService.register_donor(self.event.id, donor)

        response = EventService.register_donor(self.event.id, donor)
        self.assertFalse(response.success)
        self.assertEqual(response.message, 'Already registered for this event')

    def test_capacity_limit(self):
        EventService.register_donor(self.event.id, make_donor('donor1'))
        EventService.register_donor(self.event.id, make_donor('donor2'))

        response = EventService.register_donor(self.event.id, make_donor('donor3'))
        self.assertFalse(response.success)
        self.assertEqual(response.message, 'This event has reached its donor capacity')
        self.assertEqual(self.event.registered_donors.count(), 2)

    def test_unpublished_or_past_events_refused(self):
        donor = make_donor('donor')
        BloodCampEvent.objects.filter(id=self.event.id).update(is_published=False)
        self.assertFalse(EventService.register_donor(self.event.id, donor).success)

        BloodCampEvent.objects.filter(id=self.event.id).update(is_published=True, status=BloodCampEvent.COMPLETED)
        self.assertFalse(EventService.register_donor(self.event.id, donor).success)

    def test_only_donors_register(self):
        response = EventService.register_donor(self.event.id, self.recipient)
        self.assertEqual(response.code, ServiceResponse.FORBIDDEN)
