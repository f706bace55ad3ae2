from django.db.models.signals import post_save, post_delete
from django.contrib.auth.models import User
from django.dispatch import receiver
import logging

from .cache import CacheManager
from .models import UserProfile, DonorProfile, DonationRecord

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def ensure_superuser_profile(sender, instance, created, raw=False, **kwargs):
    """
    Superusers from createsuperuser get a verified admin profile.
    Registration creates profiles for everyone else.
    """
    if raw or not instance.is_superuser:
        return

    profile, profile_created = UserProfile.objects.get_or_create(
        user=instance,
        defaults={
            'role': UserProfile.ADMIN,
            'verification_status': UserProfile.VERIFIED,
        }
    )
    if profile_created:
        logger.info(f"Auto-created admin profile for {instance.username}")


@receiver([post_save, post_delete], sender=DonationRecord)
def invalidate_donor_caches(sender, instance, **kwargs):
    CacheManager.invalidate_donation_related(instance.donor_id)


@receiver(post_save, sender=UserProfile)
@receiver(post_save, sender=DonorProfile)
def invalidate_donor_eligibility(sender, instance, raw=False, **kwargs):
    if not raw:
        CacheManager.invalidate_eligibility(instance.user_id)
