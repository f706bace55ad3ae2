"""
Digital Donation Card Service - signed QR issuance and verification
"""
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from datetime import timedelta
from io import BytesIO
from typing import Optional, Dict, Any, Union
import base64
import hashlib
import hmac
import json
import logging
import time

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_M

from core import choices
from core.models import DigitalDonationCard, DonationRecord, User
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService

logger = logging.getLogger(__name__)


def canonical_json(data: Dict) -> str:
    return json.dumps(data, sort_keys=True, separators=(',', ':'))


class CardService(BaseService):
    """Issues, verifies and revokes QR backed donation cards"""

    QR_SIZE_PX = 300
    EVENT_QR_SIZE_PX = 250
    QR_BORDER = 2
    QR_MAX_AGE_MS = 365 * 24 * 60 * 60 * 1000

    # =========================================================================
    # SIGNING & IMAGES
    # =========================================================================

    @classmethod
    def _secret(cls) -> bytes:
        return str(settings.BLOODBOND_CONFIG['QR_SECRET']).encode()

    @classmethod
    def generate_signature(cls, data: Dict) -> str:
        """HMAC-SHA256 hex digest of the canonical JSON of data"""
        return hmac.new(cls._secret(), canonical_json(data).encode(), hashlib.sha256).hexdigest()

    @classmethod
    def card_signature(cls, card_number: str, donor_id: int, donation_id: int) -> str:
        return cls.generate_signature({
            'card_number': card_number,
            'donor_id': donor_id,
            'donation_id': donation_id,
        })

    @classmethod
    def generate_qr_image(cls, text: str, size: int = QR_SIZE_PX,
                          error_correction=ERROR_CORRECT_H) -> str:
        """PNG data URL of text, scaled to roughly size pixels"""
        qr = qrcode.QRCode(version=None, error_correction=error_correction, border=cls.QR_BORDER)
        qr.add_data(text)
        qr.make(fit=True)

        modules = qr.modules_count + 2 * cls.QR_BORDER
        qr.box_size = max(size // modules, 1)

        img = qr.make_image(fill_color='black', back_color='white')
        img_io = BytesIO()
        img.save(img_io, 'PNG')
        encoded = base64.b64encode(img_io.getvalue()).decode('ascii')
        return f"data:image/png;base64,{encoded}"

    @classmethod
    def build_payload(cls, card: DigitalDonationCard) -> Dict[str, Any]:
        donation = card.donation
        return {
            'card_number': card.card_number,
            'donor_id': card.donor_id,
            'donation_id': donation.id,
            'blood_type': donation.blood_type,
            'donation_date': donation.donation_date.isoformat(),
            'timestamp': int(time.time() * 1000),
            'signature': cls.card_signature(card.card_number, card.donor_id, donation.id),
        }

    @classmethod
    def _render(cls, card: DigitalDonationCard) -> None:
        card.qr_payload = cls.build_payload(card)
        card.qr_image = cls.generate_qr_image(json.dumps(card.qr_payload))

    # =========================================================================
    # ISSUANCE
    # =========================================================================

    @classmethod
    def issue_card(cls, donation: DonationRecord) -> DigitalDonationCard:
        """Card for a verified donation; returns the existing card if already issued"""
        existing = DigitalDonationCard.objects.filter(donation=donation).first()
        if existing:
            return existing

        now = timezone.now()
        card = DigitalDonationCard(
            card_number=DigitalDonationCard.generate_card_number(),
            donor=donation.donor,
            donation=donation,
            issued_at=now,
            valid_until=now + timedelta(days=choices.CARD_VALIDITY_DAYS),
        )
        cls._render(card)
        card.save()

        logger.info(f"Digital card {card.card_number} issued for donation {donation.id}")
        return card

    @classmethod
    def regenerate_qr(cls, card_id: int, user: User) -> ServiceResponse:
        try:
            card = DigitalDonationCard.objects.select_related('donation').get(id=card_id)
        except DigitalDonationCard.DoesNotExist:
            return cls.not_found("Card not found")

        if not cls._can_view(card, user):
            return cls.forbidden("You can only regenerate your own cards")
        if card.is_revoked:
            return cls.error("Cannot regenerate QR for a revoked card")

        try:
            cls._render(card)
            card.save(update_fields=['qr_payload', 'qr_image', 'updated_at'])
            return cls.success(card, message="QR code regenerated")
        except Exception as e:
            return cls.handle_exception(e, "regenerate QR")

    # =========================================================================
    # VERIFICATION
    # =========================================================================

    @classmethod
    def verify_qr(cls, qr_data: Union[str, Dict]) -> ServiceResponse:
        """Check signature and age of a scanned payload and count the scan"""
        if isinstance(qr_data, dict):
            payload = qr_data
        else:
            try:
                payload = json.loads(qr_data)
            except (TypeError, ValueError):
                return cls.error("Invalid QR code format")

        required = ('card_number', 'donor_id', 'donation_id', 'timestamp', 'signature')
        if not isinstance(payload, dict) or any(key not in payload for key in required):
            return cls.error("Invalid QR code format")

        expected = cls.card_signature(payload['card_number'], payload['donor_id'], payload['donation_id'])
        if not hmac.compare_digest(str(payload['signature']), expected):
            return cls.error("Invalid QR code signature")

        try:
            age_ms = int(time.time() * 1000) - int(payload['timestamp'])
        except (TypeError, ValueError):
            return cls.error("Invalid QR code format")
        if age_ms > cls.QR_MAX_AGE_MS:
            return cls.error("QR code has expired")

        try:
            with transaction.atomic():
                card = DigitalDonationCard.objects.select_for_update().select_related(
                    'donor', 'donation'
                ).get(card_number=payload['card_number'])
                card.record_verification()
        except DigitalDonationCard.DoesNotExist:
            return cls.not_found("Card not found")
        except Exception as e:
            return cls.handle_exception(e, "verify QR")

        donor = card.donor
        return cls.success({
            'valid': card.is_valid,
            'card_number': card.card_number,
            'donor_name': donor.get_full_name() or donor.username,
            'blood_type': card.donation.blood_type,
            'donation_date': card.donation.donation_date.isoformat(),
            'units_provided': card.donation.units_provided,
            'valid_until': card.valid_until.isoformat(),
            'verification_count': card.verification_count,
        }, message="Card verified")

    # =========================================================================
    # QUERIES & ADMIN
    # =========================================================================

    @classmethod
    def _is_admin(cls, user: User) -> bool:
        profile = getattr(user, 'profile', None)
        return user.is_superuser or bool(profile and profile.is_admin)

    @classmethod
    def _can_view(cls, card: DigitalDonationCard, user: User) -> bool:
        return card.donor_id == user.id or cls._is_admin(user)

    @classmethod
    def get_cards_for_donor(cls, donor_id: int, user: User) -> ServiceResponse:
        if donor_id != user.id and not cls._is_admin(user):
            return cls.forbidden("You can only view your own cards")
        cards = DigitalDonationCard.objects.filter(donor_id=donor_id).select_related('donation')
        return cls.success(cards)

    @classmethod
    def get_card(cls, card_number: str, user: User) -> ServiceResponse:
        try:
            card = DigitalDonationCard.objects.select_related('donation', 'donor').get(card_number=card_number)
        except DigitalDonationCard.DoesNotExist:
            return cls.not_found("Card not found")

        if not cls._can_view(card, user):
            return cls.forbidden("You can only view your own cards")
        return cls.success(card)

    @classmethod
    def revoke_card(cls, card_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        if not reason or not reason.strip():
            return cls.error("A revocation reason is required")

        try:
            with transaction.atomic():
                card = DigitalDonationCard.objects.select_for_update().get(id=card_id)
                card.revoke(admin, reason.strip())

            AuditService.log_action(
                performed_by=admin,
                action='card_revoked',
                category='data_correction',
                description=f"Revoked digital card {card.card_number}",
                target_model='DigitalDonationCard',
                target_id=card.id,
                target_identifier=card.card_number,
                before={'is_revoked': False},
                after={'is_revoked': True},
                reason=reason,
                severity='high',
                request=request,
            )
            logger.info(f"Card {card.card_number} revoked by {admin.username}")
            return cls.success(card, message="Card revoked")

        except DigitalDonationCard.DoesNotExist:
            return cls.not_found("Card not found")
        except Exception as e:
            return cls.handle_exception(e, "card revocation")

    # =========================================================================
    # EVENT CHECK-IN
    # =========================================================================

    @classmethod
    def generate_event_qr(cls, event_id: int, donor_id: int,
                          registration_id: Optional[str] = None) -> Dict[str, Any]:
        registration_id = registration_id or f"{event_id}-{donor_id}"
        payload = {
            'event_id': event_id,
            'donor_id': donor_id,
            'registration_id': registration_id,
            'timestamp': int(time.time() * 1000),
        }
        payload['signature'] = cls.generate_signature({
            'event_id': event_id,
            'donor_id': donor_id,
            'registration_id': registration_id,
        })
        qr_text = json.dumps(payload)
        return {
            'qr_code': cls.generate_qr_image(qr_text, size=cls.EVENT_QR_SIZE_PX, error_correction=ERROR_CORRECT_M),
            'qr_data': payload,
        }
