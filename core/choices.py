"""
Centralized choices and domain constants for BloodBond.
Single source of truth for Models, Serializers and Services.
"""

# ============================================================================
# BLOOD TYPES & COMPATIBILITY
# ============================================================================

A_POS = 'A+'
A_NEG = 'A-'
B_POS = 'B+'
B_NEG = 'B-'
AB_POS = 'AB+'
AB_NEG = 'AB-'
O_POS = 'O+'
O_NEG = 'O-'

BLOOD_TYPES = [A_POS, A_NEG, B_POS, B_NEG, AB_POS, AB_NEG, O_POS, O_NEG]

BLOOD_TYPE_CHOICES = [(bt, bt) for bt in BLOOD_TYPES]

# Donor blood type -> recipient blood types it can give to
DONOR_COMPATIBILITY = {
    O_NEG: [O_NEG, O_POS, A_NEG, A_POS, B_NEG, B_POS, AB_NEG, AB_POS],
    O_POS: [O_POS, A_POS, B_POS, AB_POS],
    A_NEG: [A_NEG, A_POS, AB_NEG, AB_POS],
    A_POS: [A_POS, AB_POS],
    B_NEG: [B_NEG, B_POS, AB_NEG, AB_POS],
    B_POS: [B_POS, AB_POS],
    AB_NEG: [AB_NEG, AB_POS],
    AB_POS: [AB_POS],
}


def get_compatible_recipient_types(donor_blood_type):
    """Recipient blood types a donor can give to"""
    return list(DONOR_COMPATIBILITY.get(donor_blood_type, []))


def get_compatible_donor_types(recipient_blood_type):
    """Donor blood types a recipient can accept"""
    return [
        donor_type for donor_type, recipients in DONOR_COMPATIBILITY.items()
        if recipient_blood_type in recipients
    ]


def check_compatibility(donor_blood_type, recipient_blood_type):
    return recipient_blood_type in DONOR_COMPATIBILITY.get(donor_blood_type, [])


# ============================================================================
# ROLES & STATUSES
# ============================================================================

ROLE_DONOR = 'donor'
ROLE_RECIPIENT = 'recipient'
ROLE_ADMIN = 'admin'

ROLE_CHOICES = [
    (ROLE_DONOR, 'Donor'),
    (ROLE_RECIPIENT, 'Recipient'),
    (ROLE_ADMIN, 'Administrator'),
]

VERIFICATION_PENDING = 'pending'
VERIFICATION_VERIFIED = 'verified'
VERIFICATION_REJECTED = 'rejected'

VERIFICATION_STATUS_CHOICES = [
    (VERIFICATION_PENDING, 'Pending'),
    (VERIFICATION_VERIFIED, 'Verified'),
    (VERIFICATION_REJECTED, 'Rejected'),
]

URGENCY_CRITICAL = 'critical'
URGENCY_URGENT = 'urgent'
URGENCY_NORMAL = 'normal'

URGENCY_CHOICES = [
    (URGENCY_CRITICAL, 'Critical'),
    (URGENCY_URGENT, 'Urgent'),
    (URGENCY_NORMAL, 'Normal'),
]

# Lower sorts first
URGENCY_ORDER = {
    URGENCY_CRITICAL: 0,
    URGENCY_URGENT: 1,
    URGENCY_NORMAL: 2,
}

GENDER_CHOICES = [
    ('male', 'Male'),
    ('female', 'Female'),
    ('other', 'Other'),
]

# ============================================================================
# POINTS & BADGES
# ============================================================================

LEADERBOARD_POINTS = {
    'DONATION': 100,
    'URGENT_BONUS': 50,
    'CRITICAL_BONUS': 100,
    'REVIEW_BONUS': 10,
    'FIRST_DONATION': 50,
    'MILESTONE_10': 500,
    'MILESTONE_25': 1000,
    'MILESTONE_50': 2500,
    'EXTRA_UNIT': 20,
}

MILESTONES = {
    10: LEADERBOARD_POINTS['MILESTONE_10'],
    25: LEADERBOARD_POINTS['MILESTONE_25'],
    50: LEADERBOARD_POINTS['MILESTONE_50'],
}

BADGE_NONE = 'None'
BADGE_BRONZE = 'Bronze'
BADGE_SILVER = 'Silver'
BADGE_GOLD = 'Gold'
BADGE_PLATINUM = 'Platinum'
BADGE_DIAMOND = 'Diamond'

BADGE_TIER_CHOICES = [
    (BADGE_NONE, 'None'),
    (BADGE_BRONZE, 'Bronze'),
    (BADGE_SILVER, 'Silver'),
    (BADGE_GOLD, 'Gold'),
    (BADGE_PLATINUM, 'Platinum'),
    (BADGE_DIAMOND, 'Diamond'),
]

# Ordered highest threshold first
BADGE_THRESHOLDS = [
    (50, BADGE_DIAMOND),
    (25, BADGE_PLATINUM),
    (10, BADGE_GOLD),
    (5, BADGE_SILVER),
    (1, BADGE_BRONZE),
]


def calculate_badge_tier(donations):
    """Badge tier for a verified donation count"""
    for threshold, tier in BADGE_THRESHOLDS:
        if donations >= threshold:
            return tier
    return BADGE_NONE


# ============================================================================
# DEFAULTS
# ============================================================================

DONATION_COOLDOWN_DAYS = 90
MIN_DONOR_AGE = 18
MAX_DONOR_AGE = 65

DEFAULT_SEARCH_RADIUS_KM = 50
MAX_SEARCH_RADIUS_KM = 200
EXPANDED_SEARCH_RADIUS_KM = 100

REQUEST_LOCK_MINUTES = 15
CARD_VALIDITY_DAYS = 365

DEFAULT_TIMEZONE = 'Asia/Dhaka'
