from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Throttle for burst requests (short-term).
    Allows 60 requests per minute.
    """
    scope = 'burst'
    rate = '60/min'


class SustainedRateThrottle(UserRateThrottle):
    """
    Throttle for sustained requests (long-term).
    Allows 1000 requests per day.
    """
    scope = 'sustained'
    rate = '1000/day'


class AuthRateThrottle(AnonRateThrottle):
    """
    Throttle for registration.
    Allows 5 requests per minute for anonymous users.
    """
    scope = 'auth'
    rate = '5/min'


class VerifyQRRateThrottle(AnonRateThrottle):
    """
    Throttle for public donation card verification.
    Allows 30 scans per minute per client.
    """
    scope = 'verify_qr'
    rate = '30/min'
