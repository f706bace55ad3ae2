"""
Caching System - consistent key naming and targeted invalidation
"""
from django.core.cache import cache
from functools import wraps
from typing import Optional, Any, Dict, Callable
import logging

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Streamlined cache management with consistent naming patterns
    """

    TIMEOUTS = {
        'notification_count': 60,      # 1 minute
        'system_config': 300,          # 5 minutes
        'leaderboard': 300,            # 5 minutes
        'eligibility': 600,            # 10 minutes
        'visibility_stats': 300,       # 5 minutes
        'analytics': 900,              # 15 minutes
    }

    @staticmethod
    def make_key(*parts) -> str:
        """
        Simple, readable cache key generation
        No unnecessary hashing - Redis/Memcached handle long keys efficiently
        """
        return f"bloodbond:{':'.join(str(p) for p in parts)}"

    # =========================================================================
    # NOTIFICATION CACHE
    # =========================================================================

    @classmethod
    def get_notification_count(cls, user_id: int) -> Optional[int]:
        """Get cached unread notification count"""
        key = cls.make_key('user', user_id, 'notification_count')
        return cache.get(key)

    @classmethod
    def set_notification_count(cls, user_id: int, count: int) -> None:
        key = cls.make_key('user', user_id, 'notification_count')
        cache.set(key, count, cls.TIMEOUTS['notification_count'])

    @classmethod
    def invalidate_notification_count(cls, user_id: int) -> None:
        key = cls.make_key('user', user_id, 'notification_count')
        cache.delete(key)

    # =========================================================================
    # SYSTEM CONFIG CACHE
    # =========================================================================

    @classmethod
    def get_system_config(cls) -> Optional[Dict]:
        return cache.get(cls.make_key('system_config'))

    @classmethod
    def set_system_config(cls, data: Dict) -> None:
        cache.set(cls.make_key('system_config'), data, cls.TIMEOUTS['system_config'])

    @classmethod
    def invalidate_system_config(cls) -> None:
        cache.delete(cls.make_key('system_config'))

    # =========================================================================
    # LEADERBOARD CACHE
    # =========================================================================

    @classmethod
    def get_leaderboard(cls, period: str, limit: int) -> Optional[Dict]:
        return cache.get(cls.make_key('leaderboard', period, limit))

    @classmethod
    def set_leaderboard(cls, period: str, limit: int, data: Dict) -> None:
        key = cls.make_key('leaderboard', period, limit)
        cache.set(key, data, cls.TIMEOUTS['leaderboard'])
        # Track limits per period so invalidation can find every page
        index_key = cls.make_key('leaderboard', period, 'limits')
        limits = set(cache.get(index_key) or [])
        limits.add(limit)
        cache.set(index_key, sorted(limits), cls.TIMEOUTS['leaderboard'])

    @classmethod
    def invalidate_leaderboard(cls, period: Optional[str] = None) -> None:
        from .models import Leaderboard

        periods = [period] if period else Leaderboard.PERIODS
        for name in periods:
            index_key = cls.make_key('leaderboard', name, 'limits')
            for limit in cache.get(index_key) or []:
                cache.delete(cls.make_key('leaderboard', name, limit))
            cache.delete(index_key)

    # =========================================================================
    # ELIGIBILITY CACHE
    # =========================================================================

    @classmethod
    def get_eligibility(cls, donor_id: int) -> Optional[Dict]:
        return cache.get(cls.make_key('donor', donor_id, 'eligibility'))

    @classmethod
    def set_eligibility(cls, donor_id: int, data: Dict) -> None:
        key = cls.make_key('donor', donor_id, 'eligibility')
        cache.set(key, data, cls.TIMEOUTS['eligibility'])

    @classmethod
    def invalidate_eligibility(cls, donor_id: int) -> None:
        cache.delete(cls.make_key('donor', donor_id, 'eligibility'))

    # =========================================================================
    # ANALYTICS CACHE
    # =========================================================================

    @classmethod
    def get_analytics(cls, analytics_type: str) -> Optional[Dict]:
        return cache.get(cls.make_key('analytics', analytics_type))

    @classmethod
    def set_analytics(cls, analytics_type: str, data: Dict) -> None:
        cache.set(cls.make_key('analytics', analytics_type), data, cls.TIMEOUTS['analytics'])

    # =========================================================================
    # BULK INVALIDATION
    # =========================================================================

    @classmethod
    def invalidate_all_user_cache(cls, user_id: int) -> None:
        """Invalidate all cache entries for a user"""
        cls.invalidate_notification_count(user_id)
        cls.invalidate_eligibility(user_id)

    @classmethod
    def invalidate_donation_related(cls, donor_id: int) -> None:
        """Invalidate all caches affected by a donation change"""
        cls.invalidate_eligibility(donor_id)
        cls.invalidate_leaderboard()


class cached_result:
    """
    Decorator for caching function results
    """

    def __init__(self, cache_key_func: Callable, timeout: int = 300):
        """
        Args:
            cache_key_func: Function that takes the same args as decorated function and returns cache key
            timeout: Cache timeout in seconds
        """
        self.cache_key_func = cache_key_func
        self.timeout = timeout

    def __call__(self, func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = self.cache_key_func(*args, **kwargs)

            result = cache.get(cache_key)
            if result is not None:
                logger.debug(f"Cache HIT: {cache_key}")
                return result

            logger.debug(f"Cache MISS: {cache_key}")
            result = func(*args, **kwargs)

            cache.set(cache_key, result, self.timeout)
            return result

        return wrapper
