"""Anonymous usage counters backed by Redis.

One counter per (identity, feature) with a rolling TTL window. The window
starts at the first recorded use and the key disappears when it lapses, so
counts reset without a sweeper.
"""

from datetime import UTC, datetime, timedelta

from redis.asyncio import Redis

from talko.domain.features import ANONYMOUS_LIMITS, UNLIMITED, FeatureType

KEY_PREFIX = "usage"


class UsageLedger:
    """Track per-identity feature usage for anonymous callers."""

    def __init__(self, redis: Redis, window_hours: int = 24):
        self.redis = redis
        self.window = timedelta(hours=window_hours)

    @staticmethod
    def _key(identity: str, feature: FeatureType) -> str:
        return f"{KEY_PREFIX}:{identity}:{feature.value}"

    async def _incr(self, key: str) -> int:
        """INCR inside MULTI, creating the key with the window TTL first.

        INCR keeps an existing TTL, so a counter can never outlive its window.
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, ex=int(self.window.total_seconds()), nx=True)
            pipe.incr(key)
            _, count = await pipe.execute()
        return count

    async def record_usage(self, identity: str, feature: FeatureType) -> int:
        """Increment the counter unconditionally.

        Returns:
            New usage count inside the current window
        """
        key = self._key(identity, feature)
        return await self._incr(key)

    async def consume(self, identity: str, feature: FeatureType, limit: int) -> tuple[bool, int]:
        """Take one slot if the identity is under ``limit``.

        The increment happens first and is rolled back when it overshoots, so
        concurrent callers can never both take the last slot.

        Returns:
            Tuple of (allowed, usage) where usage is the count after the call
        """
        key = self._key(identity, feature)
        count = await self._incr(key)
        if count > limit:
            count = await self.redis.decr(key)
            return False, count
        return True, count

    async def get_usage(self, identity: str, feature: FeatureType) -> int:
        count = await self.redis.get(self._key(identity, feature))
        return int(count) if count else 0

    async def remaining(
        self,
        identity: str,
        feature: FeatureType,
        authenticated: bool = False,
    ) -> int:
        """Remaining invocations, or UNLIMITED for authenticated callers."""
        if authenticated:
            return UNLIMITED
        limit = ANONYMOUS_LIMITS[feature]
        used = await self.get_usage(identity, feature)
        return max(0, limit - used)

    async def usage_summary(self, identity: str, authenticated: bool = False) -> dict[str, dict]:
        """Per-feature {used, limit, remaining} for display."""
        summary = {}
        for feature, limit in ANONYMOUS_LIMITS.items():
            used = await self.get_usage(identity, feature)
            if authenticated:
                summary[feature.value] = {"used": used, "limit": UNLIMITED, "remaining": UNLIMITED}
            else:
                summary[feature.value] = {
                    "used": used,
                    "limit": limit,
                    "remaining": max(0, limit - used),
                }
        return summary

    async def reset(self, identity: str, feature: FeatureType | None = None) -> None:
        features = [feature] if feature else list(FeatureType)
        await self.redis.delete(*(self._key(identity, f) for f in features))

    def retry_after(self, now: datetime | None = None) -> datetime:
        """Earliest time a denied anonymous caller should try again."""
        now = now or datetime.now(UTC)
        return now + self.window
