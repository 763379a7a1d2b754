"""Sliding-window rate limit on OTP issuance."""

import math
from datetime import timedelta

from mentormatch_auth.db.protocols import OTPStore
from mentormatch_auth.logging import get_logger
from mentormatch_auth.otp.issuer import coerce_purpose, normalize_identity
from mentormatch_auth.otp.models import RateLimitDecision
from mentormatch_auth.types import Clock, OTPPurpose, utc_now

log = get_logger(__name__)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


class OTPRateLimiter:
    """
    Decides whether another code may be issued for a stream.

    Every record created inside the window counts, whatever its status,
    so a quickly verified code still uses up quota. The check is advisory
    and not atomic with issuance.
    """

    def __init__(self, store: OTPStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or utc_now

    async def can_issue(
        self,
        identity: str,
        purpose: OTPPurpose | str,
        *,
        window: timedelta,
        max_per_window: int,
    ) -> RateLimitDecision:
        """
        Check the issuance quota for (identity, purpose).

        Returns:
            RateLimitDecision; when denied, retry_after_seconds is the time
            until the oldest record in the window leaves it (at least 1)
        """
        identity = normalize_identity(identity)
        purpose = coerce_purpose(purpose)
        now = self.clock()
        since = now - window

        count = await self.store.count_created_since(identity, purpose, since)
        if count < max_per_window:
            return RateLimitDecision(allowed=True)

        oldest = await self.store.find_oldest_created_since(identity, purpose, since)
        if oldest is None:
            # Swept between the two reads
            return RateLimitDecision(allowed=True)

        reset_at = oldest.created_at + window
        retry_after = max(math.ceil((reset_at - now).total_seconds()), 1)
        minutes = math.ceil(retry_after / 60)

        log.warning(
            "otp_rate_limited",
            identity=identity,
            purpose=purpose.value,
            count=count,
            retry_after_seconds=retry_after,
        )
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=retry_after,
            reason=(
                f"Too many OTP requests. Please wait {_plural(minutes, 'minute')} "
                "before trying again."
            ),
        )
