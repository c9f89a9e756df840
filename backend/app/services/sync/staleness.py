# backend/app/services/sync/staleness.py
"""
Cache freshness decision for a user's snapshot history.

A user is fresh when the latest snapshot is younger than the freshness
window W; fresh users are served from the store without any external call.
"""

from datetime import datetime, timedelta

from app.services.constants import DEFAULT_FRESHNESS_WINDOW_MINUTES
from app.utils.date_utils import ensure_utc, utc_now


class StalenessPolicy:
    """
    Decide whether cached data may be served.

    Example:
        policy = StalenessPolicy(timedelta(hours=3))
        is_stale, reason = policy.evaluate(last_snapshot.taken_at)
        # (False, "fresh_42_minutes_old")
    """

    def __init__(
            self,
            window: timedelta = timedelta(minutes=DEFAULT_FRESHNESS_WINDOW_MINUTES),
    ) -> None:
        if window <= timedelta(0):
            raise ValueError("Freshness window must be positive")
        self.window = window

    def evaluate(
            self,
            last_snapshot_at: datetime | None,
            now: datetime | None = None,
            force: bool = False,
    ) -> tuple[bool, str]:
        """
        Returns:
            (is_stale, reason) where reason is one of
            "never_synced", "forced", "snapshot_<N>_minutes_old" (stale) or
            "fresh_<N>_minutes_old"
        """
        if last_snapshot_at is None:
            return True, "never_synced"

        if force:
            return True, "forced"

        now = ensure_utc(now or utc_now())
        age = now - ensure_utc(last_snapshot_at)
        minutes = int(age.total_seconds() // 60)

        if age < self.window:
            return False, f"fresh_{minutes}_minutes_old"

        return True, f"snapshot_{minutes}_minutes_old"
