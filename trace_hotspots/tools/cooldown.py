"""Thread-safe alert cooldown ledger."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from ..telemetry import get_meter

logger = logging.getLogger(__name__)

meter = get_meter(__name__)
alerts_suppressed = meter.create_counter(
    name="trace_hotspots.alerts.suppressed",
    description="Alerts suppressed because their target was cooling down",
    unit="1",
)


def _as_utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


class AlertCooldownTracker:
    """
    Records when each monitored target last alerted.

    A target may alert again only once its last alert is older than the
    cooldown. The check and the update happen under one lock, so two
    concurrent passes for the same target cannot both be told to alert.

    Thread Safety:
        All operations use a threading.Lock to ensure thread-safe access.

    Example:
        >>> tracker = AlertCooldownTracker(cooldown=timedelta(minutes=30))
        >>> tracker.should_alert("alert_com.acme.orders")  # True, records now
        >>> tracker.should_alert("alert_com.acme.orders")  # False, cooling down
    """

    def __init__(self, cooldown: timedelta = timedelta(minutes=30)):
        """
        Initialize the tracker.

        Args:
            cooldown: Default minimum time between two alerts for a target.
        """
        self._last_alert: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self.cooldown = cooldown
        logger.info(f"AlertCooldownTracker initialized with cooldown={cooldown}")

    def should_alert(
        self,
        target_key: str,
        now: datetime | None = None,
        cooldown: timedelta | None = None,
    ) -> bool:
        """
        Decide whether ``target_key`` may alert, recording the alert if so.

        Args:
            target_key: Identifier of the monitored target.
            now: Current time; defaults to the current UTC time. Naive
                times are taken as UTC.
            cooldown: Overrides the tracker's default cooldown.

        Returns:
            True if the target has no previous alert or its last alert is
            older than the cooldown. In that case ``now`` becomes the new
            last-alert time. False otherwise, leaving the ledger unchanged.
        """
        now = _as_utc(now)
        window = self.cooldown if cooldown is None else cooldown

        with self._lock:
            last_alert = self._last_alert.get(target_key)
            if last_alert is None or last_alert < now - window:
                self._last_alert[target_key] = now
                logger.debug(f"Alert allowed for {target_key} at {now.isoformat()}")
                return True

        alerts_suppressed.add(1)
        logger.info(
            f"Alert suppressed for {target_key}: last alert at "
            f"{last_alert.isoformat()} is within {window}"
        )
        return False

    def last_alert(self, target_key: str) -> datetime | None:
        """Time of the last recorded alert for a target."""
        with self._lock:
            return self._last_alert.get(target_key)

    def reset(self, target_key: str) -> None:
        """Forget a target's last alert."""
        with self._lock:
            self._last_alert.pop(target_key, None)

    def clear(self):
        """Forget every recorded alert."""
        with self._lock:
            count = len(self._last_alert)
            self._last_alert.clear()
            logger.info(f"Cooldown ledger cleared ({count} entries removed)")

    def size(self) -> int:
        with self._lock:
            return len(self._last_alert)

    def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Get ledger statistics.

        Returns:
            Dictionary with the number of tracked targets, how many are still
            cooling down, and the default cooldown in seconds.
        """
        now = _as_utc(now)
        with self._lock:
            total = len(self._last_alert)
            cooling = sum(
                1 for ts in self._last_alert.values() if ts >= now - self.cooldown
            )
            return {
                "total_targets": total,
                "cooling_targets": cooling,
                "eligible_targets": total - cooling,
                "cooldown_seconds": self.cooldown.total_seconds(),
            }
