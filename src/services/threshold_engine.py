"""
Threshold Engine

Joins application limits with today's relay usage and decides:
- which applications crossed their daily limit for the first time (their
  first-surpassed date gets written back to the portal), and
- which applications have stayed over their limit past the grace period
  (published in the snapshot read by the HTTP layer).

It also owns the tiered notification classification used by the notifier.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from src.models.usage_models import (
    ApplicationConfig,
    NotificationSettings,
    NotificationThreshold,
    UsageRecord,
)
from src.services.portal_db_client import PortalDBClient
from src.services.relay_meter_client import RelayMeterClient
from src.services.usage_snapshot import SnapshotStore, UsageSnapshot
from src.utils.exceptions import RefreshError

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = timedelta(hours=48)

# Checked top down; the first enabled tier whose ratio is reached wins.
_THRESHOLD_CASCADE = (
    (NotificationThreshold.FULL, 1.0, "full"),
    (NotificationThreshold.THREE_QUARTERS, 0.75, "three_quarters"),
    (NotificationThreshold.HALF, 0.5, "half"),
    (NotificationThreshold.QUARTER, 0.25, "quarter"),
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def passed_limit(
    count: int,
    daily_limit: int,
    first_date_surpassed: datetime | None,
    now: datetime,
    grace_period: timedelta,
) -> bool:
    """Over the limit, with a breach anchored at least ``grace_period`` ago."""
    return (
        count >= daily_limit
        and first_date_surpassed is not None
        and now - _as_utc(first_date_surpassed) >= grace_period
    )


def passed_limit_for_the_first_time(
    count: int, daily_limit: int, first_date_surpassed: datetime | None
) -> bool:
    return count >= daily_limit and first_date_surpassed is None


def get_app_threshold(
    usage: int, limit: int, notification_settings: NotificationSettings
) -> NotificationThreshold:
    """Highest enabled notification tier reached by ``usage`` out of ``limit``."""
    if limit == 0:
        return NotificationThreshold.NONE

    for threshold, ratio, flag in _THRESHOLD_CASCADE:
        if getattr(notification_settings, flag) and usage >= limit * ratio:
            return threshold

    return NotificationThreshold.NONE


@dataclass
class LimitClassification:
    """Outcome of one pass over the relay counts."""

    app_ids_passed_limit: list[str] = field(default_factory=list)
    app_ids_first_surpassed: list[str] = field(default_factory=list)


def classify_relays(
    applications: dict[str, ApplicationConfig],
    relays: list[UsageRecord],
    now: datetime,
    grace_period: timedelta,
) -> LimitClassification:
    """
    Classify every relay count against its application's daily limit.

    Only successful relays count against a limit. Applications without a
    config or without a daily limit are skipped.
    """
    result = LimitClassification()

    for relay_count in relays:
        app = applications.get(relay_count.application)
        if app is None or app.daily_limit == 0:
            continue

        count = relay_count.count.success
        fields = {
            "app_id": app.id,
            "daily_app_limit": app.daily_limit,
            "count": count,
            "first_date_surpassed": app.first_date_surpassed,
        }

        if passed_limit(count, app.daily_limit, app.first_date_surpassed, now, grace_period):
            logger.info(
                f"app: {app.id} passed daily limit with {count} of {app.daily_limit}",
                extra=fields,
            )
            result.app_ids_passed_limit.append(app.id)

        if passed_limit_for_the_first_time(count, app.daily_limit, app.first_date_surpassed):
            fields["first_date_surpassed"] = now
            logger.info(
                f"app: {app.id} passed first daily limit at: {now.isoformat(timespec='seconds')}",
                extra=fields,
            )
            result.app_ids_first_surpassed.append(app.id)

    return result


class ThresholdEngine:
    """Runs refresh cycles and publishes their snapshots."""

    def __init__(
        self,
        portal_db: PortalDBClient,
        relay_meter: RelayMeterClient,
        store: SnapshotStore | None = None,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.portal_db = portal_db
        self.relay_meter = relay_meter
        self.store = store or SnapshotStore()
        self.grace_period = grace_period
        self._clock = clock

    @property
    def snapshot(self) -> UsageSnapshot:
        return self.store.get()

    def get_app_ids_passed_limit(self) -> list[str]:
        return self.store.get_app_ids_passed_limit()

    async def refresh(self) -> UsageSnapshot:
        """
        Run one refresh cycle.

        Fetches limits and usage, persists first-time breaches, then publishes
        the new snapshot. Any failure leaves the previous snapshot in place.

        Raises:
            RefreshError: with stage ``limits``, ``relays`` or ``persist``
        """
        now = self._clock()

        try:
            applications = await self.portal_db.get_app_limits()
        except Exception as e:
            raise RefreshError("limits", e) from e

        try:
            # Server-local calendar day
            relays = await self.relay_meter.get_relays_count(now.astimezone().date())
        except Exception as e:
            raise RefreshError("relays", e) from e

        classification = classify_relays(applications, relays, now, self.grace_period)

        try:
            await self.portal_db.set_first_date_surpassed(
                classification.app_ids_first_surpassed, now
            )
        except Exception as e:
            raise RefreshError("persist", e) from e

        snapshot = UsageSnapshot.build(
            classification.app_ids_passed_limit, applications, relays, refreshed_at=now
        )
        self.store.publish(snapshot)

        logger.info(
            f"Usage snapshot refreshed: {len(snapshot.app_ids_passed_limit)} apps passed limit, "
            f"{len(classification.app_ids_first_surpassed)} newly surpassed"
        )
        return snapshot
