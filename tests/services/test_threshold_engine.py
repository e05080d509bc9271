"""
Tests for the Threshold Engine

Covers:
- Hard-limit breach detection with grace-period hysteresis
- First-surpassed write-back
- Tiered notification classification
- Refresh failures leaving the previous snapshot untouched
"""

import json
from datetime import timedelta

import httpx
import pytest

from src.models.usage_models import NotificationSettings, NotificationThreshold
from src.services.threshold_engine import (
    classify_relays,
    get_app_threshold,
    passed_limit,
    passed_limit_for_the_first_time,
)
from src.utils.exceptions import (
    DateSurpassedStatusError,
    LimitsStatusError,
    RefreshError,
    RelaysStatusError,
)
from tests.helpers.upstreams import DB_URL, GRACE_PERIOD, METER_URL, NOW, make_app, make_relay

ALL_ENABLED = NotificationSettings(quarter=True, half=True, three_quarters=True, full=True)

FIRST_DATE_URL = f"{DB_URL}/application/first_date_surpassed"


class TestPassedLimit:
    """Test the hard-limit predicates"""

    def test_sustained_breach_past_grace_period(self):
        anchor = NOW - timedelta(hours=48)
        assert passed_limit(100, 100, anchor, NOW, GRACE_PERIOD) is True

    def test_breach_inside_grace_period(self):
        anchor = NOW - timedelta(hours=47, minutes=59)
        assert passed_limit(500, 100, anchor, NOW, GRACE_PERIOD) is False

    def test_under_limit_with_old_anchor(self):
        anchor = NOW - timedelta(days=30)
        assert passed_limit(99, 100, anchor, NOW, GRACE_PERIOD) is False

    def test_no_anchor_never_passes(self):
        assert passed_limit(1000, 100, None, NOW, GRACE_PERIOD) is False

    def test_naive_anchor_is_treated_as_utc(self):
        anchor = (NOW - timedelta(hours=72)).replace(tzinfo=None)
        assert passed_limit(100, 100, anchor, NOW, GRACE_PERIOD) is True

    def test_first_time(self):
        assert passed_limit_for_the_first_time(100, 100, None) is True
        assert passed_limit_for_the_first_time(99, 100, None) is False
        assert passed_limit_for_the_first_time(100, 100, NOW) is False


class TestGetAppThreshold:
    """Test the tier cascade"""

    @pytest.mark.parametrize(
        "usage,expected",
        [
            (0, NotificationThreshold.NONE),
            (24, NotificationThreshold.NONE),
            (27, NotificationThreshold.QUARTER),
            (62, NotificationThreshold.HALF),
            (84, NotificationThreshold.THREE_QUARTERS),
            (100, NotificationThreshold.FULL),
            (250, NotificationThreshold.FULL),
        ],
    )
    def test_all_tiers_enabled(self, usage, expected):
        assert get_app_threshold(usage, 100, ALL_ENABLED) == expected

    def test_disabled_tier_falls_through_to_next_enabled(self):
        settings = NotificationSettings(quarter=True, half=True, three_quarters=False, full=True)
        assert get_app_threshold(91, 100, settings) == NotificationThreshold.HALF

    def test_only_half_enabled(self):
        settings = NotificationSettings(half=True)
        assert get_app_threshold(90, 100, settings) == NotificationThreshold.HALF
        assert get_app_threshold(150, 100, settings) == NotificationThreshold.HALF
        assert get_app_threshold(49, 100, settings) == NotificationThreshold.NONE

    def test_zero_limit_is_never_classified(self):
        assert get_app_threshold(1_000_000, 0, ALL_ENABLED) == NotificationThreshold.NONE

    def test_nothing_enabled(self):
        assert get_app_threshold(100, 100, NotificationSettings()) == NotificationThreshold.NONE

    @pytest.mark.parametrize(
        "settings",
        [
            ALL_ENABLED,
            NotificationSettings(half=True),
            NotificationSettings(quarter=True, full=True),
            NotificationSettings(three_quarters=True),
        ],
    )
    def test_tier_never_decreases_as_usage_grows(self, settings):
        tiers = [get_app_threshold(usage, 100, settings) for usage in range(0, 201)]
        assert tiers == sorted(tiers)


class TestClassifyRelays:
    """Test the single pass over relay counts"""

    def _classify(self, apps, relays):
        from src.models.usage_models import ApplicationConfig, UsageRecord

        applications = {}
        for raw in apps:
            app = ApplicationConfig.model_validate(raw)
            applications[app.public_key] = app
        records = [UsageRecord.model_validate(raw) for raw in relays]
        return classify_relays(applications, records, NOW, GRACE_PERIOD)

    def test_fixture_dataset(self, apps_limits, apps_relays):
        result = self._classify(apps_limits, apps_relays)

        assert result.app_ids_passed_limit == ["app-sustained"]
        assert result.app_ids_first_surpassed == ["app-first"]

    def test_unlimited_apps_are_skipped(self):
        result = self._classify(
            [make_app("a", "pk-a", 0, (NOW - timedelta(days=9)).isoformat())],
            [make_relay("pk-a", 10**9)],
        )
        assert result.app_ids_passed_limit == []
        assert result.app_ids_first_surpassed == []

    def test_failures_do_not_count_against_limit(self):
        result = self._classify([make_app("a", "pk-a", 100)], [make_relay("pk-a", 99, 10_000)])
        assert result.app_ids_first_surpassed == []

    def test_relays_without_config_are_ignored(self):
        result = self._classify([], [make_relay("pk-missing", 500)])
        assert result.app_ids_passed_limit == []
        assert result.app_ids_first_surpassed == []


class TestRefresh:
    """Test full refresh cycles against mocked upstreams"""

    @pytest.mark.asyncio
    async def test_refresh_publishes_sustained_breaches(self, engine, mock_upstreams):
        snapshot = await engine.refresh()

        assert engine.get_app_ids_passed_limit() == ["app-sustained"]
        assert snapshot.refreshed_at == NOW
        assert "" not in snapshot.applications
        assert len(snapshot.relays) == 6

    @pytest.mark.asyncio
    async def test_first_crossing_is_written_back_once_and_not_published(
        self, engine, mock_upstreams
    ):
        await engine.refresh()

        writes = mock_upstreams.requests_to("POST", FIRST_DATE_URL)
        assert len(writes) == 1
        body = json.loads(writes[0].content)
        assert body["application_ids"] == ["app-first"]
        assert body["first_date_surpassed"].startswith("2026-01-05T12:00:00")
        assert writes[0].headers["Authorization"] == "test-db-key"
        assert "app-first" not in engine.get_app_ids_passed_limit()

    @pytest.mark.asyncio
    async def test_no_write_back_when_nothing_crossed(self, engine, upstream):
        upstream.add("GET", f"{DB_URL}/application", body=[make_app("a", "pk-a", 100)])
        upstream.add("GET", f"{METER_URL}/v0/relays/apps", body=[make_relay("pk-a", 1)])

        await engine.refresh()

        assert upstream.requests_to("POST", FIRST_DATE_URL) == []
        assert engine.get_app_ids_passed_limit() == []

    @pytest.mark.asyncio
    async def test_limits_failure_keeps_empty_snapshot(self, engine, upstream):
        upstream.add("GET", f"{DB_URL}/application", status_code=500)

        with pytest.raises(RefreshError) as exc_info:
            await engine.refresh()

        assert exc_info.value.stage == "limits"
        assert isinstance(exc_info.value.cause, LimitsStatusError)
        assert engine.get_app_ids_passed_limit() == []
        assert upstream.requests_to("GET", f"{METER_URL}/v0/relays/apps") == []

    @pytest.mark.asyncio
    async def test_relays_failure_keeps_previous_snapshot(self, engine, mock_upstreams):
        await engine.refresh()
        previous = engine.snapshot

        mock_upstreams.add("GET", f"{METER_URL}/v0/relays/apps", status_code=503)

        with pytest.raises(RefreshError) as exc_info:
            await engine.refresh()

        assert exc_info.value.stage == "relays"
        assert isinstance(exc_info.value.cause, RelaysStatusError)
        assert engine.snapshot is previous
        assert engine.get_app_ids_passed_limit() == ["app-sustained"]

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_previous_snapshot(self, engine, mock_upstreams):
        mock_upstreams.add("POST", FIRST_DATE_URL, status_code=500)

        with pytest.raises(RefreshError) as exc_info:
            await engine.refresh()

        assert exc_info.value.stage == "persist"
        assert isinstance(exc_info.value.cause, DateSurpassedStatusError)
        assert engine.get_app_ids_passed_limit() == []

    @pytest.mark.asyncio
    async def test_malformed_limits_body_aborts_refresh(self, engine, upstream):
        upstream.add_handler(
            "GET",
            f"{DB_URL}/application",
            lambda request: httpx.Response(200, content=b"not json"),
        )

        with pytest.raises(RefreshError) as exc_info:
            await engine.refresh()

        assert exc_info.value.stage == "limits"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "null_field", ["name", "userID", "limit", "gatewayAAT", "notificationSettings"]
    )
    async def test_null_field_in_one_config_does_not_block_others(
        self, engine, upstream, null_field
    ):
        broken = make_app("app-broken", "pk-broken", 100, (NOW - timedelta(days=5)).isoformat())
        broken[null_field] = None
        breaching = make_app("app-a", "pk-a", 100, (NOW - timedelta(days=5)).isoformat())
        upstream.add("GET", f"{DB_URL}/application", body=[broken, breaching])
        upstream.add(
            "GET",
            f"{METER_URL}/v0/relays/apps",
            body=[make_relay("pk-broken", 10), make_relay("pk-a", 500)],
        )

        snapshot = await engine.refresh()

        assert "app-a" in snapshot.app_ids_passed_limit
        assert "app-broken" not in snapshot.app_ids_passed_limit
