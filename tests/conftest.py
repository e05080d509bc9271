from datetime import timedelta

import httpx
import pytest

from src.config import Config
from src.services.auth0_client import Auth0Client
from src.services.email_client import EmailClient
from src.services.http_client import HTTPClient
from src.services.notifier import Notifier
from src.services.portal_db_client import PortalDBClient
from src.services.relay_meter_client import RelayMeterClient
from src.services.threshold_engine import ThresholdEngine
from tests.helpers.upstreams import (
    AUTH0_URL,
    DB_URL,
    GRACE_PERIOD,
    MAILGUN_URL,
    METER_URL,
    NOW,
    UpstreamRecorder,
    make_app,
    make_relay,
)


@pytest.fixture
def apps_limits() -> list[dict]:
    """Portal application configs covering every hard-limit case"""
    return [
        # Over limit, anchored three days ago
        make_app("app-sustained", "pk-sustained", 100, (NOW - timedelta(hours=72)).isoformat()),
        # Over limit, anchored an hour ago
        make_app("app-young", "pk-young", 100, (NOW - timedelta(hours=1)).isoformat()),
        # Reaches its limit for the first time
        make_app("app-first", "pk-first", 100),
        # No daily limit
        make_app("app-unlimited", "pk-unlimited", 0),
        # Mostly failed relays, anchored long ago
        make_app("app-failures", "pk-failures", 1000, (NOW - timedelta(days=10)).isoformat()),
        # Cannot be joined
        make_app("app-no-key", "", 10),
    ]


@pytest.fixture
def apps_relays() -> list[dict]:
    return [
        make_relay("pk-sustained", 250),
        make_relay("pk-young", 150),
        make_relay("pk-first", 100),
        make_relay("pk-unlimited", 10_000),
        make_relay("pk-failures", 10, 5_000),
        make_relay("pk-unknown", 999),
    ]


@pytest.fixture
def upstream() -> UpstreamRecorder:
    return UpstreamRecorder()


@pytest.fixture
def http_client(upstream) -> HTTPClient:
    return HTTPClient(retries=0, timeout=5.0, transport=httpx.MockTransport(upstream))


@pytest.fixture
def mock_upstreams(upstream, apps_limits, apps_relays) -> UpstreamRecorder:
    """Healthy portal and meter"""
    upstream.add("GET", f"{DB_URL}/application", body=apps_limits)
    upstream.add("GET", f"{METER_URL}/v0/relays/apps", body=apps_relays)
    upstream.add("POST", f"{DB_URL}/application/first_date_surpassed", body={})
    return upstream


@pytest.fixture
def engine(http_client) -> ThresholdEngine:
    return ThresholdEngine(
        portal_db=PortalDBClient(http_client, DB_URL, "test-db-key"),
        relay_meter=RelayMeterClient(http_client, METER_URL),
        grace_period=GRACE_PERIOD,
        clock=lambda: NOW,
    )


@pytest.fixture
def test_config() -> Config:
    return Config.from_env(
        {
            "APP_ENV": "testing",
            "HTTP_DB_URL": DB_URL,
            "HTTP_DB_API_KEY": "test-db-key",
            "RELAY_METER_URL": METER_URL,
        }
    )


def _auth0_users(request: httpx.Request) -> httpx.Response:
    # q is "user_id:*<id>"; users named "user-nobody-*" have no Auth0 account
    user_id = request.url.params["q"].split("*", 1)[1]
    if user_id.startswith("user-nobody"):
        return httpx.Response(200, json=[])
    return httpx.Response(200, json=[{"email": f"{user_id}@example.com"}])


@pytest.fixture
def mock_notification_upstreams(mock_upstreams) -> UpstreamRecorder:
    """Healthy portal, meter, Auth0 and Mailgun"""
    mock_upstreams.add("POST", f"{AUTH0_URL}/oauth/token", body={"access_token": "mgmt-token"})
    mock_upstreams.add_handler("GET", f"{AUTH0_URL}/api/v2/users", _auth0_users)
    mock_upstreams.add(
        "POST",
        f"{MAILGUN_URL}/pokt.network/messages",
        body={"id": "<msg@pokt.network>", "message": "Queued. Thank you."},
    )
    return mock_upstreams


@pytest.fixture
def auth0_client(http_client) -> Auth0Client:
    return Auth0Client(http_client, AUTH0_URL, "test-client-id", "test-client-secret")


@pytest.fixture
def email_client(http_client) -> EmailClient:
    return EmailClient(
        http_client,
        api_key="test-mailgun-key",
        domain="pokt.network",
        from_email="Pocket Portal <portal@pokt.network>",
        base_url=MAILGUN_URL,
    )


@pytest.fixture
def notifier(engine, auth0_client, email_client) -> Notifier:
    return Notifier(engine, auth0_client, email_client)
