"""
Relay meter client: today's success/failure relay counts per application.
"""

import logging
from datetime import date

from pydantic import TypeAdapter

from src.models.usage_models import UsageRecord
from src.services.http_client import HTTPClient
from src.utils.exceptions import RelaysStatusError

logger = logging.getLogger(__name__)

APP_RELAY_METER_ENDPOINT = "/v0/relays/apps"
ZERO_TIME_SUFFIX = "T00:00:00Z"

_usage_adapter = TypeAdapter(list[UsageRecord])


def day_start(day: date) -> str:
    """Midnight UTC of ``day`` in the meter's query format."""
    return f"{day.isoformat()}{ZERO_TIME_SUFFIX}"


class RelayMeterClient:
    def __init__(self, http: HTTPClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip("/")

    async def get_relays_count(self, day: date) -> list[UsageRecord]:
        """
        Fetch the relay counts of every application for ``day``.

        The meter takes the same midnight timestamp for ``from`` and ``to`` and
        returns the whole day.

        Raises:
            RelaysStatusError: the meter answered with a non-200 status
            httpx.HTTPError: transport failure
            pydantic.ValidationError: malformed body
        """
        zero_date = day_start(day)
        response = await self.http.get(
            f"{self.base_url}{APP_RELAY_METER_ENDPOINT}",
            params={"from": zero_date, "to": zero_date},
        )
        if response.status_code != 200:
            raise RelaysStatusError(response.status_code)

        return _usage_adapter.validate_json(response.content)
