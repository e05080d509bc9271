"""
Portal database client.

Reads per-application limits and notification settings, and writes back the
first date an application surpassed its daily limit.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.models.usage_models import ApplicationConfig, FirstDateSurpassedUpdate
from src.services.http_client import HTTPClient
from src.utils.exceptions import DateSurpassedStatusError, LimitsStatusError

logger = logging.getLogger(__name__)

APPS_ENDPOINT = "/application"
FIRST_DATE_SURPASSED_ENDPOINT = "/application/first_date_surpassed"

_raw_list_adapter = TypeAdapter(list[Any])


class PortalDBClient:
    def __init__(self, http: HTTPClient, base_url: str, api_key: str):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self.api_key}

    async def get_app_limits(self) -> dict[str, ApplicationConfig]:
        """
        Fetch every application config, indexed by application public key.

        Applications without a public key cannot be joined with relay usage and
        are dropped. A config that fails validation is logged and skipped so one
        bad record does not hide every other application.

        Raises:
            LimitsStatusError: the portal answered with a non-200 status
            httpx.HTTPError: transport failure
            pydantic.ValidationError: body is not a JSON array
        """
        response = await self.http.get(f"{self.base_url}{APPS_ENDPOINT}", headers=self._headers())
        if response.status_code != 200:
            raise LimitsStatusError(response.status_code)

        applications = []
        for raw in _raw_list_adapter.validate_json(response.content):
            try:
                applications.append(ApplicationConfig.model_validate(raw))
            except ValidationError as e:
                app_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(
                    f"Skipping invalid application config {app_id}: {e}",
                    extra={"app_id": app_id},
                )

        app_limits = {}
        for app in applications:
            if app.public_key:
                app_limits[app.public_key] = app

        dropped = len(applications) - len(app_limits)
        if dropped:
            logger.debug(f"Dropped {dropped} applications without a public key")

        return app_limits

    async def set_first_date_surpassed(self, app_ids: list[str], now: datetime) -> None:
        """
        Anchor ``now`` as the first date each of ``app_ids`` surpassed its limit.

        Does nothing when ``app_ids`` is empty.

        Raises:
            DateSurpassedStatusError: the portal answered with a non-200 status
            httpx.HTTPError: transport failure
        """
        if not app_ids:
            return

        payload = FirstDateSurpassedUpdate(first_date_surpassed=now, application_ids=app_ids)
        response = await self.http.post_json(
            f"{self.base_url}{FIRST_DATE_SURPASSED_ENDPOINT}",
            payload.model_dump(mode="json"),
            headers=self._headers(),
        )
        if response.status_code != 200:
            raise DateSurpassedStatusError(response.status_code)

        logger.info(f"Set first date surpassed for {len(app_ids)} applications")
