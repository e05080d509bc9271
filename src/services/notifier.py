"""
Notification Dispatcher

Classifies each application's usage from the latest refresh snapshot against
its notification settings, resolves the owner's email through Auth0 and sends
one threshold email per notifiable application.

Tiers are recomputed from current usage on every run; nothing records which
tier an application was already notified about, so an application that stays
above a threshold is emailed again on the next run.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from src.models.usage_models import NotificationThreshold
from src.services import prometheus_metrics
from src.services.auth0_client import Auth0Client
from src.services.email_client import EmailClient, EmailConfig, TemplateData
from src.services.threshold_engine import ThresholdEngine, get_app_threshold
from src.utils.exceptions import NotificationError

logger = logging.getLogger(__name__)

THRESHOLD_HIT_TEMPLATE = "NotificationThresholdHit"


class SkipReason(str, Enum):  # noqa: UP042
    """Why an application was left out of a notification run"""

    MISSING_CONFIG = "missing_config"
    NO_USAGE = "no_usage"
    BELOW_THRESHOLD = "below_threshold"
    USER_LOOKUP_FAILED = "user_lookup_failed"


@dataclass(frozen=True)
class AppUsage:
    email: str
    name: str
    limit: int
    usage: int
    threshold: NotificationThreshold

    @property
    def usage_percent(self) -> str:
        """Usage over limit as a ratio rounded to two decimals, e.g. ``0.84``"""
        return f"{self.usage / self.limit:.2f}"


@dataclass(frozen=True)
class SkippedApp:
    application: str
    reason: SkipReason
    detail: str = ""


@dataclass
class NotificationPlan:
    notifiable: dict[str, AppUsage] = field(default_factory=dict)
    skipped: list[SkippedApp] = field(default_factory=list)

    def skip(self, application: str, reason: SkipReason, detail: str = "") -> None:
        self.skipped.append(SkippedApp(application, reason, detail))
        prometheus_metrics.notifications_skipped.labels(reason=reason.value).inc()


class Notifier:
    def __init__(self, engine: ThresholdEngine, auth0: Auth0Client, email_client: EmailClient):
        self.engine = engine
        self.auth0 = auth0
        self.email_client = email_client

    async def build_usage_map(self) -> NotificationPlan:
        """
        Collect every application whose usage reached an enabled threshold.

        Raises:
            Auth0TokenError: the management token could not be fetched
        """
        snapshot = self.engine.snapshot
        plan = NotificationPlan()

        token = await self.auth0.get_mgmt_token()

        for relay_count in snapshot.relays:
            app = snapshot.applications.get(relay_count.application)
            if app is None:
                plan.skip(relay_count.application, SkipReason.MISSING_CONFIG)
                continue

            usage = relay_count.total
            if usage <= 0:
                plan.skip(app.id, SkipReason.NO_USAGE)
                continue

            threshold = get_app_threshold(
                usage, app.daily_limit, app.effective_notification_settings()
            )
            if threshold == NotificationThreshold.NONE:
                plan.skip(app.id, SkipReason.BELOW_THRESHOLD)
                continue

            try:
                email = await self.auth0.get_user_email(app.user_id, token)
            except Exception as e:
                logger.warning(
                    f"Skipping notification for app {app.id}: user lookup failed: {e}",
                    extra={"app_id": app.id, "user_id": app.user_id},
                )
                plan.skip(app.id, SkipReason.USER_LOOKUP_FAILED, str(e))
                continue

            plan.notifiable[app.id] = AppUsage(
                email=email,
                name=app.name,
                limit=app.daily_limit,
                usage=usage,
                threshold=threshold,
            )

        return plan

    async def send_emails(self, usage_map: dict[str, AppUsage]) -> int:
        """
        Send one threshold email per application. Stops at the first failure.

        Returns:
            Number of emails sent
        """
        sent = 0
        for app_id, app_usage in usage_map.items():
            logger.info(
                f"Notifying app {app_id}: {app_usage.usage} of {app_usage.limit} "
                f"({app_usage.threshold.name})",
                extra={"app_id": app_id, "usage": app_usage.usage_percent},
            )

            await self.email_client.send_email(
                EmailConfig(
                    template_name=THRESHOLD_HIT_TEMPLATE,
                    to_email=app_usage.email,
                    template_data=TemplateData(
                        app_id=app_id,
                        app_name=app_usage.name,
                        usage=app_usage.usage_percent,
                    ),
                )
            )
            prometheus_metrics.notifications_sent.labels(
                threshold=app_usage.threshold.name.lower()
            ).inc()
            sent += 1

        return sent

    async def handle_notifications(self) -> NotificationPlan:
        """
        Run one notification cycle.

        Raises:
            NotificationError: with stage ``token`` or ``send``
        """
        try:
            plan = await self.build_usage_map()
        except Exception as e:
            raise NotificationError("token", e) from e

        try:
            sent = await self.send_emails(plan.notifiable)
        except Exception as e:
            raise NotificationError("send", e) from e

        logger.info(
            f"Notification run complete: {sent} sent, {len(plan.skipped)} skipped"
        )
        return plan
