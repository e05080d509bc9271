"""
Mailgun email client for templated notification emails.
"""

import json
import logging
from dataclasses import asdict, dataclass, field

import httpx

from src.services.http_client import HTTPClient
from src.utils.exceptions import EmailDeliveryError, UnknownTemplateError

logger = logging.getLogger(__name__)

# Whitelisted template name -> (Mailgun template, subject)
WHITELISTED_TEMPLATES: dict[str, tuple[str, str]] = {
    "NotificationChange": (
        "pocket-dashboard-notifications-changed",
        "Pocket Portal: Notification settings",
    ),
    "NotificationSignup": (
        "pocket-dashboard-notifications-signup",
        "Pocket Portal: You've signed up for notifications",
    ),
    "NotificationThresholdHit": (
        "pocket-dashboard-notifications-threshold-hit",
        "Pocket Portal: Endpoint Notification",
    ),
    "PasswordReset": (
        "pocket-dashboard-password-reset",
        "Pocket Portal: Reset your password",
    ),
    "SignUp": (
        "pocket-dashboard-signup",
        "Pocket Portal: Sign up",
    ),
    "Unstake": (
        "pocket-portal-unstake-notification",
        "Pocket Portal: Unstake Notification",
    ),
    "FeedBack": (
        "pocket-portal-feedback-box",
        "Pocket Portal: Feedback Box",
    ),
}


@dataclass(frozen=True)
class TemplateData:
    app_id: str = ""
    app_name: str = ""
    usage: str = ""


@dataclass(frozen=True)
class EmailConfig:
    template_name: str
    to_email: str
    template_data: TemplateData = field(default_factory=TemplateData)


class EmailClient:
    def __init__(
        self,
        http: HTTPClient,
        api_key: str,
        domain: str,
        from_email: str,
        base_url: str = "https://api.mailgun.net/v3",
    ):
        self.http = http
        self.api_key = api_key
        self.domain = domain
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")

    def build_message(self, config: EmailConfig) -> dict[str, str]:
        """Mailgun form fields for ``config``."""
        if config.template_name not in WHITELISTED_TEMPLATES:
            raise UnknownTemplateError(config.template_name)

        template, subject = WHITELISTED_TEMPLATES[config.template_name]
        message = {
            "from": self.from_email,
            "to": config.to_email,
            "subject": subject,
            "template": template,
        }

        if config.template_data.app_id:
            message["h:X-Mailgun-Variables"] = json.dumps(asdict(config.template_data))

        return message

    async def send_email(self, config: EmailConfig) -> str:
        """
        Send one templated email.

        Returns:
            The Mailgun message id

        Raises:
            UnknownTemplateError: template name is not whitelisted
            EmailDeliveryError: transport failure or non-200 response
        """
        message = self.build_message(config)

        try:
            response = await self.http.request(
                "POST",
                f"{self.base_url}/{self.domain}/messages",
                data=message,
                auth=("api", self.api_key),
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"error sending email: {e}") from e

        if response.status_code != 200:
            raise EmailDeliveryError(
                f"error sending email: Mailgun returned {response.status_code}"
            )

        body = response.json()
        message_id = body.get("id", "")
        logger.info(
            f"Sent {config.template_name} email",
            extra={"message_id": message_id, "mailgun_response": body.get("message", "")},
        )
        return message_id
