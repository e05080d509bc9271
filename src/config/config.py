import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _get_env_var(
    environ: Mapping[str, str], name: str, default: str | None = None, *, strip: bool = True
) -> str | None:
    """
    Fetch an environment variable with optional whitespace trimming.

    Args:
        environ: Mapping to read from (usually os.environ).
        name: Environment variable to look up.
        default: Value to return when the env var is unset or empty.
        strip: Whether to strip leading/trailing whitespace (default: True).

    Returns:
        The normalized string value or the provided default when empty.
    """
    value = environ.get(name)
    if value is None:
        return default

    if strip:
        value = value.strip()

    return value or default


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = _get_env_var(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from None


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = _get_env_var(environ, name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes"}


def _get_list(environ: Mapping[str, str], name: str) -> tuple[str, ...]:
    value = _get_env_var(environ, name, "")
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Config:
    """Configuration for the usage threshold service.

    Built once at process start with ``Config.from_env()`` and passed to each
    component's constructor.
    """

    # Environment Detection
    app_env: str = "development"

    # HTTP server
    port: int = 8080
    api_keys: tuple[str, ...] = ()

    # Outbound transport
    http_retries: int = 0
    http_timeout: float = 5.0

    # Schedules
    cache_refresh_minutes: int = 10
    notifier_interval_minutes: int = 60
    notifier_enabled: bool = False

    # Hard limit hysteresis
    grace_period: timedelta = field(default_factory=lambda: timedelta(hours=48))

    # Portal database (application configs)
    http_db_url: str = "https://test-db.com"
    http_db_api_key: str = ""

    # Relay meter (usage counts)
    relay_meter_url: str = "https://test-meter.com"

    # Auth0 Configuration
    auth0_domain: str = "https://test-auth0.com"
    auth0_client_id: str = ""
    auth0_client_secret: str = ""

    # Mailgun Configuration
    mailgun_api_key: str = ""
    mailgun_domain: str = "pokt.network"
    mailgun_base_url: str = "https://api.mailgun.net/v3"
    mailgun_from_email: str = "Pocket Portal <portal@pokt.network>"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def api_key_required(self) -> bool:
        return bool(self.api_keys)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Config":
        """Build a Config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            app_env=_get_env_var(env, "APP_ENV", defaults.app_env),
            port=_get_int(env, "PORT", defaults.port),
            api_keys=_get_list(env, "API_KEYS"),
            http_retries=_get_int(env, "HTTP_RETRIES", defaults.http_retries),
            http_timeout=float(_get_int(env, "HTTP_TIMEOUT", int(defaults.http_timeout))),
            cache_refresh_minutes=_get_int(env, "CACHE_REFRESH", defaults.cache_refresh_minutes),
            notifier_interval_minutes=_get_int(
                env, "NOTIFIER_INTERVAL", defaults.notifier_interval_minutes
            ),
            notifier_enabled=_get_bool(env, "NOTIFIER_ENABLED", defaults.notifier_enabled),
            grace_period=timedelta(hours=_get_int(env, "GRACE_PERIOD", 48)),
            http_db_url=_get_env_var(env, "HTTP_DB_URL", defaults.http_db_url).rstrip("/"),
            http_db_api_key=_get_env_var(env, "HTTP_DB_API_KEY", defaults.http_db_api_key),
            relay_meter_url=_get_env_var(env, "RELAY_METER_URL", defaults.relay_meter_url).rstrip(
                "/"
            ),
            auth0_domain=_get_env_var(env, "AUTH0_DOMAIN", defaults.auth0_domain).rstrip("/"),
            auth0_client_id=_get_env_var(env, "AUTH0_CLIENT_ID", defaults.auth0_client_id),
            auth0_client_secret=_get_env_var(
                env, "AUTH0_CLIENT_SECRET", defaults.auth0_client_secret
            ),
            mailgun_api_key=_get_env_var(env, "MAILGUN_API_KEY", defaults.mailgun_api_key),
            mailgun_domain=_get_env_var(env, "MAILGUN_DOMAIN", defaults.mailgun_domain),
            mailgun_base_url=_get_env_var(
                env, "MAILGUN_BASE_URL", defaults.mailgun_base_url
            ).rstrip("/"),
            mailgun_from_email=_get_env_var(
                env, "MAILGUN_FROM_EMAIL", defaults.mailgun_from_email
            ),
        )

    def validate_critical_env_vars(self) -> tuple[bool, list[str]]:
        """
        Check that the credentials needed outside development are present.

        Returns:
            tuple: (is_valid, missing_vars)
        """
        critical_vars = {"HTTP_DB_API_KEY": self.http_db_api_key}
        if self.notifier_enabled:
            critical_vars.update(
                {
                    "AUTH0_CLIENT_ID": self.auth0_client_id,
                    "AUTH0_CLIENT_SECRET": self.auth0_client_secret,
                    "MAILGUN_API_KEY": self.mailgun_api_key,
                }
            )

        missing_vars = [name for name, value in critical_vars.items() if not value]
        return len(missing_vars) == 0, missing_vars
