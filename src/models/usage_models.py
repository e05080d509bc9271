"""
Data models for application limits, relay usage and notification thresholds
"""

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NotificationThreshold(IntEnum):
    """Usage tier reached by an application, ordered from lowest to highest"""

    NONE = 0
    QUARTER = 1
    HALF = 2
    THREE_QUARTERS = 3
    FULL = 4


class NotificationSettings(BaseModel):
    """Per-application opt-in flags for usage notifications"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    signed_up: bool = Field(False, alias="signedUp")
    quarter: bool = False
    half: bool = False
    three_quarters: bool = Field(False, alias="threeQuarters")
    full: bool = False

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_off(cls, value):
        return False if value is None else value

    def is_empty(self) -> bool:
        return not (
            self.signed_up or self.quarter or self.half or self.three_quarters or self.full
        )


DEFAULT_NOTIFICATION_SETTINGS = NotificationSettings(
    signed_up=True, quarter=False, half=False, three_quarters=True, full=True
)


class GatewayAAT(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    application_public_key: str = Field("", alias="applicationPublicKey")

    @field_validator("application_public_key", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return "" if value is None else value


class AppLimit(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    daily_limit: int = Field(0, ge=0, alias="dailyLimit")

    @field_validator("daily_limit", mode="before")
    @classmethod
    def _null_is_unlimited(cls, value):
        return 0 if value is None else value


class ApplicationConfig(BaseModel):
    """Application configuration as served by the portal database"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Stable application identifier")
    name: str = Field("", description="Display name")
    user_id: str = Field("", alias="userID", description="Owning user identifier")
    gateway_aat: GatewayAAT = Field(default_factory=GatewayAAT, alias="gatewayAAT")
    limit: AppLimit = Field(default_factory=AppLimit)
    first_date_surpassed: datetime | None = Field(None, alias="firstDateSurpassed")
    notification_settings: NotificationSettings | None = Field(
        None, alias="notificationSettings"
    )

    @field_validator("name", "user_id", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("gateway_aat", "limit", mode="before")
    @classmethod
    def _null_is_default(cls, value):
        # The portal sends null where a nested object was never set
        return {} if value is None else value

    @field_validator("first_date_surpassed", mode="after")
    @classmethod
    def _zero_date_is_unset(cls, value: datetime | None) -> datetime | None:
        # The portal serializes "never surpassed" as the zero timestamp
        if value is not None and value.year <= 1:
            return None
        return value

    @property
    def public_key(self) -> str:
        return self.gateway_aat.application_public_key

    @property
    def daily_limit(self) -> int:
        return self.limit.daily_limit

    def effective_notification_settings(self) -> NotificationSettings:
        """Settings to classify with, falling back to defaults when none are set"""
        if self.notification_settings is None or self.notification_settings.is_empty():
            return DEFAULT_NOTIFICATION_SETTINGS
        return self.notification_settings


class RelayCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: int = Field(0, ge=0)
    failure: int = Field(0, ge=0)


class UsageRecord(BaseModel):
    """Relay usage for one application over the metering window"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    application: str = Field(..., description="Application public key")
    count: RelayCounts = Field(default_factory=RelayCounts)
    from_: datetime | None = Field(None, alias="from")
    to: datetime | None = None

    @property
    def total(self) -> int:
        return self.count.success + self.count.failure


class FirstDateSurpassedUpdate(BaseModel):
    """Write-back payload anchoring the first breach of a daily limit"""

    first_date_surpassed: datetime
    application_ids: list[str]


class AppIDsResponse(BaseModel):
    """Response body for the applications-over-limit endpoint"""

    model_config = ConfigDict(populate_by_name=True)

    application_ids: list[str] = Field(default_factory=list, alias="applicationIDs")
