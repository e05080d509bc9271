"""
Models package for application limits, relay usage and notification thresholds
"""

from .usage_models import (
    DEFAULT_NOTIFICATION_SETTINGS,
    AppIDsResponse,
    ApplicationConfig,
    FirstDateSurpassedUpdate,
    NotificationSettings,
    NotificationThreshold,
    RelayCounts,
    UsageRecord,
)

__all__ = [
    "DEFAULT_NOTIFICATION_SETTINGS",
    "AppIDsResponse",
    "ApplicationConfig",
    "FirstDateSurpassedUpdate",
    "NotificationSettings",
    "NotificationThreshold",
    "RelayCounts",
    "UsageRecord",
]
