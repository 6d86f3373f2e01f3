"""
Shared enums and constants used across the application.
"""

from enum import Enum

class PlatformName(str, Enum):
    SHOPIFY = "shopify"
    ETSY = "etsy"
    AMAZON = "amazon"

    @property
    def display_name(self):
        return self.value.capitalize()


class ProductStatus(str, Enum):
    """Product status values used in both models and connectors"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class SyncKind(str, Enum):
    FULL = "full"
    SINGLE = "single"
    PUSH = "push"


class SyncTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class SyncLogStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncLogStatus.IN_PROGRESS


class AlertStatus(str, Enum):
    PENDING = "pending"
    TRIGGERED = "triggered"
    RESOLVED = "resolved"


class NotificationMethod(str, Enum):
    EMAIL = "email"
    IN_APP = "in_app"
    SLACK = "slack"
    DISCORD = "discord"
