"""
Core module exports.
"""
from .enums import (
    PlatformName,
    ProductStatus,
    SyncKind,
    SyncTrigger,
    SyncLogStatus,
    AlertStatus,
    NotificationMethod,
)

from .exceptions import (
    BaseServiceError,
    PlatformServiceError,
    ConnectorConfigurationError,
    UnsupportedPlatformError,
    SyncError,
    ValidationError,
    InvalidQuantityError,
)

from .utils import (
    utc_now,
    strip_tags,
    ensure_quantity,
)
