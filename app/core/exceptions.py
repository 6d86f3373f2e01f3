class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform connector errors."""
    pass

class ConnectorConfigurationError(PlatformServiceError):
    """Raised when an integration lacks a field its connector requires."""
    pass

class UnsupportedPlatformError(PlatformServiceError):
    """Raised when no connector is registered for an integration's platform."""
    pass

class SyncError(BaseServiceError):
    """Raised when a sync log or sync run is driven into an invalid state."""
    pass

class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    pass

class InvalidQuantityError(ValidationError):
    """Raised when a stock quantity is negative or not an integer."""

    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity!r}")
