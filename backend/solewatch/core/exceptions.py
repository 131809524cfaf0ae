"""Custom exception classes for the application."""


class SoleWatchError(Exception):
    """Base exception for all SoleWatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(SoleWatchError):
    """Raised when a required setting is missing or invalid."""


class SourceError(SoleWatchError):
    """Raised when a deal source cannot be fetched or parsed."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(f"Source error for {source_id}: {message}")


class CatalogNotFoundError(SoleWatchError):
    """Raised when the catalog document does not exist in the blob store."""

    def __init__(self, key: str):
        super().__init__(f"Could not locate catalog document '{key}'")


class AlertNotFoundError(SoleWatchError):
    """Raised when an alert does not exist or belongs to another email."""

    def __init__(self, alert_id: str):
        super().__init__(f"Alert with identifier '{alert_id}' not found")


class AlertValidationError(SoleWatchError):
    """Raised when alert input fails validation."""


class AlertLimitExceededError(SoleWatchError):
    """Raised when an email already holds the maximum number of active alerts."""

    def __init__(self, limit: int, current: int):
        self.limit = limit
        self.current = current
        super().__init__(
            f"Maximum {limit} active alerts per email. "
            "Please cancel an existing alert first."
        )


class InvalidAlertStateError(SoleWatchError):
    """Raised when an action is not allowed in the alert's current state."""


class DeliveryError(SoleWatchError):
    """Raised when an email could not be handed to the delivery provider."""

    def __init__(self, recipient: str, message: str):
        self.recipient = recipient
        super().__init__(f"Delivery to {recipient} failed: {message}")
