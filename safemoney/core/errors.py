class BotError(Exception):
    """Base bot error."""


class UpstreamError(BotError):
    """Raised when an upstream API is unavailable."""


class ValidationError(BotError):
    """Raised for invalid user input."""


class InvalidAmount(ValidationError):
    """Raised when a user-supplied amount is not a finite positive number."""


class UnsupportedCurrency(ValidationError):
    """Raised when a pair is not fiat anchor <-> supported asset."""


class MalformedUpdate(ValidationError):
    """Raised when an inbound update matches neither the message nor the callback shape."""


class PriceUnavailable(UpstreamError):
    """Raised when the price oracle returned no quote for an asset."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Price unavailable for {symbol}")
        self.symbol = symbol


class TransportFailure(BotError):
    """Raised when a send-message or callback acknowledgment call failed."""


class PersistenceFailure(BotError):
    """Raised when the transaction store could not be read or written."""
