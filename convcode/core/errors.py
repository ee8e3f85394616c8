"""
ConvCode exception hierarchy.
All exceptions inherit from ConvCodeError for unified handling.
"""


class ConvCodeError(Exception):
    """Base exception for all convolutional code errors."""
    pass


class ConfigurationError(ConvCodeError):
    """Raised when the code parameters (n, k, m) or a config dict are invalid."""
    pass


class OutOfRangeError(ConvCodeError):
    """Raised when a generator index or a register state is out of range."""

    def __init__(self, message: str, value: int = None, limit: int = None):
        super().__init__(message)
        self.value = value
        self.limit = limit


class InvalidArgumentError(ConvCodeError):
    """Raised when an encode/decode argument is malformed."""
    pass


class AllocationError(ConvCodeError):
    """Raised when generator or trellis working arrays cannot be allocated."""
    pass
