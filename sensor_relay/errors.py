"""Custom exceptions for the sensor relay."""


class RelayError(Exception):
    """Base exception for all sensor relay errors."""

    pass


class SerialIOError(RelayError):
    """Raised when serial communication fails (open, write or read)."""

    pass


class InvalidResponse(RelayError):
    """Raised when the sensor sends a malformed response line."""

    pass


class ReadFailed(RelayError):
    """Raised when the serial stream ends before a complete frame arrives."""

    pass


class Co2DeviceError(RelayError):
    """Raised when the USB CO2 monitor is missing, fails, or sends a bad frame."""

    pass


class SinkError(RelayError):
    """Raised when a write to the persistence sink fails."""

    pass


class PoolTimeout(SinkError):
    """Raised when no sink connection becomes available in time."""

    pass


class ConfigError(RelayError):
    """Raised when environment configuration is invalid."""

    pass
