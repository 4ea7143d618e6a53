"""Exception types for the uplink.

Only configuration problems are raised to the top level; every runtime
condition (path loss, send timeout, buffer overflow) is reported through
typed results and counters instead.
"""


class UplinkError(Exception):
    """Base class for uplink errors."""


class ConfigurationError(UplinkError):
    """Configuration is invalid and the process must not start."""


class NoPathsConfigured(ConfigurationError):
    """No network paths were configured for the uplink."""

    def __init__(self, message: str = "No network paths configured") -> None:
        super().__init__(message)
