"""
Exceptions raised by the zone trainer core.

Only two conditions are user-facing: bad configuration, and a selection
attempted with no enabled zone.
"""


class ZoneTrainerError(Exception):
    """Base exception for all zone trainer errors."""

    pass


class ConfigurationError(ZoneTrainerError):
    """Raised when settings, sequences, modes or layouts are invalid."""

    pass


class EmptyZoneSetError(ZoneTrainerError):
    """Raised when a zone is requested but no zone is enabled."""

    def __init__(self, message: str = "No zones enabled") -> None:
        super().__init__(message)
