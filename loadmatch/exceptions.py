"""Error taxonomy for the LoadMatch engine"""

from typing import Optional


class LoadMatchError(Exception):
    """Base class for all engine errors"""


class ValidationError(LoadMatchError, ValueError):
    """
    A single Load, Vehicle or lane series record is malformed

    Raised while parsing one record. Batch operations catch it, skip the
    record and report it instead of aborting.
    """

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id
        self.message = message


class DependencyError(LoadMatchError):
    """The location resolver failed or timed out"""


class ConfigurationError(LoadMatchError, ValueError):
    """Invalid tunable weights or thresholds (fatal at startup)"""
