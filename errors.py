# errors.py - error taxonomy for Poker Tallies
#
# Every failure is recoverable: reject the operation and keep the prior
# valid state, or discard a bad cached record and start clean.

from typing import Any, Dict, Optional


class TalliesError(Exception):
    """Base exception for all Poker Tallies errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(TalliesError):
    """Raised when an operation is rejected; no state was mutated"""
    pass


class DataLoadError(TalliesError):
    """Raised when a persisted blob is corrupt or unreadable"""
    pass


class StaleDataError(TalliesError):
    """Raised when the persisted in-progress session is past the freshness window"""
    pass
