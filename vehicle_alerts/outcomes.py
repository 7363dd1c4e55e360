"""
Stage outcomes and error taxonomy for Vehicle Alerts.

Every stage of a polling loop reports one StageResult so the retry policy
has a single signal to act on:

- SUCCESS: the item was fully processed
- IDLE: there was nothing to do
- TRANSIENT: a retryable failure (network trouble, store hiccup)
- TERMINAL: the item can never succeed (page gone, required field missing)

Adapters signal failures by raising the exceptions below; the loops turn
them into results.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StageStatus(str, Enum):
    """Outcome classes a stage can report."""
    SUCCESS = "success"
    IDLE = "idle"
    TRANSIENT = "transient"
    TERMINAL = "terminal"


@dataclass
class StageResult:
    """Outcome of one stage for one item."""
    status: StageStatus
    reason: str = ""
    count: int = 0  # Items affected (e.g. listings inserted)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCESS

    @classmethod
    def success(cls, count: int = 1, reason: str = "") -> "StageResult":
        return cls(StageStatus.SUCCESS, reason, count)

    @classmethod
    def idle(cls, reason: str = "") -> "StageResult":
        return cls(StageStatus.IDLE, reason)

    @classmethod
    def transient(cls, reason: str) -> "StageResult":
        return cls(StageStatus.TRANSIENT, reason)

    @classmethod
    def terminal(cls, reason: str) -> "StageResult":
        return cls(StageStatus.TERMINAL, reason)

    @classmethod
    def from_error(cls, error: Exception) -> "StageResult":
        """Classify an exception raised by an adapter or the store."""
        if isinstance(error, (ResourceGoneError, ParseIncompleteError)):
            return cls.terminal(str(error))
        return cls.transient(str(error) or error.__class__.__name__)


class VehicleAlertsError(Exception):
    """Base class for errors raised by the pipeline."""


class TransientFetchError(VehicleAlertsError):
    """A fetch failed in a way that may succeed on retry."""

    def __init__(self, url: str, detail: str = "", status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        message = f"Fetch failed for {url}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ResourceGoneError(VehicleAlertsError):
    """The source reports the listing as not found or expired."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Listing no longer exists at {url} (HTTP {status_code})")


class ParseIncompleteError(VehicleAlertsError):
    """A detail page did not yield every required attribute."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Required field(s) missing: {', '.join(missing)}")
