"""Error taxonomy for extraction and crawling.

Only ``AuthenticationRequired`` and ``BatchAbort`` ever leave the engine.
The rest are raised inside probes and per-record parsers and absorbed by
the strategy runner, the extractors, or the orchestrator's per-record
boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


class ExtractionError(Exception):
    """Base class for all extraction failures."""


class ProbeFailure(ExtractionError):
    """A single strategy raised or timed out.

    Recorded by the strategy runner and never re-raised; the next strategy
    is attempted instead.
    """


class FieldMissing(ExtractionError):
    """A probe could not find the field it reads.

    The strategy runner treats it like an empty result, not a failure.
    """


class RecordRejected(ExtractionError):
    """A candidate record has no identifying field and is dropped."""


class NavigationFailure(ExtractionError):
    """The document accessor failed to load a page."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Navigation to {url} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AuthenticationRequired(ExtractionError):
    """The session is not signed in; raised before any extraction starts."""

    def __init__(self, url: str, message: str = "Sign in required") -> None:
        self.url = url
        super().__init__(f"{message} ({url})")


class BatchAbort(ExtractionError):
    """An unrecoverable failure that ends a batch early.

    Partial results gathered before the abort are still returned.
    """


@dataclass(frozen=True, slots=True)
class RecordError:
    """A failure confined to one record of a batch."""

    record_id: str
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.record_id} [{self.stage}]: {self.message}"
