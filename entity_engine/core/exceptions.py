"""Error taxonomy for the engine.

Only EntityListingError ever reaches callers; the other errors are raised by
the infrastructure layer and recovered inside the services.
"""

from __future__ import annotations

from typing import Iterable


class EngineError(Exception):
    """Base for all engine errors."""


class TransientFetchError(EngineError):
    """A single, batch or aggregate fetch failed (network, HTTP or payload)."""

    def __init__(
        self,
        message: str,
        entity_ids: Iterable[str] = (),
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.entity_ids = tuple(entity_ids)
        self.status_code = status_code


class StoreUnavailable(EngineError):
    """The persistent record store could not be read or written."""


class EntityListingError(EngineError):
    """The set of known entities could not be fetched."""

    def __init__(self, message: str, metric: str | None = None):
        super().__init__(message)
        self.metric = metric
