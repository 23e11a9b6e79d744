"""Read-through cache of every report known to the platform."""

from __future__ import annotations

from loguru import logger

from .collaborators import ReportStore
from .models import NamedQuery


class ReportCache:
    """
    Holds the last listing of reports so repeated keyword searches during one
    dashboard build cost a single list call.

    The cache is owned by whoever constructs it and is cleared whenever the
    engine creates, updates or deletes a report. It can be stale with respect
    to changes made outside the engine.
    """

    def __init__(self, store: ReportStore, count: int = 500) -> None:
        self._store = store
        self._count = count
        self._reports: list[NamedQuery] | None = None

    def get_all(self, refresh: bool = False) -> list[NamedQuery]:
        if self._reports is None or refresh:
            logger.debug(f"Loading up to {self._count} reports into the report cache.")
            self._reports = list(self._store.list(count=self._count))
        return self._reports

    def invalidate(self) -> None:
        if self._reports is not None:
            logger.debug("Report cache invalidated.")
        self._reports = None

    @property
    def is_loaded(self) -> bool:
        return self._reports is not None
