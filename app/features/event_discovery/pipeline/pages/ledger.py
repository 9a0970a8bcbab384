"""Process-wide record of recently fetched event pages."""

import time
from collections.abc import Callable

from app.features.event_discovery.domain.models import VisitedUrlRecord


class VisitedUrlLedger:
    """
    Pages fetched within the retention window are not fetched again by any
    run. Expired records are dropped lazily on lookup or by purge_expired().
    """

    def __init__(self, retention_seconds: float, clock: Callable[[], float] = time.time):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._records: dict[str, VisitedUrlRecord] = {}

    def _expired(self, record: VisitedUrlRecord, now: float) -> bool:
        return now - record.visited_at >= self.retention_seconds

    def should_skip(self, url: str) -> bool:
        record = self._records.get(url)
        if record is None:
            return False
        if self._expired(record, self._clock()):
            del self._records[url]
            return False
        return True

    def record(self, url: str, found_events: bool) -> None:
        self._records[url] = VisitedUrlRecord(
            url=url, visited_at=self._clock(), found_events=found_events
        )

    def get(self, url: str) -> VisitedUrlRecord | None:
        return self._records.get(url) if self.should_skip(url) else None

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [url for url, record in self._records.items() if self._expired(record, now)]
        for url in expired:
            del self._records[url]
        return len(expired)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
