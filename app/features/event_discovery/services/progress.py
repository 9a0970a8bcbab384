"""
Progress of the most recent discovery run.

A single record overwritten by each run; readers poll it while the request
is in flight. Steps only move forward within a run.
"""

from datetime import UTC, datetime
from typing import Any

from app.features.event_discovery.domain.models import STEP_ORDER, DiscoveryStep, WebsiteCandidate

COUNT_FIELDS = {
    "brave_sites": "braveSites",
    "event_links": "eventLinks",
    "candidate_pages": "candidatePages",
    "extracted_events": "extractedEvents",
}


class ProgressTracker:
    def __init__(self):
        self.step = DiscoveryStep.IDLE
        self.sites: list[dict[str, str]] = []
        self.counts: dict[str, int] = dict.fromkeys(COUNT_FIELDS, 0)
        self.background = False
        self.updated_at: datetime | None = None

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def start(self) -> None:
        self.step = DiscoveryStep.START
        self.sites = []
        self.counts = dict.fromkeys(COUNT_FIELDS, 0)
        self._touch()

    def advance(self, step: DiscoveryStep) -> None:
        """Move to step unless that would go backwards."""
        if STEP_ORDER.index(step) > STEP_ORDER.index(self.step):
            self.step = step
            self._touch()

    def set_sites(self, sites: list[WebsiteCandidate]) -> None:
        self.sites = [
            {"url": s.url, "source": s.source_label, "interest": s.interest, "status": "pending"}
            for s in sites
        ]
        self._touch()

    def mark_site(self, url: str, status: str) -> None:
        for site in self.sites:
            if site["url"] == url:
                site["status"] = status
        self._touch()

    def set_count(self, name: str, value: int) -> None:
        if name not in self.counts:
            raise KeyError(f"Unknown progress counter: {name}")
        self.counts[name] = value
        self._touch()

    def snapshot(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "sites": [dict(site) for site in self.sites],
            "counts": {COUNT_FIELDS[name]: value for name, value in self.counts.items()},
            "background": self.background,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
