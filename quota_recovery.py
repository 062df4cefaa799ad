"""
Staged cleanup for a submissions collection that no longer fits the store.

Stages run in order and each one only when the previous result still could
not be persisted:

    age        drop submissions older than the retention window
    rejected   drop rejected submissions        (only above ``max_items``)
    narrow     keep approved and pending only   (only above ``max_items``)
    cap        keep the ``max_items`` most recent (only above ``max_items``)
    compact    recompress images, truncate descriptions

When even the compacted collection fails, an empty collection is persisted
and returned. The pipeline never raises for lack of space.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from schemas import AntiqueSubmission, ReviewStatus

logger = logging.getLogger(__name__)

Attempt = Callable[[List[AntiqueSubmission]], bool]
Compressor = Callable[[str], str]


@dataclass
class RecoveryResult:
    persisted: bool
    items: List[AntiqueSubmission]
    stages_run: List[str] = field(default_factory=list)

    @property
    def stage(self) -> Optional[str]:
        """Stage whose output was persisted, ``None`` when recovery was exhausted."""
        return self.stages_run[-1] if self.persisted and self.stages_run else None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class QuotaRecoveryPipeline:
    def __init__(
        self,
        attempt: Attempt,
        compressor: Compressor,
        clock: Callable[[], datetime] = _utcnow,
        retention_days: int = 30,
        max_items: int = 100,
        max_description_length: int = 500,
    ):
        self.attempt = attempt
        self.compressor = compressor
        self.clock = clock
        self.retention = timedelta(days=retention_days)
        self.max_items = max_items
        self.max_description_length = max_description_length

    # ---------------
    # Stages
    # ---------------

    def evict_by_age(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        cutoff = _as_utc(self.clock()) - self.retention
        return [s for s in items if _as_utc(s.submitted_at) >= cutoff]

    def evict_rejected(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        if len(items) <= self.max_items:
            return list(items)
        return [s for s in items if s.status != ReviewStatus.REJECTED]

    def narrow_status(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        if len(items) <= self.max_items:
            return list(items)
        keep = (ReviewStatus.APPROVED, ReviewStatus.PENDING)
        return [s for s in items if s.status in keep]

    def cap_recent(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        if len(items) <= self.max_items:
            return list(items)
        newest = sorted(items, key=lambda s: _as_utc(s.submitted_at), reverse=True)
        return newest[: self.max_items]

    def compact(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        return [
            s.model_copy(update={
                "images": [self.compressor(img) for img in s.images],
                "description": s.description[: self.max_description_length],
            })
            for s in items
        ]

    # ---------------
    # Driver
    # ---------------

    def run(self, items: Sequence[AntiqueSubmission]) -> RecoveryResult:
        stages = [
            ("age", self.evict_by_age),
            ("rejected", self.evict_rejected),
            ("narrow", self.narrow_status),
            ("cap", self.cap_recent),
            ("compact", self.compact),
        ]
        current = list(items)
        ran: List[str] = []
        for name, stage in stages:
            current = stage(current)
            ran.append(name)
            logger.info("Quota recovery stage '%s' left %d of %d submissions", name, len(current), len(items))
            if self.attempt(current):
                return RecoveryResult(persisted=True, items=current, stages_run=ran)

        logger.error("Quota recovery exhausted; dropping %d stored submissions", len(current))
        if not self.attempt([]):
            logger.error("Could not persist an empty submissions collection")
        return RecoveryResult(persisted=False, items=[], stages_run=ran)

    def recover(self, items: Sequence[AntiqueSubmission]) -> List[AntiqueSubmission]:
        return self.run(items).items
