"""Per-run context passed explicitly into every harvest task."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with the run's job id, repository and language."""

    def process(self, msg, kwargs):
        parts = [f"job={self.extra['job_id']}"]
        if self.extra.get("repository"):
            parts.append(f"repo={self.extra['repository']}")
        if self.extra.get("language"):
            parts.append(f"lang={self.extra['language']}")
        return f"[{' '.join(parts)}] {msg}", kwargs


@dataclass(frozen=True)
class RunContext:
    """Identity of one harvest run."""

    job_id: str
    since: Optional[datetime] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, since: Optional[datetime] = None) -> RunContext:
        started_at = datetime.now(timezone.utc)
        return cls(
            job_id=f"harvest-{started_at.isoformat()}",
            since=since,
            started_at=started_at,
        )

    @property
    def incremental(self) -> bool:
        return self.since is not None

    def logger(
        self,
        logger: logging.Logger,
        repository: Optional[str] = None,
        language: Optional[str] = None,
    ) -> RunLoggerAdapter:
        return RunLoggerAdapter(
            logger,
            {"job_id": self.job_id, "repository": repository, "language": language},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "since": self.since.isoformat() if self.since else None,
            "started_at": self.started_at.isoformat(),
        }


__all__ = ["RunContext", "RunLoggerAdapter"]
