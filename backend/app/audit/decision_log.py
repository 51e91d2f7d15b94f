"""Decision audit log — every worker decision, in order.

Entries are always kept in memory. When a path is configured they are also
appended to a JSON Lines file; a write failure is logged and the in-memory
trail stays authoritative.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from app.config import settings
from app.models.decision import DecisionEntry, DecisionStats, RoleDecisionCounts

logger = logging.getLogger(__name__)


class DecisionLog:
    """Append-only audit trail of worker decisions."""

    def __init__(self, path: str | Path | None = None) -> None:
        configured = path if path is not None else settings.decision_log_path
        self.path: Path | None = Path(configured) if configured else None
        self._entries: list[DecisionEntry] = []
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Decision log writing to %s", self.path)

    def __len__(self) -> int:
        return len(self._entries)

    def log(self, entry: DecisionEntry) -> str:
        """Record an entry and return its id."""
        self._entries.append(entry)
        if self.path is not None:
            try:
                with self.path.open("a", encoding="utf-8") as fh:
                    fh.write(entry.model_dump_json() + "\n")
            except OSError as e:
                logger.error("Decision log write failed (%s): %s", self.path, e)
        logger.debug("Logged decision %s by %s", entry.id, entry.role)
        return entry.id

    def get(self, entry_id: str) -> DecisionEntry | None:
        return next((e for e in self._entries if e.id == entry_id), None)

    def recent(
        self,
        limit: int = 50,
        role: str | None = None,
        task_id: str | None = None,
        escalated: bool | None = None,
    ) -> list[DecisionEntry]:
        """Newest entries first, optionally filtered."""
        results = []
        for entry in reversed(self._entries):
            if role is not None and entry.role != role:
                continue
            if task_id is not None and entry.task_id != task_id:
                continue
            if escalated is not None and entry.escalated != escalated:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    def stats(self, since: datetime | None = None) -> DecisionStats:
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        entries = [e for e in self._entries if since is None or e.logged_at >= since]
        stats = DecisionStats(total=len(entries))
        for entry in entries:
            counts = stats.by_role.setdefault(entry.role, RoleDecisionCounts())
            counts.total += 1
            if entry.escalated:
                counts.escalated += 1
                stats.escalated += 1
        return stats

    def load(self) -> int:
        """Reload entries from the JSONL file. Returns the number read."""
        if self.path is None or not self.path.exists():
            return 0
        loaded = 0
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            self._entries.append(DecisionEntry.model_validate_json(line))
            loaded += 1
        return loaded
