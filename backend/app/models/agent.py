"""Worker models.

Includes: RoleSpec, WorkerStatus.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class RoleSpec(BaseModel):
    """Role specification loaded from YAML files.

    Defines a role's identity, authority, and escalation triggers.
    Stored in backend/app/agents/specs/*.yaml.
    """

    id: str                         # e.g., "cfo"
    name: str                       # e.g., "Chief Financial Officer"
    abbr: str = ""                  # e.g., "CFO"
    tier: Literal["executive", "director", "specialist"] = "executive"
    reports_to: str = "ceo"
    description: str = ""
    responsibilities: list[str] = Field(default_factory=list)
    direct_reports: list[str] = Field(default_factory=list)

    # Authority
    escalate_above: float | None = None   # Role-specific spending ceiling
    always_escalate: list[str] = Field(default_factory=list)  # Phrases that always need sign-off

    version: str = "0.1.0"

    @property
    def label(self) -> str:
        return self.abbr or self.id.upper()


class WorkerStatus(BaseModel):
    """Runtime status of a worker."""

    role: str
    state: Literal["idle", "busy"] = "idle"
    current_task_id: str | None = None
    tasks_completed: int = 0
    consecutive_failures: int = 0
    last_active: datetime | None = None
