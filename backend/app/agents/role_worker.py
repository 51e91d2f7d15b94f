"""RoleWorker — a worker that answers as one organizational role.

Builds a system prompt from the role spec, sends the task to the injected
Responder, and parses the sectioned reply:

    ANALYSIS: ...
    ACTION: ...
    DECISION: ...
    HANDOFF: Hand off to CTO for the architecture review   (or "None")
    ESCALATE: YES: exceeds budget authority                 (or "NO")
"""

from __future__ import annotations

import logging
import re

from app.agents.base import BaseWorker
from app.llm.layer import Responder
from app.models.agent import RoleSpec
from app.models.task import HandoffRequest, Task, TaskResult

logger = logging.getLogger(__name__)

SECTIONS = ("ANALYSIS", "ACTION", "DECISION", "HANDOFF", "ESCALATE")

SECTION_PATTERN = re.compile(
    r"^\s*(?:\d+\.\s*)?(?P<name>ANALYSIS|ACTION|DECISION|HANDOFF|ESCALATE)\s*:",
    re.IGNORECASE | re.MULTILINE,
)
HANDOFF_TARGET_PATTERN = re.compile(r"\b(?:to|for)\s+(?:(?:the|a|an|our)\s+)?(\w+)", re.IGNORECASE)
NO_HANDOFF_MARKERS = ("none", "n/a")


def parse_sections(content: str) -> dict[str, str]:
    """Split a sectioned reply into {SECTION: text}. Missing sections are absent."""
    matches = list(SECTION_PATTERN.finditer(content or ""))
    sections: dict[str, str] = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        name = match.group("name").upper()
        sections.setdefault(name, content[match.end():end].strip())
    return sections


def parse_handoff(text: str) -> HandoffRequest | None:
    lowered = text.lower()
    if not text or any(marker in lowered for marker in NO_HANDOFF_MARKERS):
        return None
    target = HANDOFF_TARGET_PATTERN.search(text)
    return HandoffRequest(
        target_role=target.group(1).lower() if target else None,
        context=text,
    )


def parse_escalation(text: str) -> tuple[bool, str]:
    """("YES: reason" | "NO ...") -> (escalate, reason)."""
    escalate = text.lower().startswith("yes")
    reason = re.sub(r"^(?:yes|no)[:\s]*", "", text, flags=re.IGNORECASE).strip()
    return escalate, reason


class RoleWorker(BaseWorker):
    """Worker for one role spec, backed by a Responder."""

    def __init__(self, spec: RoleSpec, responder: Responder) -> None:
        super().__init__(spec.id)
        self.spec = spec
        self.responder = responder
        self._system_prompt = self.build_system_prompt()

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def build_system_prompt(self) -> str:
        spec = self.spec
        responsibilities = "\n".join(
            f"{i}. {r}" for i, r in enumerate(spec.responsibilities, start=1)
        ) or "1. Operate within your domain."

        limits = []
        if spec.escalate_above is not None:
            limits.append(f"- Spending authority: up to ${spec.escalate_above:,.0f}")
        for phrase in spec.always_escalate:
            limits.append(f"- Always escalate: {phrase}")
        authority = "\n".join(limits) or "Standard operational authority within your domain."

        role_text = spec.description or (
            f"You are responsible for {', '.join(spec.responsibilities)}."
            if spec.responsibilities else ""
        )

        return (
            f"You are the {spec.name} ({spec.label}).\n\n"
            f"## Your Role\n{role_text}\n\n"
            f"## Responsibilities\n{responsibilities}\n\n"
            f"## Authority Limits\n{authority}\n\n"
            "## Reporting Structure\n"
            f"- You report to: {spec.reports_to.upper()}\n"
            f"- Direct reports: {', '.join(spec.direct_reports) or 'None'}\n\n"
            "## Decision Guidelines\n"
            "1. Act within your authority limits\n"
            "2. Escalate when financial decisions exceed your threshold, strategic "
            "direction changes, or legal or compliance risk is identified\n"
            "3. Document decisions with a clear rationale\n"
            "4. Hand off to another role when their input is needed\n\n"
            "## Output Format\n"
            "ANALYSIS: Your understanding of the task\n"
            "ACTION: What you did or recommend\n"
            "DECISION: Clear decision with rationale\n"
            "HANDOFF: Required handoff to another role, or None\n"
            "ESCALATE: YES or NO, with reason\n"
        )

    def build_task_prompt(self, task: Task) -> str:
        due = task.due_date.isoformat() if task.due_date else "Not specified"
        workflow = task.metadata.get("workflow_id", "N/A")
        parts = [
            f"{task.description}",
            "",
            "## Task Details",
            f"- Task ID: {task.id}",
            f"- Priority: {task.priority}",
            f"- Workflow: {workflow}",
            f"- Due Date: {due}",
        ]
        if task.notes:
            parts += ["", "## Additional Notes", task.notes]
        if task.metadata.get("previous_output"):
            parts += ["", "## Previous Step Output", str(task.metadata["previous_output"])]
        parts += [
            "",
            "## Your Assignment",
            f"Complete this task within your authority as {self.spec.name}.",
            "If you need input from another role, specify the handoff.",
            "If an executive decision is required, explain why and give your recommendation.",
        ]
        return "\n".join(parts)

    def parse_response(self, content: str, task: Task) -> TaskResult:
        sections = parse_sections(content)
        escalate, reason = parse_escalation(sections.get("ESCALATE", ""))
        action = sections.get("ACTION", "")
        return TaskResult(
            task_id=task.id,
            role=self.role,
            analysis=sections.get("ANALYSIS", ""),
            action=action,
            decision=sections.get("DECISION", ""),
            handoff=parse_handoff(sections.get("HANDOFF", "")),
            escalate=escalate,
            escalate_reason=reason,
            recommendation=action,
            raw_content=content,
        )

    async def run(self, task: Task) -> TaskResult:
        logger.info("[%s] Processing task %s: %s", self.spec.label, task.id, task.description[:50])
        reply = await self.responder.complete(
            self.system_prompt,
            self.build_task_prompt(task),
            role=self.role,
        )
        return self.parse_response(reply.content, task)
