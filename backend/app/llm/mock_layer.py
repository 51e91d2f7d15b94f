"""Mock responder for testing without API calls."""

from __future__ import annotations

from collections.abc import Callable

from app.llm.layer import ResponderReply


class MockResponder:
    """Returns scripted content per role.

    Usage:
        mock = MockResponder({
            "cfo": "ANALYSIS: ok\\nACTION: approve\\nDECISION: yes\\nESCALATE: NO",
            "cto": lambda system, prompt: "ANALYSIS: ...",
        })
        reply = await mock.complete(system, prompt, role="cfo")

    A role without a script gets `default`. Exceptions put in the script are
    raised instead of returned.
    """

    def __init__(
        self,
        responses: dict[str, str | Callable[[str, str], str] | Exception] | None = None,
        default: str = "ANALYSIS: Reviewed.\nACTION: Proceed.\nDECISION: Approved.\nESCALATE: NO",
    ) -> None:
        self.responses = responses or {}
        self.default = default
        self.call_log: list[dict] = []

    async def complete(self, system: str, prompt: str, *, role: str) -> ResponderReply:
        self.call_log.append({"role": role, "system": system, "prompt": prompt})
        scripted = self.responses.get(role, self.default)
        if isinstance(scripted, Exception):
            raise scripted
        content = scripted(system, prompt) if callable(scripted) else scripted
        return ResponderReply(
            content=content,
            model_version="mock",
            input_tokens=100,
            output_tokens=50,
        )

    def calls_for(self, role: str) -> list[dict]:
        return [c for c in self.call_log if c["role"] == role]
