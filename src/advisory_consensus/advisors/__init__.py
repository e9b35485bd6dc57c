"""Advisor ports — the boundary to recommendation providers.

- **HTTP advisors** — hosted model APIs (Anthropic, OpenAI) over httpx
- **Scripted advisor** — deterministic in-process port for offline runs and tests
- **Parsing** — free-text response to structured Recommendation
- **Factory** — settings to named advisor ports, HTTP or scripted
"""

from advisory_consensus.advisors.factory import build_advisors, close_advisors
from advisory_consensus.advisors.http import (
    AnthropicAdvisor,
    HttpAdvisor,
    OpenAIAdvisor,
    build_http_advisor,
    build_http_advisors,
)
from advisory_consensus.advisors.result import AdvisorResult
from advisory_consensus.advisors.scripted import ScriptedAdvisor

__all__ = [
    "AdvisorResult",
    "AnthropicAdvisor",
    "HttpAdvisor",
    "OpenAIAdvisor",
    "ScriptedAdvisor",
    "build_advisors",
    "build_http_advisor",
    "build_http_advisors",
    "close_advisors",
]
