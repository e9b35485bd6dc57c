"""Advisor construction from settings.

Every configured provider becomes one named advisor port: hosted kinds
get an HTTP advisor, ``scripted`` providers replay their configured
responses so a whole pipeline can run offline.
"""

from __future__ import annotations

import logging

import httpx

from advisory_consensus.core.config import Settings
from advisory_consensus.core.enums import ProviderKind
from advisory_consensus.core.interfaces import IAdvisorPort

from .http import HttpAdvisor, build_http_advisor
from .scripted import ScriptedAdvisor

logger = logging.getLogger(__name__)


def build_advisors(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> dict[str, IAdvisorPort]:
    """One advisor per ``settings.providers`` entry, keyed by provider name."""
    advisors: dict[str, IAdvisorPort] = {}
    for provider in settings.providers:
        if provider.kind == ProviderKind.SCRIPTED:
            advisors[provider.name] = ScriptedAdvisor.from_config(provider)
        else:
            advisors[provider.name] = build_http_advisor(provider, client)
        logger.debug("Built %s advisor %s", provider.kind.value, provider.name)
    return advisors


async def close_advisors(advisors: dict[str, IAdvisorPort]) -> None:
    """Release HTTP clients owned by the advisors in *advisors*."""
    for advisor in advisors.values():
        if isinstance(advisor, HttpAdvisor):
            await advisor.close()
