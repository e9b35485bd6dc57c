"""HTTP advisor ports for hosted language-model APIs.

Two wire formats are supported:

- Anthropic Messages API (``/v1/messages``), with the cacheable context
  sent as an ephemeral-cached system block,
- OpenAI Chat Completions (``/v1/chat/completions``).

Each call is a single attempt.  Retry lives in the orchestration layer;
this module only classifies failures so the retry policy can tell
transient from fatal:

- 429, 5xx, timeouts and network errors -> ``TransientProviderError``
- 401 / 403 -> ``ProviderAuthenticationError``
- other 4xx -> ``FatalProviderError``
- a 200 whose body cannot be read -> ``MalformedResponseError``

Usage::

    async with AnthropicAdvisor(provider_config) as advisor:
        rec = await advisor.recommend(context)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from advisory_consensus.core.config import ProviderConfig, Settings
from advisory_consensus.core.enums import ProviderKind
from advisory_consensus.core.errors import (
    ConfigError,
    FatalProviderError,
    MalformedResponseError,
    ProviderAuthenticationError,
    TransientProviderError,
)
from advisory_consensus.core.models import PromptContext, Recommendation, ResourceCost

from .parsing import build_recommendation

logger = logging.getLogger(__name__)

_ANTHROPIC_BASE_URL = "https://api.anthropic.com"
_ANTHROPIC_VERSION = "2023-06-01"
_OPENAI_BASE_URL = "https://api.openai.com"


def compute_cost(
    input_tokens: int,
    output_tokens: int,
    input_cost_per_mtok: float,
    output_cost_per_mtok: float,
) -> float:
    """USD cost of a call given per-million-token prices."""
    return (
        input_tokens / 1_000_000 * input_cost_per_mtok
        + output_tokens / 1_000_000 * output_cost_per_mtok
    )


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class HttpAdvisor:
    """Shared request/classification logic for hosted model APIs.

    Parameters
    ----------
    config:
        Provider wiring (model, key env var, prices, timeout).
    client:
        Optional pre-built ``httpx.AsyncClient``.  When omitted the
        advisor creates and owns one on ``open()``.
    api_key:
        Explicit key; defaults to the env var named in *config*.
    """

    default_base_url = ""
    path = ""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
    ) -> None:
        self._config = config
        self._api_key = api_key if api_key is not None else config.api_key
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def url(self) -> str:
        base = (self._config.base_url or self.default_base_url).rstrip("/")
        return f"{base}{self.path}"

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
            )
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpAdvisor:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Port ----------------------------------------------------------------

    async def recommend(self, context: PromptContext) -> Recommendation:
        await self.open()
        assert self._client is not None

        try:
            resp = await self._client.post(
                self.url,
                headers=self.headers(),
                json=self.payload(context),
            )
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise TransientProviderError(
                self.name, f"{type(exc).__name__}: {exc}"
            ) from exc

        self._raise_for_status(resp)

        try:
            data = resp.json()
            content, input_tokens, output_tokens = self.parse(data)
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError(
                self.name, f"Unreadable response body: {exc}"
            ) from exc
        if not content.strip():
            raise MalformedResponseError(self.name, "Empty response content")

        cost = ResourceCost(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=compute_cost(
                input_tokens,
                output_tokens,
                self._config.input_cost_per_mtok,
                self._config.output_cost_per_mtok,
            ),
        )
        logger.debug(
            "%s answered: %d in / %d out tokens, $%.6f",
            self.name, input_tokens, output_tokens, cost.cost_usd,
        )
        return build_recommendation(
            self.name,
            content,
            model=self._config.model,
            cost=cost,
            metadata={"kind": self._config.kind.value},
        )

    def _raise_for_status(self, resp: httpx.Response) -> None:
        status = resp.status_code
        if status == 200:
            return
        detail = f"HTTP {status}"
        if status == 429 or status >= 500:
            logger.warning("%s transient failure: %s", self.name, detail)
            raise TransientProviderError(self.name, detail)
        if status in (401, 403):
            raise ProviderAuthenticationError(self.name, detail)
        raise FatalProviderError(self.name, detail)

    # -- Wire format (subclass hooks) ----------------------------------------

    def headers(self) -> dict[str, str]:
        raise NotImplementedError

    def payload(self, context: PromptContext) -> dict[str, Any]:
        raise NotImplementedError

    def parse(self, data: dict[str, Any]) -> tuple[str, int, int]:
        """Return ``(content, input_tokens, output_tokens)``."""
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicAdvisor(HttpAdvisor):
    default_base_url = _ANTHROPIC_BASE_URL
    path = "/v1/messages"

    def headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": _ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def payload(self, context: PromptContext) -> dict[str, Any]:
        system: list[dict[str, Any]] = []
        if context.system_prompt:
            system.append({"type": "text", "text": context.system_prompt})
        if context.cacheable_context:
            system.append({
                "type": "text",
                "text": context.cacheable_context,
                "cache_control": {"type": "ephemeral"},
            })
        body: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": context.max_tokens,
            "temperature": context.temperature,
            "messages": [{"role": "user", "content": context.user_prompt}],
        }
        if system:
            body["system"] = system
        return body

    def parse(self, data: dict[str, Any]) -> tuple[str, int, int]:
        text = "".join(
            block["text"] for block in data["content"] if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return (
            text,
            int(usage.get("input_tokens", 0)),
            int(usage.get("output_tokens", 0)),
        )


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAIAdvisor(HttpAdvisor):
    default_base_url = _OPENAI_BASE_URL
    path = "/v1/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "content-type": "application/json",
        }

    def payload(self, context: PromptContext) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        system = "\n\n".join(
            part for part in (context.system_prompt, context.cacheable_context) if part
        )
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": context.user_prompt})
        return {
            "model": self._config.model,
            "max_tokens": context.max_tokens,
            "temperature": context.temperature,
            "messages": messages,
        }

    def parse(self, data: dict[str, Any]) -> tuple[str, int, int]:
        text = data["choices"][0]["message"]["content"] or ""
        usage = data.get("usage") or {}
        return (
            text,
            int(usage.get("prompt_tokens", 0)),
            int(usage.get("completion_tokens", 0)),
        )


_ADVISOR_CLASSES: dict[ProviderKind, type[HttpAdvisor]] = {
    ProviderKind.ANTHROPIC: AnthropicAdvisor,
    ProviderKind.OPENAI: OpenAIAdvisor,
}


def build_http_advisor(
    config: ProviderConfig,
    client: httpx.AsyncClient | None = None,
) -> HttpAdvisor:
    """Instantiate the HTTP advisor matching ``config.kind``."""
    cls = _ADVISOR_CLASSES.get(config.kind)
    if cls is None:
        raise ConfigError(f"Provider kind {config.kind.value!r} has no HTTP advisor")
    return cls(config, client=client)


def build_http_advisors(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> dict[str, HttpAdvisor]:
    """Build one HTTP advisor per configured non-scripted provider."""
    return {
        p.name: build_http_advisor(p, client)
        for p in settings.providers
        if p.kind != ProviderKind.SCRIPTED
    }
