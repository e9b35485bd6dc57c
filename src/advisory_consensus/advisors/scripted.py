"""Scripted advisor port — deterministic in-process provider.

Replays a fixed script of responses instead of calling a remote model.
Used for offline runs, demos and the test suite.

Each script step is one of:

- a :class:`Recommendation` (returned with provider name rewritten),
- a ``str`` (parsed into a Recommendation like a real response body),
- an exception instance (raised, e.g. ``TransientProviderError``).

When the script runs out the last step repeats.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Union

from advisory_consensus.core.config import ProviderConfig
from advisory_consensus.core.errors import ConfigError
from advisory_consensus.core.models import PromptContext, Recommendation, ResourceCost

from .parsing import build_recommendation

logger = logging.getLogger(__name__)

ScriptStep = Union[Recommendation, str, BaseException]


class ScriptedAdvisor:
    """Advisor port that answers from a script.

    Parameters
    ----------
    name:
        Provider name reported on every recommendation.
    script:
        Ordered responses, see module docstring.
    delay:
        Seconds to suspend before answering each call.
    cost:
        Resource cost attached to text responses.
    """

    def __init__(
        self,
        name: str,
        script: list[ScriptStep] | None = None,
        *,
        delay: float = 0.0,
        cost: ResourceCost | None = None,
    ) -> None:
        self._name = name
        self._script: list[ScriptStep] = list(script or [])
        self._delay = delay
        self._cost = cost or ResourceCost()
        self._cursor = 0
        self.calls: list[PromptContext] = []
        self.completed = 0
        self.cancelled = 0

    @classmethod
    def from_config(cls, config: ProviderConfig) -> ScriptedAdvisor:
        """Offline advisor answering with the provider's configured script."""
        if not config.script:
            raise ConfigError(f"Scripted provider {config.name!r} has an empty script")
        return cls(config.name, list(config.script))

    @property
    def name(self) -> str:
        return self._name

    async def recommend(self, context: PromptContext) -> Recommendation:
        self.calls.append(context)
        step = self._next_step()
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        if isinstance(step, BaseException):
            logger.debug("Scripted advisor %s raising %s", self._name, type(step).__name__)
            raise step

        self.completed += 1
        if isinstance(step, str):
            return build_recommendation(self._name, step, model="scripted", cost=self._cost)
        return step.model_copy(update={"provider": self._name})

    def _next_step(self) -> ScriptStep:
        if not self._script:
            raise RuntimeError(f"Scripted advisor {self._name} has an empty script")
        step = self._script[min(self._cursor, len(self._script) - 1)]
        self._cursor += 1
        return step
