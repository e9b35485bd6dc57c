"""Role-keyed advisor registry.

Advisor ports are wired to roles once, at construction time.  Strategies
look them up by ``AdvisorRole``; a missing role is a configuration error
raised before any call starts, never a silent miss at request time.
"""

from __future__ import annotations

import logging
from typing import Iterator, Mapping

from advisory_consensus.core.config import Settings
from advisory_consensus.core.enums import AdvisorRole
from advisory_consensus.core.errors import ConfigError
from advisory_consensus.core.interfaces import IAdvisorPort

logger = logging.getLogger(__name__)


class AdvisorRegistry:
    """Immutable mapping of ``AdvisorRole`` to advisor port."""

    def __init__(self, advisors: Mapping[AdvisorRole, IAdvisorPort]) -> None:
        for role, advisor in advisors.items():
            if not isinstance(role, AdvisorRole):
                raise ConfigError(f"Registry key {role!r} is not an AdvisorRole")
            if not isinstance(advisor, IAdvisorPort):
                raise ConfigError(
                    f"Advisor for role {role.value} does not implement the advisor port"
                )
        self._advisors: dict[AdvisorRole, IAdvisorPort] = dict(advisors)

    def __contains__(self, role: object) -> bool:
        return role in self._advisors

    def __iter__(self) -> Iterator[AdvisorRole]:
        return iter(self._advisors)

    def __len__(self) -> int:
        return len(self._advisors)

    def get(self, role: AdvisorRole) -> IAdvisorPort | None:
        return self._advisors.get(role)

    def require(self, *roles: AdvisorRole) -> None:
        """Raise ``ConfigError`` unless every role in *roles* is wired."""
        missing = [r.value for r in roles if r not in self._advisors]
        if missing:
            raise ConfigError(f"No advisor wired for role(s): {', '.join(missing)}")

    def __getitem__(self, role: AdvisorRole) -> IAdvisorPort:
        self.require(role)
        return self._advisors[role]

    def role_of(self, provider: str) -> AdvisorRole | None:
        for role, advisor in self._advisors.items():
            if advisor.name == provider:
                return role
        return None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        advisors_by_name: Mapping[str, IAdvisorPort],
    ) -> AdvisorRegistry:
        """Wire named advisors to the roles declared in ``settings.providers``."""
        wiring: dict[AdvisorRole, IAdvisorPort] = {}
        for provider in settings.providers:
            advisor = advisors_by_name.get(provider.name)
            if advisor is None:
                raise ConfigError(f"Provider {provider.name!r} has no advisor instance")
            if provider.role in wiring:
                raise ConfigError(f"Role {provider.role.value} is wired more than once")
            wiring[provider.role] = advisor
            logger.debug("Wired %s as %s", provider.name, provider.role.value)
        return cls(wiring)
