"""Throttle engine — decides whether an advisory reaches the user.

Rules are evaluated in order; the first match suppresses:

    1. post-action hold   significant user action on this topic recently
                          (advice only, alerts skip this rule)
    2. cooldown           same or highly similar content on this topic
                          already surfaced within the cooldown window
    3. frequency cap      weekly allowance for this kind already used,
                          regardless of topic
    4. impact threshold   |estimated impact| / base amount below minimum

Suppression is a normal outcome returned as a reason, never raised.

``decide_and_record`` runs read -> decide -> append under a per-(user,
topic) lock so two concurrent requests for the same key cannot both pass
the frequency cap on the same stale read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from advisory_consensus.consensus.scoring import keyword_jaccard
from advisory_consensus.core.clock import IClock, WallClock
from advisory_consensus.core.config import ThrottleConfig
from advisory_consensus.core.enums import (
    AdvisoryKind,
    HistoryEventType,
    SuppressionReason,
)
from advisory_consensus.core.interfaces import IHistoryStore
from advisory_consensus.core.ids import text_fingerprint
from advisory_consensus.core.models import (
    AdvisoryCandidate,
    AdvisoryHistoryEntry,
    ThrottleDecision,
)

from .history import InMemoryHistoryStore, LockRegistry

logger = logging.getLogger(__name__)

_FREQUENCY_WINDOW = timedelta(days=7)

_EVENT_TYPE: dict[AdvisoryKind, HistoryEventType] = {
    AdvisoryKind.ALERT: HistoryEventType.ALERT,
    AdvisoryKind.ADVICE: HistoryEventType.ADVICE,
}


class ThrottleEngine:
    """Temporal throttling of alerts and advice.

    Parameters
    ----------
    config:
        Windows, caps and thresholds.
    clock:
        Time source for every window comparison.
    store:
        History store used by :meth:`decide_and_record`.  Defaults to an
        in-memory store sharing *clock*.
    """

    def __init__(
        self,
        config: ThrottleConfig | None = None,
        clock: IClock | None = None,
        store: IHistoryStore | None = None,
    ) -> None:
        self._config = config or ThrottleConfig()
        self._clock = clock or WallClock()
        self._store = store if store is not None else InMemoryHistoryStore(self._clock)
        self._locks = LockRegistry()

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    @property
    def store(self) -> IHistoryStore:
        return self._store

    @property
    def locks(self) -> LockRegistry:
        return self._locks

    # ------------------------------------------------------------------
    # Pure evaluation
    # ------------------------------------------------------------------

    def should_surface_alert(
        self,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
    ) -> bool:
        return self.evaluate_alert(candidate, history) == SuppressionReason.NONE

    def should_surface_advice(
        self,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
        topic: str | None = None,
    ) -> bool:
        return self.evaluate_advice(candidate, history, topic) == SuppressionReason.NONE

    def evaluate_alert(
        self,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
    ) -> SuppressionReason:
        reason, _ = self._evaluate(AdvisoryKind.ALERT, candidate, history, candidate.topic)
        return reason

    def evaluate_advice(
        self,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
        topic: str | None = None,
    ) -> SuppressionReason:
        reason, _ = self._evaluate(
            AdvisoryKind.ADVICE, candidate, history, topic or candidate.topic,
        )
        return reason

    def decide(
        self,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
    ) -> ThrottleDecision:
        """Evaluate both paths.  ``reason`` prefers the advice path."""
        alert_reason = self.evaluate_alert(candidate, history)
        advice_reason = self.evaluate_advice(candidate, history)
        return _decision(alert_reason, advice_reason)

    def _evaluate(
        self,
        kind: AdvisoryKind,
        candidate: AdvisoryCandidate,
        history: Sequence[AdvisoryHistoryEntry],
        topic: str,
    ) -> tuple[SuppressionReason, AdvisoryHistoryEntry | None]:
        """Return the first matching suppression and the entry behind it."""
        cfg = self._config
        now = self._clock.now()
        live = [
            e for e in history
            if e.user_id == candidate.user_id and not e.is_expired(now)
        ]

        # 1. Post-action hold (advice only)
        if kind == AdvisoryKind.ADVICE:
            hold_start = now - timedelta(days=cfg.post_action_hold_days)
            for entry in live:
                if (
                    entry.event_type == HistoryEventType.USER_ACTION
                    and entry.significant
                    and entry.topic == topic
                    and entry.timestamp >= hold_start
                ):
                    return SuppressionReason.POST_ACTION_HOLD, entry

        event_type = _EVENT_TYPE[kind]

        # 2. Cooldown on materially identical content
        cooldown_start = now - timedelta(days=cfg.same_advice_cooldown_days)
        fingerprint = candidate.fingerprint
        text = candidate.text
        for entry in live:
            if (
                entry.event_type == event_type
                and entry.topic == topic
                and entry.timestamp >= cooldown_start
                and self._same_content(entry, fingerprint, text)
            ):
                return SuppressionReason.COOLDOWN_ACTIVE, entry

        # 3. Frequency cap, any topic
        cap = cfg.max_advice_per_week if kind == AdvisoryKind.ADVICE else cfg.max_alerts_per_week
        week_start = now - _FREQUENCY_WINDOW
        recent = sum(
            1 for e in live if e.event_type == event_type and e.timestamp >= week_start
        )
        if recent >= cap:
            return SuppressionReason.FREQUENCY_CAP_EXCEEDED, None

        # 4. Impact threshold
        if candidate.impact_ratio < cfg.minimum_impact_threshold:
            return SuppressionReason.IMPACT_BELOW_THRESHOLD, None

        return SuppressionReason.NONE, None

    def _same_content(self, entry: AdvisoryHistoryEntry, fingerprint: str, text: str) -> bool:
        if entry.fingerprint and entry.fingerprint == fingerprint:
            return True
        if not entry.summary:
            return False
        return keyword_jaccard(entry.summary, text) >= self._config.content_similarity_threshold

    # ------------------------------------------------------------------
    # Serialized read -> decide -> append
    # ------------------------------------------------------------------

    async def decide_and_record(self, candidate: AdvisoryCandidate) -> ThrottleDecision:
        """Decide under the (user, topic) lock and append allowed entries."""
        async with self._locks.lock_for(candidate.user_id, candidate.topic):
            history = await self._store.list_entries(candidate.user_id)
            alert_reason, alert_match = self._evaluate(
                AdvisoryKind.ALERT, candidate, history, candidate.topic,
            )
            advice_reason, advice_match = self._evaluate(
                AdvisoryKind.ADVICE, candidate, history, candidate.topic,
            )
            decision = _decision(alert_reason, advice_reason)
            now = self._clock.now()

            for match in {id(m): m for m in (alert_match, advice_match) if m is not None}.values():
                if match.event_type != HistoryEventType.USER_ACTION:
                    await self._store.touch(match.entry_id, now)

            if decision.allow_alert:
                await self._store.append(self._entry(candidate, HistoryEventType.ALERT, now))
            if decision.allow_advice:
                await self._store.append(self._entry(candidate, HistoryEventType.ADVICE, now))

        logger.info(
            "Throttle %s/%s: alert=%s advice=%s reason=%s",
            candidate.user_id, candidate.topic,
            decision.allow_alert, decision.allow_advice, decision.reason.value,
        )
        return decision

    def _entry(
        self,
        candidate: AdvisoryCandidate,
        event_type: HistoryEventType,
        now: datetime,
    ) -> AdvisoryHistoryEntry:
        return AdvisoryHistoryEntry(
            user_id=candidate.user_id,
            topic=candidate.topic,
            event_type=event_type,
            timestamp=now,
            significant=candidate.impact_ratio >= self._config.minimum_impact_threshold,
            expires_at=now + timedelta(days=self._config.advisory_memory_days),
            summary=candidate.text,
            fingerprint=candidate.fingerprint,
        )

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def record_user_action(
        self,
        user_id: str,
        topic: str,
        summary: str = "",
        *,
        significant: bool = True,
    ) -> AdvisoryHistoryEntry:
        """Remember an action the user took.  Significant actions start a hold."""
        now = self._clock.now()
        entry = AdvisoryHistoryEntry(
            user_id=user_id,
            topic=topic,
            event_type=HistoryEventType.USER_ACTION,
            timestamp=now,
            significant=significant,
            expires_at=now + timedelta(days=self._config.action_memory_days),
            summary=summary,
            fingerprint=text_fingerprint(summary) if summary else "",
        )
        async with self._locks.lock_for(user_id, topic):
            await self._store.append(entry)
        logger.info(
            "Recorded user action %s/%s significant=%s", user_id, topic, significant,
        )
        return entry


def _decision(
    alert_reason: SuppressionReason,
    advice_reason: SuppressionReason,
) -> ThrottleDecision:
    allow_alert = alert_reason == SuppressionReason.NONE
    allow_advice = advice_reason == SuppressionReason.NONE
    if not allow_advice:
        reason = advice_reason
    elif not allow_alert:
        reason = alert_reason
    else:
        reason = SuppressionReason.NONE
    return ThrottleDecision(
        allow_alert=allow_alert,
        allow_advice=allow_advice,
        reason=reason,
        alert_reason=alert_reason,
        advice_reason=advice_reason,
    )
