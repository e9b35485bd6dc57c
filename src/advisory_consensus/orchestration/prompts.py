"""Prompt synthesis for the hierarchical (primary -> backup) strategy."""

from __future__ import annotations

from advisory_consensus.core.config import OrchestrationConfig
from advisory_consensus.core.models import PromptContext, Recommendation

REVIEWER_SYSTEM_PROMPT = """\
You are the reviewing advisor in a two-advisor financial guidance system. \
The request below is produced by application code, not typed by a person.

Check the primary advisor's recommendation critically. You are given both \
that recommendation and the original input it was based on; use the input \
to confirm the primary read the facts correctly.

Answer in the structure requested, concisely. Your answer is parsed by a program."""

_REVIEW_TEMPLATE = """\
Review the recommendation another advisor produced.

PRIMARY RECOMMENDATION:
{primary_text}

PRIMARY CONFIDENCE: {confidence_pct}%

ORIGINAL REQUEST AND DATA:
{user_prompt}

STEPS:
1. FACT-CHECK: confirm the primary interpreted the original data correctly (accounts, balances, designations).
2. VALIDATE: judge whether the recommendation is sound and appropriate.
3. CONCERNS: list risks, oversights or missing considerations.
4. ADJUSTMENTS: propose refinements or alternatives where needed.
5. AGREEMENT: state one of Strongly Agree / Agree / Neutral / Disagree / Strongly Disagree.

If the primary misread any of the original data, say so explicitly.

Respond using these headings:
- **Agreement Level**: [your level]
- **Key Points of Agreement**: [what holds up]
- **Concerns**: [risks and misreadings, one bullet each]
- **Adjustments**: [suggested changes, one bullet each]
- **Final Recommendation**: [your corroborated or adjusted recommendation]"""


def build_review_prompt(
    original: PromptContext,
    primary: Recommendation,
    config: OrchestrationConfig | None = None,
) -> PromptContext:
    """Prompt context asking the backup advisor to review *primary*.

    The backup sees the primary's full text and confidence, the original
    user prompt and the same cacheable context the primary saw.
    """
    cfg = config or OrchestrationConfig()
    user_prompt = _REVIEW_TEMPLATE.format(
        primary_text=primary.body,
        confidence_pct=round(primary.confidence * 100),
        user_prompt=original.user_prompt,
    )
    return PromptContext(
        system_prompt=REVIEWER_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        cacheable_context=original.cacheable_context,
        max_tokens=cfg.backup_max_tokens,
        temperature=cfg.backup_temperature,
        user_id=original.user_id,
    )
