"""CLI entry point for the advisory consensus subsystem."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from .advisors.parsing import build_recommendation
from .core.models import Recommendation


def _load_recommendation(path: str) -> Recommendation:
    """Read a recommendation JSON file.

    Files with ``action_items`` are taken as-is; files with only a
    ``provider`` and ``body`` are parsed like a raw advisor response.
    """
    data: dict[str, Any] = json.loads(Path(path).read_text())
    if "action_items" in data:
        return Recommendation.model_validate(data)
    try:
        rec = build_recommendation(data["provider"], data["body"], model=data.get("model", ""))
    except KeyError as exc:
        raise click.BadParameter(f"{path}: missing field {exc}") from exc
    if "confidence" in data:
        rec = rec.model_copy(update={"confidence": float(data["confidence"])})
    return rec


@click.group()
def main() -> None:
    """Advisory consensus tools."""


@main.command()
@click.argument("first", type=click.Path(exists=True, dir_okay=False))
@click.argument("second", type=click.Path(exists=True, dir_okay=False))
@click.option("--corroborate", is_flag=True, help="Treat SECOND as a review of FIRST")
@click.option("--config", default=None, help="Config file path")
def score(first: str, second: str, corroborate: bool, config: str | None) -> None:
    """Score two recommendations and print the consensus result as JSON."""
    from .consensus.engine import ConsensusEngine
    from .core.config import load_settings

    settings = load_settings(config_path=config)
    engine = ConsensusEngine(settings.consensus)
    a = _load_recommendation(first)
    b = _load_recommendation(second)

    if corroborate:
        result = engine.build_corroboration(a, b)
    else:
        result = engine.build_consensus(a, b)
    click.echo(result.model_dump_json(indent=2))


@main.command()
@click.argument("prompt")
@click.option("--config", default="configs/advisory.toml", help="Config file path")
@click.option("--user", "user_id", default="local", help="User the advisory is for")
@click.option("--topic", default="general", help="Advisory topic")
@click.option(
    "--context-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Account / market snapshot passed to every advisor",
)
@click.option("--impact", type=float, default=0.0, help="Estimated impact amount")
@click.option("--base", "base_amount", type=float, default=0.0, help="Base amount the impact is measured against")
def advise(
    prompt: str,
    config: str,
    user_id: str,
    topic: str,
    context_file: str | None,
    impact: float,
    base_amount: float,
) -> None:
    """Run one advisory request against the configured providers."""
    import asyncio

    from .core.config import load_settings
    from .core.errors import AdvisoryUnavailableError, ConfigError
    from .core.models import PromptContext
    from .observability.logger import setup_logging

    settings = load_settings(config_path=config)
    setup_logging(settings.observability.log_level, settings.observability.log_format)

    context = PromptContext(
        user_prompt=prompt,
        cacheable_context=Path(context_file).read_text() if context_file else None,
        user_id=user_id,
    )
    try:
        outcome = asyncio.run(_advise(
            settings, context,
            user_id=user_id, topic=topic,
            estimated_impact=impact, base_amount=base_amount,
        ))
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except AdvisoryUnavailableError as exc:
        raise click.ClickException(exc.user_message) from exc

    click.echo(outcome.message)


async def _advise(settings, context, **run_kwargs):
    from .advisors.factory import build_advisors, close_advisors
    from .service import AdvisoryService

    advisors = build_advisors(settings)
    try:
        service = AdvisoryService.from_settings(settings, advisors)
        return await service.run(context, **run_kwargs)
    finally:
        await close_advisors(advisors)


@main.command("config")
@click.option("--config", default=None, help="Config file path")
def show_config(config: str | None) -> None:
    """Print the effective settings (file + env overrides) as JSON."""
    from .core.config import load_settings

    settings = load_settings(config_path=config)
    click.echo(settings.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
