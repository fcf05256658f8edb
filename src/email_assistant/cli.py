"""Command-line interface for the email assistant.

Usage:
    python -m email_assistant validate-config
    python -m email_assistant scan --max 20 --dry-run
    python -m email_assistant spam <email-id>
    python -m email_assistant label <email-id> Travel
    python -m email_assistant learn
    python -m email_assistant labels cleanup
    python -m email_assistant digest --hours 24
"""

from __future__ import annotations

import asyncio
import sys
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from email_assistant.config import get_config_path, validate_config_file
from email_assistant.core.logging import configure_logging, set_correlation_id

if TYPE_CHECKING:
    from email_assistant.config_schema import AppConfig
    from email_assistant.engine.actions import ActionOutcome
    from email_assistant.engine.state import AssistantState
    from email_assistant.generation.base import TextGenerator
    from email_assistant.learning.detector import Correction
    from email_assistant.providers.base import EmailProvider

console = Console()


@dataclass(frozen=True, slots=True)
class CLIDeps:
    """Shared dependencies initialized by _init_cli_deps()."""

    config: AppConfig
    state: AssistantState
    provider: EmailProvider | None
    generator: TextGenerator | None


def _load_config_or_exit(config_path: Path | None) -> AppConfig:
    from email_assistant.config import load_config
    from email_assistant.core.errors import ConfigLoadError, ConfigValidationError

    try:
        return load_config(config_path)
    except (ConfigLoadError, ConfigValidationError) as e:
        console.print(
            f"[red]Config error:[/red] {e}\n\n"
            "Run [cyan]email-assistant validate-config[/cyan] for details."
        )
        sys.exit(1)


async def _init_cli_deps(
    config_path: Path | None,
    with_provider: bool = True,
    with_generator: bool = True,
) -> CLIDeps:
    """Load config and state, and build the provider and generator.

    Prints actionable error messages and calls sys.exit(1) on failure.
    """
    from email_assistant.core.errors import AuthenticationError
    from email_assistant.db.store import DatabaseStore
    from email_assistant.engine.state import AssistantState
    from email_assistant.generation import create_generator
    from email_assistant.providers import create_provider

    config = _load_config_or_exit(config_path)

    provider = None
    if with_provider:
        try:
            provider = create_provider(config)
        except AuthenticationError as e:
            console.print(f"[red]Authentication error:[/red] {e}")
            sys.exit(1)

    generator = create_generator(config.generation) if with_generator else None
    state = await AssistantState.load(config, DatabaseStore(config.database_path))
    return CLIDeps(config=config, state=state, provider=provider, generator=generator)


def _run(coro_factory: Callable[[], Awaitable[None]]) -> None:
    """Run an async command with the CLI's standard exit handling."""
    set_correlation_id(uuid.uuid4().hex[:12])
    try:
        asyncio.run(coro_factory())
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        set_correlation_id(None)


def _print_corrections(corrections: list[Correction]) -> None:
    console.print(f"Found [bold]{len(corrections)}[/bold] corrections:")
    for c in corrections:
        if c.spam_mismatch:
            change = "marked as spam" if c.actual_spam else "removed from spam"
        else:
            parts = []
            if c.added_labels:
                parts.append("+" + ", +".join(c.added_labels))
            if c.removed_labels:
                parts.append("-" + ", -".join(c.removed_labels))
            change = " ".join(parts)
        console.print(f"  - {c.email_id} [dim]{c.sender}[/dim] {change}")


def _print_outcome(outcome: ActionOutcome, verb: str) -> None:
    console.print(f'{verb}: "{outcome.email.subject}"')
    if outcome.profile_update is not None:
        console.print("\n[green]Profile updated.[/green]")


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: $EMAIL_ASSISTANT_CONFIG or config/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config_path: Path | None) -> None:
    """Email Assistant - classifies mail and learns from your corrections."""
    log_level = "DEBUG" if debug else "INFO"
    configure_logging(log_level=log_level, json_output=False)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _config_path() -> Path | None:
    return click.get_current_context().obj.get("config_path")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@cli.command("validate-config")
def validate_config() -> None:
    """Validate the configuration file.

    A missing file is valid: every setting has a default.
    """
    config_path = _config_path() or get_config_path()
    console.print(f"Validating config: [cyan]{config_path}[/cyan]")

    is_valid, message = validate_config_file(config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {message}")
        sys.exit(1)


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init_config(force: bool) -> None:
    """Write a config file holding every default setting."""
    from email_assistant.config import save_config
    from email_assistant.config_schema import AppConfig

    config_path = _config_path() or get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]{config_path} already exists.[/yellow] Use --force to overwrite.")
        sys.exit(1)
    written = save_config(AppConfig(), config_path)
    console.print(f"[green]✓[/green] Wrote default config to [cyan]{written}[/cyan]")


# ---------------------------------------------------------------------------
# Scan and learning
# ---------------------------------------------------------------------------


@cli.command("scan")
@click.option("--max", "max_emails", type=int, default=None, help="Maximum emails to classify")
@click.option("--dry-run", "is_dry_run", is_flag=True, help="Classify and report, change nothing")
def scan(max_emails: int | None, is_dry_run: bool) -> None:
    """Learn from corrections, then classify new emails."""
    _run(lambda: _run_scan(max_emails, is_dry_run))


async def _run_scan(max_emails: int | None, is_dry_run: bool) -> None:
    from email_assistant.classifier.rules import load_rules
    from email_assistant.engine.scan import ScanEngine

    deps = await _init_cli_deps(_config_path())
    engine = ScanEngine(
        deps.provider,
        deps.generator,
        deps.state,
        deps.config,
        rules=load_rules(deps.config.rules_dir),
    )

    if is_dry_run:
        console.print("[cyan]Dry-run mode:[/cyan] nothing will be changed\n")

    result = await engine.run(max_emails=max_emails, dry_run=is_dry_run, report=_print_corrections)

    if result.items:
        table = Table(title="Classified")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Subject")
        table.add_column("Labels")
        table.add_column("Verdict")
        for item in result.items:
            c = item.classification
            verdict = "spam" if c.is_spam else "delete" if c.delete else "archive" if c.archive else "keep"
            if item.rules:
                verdict += f" (rule: {', '.join(item.rules)})"
            table.add_row(item.email.id, item.email.subject[:50], ", ".join(c.labels()), verdict)
        console.print(table)

    console.print(f"\n[bold]Scan Summary[/bold] (run {result.run_id[:8]}...)")
    console.print(f"  Duration:     {result.duration_ms}ms")
    console.print(f"  Last scan:    {result.previous_scan_at or 'never'}")
    console.print(f"  Corrections:  {result.corrections}")
    console.print(f"  Gone:         {result.deleted_predictions}")
    if result.unreachable_predictions:
        console.print(f"  Unreachable:  {result.unreachable_predictions} (kept for next scan)")
    console.print(f"  Fetched:      {result.fetched}")
    console.print(f"  Classified:   {result.classified}")
    console.print(f"  Skipped:      {result.skipped}")
    console.print(f"  Failed:       {result.failed}")
    console.print(f"  Spam:         {result.spam}")
    console.print(f"  Archived:     {result.archived}")
    console.print(f"  Deleted:      {result.deleted}")
    if result.profile_updated:
        console.print("  [green]Profile updated from corrections[/green]")


@cli.command("learn")
@click.option("--dry-run", "is_dry_run", is_flag=True, help="Report corrections, change nothing")
def learn(is_dry_run: bool) -> None:
    """Detect corrections and update the profile from them."""
    _run(lambda: _run_learn(is_dry_run))


async def _run_learn(is_dry_run: bool) -> None:
    from email_assistant.learning.applier import CorrectionApplier
    from email_assistant.learning.detector import CorrectionDetector

    deps = await _init_cli_deps(_config_path())
    state = deps.state

    detector = CorrectionDetector(
        deps.provider, state.predictions, deps.config.scan.classified_label
    )
    result = await detector.detect_corrections()

    if result.deleted_ids:
        console.print(f"{len(result.deleted_ids)} predicted emails no longer exist.")
    if result.skipped_ids:
        console.print(
            f"[yellow]{len(result.skipped_ids)} predicted emails could not be fetched; "
            "they will be checked again next time.[/yellow]"
        )
    if not result.corrections:
        console.print("No corrections found.")
    else:
        _print_corrections(result.corrections)

    if is_dry_run:
        return

    if result.corrections:
        console.print("\nUpdating profile...")
        applier = CorrectionApplier(
            state.profile,
            deps.generator,
            state.predictions,
            learning=deps.config.learning,
            generation=deps.config.generation,
        )
        if await applier.apply_corrections(result.corrections):
            console.print("[green]Profile rewritten.[/green]")
        else:
            console.print("Corrections logged; no rewrite produced.")

    state.predictions.remove_many(result.deleted_ids)
    await state.save()


# ---------------------------------------------------------------------------
# Single-email actions
# ---------------------------------------------------------------------------


async def _run_action(method: str, *args: Any) -> ActionOutcome:
    from email_assistant.engine.actions import ActionRunner

    deps = await _init_cli_deps(_config_path())
    runner = ActionRunner(deps.provider, deps.generator, deps.state, deps.config)
    return await getattr(runner, method)(*args)


@cli.command("spam")
@click.argument("email_id")
def spam(email_id: str) -> None:
    """Mark an email as spam and learn from it."""

    async def _go() -> None:
        _print_outcome(await _run_action("spam", email_id), "Marked as spam")

    _run(_go)


@cli.command("unspam")
@click.argument("email_id")
def unspam(email_id: str) -> None:
    """Move an email out of spam and learn from it."""

    async def _go() -> None:
        _print_outcome(await _run_action("unspam", email_id), "Removed from spam")

    _run(_go)


@cli.command("label")
@click.argument("email_id")
@click.argument("label_name")
def label(email_id: str, label_name: str) -> None:
    """Add a label to an email and learn from it."""

    async def _go() -> None:
        outcome = await _run_action("label", email_id, label_name)
        _print_outcome(outcome, f"Added label '{label_name}' to")

    _run(_go)


@cli.command("unlabel")
@click.argument("email_id")
@click.argument("label_name")
def unlabel(email_id: str, label_name: str) -> None:
    """Remove a label from an email (learned on the next scan)."""

    async def _go() -> None:
        outcome = await _run_action("unlabel", email_id, label_name)
        _print_outcome(outcome, f"Removed label '{label_name}' from")

    _run(_go)


@cli.command("archive")
@click.argument("email_id")
def archive(email_id: str) -> None:
    """Archive an email (no learning)."""

    async def _go() -> None:
        _print_outcome(await _run_action("archive", email_id), "Archived")

    _run(_go)


@cli.command("delete")
@click.argument("email_id")
def delete(email_id: str) -> None:
    """Move an email to trash (no learning)."""

    async def _go() -> None:
        _print_outcome(await _run_action("delete", email_id), "Moved to trash")

    _run(_go)


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


@cli.group("labels")
def labels() -> None:
    """Inspect and clean up labels."""


@labels.command("list")
def labels_list() -> None:
    """List provider labels and labels created by the assistant."""

    async def _go() -> None:
        deps = await _init_cli_deps(_config_path(), with_generator=False)
        provider_labels = await deps.provider.list_labels()

        table = Table(title="Provider labels")
        table.add_column("Name")
        table.add_column("ID", style="dim")
        for item in provider_labels:
            table.add_row(item.name, item.id)
        console.print(table)

        with_rules = {title.casefold() for title in deps.state.profile.label_sections()}
        console.print("\n[bold]Created by the assistant:[/bold]")
        for name in deps.state.registry.llm_labels():
            entry = deps.state.registry.get(name)
            rules = ", profile rules" if name.casefold() in with_rules else ""
            console.print(f"  {name} [dim]({entry.email_count} emails{rules})[/dim]")

    _run(_go)


@labels.command("cleanup")
@click.option("--dry-run", "is_dry_run", is_flag=True, help="Report orphans, change nothing")
def labels_cleanup(is_dry_run: bool) -> None:
    """Remove assistant-created labels that no email carries any more."""

    async def _go() -> None:
        deps = await _init_cli_deps(_config_path(), with_generator=False)
        registry = deps.state.registry

        if is_dry_run:
            orphans = await registry.find_orphans(deps.provider)
        else:
            orphans = await registry.cleanup(deps.provider, deps.state.profile)

        if not orphans:
            console.print("No labels to clean up.")
            return

        verb = "Would remove" if is_dry_run else "Removed"
        console.print(f"{verb} {len(orphans)} labels:")
        for name in orphans:
            console.print(f"  - {name}")

        if not is_dry_run:
            deps.state.save_profile()
            await deps.state.store.save_labels(registry.entries())

    _run(_go)


# ---------------------------------------------------------------------------
# Profile and reports
# ---------------------------------------------------------------------------


@cli.command("profile")
@click.option("--path", "show_path", is_flag=True, help="Print the profile location only")
def profile(show_path: bool) -> None:
    """Print the classification profile."""
    from email_assistant.core.errors import PersistenceError
    from email_assistant.learning.profile import Profile

    config = _load_config_or_exit(_config_path())
    if show_path:
        console.print(str(config.profile_path))
        return
    try:
        content = Profile.load(config.profile_path).content
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    # markup=False: profile text may contain [brackets]
    console.print(content, markup=False, highlight=False)


@cli.command("needs-reply")
@click.option("--limit", type=int, default=20, help="Maximum emails to show")
def needs_reply_cmd(limit: int) -> None:
    """List classified emails that expect a reply."""

    async def _go() -> None:
        from email_assistant.engine.reports import needs_reply

        deps = await _init_cli_deps(_config_path(), with_provider=False, with_generator=False)
        pending = needs_reply(deps.state.predictions)
        if not pending:
            console.print("Nothing is waiting for a reply.")
            return

        table = Table(title=f"Needs reply ({len(pending)})")
        table.add_column("Classified", style="dim")
        table.add_column("From")
        table.add_column("Subject")
        table.add_column("ID", style="dim", no_wrap=True)
        for p in pending[:limit]:
            table.add_row(p.timestamp.strftime("%Y-%m-%d %H:%M"), p.sender, p.subject, p.email_id)
        console.print(table)

    _run(_go)


@cli.command("digest")
@click.option("--hours", type=int, default=24, help="Look-back window in hours")
def digest(hours: int) -> None:
    """Summarize what was classified recently."""

    async def _go() -> None:
        from email_assistant.engine.reports import build_digest

        deps = await _init_cli_deps(_config_path(), with_provider=False, with_generator=False)
        result = build_digest(deps.state.predictions, since_hours=hours)

        console.print(f"[bold]Digest[/bold] for the last {hours}h")
        console.print(f"  Classified: {result.total}")
        console.print(f"  Spam:       {result.spam}")

        if result.label_counts:
            table = Table(title="Labels")
            table.add_column("Label")
            table.add_column("Emails", justify="right")
            for name, count in result.label_counts.items():
                table.add_row(name, str(count))
            console.print(table)

        for title, items in (("Important", result.important), ("Needs reply", result.needs_reply)):
            if items:
                console.print(f"\n[bold]{title}[/bold]")
                for p in items:
                    console.print(f"  - {p.subject} [dim]({p.sender})[/dim]")

    _run(_go)


# ---------------------------------------------------------------------------
# Legacy import
# ---------------------------------------------------------------------------


@cli.command("import-legacy")
@click.argument(
    "source_dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--overwrite", is_flag=True, help="Replace predictions that already exist")
def import_legacy(source_dir: Path | None, overwrite: bool) -> None:
    """Import predictions.json / labels.json from an older install."""

    async def _go() -> None:
        from email_assistant.db.legacy import (
            LEGACY_LABELS_FILE,
            LEGACY_PREDICTIONS_FILE,
            read_legacy_labels,
            read_legacy_predictions,
        )
        from email_assistant.db.store import LEGACY_IMPORT_KEY

        deps = await _init_cli_deps(_config_path(), with_provider=False, with_generator=False)
        state = deps.state
        directory = source_dir or deps.config.state_path

        earlier = await state.store.get_state(LEGACY_IMPORT_KEY)
        if earlier:
            console.print(f"[yellow]Previously imported from {earlier}.[/yellow]")

        imported = 0
        for prediction in read_legacy_predictions(directory / LEGACY_PREDICTIONS_FILE):
            if prediction.email_id in state.predictions and not overwrite:
                continue
            state.predictions.put(prediction)
            imported += 1

        labels_added = 0
        for entry in read_legacy_labels(directory / LEGACY_LABELS_FILE):
            if state.registry.add(entry):
                labels_added += 1

        await state.store.save_predictions(state.predictions)
        await state.store.save_labels(state.registry.entries())
        await state.store.set_state(LEGACY_IMPORT_KEY, str(directory))
        console.print(
            f"[green]✓[/green] Imported {imported} predictions and {labels_added} labels "
            f"from [cyan]{directory}[/cyan]"
        )

    _run(_go)


def main() -> None:
    """Entry point for the CLI (reads .env from the working directory first)."""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
