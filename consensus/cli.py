"""Click CLI — orchestrates config loading, agent setup, the consensus session, and output."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import VALID_MODES, AppConfig, load_config
from consensus.events import ConsensusEvent, EventSink
from consensus.healthcheck import run_health_checks
from consensus.inbox import archive_file, ensure_dirs, parse_question_file, scan_inbox
from consensus.limiter import LimiterRegistry
from consensus.models import IterationRecord, SessionResult
from consensus.orchestrator import SessionSettings, run_consensus
from consensus.output import ProgressPrinter, print_outcome, save_to_file
from consensus.providers.base import ConfigurationError, ProviderError
from consensus.providers.registry import build_provider
from consensus.query import Attachment, build_query, read_attachment
from consensus.transport import Agent

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )
    # SDK request logs would include headers at DEBUG.
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _build_agents(
    config: AppConfig,
    primary_key: str | None = None,
    secondary_key: str | None = None,
) -> tuple[Agent, Agent]:
    """Build the primary and secondary agents.

    Raises:
        ConfigurationError: A credential is missing or an sdk is unknown.
    """
    primary_cfg = config.models[config.primary]
    secondary_cfg = config.models[config.secondary]
    primary = Agent.from_config(build_provider(primary_cfg, api_key=primary_key), primary_cfg)
    secondary = Agent.from_config(build_provider(secondary_cfg, api_key=secondary_key), secondary_cfg)
    return primary, secondary


def _check_agents(agents: tuple[Agent, Agent]) -> None:
    """Ping both agents. A session needs both, so a failure exits unless the user insists."""
    console.print("\n[bold]Checking agents...[/bold]")
    results = asyncio.run(run_health_checks({a.name: a.provider for a in agents}))

    failed: list[str] = []
    for agent in agents:
        ok, err = results[agent.name]
        if ok:
            console.print(f"  [green]OK  [/green] {agent.label}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {agent.label}: {escape(short_err)}")
            failed.append(agent.label)

    console.print()
    if failed and not click.confirm(f"{', '.join(failed)} failed the health check. Continue anyway?", default=False):
        sys.exit(1)


def _load_attachments(paths: list[Path], config: AppConfig) -> list[Attachment]:
    return [read_attachment(p, config.attachments.max_file_chars) for p in paths]


def _sse_sink(event: ConsensusEvent) -> None:
    click.echo(event.format_sse(), nl=False)


async def _run_single(
    query: str,
    source: str,
    config: AppConfig,
    agents: tuple[Agent, Agent],
    settings: SessionSettings,
    limiters: LimiterRegistry,
    output_dir: Path,
    sse: bool = False,
    slug_override: str | None = None,
) -> Path:
    """Run one consensus session, print the outcome, and return the transcript path."""
    primary, secondary = agents
    rounds: list[IterationRecord] = []
    sink: EventSink = _sse_sink if sse else ProgressPrinter(console)

    if not sse:
        preview = query.strip().splitlines()[0] if query.strip() else ""
        console.print(f"\n[bold cyan]AI Consensus[/bold cyan] — {escape(primary.label)} vs {escape(secondary.label)} \\[{settings.mode}]")
        console.print(f"Query: [italic]{escape(preview[:80])}{'...' if len(preview) > 80 else ''}[/italic]\n")

    start = time.monotonic()
    outcome = await run_consensus(
        query=query,
        primary=primary,
        secondary=secondary,
        prompts=config.prompts,
        settings=settings,
        sink=sink,
        limiters=limiters,
        on_round_complete=rounds.append,
    )

    result = SessionResult(
        query=query,
        source=source,
        mode=settings.mode,
        outcome=outcome,
        rounds=rounds,
        primary_label=primary.label,
        secondary_label=secondary.label,
        total_duration_sec=time.monotonic() - start,
    )

    if not sse:
        print_outcome(result)

    saved_path = save_to_file(result, output_dir, slug_override=slug_override)
    if not sse:
        console.print(f"\n[dim]Saved to: {escape(str(saved_path))}[/dim]")
    return saved_path


async def _run_inbox(
    config: AppConfig,
    agents: tuple[Agent, Agent],
    inbox_dir: Path,
    archive_dir: Path,
    mode_cli: str | None,
    iterations_cli: int | None,
    output_dir: Path,
) -> None:
    """Process all .md question files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    limiters = LimiterRegistry()
    for file_path in files:
        try:
            qf = parse_question_file(file_path)
            settings = SessionSettings.from_defaults(
                config.defaults,
                mode=mode_cli if mode_cli is not None else qf.mode,
                iterations=iterations_cli if iterations_cli is not None else qf.iterations,
            )
            query = build_query(
                qf.question,
                _load_attachments(qf.attachments, config),
                config.attachments.max_total_chars,
            )
            saved = await _run_single(
                query=query,
                source=str(file_path),
                config=config,
                agents=agents,
                settings=settings,
                limiters=limiters,
                output_dir=output_dir,
                slug_override=file_path.stem,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except (ConfigurationError, ProviderError, ValueError, OSError) as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Read question from .md file (frontmatter may set mode/iterations)")
@click.option("--attach", "attach_paths", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Attach a text file to the query (repeatable)")
@click.option("--mode", type=click.Choice(VALID_MODES, case_sensitive=False), default=None,
              help="fast: one round, no revision. robust: revise until both accept (default: from config)")
@click.option("--iterations", type=click.IntRange(1, 20), default=None,
              help="Maximum rounds in robust mode (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--sse", is_flag=True, help="Print raw progress events as server-sent-event frames")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md files in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: Path | None,
    attach_paths: tuple[Path, ...],
    mode: str | None,
    iterations: int | None,
    output_path: str | None,
    sse: bool,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """AI Consensus -- two agents solve, cross-review and revise until both accept.

    \b
    Examples:
      ai-consensus "Explain the CAP theorem with an example"
      ai-consensus "Review this module" --attach app.py --mode fast
      ai-consensus --file question.md --iterations 3
      ai-consensus --inbox
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        err_console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    try:
        agents = _build_agents(config)
    except ConfigurationError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check and not sse:
        _check_agents(agents)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config=config,
                agents=agents,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                mode_cli=mode,
                iterations_cli=iterations,
                output_dir=effective_output,
            )
        )
        return

    attachments_paths = list(attach_paths)
    file_mode: str | None = None
    file_iterations: int | None = None
    if question_file:
        try:
            qf = parse_question_file(question_file)
        except ValueError as exc:
            err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            sys.exit(1)
        question_text, source = qf.question, str(question_file)
        file_mode, file_iterations = qf.mode, qf.iterations
        attachments_paths = qf.attachments + attachments_paths
    else:
        question_text, source = question or "", "cli"

    try:
        query = build_query(
            question_text,
            _load_attachments(attachments_paths, config),
            config.attachments.max_total_chars,
        )
    except ValueError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))} Pass a QUESTION, --file, --attach, or --inbox.")
        sys.exit(1)

    settings = SessionSettings.from_defaults(
        config.defaults,
        mode=mode if mode is not None else file_mode,
        iterations=iterations if iterations is not None else file_iterations,
    )

    async def _session() -> Path:
        return await _run_single(
            query=query,
            source=source,
            config=config,
            agents=agents,
            settings=settings,
            limiters=LimiterRegistry(),
            output_dir=effective_output,
            sse=sse,
        )

    try:
        asyncio.run(_session())
    except ConfigurationError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    except ProviderError as exc:
        err_console.print(f"[bold red]Session aborted:[/bold red] {escape(str(exc))}")
        sys.exit(1)


if __name__ == "__main__":
    main()
