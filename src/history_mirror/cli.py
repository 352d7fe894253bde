"""Command line interface for History Mirror."""

import json
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, ConfigManager
from .exceptions import HistoryMirrorError
from .models import ExportResult, MirrorCommit, PullRequestRange, Revision, RunMode
from .pr_context import load_event
from .services.lifecycle import LifecycleManager
from .services.orchestrator import PipelineOrchestrator
from .utils.exception_logger import ExceptionLogger

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _load_config(ctx: click.Context, **sections) -> Config:
    manager: ConfigManager = ctx.obj["config_manager"]
    manager.get_config()
    if sections:
        return manager.update_config(**sections)
    return manager.get_config()


def _open_journal(config: Config) -> None:
    if config.state_dir is not None:
        ExceptionLogger.initialize(config.state_dir)


def _pull_request_from_options(
    event_path: Optional[str],
    base: Optional[str],
    head: Optional[str],
    head_ref: Optional[str],
) -> Optional[PullRequestRange]:
    """Explicit boundaries win over the event payload.

    Returns None when the pull request is already merged.
    """
    if base or head:
        if not (base and head):
            raise click.UsageError("--base and --head must be given together")
        return PullRequestRange(base_sha=base, head_sha=head, head_ref=head_ref)

    payload = load_event(Path(event_path) if event_path else None)
    if payload.merged:
        return None
    pull_request = payload.to_range()
    if head_ref:
        pull_request = PullRequestRange(
            base_sha=pull_request.base_sha,
            head_sha=pull_request.head_sha,
            head_ref=head_ref,
            number=pull_request.number,
        )
    return pull_request


def _fail(error: Exception, verbose: bool) -> None:
    error_console.print(f"❌ {error}", style="red", markup=False)
    journal = ExceptionLogger.get_instance()
    if journal:
        journal.log_exception(error)
        if verbose:
            error_console.print(f"Failure journal: {journal.log_file_path}", style="dim")
    sys.exit(1)


def _print_progress(position: int, total: int, commit: MirrorCommit) -> None:
    console.print(
        f"[{position}/{total}] {commit.source.short} -> {commit.mirror.short}  "
        f"{commit.message}",
        markup=False,
    )


def _write_host_outputs(result: ExportResult) -> None:
    output_file = os.environ.get("GITHUB_OUTPUT")
    if not output_file:
        return
    with open(output_file, "a", encoding="utf-8") as f:
        f.write(f"mirror-path={result.mirror_path}\n")
        f.write(f"mirror-head={result.mirror_head}\n")
        f.write(f"seed-head={result.seed.mirror}\n")


def _pull_request_options(func):
    func = click.option(
        "--head-ref", help="Branch name used in mirror commit messages"
    )(func)
    func = click.option("--head", help="Full head commit id (bypasses the event payload)")(func)
    func = click.option("--base", help="Full base commit id (bypasses the event payload)")(func)
    func = click.option(
        "--event-path",
        type=click.Path(exists=True, dir_okay=False),
        help="Event payload file (default: $GITHUB_EVENT_PATH)",
    )(func)
    return func


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="history-mirror")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Export a pull request's history as one transformed snapshot per commit.

    \b
    LIFECYCLE:
      history-mirror run        # main pass: build the mirror repository
      history-mirror teardown   # post pass: remove both working trees

    \b
    CONFIGURATION:
      Config file: .history-mirror/config.json (or --config)
      Unset values are filled from GITHUB_REPOSITORY, GITHUB_WORKSPACE,
      GITHUB_RUN_ID, GITHUB_JOB, RUNNER_TEMP and HISTORY_MIRROR_TOKEN.

    \b
    EXAMPLES:
      history-mirror run --transformer "render-config {source} {output}"
      history-mirror plan --base "$(git rev-parse origin/main)" --head "$(git rev-parse HEAD)"
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    ctx.obj["config_manager"] = ConfigManager(Path(config) if config else None)


@cli.command()
@_pull_request_options
@click.option(
    "--transformer",
    "transformer_command",
    help="Transformer command line; {source} and {output} are substituted",
)
@click.option(
    "--mirror-root",
    type=click.Path(file_okay=False),
    help="Directory under which the mirror repository is created",
)
@click.pass_context
def run(
    ctx,
    event_path: Optional[str],
    base: Optional[str],
    head: Optional[str],
    head_ref: Optional[str],
    transformer_command: Optional[str],
    mirror_root: Optional[str],
):
    """Build the mirror repository for the pull request (main pass)."""
    verbose = ctx.obj["verbose"]
    try:
        config = _load_config(
            ctx,
            transformer={
                "command": shlex.split(transformer_command)
                if transformer_command
                else None
            },
            mirror={"root": mirror_root},
        )
        _open_journal(config)

        pull_request = _pull_request_from_options(event_path, base, head, head_ref)
        if pull_request is None:
            console.print("ℹ️  PR already merged. Early out.")
            return

        lifecycle = LifecycleManager(config)
        orchestrator = PipelineOrchestrator(
            config,
            source_provider=lifecycle.source_provider,
            progress_callback=_print_progress,
            on_mirror_created=lifecycle.mark_mirror_created,
        )
        console.print(
            f"📦 Exporting {Revision(pull_request.base_sha).short}.."
            f"{Revision(pull_request.head_sha).short} "
            f"into {config.mirror.path}",
            markup=False,
        )
        result = lifecycle.execute(RunMode.MAIN, lambda: orchestrator.run(pull_request))
    except HistoryMirrorError as e:
        _fail(e, verbose)
        return

    assert result is not None
    _write_host_outputs(result)
    console.print(
        f"✅ Mirror ready: {len(result.commits)} commit(s), "
        f"seed {result.seed.mirror}, head {result.mirror_head}",
        style="green",
    )


@cli.command()
@click.pass_context
def teardown(ctx):
    """Remove the source and mirror working trees (post pass).

    Always exits 0; problems are reported as warnings.
    """
    try:
        config = _load_config(ctx)
        warnings = LifecycleManager(config).teardown()
    except HistoryMirrorError as e:
        error_console.print(f"⚠️  Cleanup skipped: {e}", style="yellow", markup=False)
        return

    for warning in warnings:
        error_console.print(f"⚠️  {warning}", style="yellow", markup=False)
    if not warnings:
        console.print("🧹 Working trees removed", style="dim")


@cli.command()
@_pull_request_options
@click.pass_context
def plan(
    ctx,
    event_path: Optional[str],
    base: Optional[str],
    head: Optional[str],
    head_ref: Optional[str],
):
    """Validate the pull request range and list the revisions to export.

    No mirror repository is created. Only the first-parent chain is listed;
    commits brought in through merges appear as the merge commit alone.
    """
    verbose = ctx.obj["verbose"]
    try:
        config = _load_config(ctx)
        _open_journal(config)

        pull_request = _pull_request_from_options(event_path, base, head, head_ref)
        if pull_request is None:
            console.print("ℹ️  PR already merged. Nothing to export.")
            return

        lifecycle = LifecycleManager(config)
        orchestrator = PipelineOrchestrator(
            config, source_provider=lifecycle.source_provider
        )
        with lifecycle.source_scope():
            sequence = orchestrator.plan(pull_request)
    except HistoryMirrorError as e:
        _fail(e, verbose)
        return

    table = Table(title=f"{len(sequence) + 1} mirror commit(s)")
    table.add_column("#", justify="right")
    table.add_column("Source revision")
    table.add_column("Role")
    table.add_row("1", pull_request.base_sha, "seed")
    for position, revision in enumerate(sequence, start=2):
        table.add_row(str(position), revision.sha, "")
    console.print(table)


@cli.command("show-config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration (token masked)."""
    try:
        config = _load_config(ctx)
    except HistoryMirrorError as e:
        _fail(e, ctx.obj["verbose"])
        return
    click.echo(json.dumps(config.masked_dump(), indent=2, sort_keys=True))


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        error_console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        error_console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
