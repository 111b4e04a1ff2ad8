from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from labflow.auth import default_token, mask_token
from labflow.config import (
    DEFAULT_BRANCH,
    LabFlowConfig,
    load_config,
    parse_repo_url,
    save_config,
)
from labflow.exceptions import LabFlowError
from labflow.gitlab_sync import push_to_gitlab
from labflow.models import COMMIT_MODE_CHOICES, CommitAction, PushResult, parse_commit_mode


app = typer.Typer(help="LabFlow CLI: push a local directory to a GitLab branch as one commit.")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _render_actions(title: str, result: PushResult) -> None:
    if not result.actions:
        return

    table = Table(title=title)
    table.add_column("Action")
    table.add_column("Path")
    table.add_column("Size (b64)", justify="right")
    table.add_column("Exec")

    styles = {CommitAction.CREATE: "green", CommitAction.UPDATE: "cyan", CommitAction.DELETE: "red"}
    for item in result.actions:
        table.add_row(
            Text(item.action.value, style=styles.get(item.action, "")),
            item.path,
            str(len(item.content)),
            "x" if item.execute_filemode else "",
        )

    console.print(table)


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {path}")


def _print_init_result(config: LabFlowConfig, config_file: Path) -> None:
    location = parse_repo_url(config.repo_url)
    console.print(f"[green]Initialized LabFlow[/green] at {config.local_root_path}")
    console.print(f"Config: {config_file}")
    console.print(f"Target: {location.host} {location.project}@{config.branch}")
    if not default_token():
        console.print(
            "[yellow]GITLAB_TOKEN not found in environment. Pass --token or add a token "
            "to an integration in the config.[/yellow]"
        )


@app.command()
def init(
    repo_url: str,
    branch: str = typer.Option(DEFAULT_BRANCH, "--branch", "-b", help="Branch to commit to."),
    source_path: str = typer.Option("", "--source-path", help="Local subdirectory to push."),
    target_path: str = typer.Option("", "--target-path", help="Repository subdirectory to write under."),
) -> None:
    """Initialize LabFlow config in the current directory."""
    root = Path.cwd().resolve()
    try:
        parse_repo_url(repo_url)
    except LabFlowError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    config = LabFlowConfig(
        repo_url=repo_url.strip(),
        local_root=str(root),
        branch=branch,
        source_path=source_path,
        target_path=target_path,
    )
    config_file = save_config(config, root)
    _print_init_result(config, config_file)


def _run_push(
    *,
    dry_run: bool,
    token: str | None,
    commit_action: str | None,
    message: str | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
) -> int:
    label = "Plan" if dry_run else "Push"
    try:
        config = load_config()
        mode = parse_commit_mode(commit_action) if commit_action else None
        result = push_to_gitlab(
            config,
            token=token,
            mode=mode,
            commit_message=message,
            include_patterns=include,
            exclude_patterns=exclude,
            dry_run=dry_run,
            console=console,
        )
    except KeyboardInterrupt:
        console.print(f"[yellow]{label} interrupted.[/yellow] Nothing was committed.")
        return 130
    except (FileNotFoundError, LabFlowError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    except Exception as exc:
        console.print(f"[red]{label} failed:[/red] {exc}")
        return 1

    _render_actions(f"{result.repo_id}@{result.branch}", result)
    if not result.actions:
        console.print("[green]Remote branch already matches the local files.[/green]")
        return 0

    if dry_run:
        console.print(f"{len(result.actions)} action(s) would be committed.")
        return 0

    _render_path_summary("Created", result.paths_for(CommitAction.CREATE), "green")
    _render_path_summary("Updated", result.paths_for(CommitAction.UPDATE), "cyan")
    _render_path_summary("Deleted", result.paths_for(CommitAction.DELETE), "red")
    console.print(f"[green]Committed[/green] {result.commit_id}")
    if result.web_url:
        console.print(f"View: {result.web_url}")
    return 0


_COMMIT_ACTION_HELP = f"Reconciliation mode: {', '.join(COMMIT_MODE_CHOICES)}. Defaults to the config value."


@app.command()
def plan(
    commit_action: str | None = typer.Option(None, "--commit-action", help=_COMMIT_ACTION_HELP),
    token: str | None = typer.Option(None, "--token", help="GitLab OAuth or access token; overrides any configured token."),
    include: list[str] | None = typer.Option(
        None,
        "--include",
        help="Include glob pattern(s) for paths to consider (repeatable).",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s) for paths to ignore (repeatable).",
    ),
) -> None:
    """Show the commit actions a push would submit, without committing."""
    raise typer.Exit(
        code=_run_push(
            dry_run=True,
            token=token,
            commit_action=commit_action,
            message=None,
            include=tuple(include or ()),
            exclude=tuple(exclude or ()),
        )
    )


@app.command()
def push(
    message: str | None = typer.Option(None, "--message", "-m", help="Commit message."),
    commit_action: str | None = typer.Option(None, "--commit-action", help=_COMMIT_ACTION_HELP),
    token: str | None = typer.Option(None, "--token", help="GitLab OAuth or access token; overrides any configured token."),
    include: list[str] | None = typer.Option(
        None,
        "--include",
        help="Include glob pattern(s) for paths to push (repeatable).",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s) for paths to skip (repeatable).",
    ),
) -> None:
    """Commit changed local files to the configured GitLab branch."""
    raise typer.Exit(
        code=_run_push(
            dry_run=False,
            token=token,
            commit_action=commit_action,
            message=message,
            include=tuple(include or ()),
            exclude=tuple(exclude or ()),
        )
    )


@app.command()
def integrations() -> None:
    """List the GitLab integrations known to this workspace."""
    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="GitLab integrations")
    table.add_column("Host")
    table.add_column("API")
    table.add_column("Token")
    for integration in config.registry.list():
        table.add_row(integration.host, integration.api_base_url, mask_token(integration.token))
    console.print(table)
