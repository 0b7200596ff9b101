"""Main CLI for foundagent."""

import sys
from dataclasses import asdict
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..core.config import ToolSettings
from ..doctor import CheckStatus, DoctorChecker, DoctorSummary, Fixer
from ..errors import FoundagentError
from ..utils.rich_logging import setup_logging
from ..workspace import (
    CommitEngine,
    CommitOptions,
    CommitStatus,
    PushEngine,
    PushOptions,
    PushStatus,
    RemovalEngine,
    SyncEngine,
    Workspace,
)
from ..workspace.commit import CommitSummary
from ..workspace.push import PushSummary
from ..workspace.repository import AddStatus, RepositoryManager
from ..workspace.sync import SyncSummary
from .output import _fail, _print_json, _styled, _workspace, console
from .worktree_commands import wt


@click.group()
@click.option("--workspace", "-w", "workspace_root", default=None, type=click.Path(file_okay=False),
              help="Workspace directory (default: discovered from the current directory)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.version_option(__version__, prog_name="fa")
@click.pass_context
def cli(ctx, workspace_root, verbose):
    """Foundagent - manage many repositories as one workspace."""
    ctx.ensure_object(dict)
    settings = ToolSettings()
    log_level = "DEBUG" if verbose else settings.log_level
    ctx.obj["settings"] = settings
    ctx.obj["log_level"] = log_level
    ctx.obj["workspace_root"] = Path(workspace_root) if workspace_root else None
    setup_logging(log_level)


@cli.command()
@click.argument("name")
@click.option("--force", is_flag=True, help="Reinitialize an existing workspace")
@click.pass_context
def init(ctx, name, force):
    """Create a new workspace directory NAME."""
    parent = ctx.obj["workspace_root"] or Path.cwd()
    try:
        workspace = Workspace.create(parent, name, force=force)
    except FoundagentError as e:
        _fail(e)
        return

    console.print(f"[green]✓[/] Created workspace [bold]{name}[/] at {workspace.root}")
    console.print("\nNext steps:")
    console.print(f"  1. cd {workspace.root}")
    console.print("  2. Add repositories: fa add <url>")
    console.print(f"  3. Open {workspace.folders_path.name} in your editor")


@cli.command()
@click.argument("url", required=False)
@click.argument("name", required=False)
@click.option("--branch", "default_branch", default=None, help="Default branch to check out")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def add(ctx, url, name, default_branch, as_json):
    """Add URL to the workspace, or clone every declared repository not yet cloned."""
    try:
        workspace = _workspace(ctx)
        manager = RepositoryManager(workspace, max_workers=ctx.obj["settings"].max_workers)
        names = None
        if url:
            repo = manager.declare(url, name=name, default_branch=default_branch)
            names = [repo.name]
        results = manager.clone_missing(names)
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json([r.to_dict() for r in results])
    elif not results:
        console.print("[dim]Nothing to add - all declared repositories are cloned[/]")
    else:
        for result in results:
            detail = f" ({escape(result.error)})" if result.error else ""
            worktree = f" -> repos/worktrees/{result.name}/{result.worktree}" if result.worktree else ""
            console.print(f"{_styled(result.status.value)} {result.name}{worktree}{detail}")

    if any(r.status == AddStatus.FAILED for r in results):
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def status(ctx, as_json):
    """Compare declared repositories with what is cloned."""
    try:
        workspace = _workspace(ctx)
        plan = RepositoryManager(workspace).plan()
        state = workspace.state_store.load()
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json({
            "workspace": workspace.name,
            "to_clone": [r.name for r in plan.to_clone],
            "up_to_date": [r.name for r in plan.up_to_date],
            "stale": [r.name for r in plan.stale],
        })
        return

    console.print(f"[bold]Workspace {workspace.name}[/] ({workspace.root})")
    table = Table()
    table.add_column("Repository")
    table.add_column("Status")
    table.add_column("Worktrees")
    for repo in plan.up_to_date:
        worktrees = ", ".join(state.repositories[repo.name].worktrees) or "-"
        table.add_row(repo.name, "[green]cloned[/]", worktrees)
    for repo in plan.to_clone:
        table.add_row(repo.name, "[yellow]not cloned[/]", "-")
    for repo in plan.stale:
        table.add_row(repo.name, "[red]not in config[/]", ", ".join(repo.worktrees) or "-")
    console.print(table)

    if plan.to_clone:
        console.print("[dim]Run 'fa add' to clone missing repositories[/]")


@cli.command()
@click.option("--message", "-m", default="", help="Commit message")
@click.option("--all", "-a", "stage_all", is_flag=True, help="Stage modified tracked files first")
@click.option("--amend", is_flag=True, help="Amend the previous commit")
@click.option("--dry-run", is_flag=True, help="Show what would be committed")
@click.option("--allow-detached", is_flag=True, help="Allow committing on a detached HEAD")
@click.option("--repo", "repos", multiple=True, help="Limit to a repository (repeatable)")
@click.option("--branch", default=None, help="Branch whose worktrees to commit in")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def commit(ctx, message, stage_all, amend, dry_run, allow_detached, repos, branch, as_json):
    """Commit staged changes in every repository."""
    options = CommitOptions(
        message=message,
        all=stage_all,
        amend=amend,
        dry_run=dry_run,
        repos=list(repos),
        allow_detached=allow_detached,
        branch=branch,
    )
    try:
        engine = CommitEngine(_workspace(ctx), max_workers=ctx.obj["settings"].max_workers)
        results = engine.commit_all(options)
    except FoundagentError as e:
        _fail(e)
        return

    summary = CommitSummary.from_results(results)
    if as_json:
        _print_json({"results": [r.to_dict() for r in results], "summary": asdict(summary)})
    else:
        for r in results:
            line = f"{_styled(r.status.value)} {r.name}"
            if r.commit_sha:
                line += f" [dim]{r.commit_sha}[/]"
            if r.status in (CommitStatus.COMMITTED, CommitStatus.WOULD_COMMIT):
                line += f" ({r.files_changed} files, +{r.insertions} -{r.deletions})"
            if r.error:
                line += f" ({escape(r.error)})"
            console.print(line)
        console.print(
            f"\n{summary.committed} committed, {summary.skipped} skipped, {summary.failed} failed"
        )

    if summary.failed:
        sys.exit(1)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be pushed")
@click.option("--force", is_flag=True, help="Force push (overwrites remote history)")
@click.option("--repo", "repos", multiple=True, help="Limit to a repository (repeatable)")
@click.option("--branch", default=None, help="Branch whose worktrees to push")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def push(ctx, dry_run, force, repos, branch, as_json):
    """Push unpushed commits in every repository."""
    options = PushOptions(dry_run=dry_run, repos=list(repos), force=force, branch=branch)
    try:
        engine = PushEngine(_workspace(ctx), max_workers=ctx.obj["settings"].max_workers)
        results = engine.push_all(options)
    except FoundagentError as e:
        _fail(e)
        return

    summary = PushSummary.from_results(results)
    if as_json:
        _print_json({"results": [r.to_dict() for r in results], "summary": asdict(summary)})
    else:
        _print_push_results(results)
        console.print(f"\n{summary.pushed} pushed, {summary.skipped} skipped, {summary.failed} failed")

    if summary.failed:
        sys.exit(1)


def _print_push_results(results) -> None:
    for r in results:
        line = f"{_styled(r.status.value)} {r.name}"
        if r.status in (PushStatus.PUSHED, PushStatus.WOULD_PUSH):
            line += f" {r.commits_pushed} commit(s) {', '.join(r.refs_pushed)}"
        if r.error:
            line += f" ({escape(r.error)})"
        console.print(line)


@cli.command()
@click.option("--pull", "do_pull", is_flag=True, help="Fast-forward worktrees after fetching")
@click.option("--branch", default=None, help="Branch whose worktrees to pull")
@click.option("--stash", is_flag=True, help="Stash uncommitted changes around the pull")
@click.option("--push", "do_push", is_flag=True, help="Push unpushed commits afterwards")
@click.option("--repo", "repos", multiple=True, help="Limit to a repository (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def sync(ctx, do_pull, branch, stash, do_push, repos, as_json):
    """Fetch every repository, optionally pulling and pushing."""
    try:
        workspace = _workspace(ctx)
        max_workers = ctx.obj["settings"].max_workers
        engine = SyncEngine(workspace, max_workers=max_workers)
        if do_pull:
            results = engine.pull_all(branch=branch, stash=stash, repos=list(repos))
        else:
            results = engine.fetch_all(list(repos))
        push_results = []
        if do_push:
            push_results = PushEngine(workspace, max_workers=max_workers).push_all(
                PushOptions(repos=list(repos), branch=branch)
            )
    except FoundagentError as e:
        _fail(e)
        return

    summary = SyncSummary.from_results(results)
    push_summary = PushSummary.from_results(push_results)
    if as_json:
        payload = {"results": [r.to_dict() for r in results], "summary": asdict(summary)}
        if do_push:
            payload["push"] = [r.to_dict() for r in push_results]
        _print_json(payload)
    else:
        for r in results:
            line = f"{_styled(r.status.value)} {r.name}"
            if r.error:
                line += f" ({escape(r.error)})"
            if r.stash_retained:
                line += " [yellow]local changes are in the stash[/]"
            console.print(line)
            if r.fetch_error:
                console.print(f"  [yellow]fetch failed: {escape(r.fetch_error)}[/]")
        if do_push:
            console.print()
            _print_push_results(push_results)
        line = (
            f"\n{summary.synced} synced, {summary.updated} updated, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        if summary.fetch_failed:
            line += f", {summary.fetch_failed} fetch failed"
        console.print(line)

    if summary.failed or summary.fetch_failed or push_summary.failed:
        sys.exit(1)


@cli.command()
@click.argument("name")
@click.option("--force", is_flag=True, help="Remove even with uncommitted changes")
@click.option("--config-only", is_flag=True, help="Only remove from config, keep files on disk")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def remove(ctx, name, force, config_only, as_json):
    """Remove repository NAME from the workspace."""
    try:
        result = RemovalEngine(_workspace(ctx)).remove_repo(name, force=force, config_only=config_only)
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json(result.to_dict())
    else:
        if result.removed_from_config:
            console.print(f"[green]✓[/] Removed {name} from config")
        if result.worktrees_deleted:
            console.print(f"[green]✓[/] Deleted {result.worktrees_deleted} worktree(s)")
        if result.bare_clone_deleted:
            console.print("[green]✓[/] Deleted bare clone")
        if config_only and result.ok:
            console.print("[dim]Files kept on disk (--config-only)[/]")
        if result.error:
            console.print(f"[red]✗ {escape(result.error)}[/]")

    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--fix", is_flag=True, help="Automatically fix fixable issues")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def doctor(ctx, fix, as_json):
    """Check workspace health."""
    try:
        workspace = _workspace(ctx)
    except FoundagentError as e:
        _fail(e)
        return

    checker = DoctorChecker(workspace)
    results = checker.run_all_checks()
    if fix:
        results = Fixer(checker).fix_all(results)
    summary = DoctorSummary.from_results(results)

    if as_json:
        _print_json({"checks": [r.to_dict() for r in results], "summary": asdict(summary)})
    else:
        console.print(f"[bold]Checking workspace {workspace.name}[/]\n")
        for r in results:
            console.print(f"{_styled(r.status.value)} {r.name}: {escape(r.message)}")
            for detail in r.details:
                console.print(f"    [dim]{escape(detail)}[/]")
            if r.status != CheckStatus.PASS and r.remediation:
                console.print(f"    [dim]→ {escape(r.remediation)}[/]")
        console.print(
            f"\n{summary.passed} passed, {summary.warnings} warnings, {summary.failed} failed"
        )
        if not fix and any(r.fixable and not r.passed for r in results):
            console.print("[dim]Run 'fa doctor --fix' to fix automatically[/]")

    if not summary.healthy:
        sys.exit(1)


cli.add_command(wt)


if __name__ == "__main__":
    cli()
