"""Console, styling and error output shared by the CLI command modules."""

import json
import sys

import click
from rich.console import Console

from ..errors import ErrorTranslator
from ..utils.rich_logging import setup_logging
from ..workspace import Workspace

console = Console()

STATUS_STYLES = {
    "committed": "green", "pushed": "green", "updated": "green", "synced": "green",
    "up-to-date": "green", "added": "green", "pass": "green", "created": "green",
    "removed": "green", "clean": "green",
    "would-commit": "cyan", "would-push": "cyan",
    "skipped": "yellow", "warn": "yellow", "modified": "yellow", "untracked": "yellow",
    "failed": "red", "fail": "red", "conflict": "red", "error": "red",
}


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/]"


def _fail(error: Exception) -> None:
    """Print a translated error and exit non-zero."""
    translator = ErrorTranslator()
    console.print(translator.format_for_cli(translator.translate(error)))
    sys.exit(1)


def _workspace(ctx) -> Workspace:
    workspace = Workspace.discover(ctx.obj["workspace_root"])
    setup_logging(ctx.obj["log_level"], workspace.foundagent_dir, use_file=True)
    return workspace


def _print_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))
