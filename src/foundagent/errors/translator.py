"""Translate technical errors to user-friendly messages."""

import re
from dataclasses import dataclass
from typing import List, Optional

from rich.markup import escape

from .exceptions import FoundagentError


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str]
    code: Optional[str] = None
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"git.*not found|No such file or directory: 'git'": {
            "title": "Git is not installed",
            "explanation": "foundagent drives every repository through the git command line tool.",
            "actions": [
                "Install git from https://git-scm.com/downloads",
                "Make sure 'git' is on your PATH",
            ],
        },

        r"Authentication failed|Permission denied \(publickey\)|could not read Username": {
            "title": "Git authentication failed",
            "explanation": "The remote rejected your credentials.",
            "actions": [
                "Check your SSH keys: ssh -T git@github.com",
                "Or refresh your HTTPS credential helper",
            ],
        },

        r"non-fast-forward|\[rejected\]|fetch first": {
            "title": "Remote has new commits",
            "explanation": "The push was rejected because the remote branch moved ahead.",
            "actions": [
                "Pull the latest changes: fa sync --pull",
                "Then push again: fa push",
            ],
        },

        r"Could not resolve host|Connection refused|Connection timed out|Network is unreachable": {
            "title": "Cannot reach the remote",
            "explanation": "Unable to connect to the git server. This could be a network issue or service outage.",
            "actions": [
                "Check your internet connection",
                "Verify the repository URL in .foundagent.yaml",
                "Try again in a few minutes",
            ],
        },

        r"not a foundagent workspace|config.*not.*found": {
            "title": "Not inside a workspace",
            "explanation": "No .foundagent.yaml was found in this directory or any parent.",
            "actions": [
                "Create one: fa init <name>",
                "Or point at an existing workspace: fa -w <path> ...",
            ],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        if isinstance(error, FoundagentError):
            actions = [error.remediation] if error.remediation else []
            friendly = self._match(error)
            if friendly is not None:
                friendly.code = error.code.value
                friendly.actions = actions + friendly.actions
                return friendly
            return UserFriendlyError(
                original_error=error,
                title=error.message,
                explanation=str(error.cause) if error.cause else "",
                actions=actions or ["Run a health check: fa doctor"],
                code=error.code.value,
            )

        friendly = self._match(error)
        if friendly is not None:
            return friendly

        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=str(error),
            actions=[
                "Run a health check: fa doctor",
                "Re-run with --verbose for details",
            ],
            show_technical=True,
        )

    def _match(self, error: Exception) -> Optional[UserFriendlyError]:
        full_error = f"{type(error).__name__}: {error}"
        output = getattr(error, "output", "")
        if output:
            full_error += f"\n{output}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=list(translation["actions"]),
                )
        return None

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for CLI display."""
        code = f"[{friendly_error.code}] " if friendly_error.code else ""
        output = f"[bold red]{escape(code + friendly_error.title)}[/]\n"
        if friendly_error.explanation:
            output += f"\n{escape(friendly_error.explanation)}\n"

        if friendly_error.actions:
            output += "\n[bold]How to fix:[/]\n"
            for i, action in enumerate(friendly_error.actions, 1):
                output += f"  {i}. {escape(action)}\n"

        if friendly_error.show_technical:
            output += f"\n[dim]Technical details:[/]\n[dim]{escape(str(friendly_error.original_error))}[/]"

        return output
