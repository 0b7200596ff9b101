"""Multi-repository workspace manager built on bare clones and git worktrees."""

__version__ = "0.1.0"
