"""Console and file logging setup for the fa command."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_DIR_NAME = "logs"
LOG_FILE_NAME = "foundagent.log"


class FoundagentLogFormatter(logging.Formatter):
    """Formatter that prefixes records with the repository they concern."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with repository context."""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        repo_context = ""
        if hasattr(record, "repo"):
            repo_context = f"[{record.repo}] "

        if self.use_colors:
            level_colors = {
                "DEBUG": "\033[36m",      # Cyan
                "INFO": "\033[32m",       # Green
                "WARNING": "\033[33m",    # Yellow
                "ERROR": "\033[31m",      # Red
                "CRITICAL": "\033[35m",   # Magenta
            }
            reset = "\033[0m"
            level_color = level_colors.get(record.levelname, "")
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{record.name}: {repo_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(
    log_level: str = "WARNING",
    foundagent_dir: Optional[Path] = None,
    use_file: bool = False,
) -> logging.Logger:
    """
    Configure the ``foundagent`` logger hierarchy.

    Args:
        log_level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        foundagent_dir: Workspace ``.foundagent`` directory, used for the log file
        use_file: Also write DEBUG-level records to ``.foundagent/logs/foundagent.log``

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("foundagent")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Close existing handlers before clearing so repeated setup does not leak fds
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    use_colors = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.WARNING))
    console_handler.setFormatter(FoundagentLogFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if use_file and foundagent_dir is not None and foundagent_dir.is_dir():
        log_dir = foundagent_dir / LOG_DIR_NAME
        log_dir.mkdir(exist_ok=True)

        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FoundagentLogFormatter(use_colors=False))
        logger.addHandler(file_handler)

    return logger
