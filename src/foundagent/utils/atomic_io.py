"""Atomic file writes for workspace documents (config, state, folder list)."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str) -> None:
    """
    Replace ``file_path`` with ``content`` in one rename.

    The text goes to a temp file in the target directory, is flushed to disk,
    and is then moved over the target. Readers see either the previous
    document or the new one.

    Args:
        file_path: Target file path; missing parent directories are created
        content: Full document text

    Raises:
        OSError: If the temp file cannot be written or renamed
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, file_path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        logger.error(f"Failed to write {file_path}")
        raise


def atomic_write_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """Serialize ``data`` as JSON and write it atomically."""
    atomic_write_text(file_path, json.dumps(data, indent=indent) + "\n")


def atomic_write_model(file_path: Path, model: BaseModel, indent: int = 2) -> None:
    """
    Atomically write a Pydantic model to a JSON file.

    Args:
        file_path: Target file path
        model: Pydantic model to serialize
        indent: JSON indentation (default: 2)
    """
    atomic_write_text(file_path, model.model_dump_json(indent=indent) + "\n")
