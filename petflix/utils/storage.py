"""
Storage Utilities
=================

Helpers for the small JSON documents the pipeline persists between runs.
"""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Union

import aiofiles

logger = logging.getLogger(__name__)


async def read_json(path: Union[str, Path], default: Any = None) -> Any:
    """
    Read a JSON document.

    Args:
        path: Path to the JSON file
        default: Value returned when the file does not exist

    Returns:
        Parsed document, or ``default`` if the file is missing

    Raises:
        ValueError: If the file exists but is not valid JSON
        OSError: If the file cannot be read
    """
    path = Path(path)

    if not path.exists():
        return default

    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()

    if not content.strip():
        return default

    return json.loads(content)


async def write_json(path: Union[str, Path], data: Any) -> str:
    """
    Write a JSON document atomically.

    The document is written to a sibling temp file and moved into place, so
    readers never observe a half-written file.

    Args:
        path: Destination path
        data: JSON-serializable document

    Returns:
        Path to the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, default=str))
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.debug(f"JSON saved to {path}")
    return str(path)
