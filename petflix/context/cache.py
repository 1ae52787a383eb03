"""
Content Cache
=============

Remembers finished videos by a fingerprint of their inputs, so asking for
the same photo and theme twice costs nothing the second time.

Storage is one JSON map in ``<cache_dir>/metadata.json``. Writes replace the
file atomically; there is no locking across processes.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, Union

from ..core.models import CacheEntry
from ..utils.storage import read_json, write_json

logger = logging.getLogger(__name__)


METADATA_FILENAME = "metadata.json"


class ContentCache:
    """
    Fingerprint to video reference cache.

    Features:
    - Deterministic SHA-256 fingerprints of (image ref, theme id)
    - Write-once entries
    - Best-effort writes that never fail a run
    """

    def __init__(self, cache_dir: Union[str, Path], enabled: bool = True):
        """
        Initialize the cache.

        Args:
            cache_dir: Directory holding ``metadata.json``
            enabled: When False, lookups miss and writes are skipped
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.metadata_path = self.cache_dir / METADATA_FILENAME
        self.enabled = enabled
        self._lock = asyncio.Lock()

    @staticmethod
    def key(image_ref: str, theme_id: str) -> str:
        """Fingerprint for an (image ref, theme id) pair."""
        return hashlib.sha256(f"{image_ref}-{theme_id}".encode("utf-8")).hexdigest()

    async def _read(self) -> Dict[str, Any]:
        try:
            data = await read_json(self.metadata_path, default={})
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read cache metadata, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error("Cache metadata is not a JSON object, treating as empty")
            return {}
        return data

    async def get(self, key: str) -> Optional[str]:
        """
        Look up a cached video.

        Args:
            key: Fingerprint from ``key()``

        Returns:
            The cached video ref, or None on a miss
        """
        if not self.enabled:
            return None

        raw = (await self._read()).get(key)
        if raw is None:
            return None

        try:
            entry = CacheEntry.from_dict(key, raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed cache entry {key[:12]}: {e}")
            return None

        logger.info(f"Cache hit for {key[:12]}")
        return entry.video_ref

    async def put(self, key: str, video_ref: str) -> bool:
        """
        Store a finished video. Never raises.

        An existing entry for the key is left untouched.

        Returns:
            True if a new entry was written
        """
        if not self.enabled:
            return False

        try:
            async with self._lock:
                data = await self._read()
                if key in data:
                    logger.debug(f"Cache entry {key[:12]} already exists, not overwriting")
                    return False
                data[key] = CacheEntry(fingerprint=key, video_ref=video_ref).to_dict()
                await write_json(self.metadata_path, data)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write cache entry {key[:12]}: {e}")
            return False

        logger.info(f"Cached video for {key[:12]}")
        return True

    async def entries(self) -> List[CacheEntry]:
        """All readable entries, oldest first."""
        entries = []
        for fingerprint, raw in (await self._read()).items():
            try:
                entries.append(CacheEntry.from_dict(fingerprint, raw))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning(f"Skipping malformed cache entry {fingerprint[:12]}")
        return sorted(entries, key=lambda e: e.created_at)

    async def clear(self) -> None:
        """Remove every entry."""
        async with self._lock:
            await write_json(self.metadata_path, {})
        logger.info("Video cache cleared")
