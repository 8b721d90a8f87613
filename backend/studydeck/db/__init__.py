"""
Persistence package.

Key-value backends for the card store and the factory that picks one from
settings.
"""

import logging
from typing import Optional

from studydeck.config.settings import Settings, settings as default_settings
from studydeck.db.base import KeyValueBackend, MemoryBackend

logger = logging.getLogger(__name__)


def create_backend(config: Optional[Settings] = None) -> KeyValueBackend:
    """
    Build the backend selected by STORAGE_BACKEND.

    Args:
        config: Settings to read (default: process settings)

    Returns:
        Memory, Redis or SQL backend
    """
    config = config or default_settings
    kind = config.STORAGE_BACKEND

    if kind == "redis":
        from studydeck.db.redis import RedisBackend

        backend = RedisBackend(url=config.REDIS_URL)
    elif kind == "sql":
        from studydeck.db.sql import SQLBackend

        backend = SQLBackend(
            url=config.DATABASE_URL, max_bytes=config.DATABASE_MAX_BYTES
        )
    else:
        backend = MemoryBackend(max_bytes=config.STORAGE_MAX_BYTES)

    logger.info(f"Using {kind} storage backend")
    return backend


__all__ = ["KeyValueBackend", "MemoryBackend", "create_backend"]
