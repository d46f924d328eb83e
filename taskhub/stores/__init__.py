"""
Storage engines.

create_storage() picks the engine once, at startup, from Settings; the rest
of the code only sees the StorageAdapter interface.
"""

from __future__ import annotations

from ..core.config import Settings
from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger
from .base import StorageAdapter

logger = get_logger(__name__)


def create_storage(settings: Settings) -> StorageAdapter:
    if settings.database_type == "mongodb":
        from .mongo_store import MongoStorage

        logger.info("Using MongoDB storage", database=settings.mongo_db_name)
        return MongoStorage.from_uri(settings.mongo_uri, settings.mongo_db_name)
    if settings.database_type == "file":
        from .file_store import FileStorage

        logger.info("Using file-based storage", data_dir=settings.data_dir)
        return FileStorage(settings.data_dir)
    raise ConfigError(f"Unknown DATABASE_TYPE: {settings.database_type!r}")


__all__ = ["StorageAdapter", "create_storage"]
