"""Store selection: networked database first, local JSON files as fallback.

WHY: The server and CLI should start whether or not the configured
database is reachable. Picking the backend once at process start, and
handing the chosen store to the library service, keeps every other
module free of connection logic.

HOW: open_store() tries SqlStore when a database URL is configured and
pings it. Any PersistenceError is logged and the JSON-file store in the
data directory is used instead.

RULES:
- No URL configured → JsonFileStore, no warning
- URL configured but unreachable → warning + JsonFileStore
- The returned store is owned by the caller, who must close() it
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from flowread import config
from flowread.errors import PersistenceError
from flowread.storage.base import Store
from flowread.storage.json_file import JsonFileStore
from flowread.storage.sql import SqlStore

logger = logging.getLogger(__name__)


def open_store(
    database_url: Optional[str] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> Store:
    """Open the configured store, falling back to local JSON files.

    Args:
        database_url: SQLAlchemy URL. Defaults to FLOWREAD_DATABASE_URL.
        data_dir: Directory for the JSON fallback. Defaults to
                  FLOWREAD_DATA_DIR.

    Returns:
        A ready-to-use Store.
    """
    url = database_url if database_url is not None else config.database_url()
    directory = data_dir if data_dir is not None else config.DATA_DIR

    if url:
        store = None
        try:
            store = SqlStore(url)
            store.ping()
        except PersistenceError as exc:
            if store is not None:
                store.close()
            logger.warning("Database connection failed, falling back to JSON files: %s", exc)
        else:
            logger.info("Using SQL store at %s", store.engine.url.render_as_string(hide_password=True))
            return store

    logger.info("Using JSON file store in %s", directory)
    return JsonFileStore(directory)
