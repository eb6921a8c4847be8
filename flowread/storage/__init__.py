"""Persistence backends for documents, word lists and reading sessions.

WHY: The library service needs one store handle regardless of whether a
database is available. This package defines the interface and its two
implementations, plus the provider that picks between them.

HOW: base.py defines the Store ABC, sql.py and json_file.py implement
it, provider.py selects one at process start.
"""

from flowread.storage.base import Store
from flowread.storage.json_file import JsonFileStore
from flowread.storage.provider import open_store
from flowread.storage.sql import SqlStore

__all__ = ["JsonFileStore", "SqlStore", "Store", "open_store"]
