"""
The BookList index: the single JSON object mapping book names to storage paths.

Layout::

    {"BookList": [{"<book name>": {"Path": "<xml path>"}}, ...]}

All mutations read the whole object, change it in memory and write it back.
There is no locking or versioning, so two concurrent writers can overwrite
each other's change.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .cloud_storage import CloudStorage
from .errors import BookNotFoundError, StorageError

logger = logging.getLogger(__name__)

BOOK_LIST_KEY = "BookList"
PATH_KEY = "Path"


class BookIndex:
    def __init__(self, storage: CloudStorage, index_path: Optional[str] = None) -> None:
        self.storage = storage
        self.index_path = index_path or storage.settings.book_index

    def load(self, missing_ok: bool = False) -> Dict[str, Any]:
        """
        Read and parse the index.

        Args:
            missing_ok: Return an empty BookList instead of raising when the
                index object does not exist yet

        Raises:
            BookNotFoundError: If the index is missing and ``missing_ok`` is False
            StorageError: If the index is not valid JSON or lacks a BookList array
        """
        try:
            raw = self.storage.get_file(self.storage.bucket_name, self.index_path)
        except BookNotFoundError:
            if missing_ok:
                logger.warning(f"Index {self.index_path} not found, starting an empty BookList")
                return {BOOK_LIST_KEY: []}
            raise

        try:
            document = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageError(f"Index {self.index_path} is not valid JSON: {exc}") from exc

        if not isinstance(document, dict) or not isinstance(document.get(BOOK_LIST_KEY), list):
            raise StorageError(f"Index {self.index_path} has no {BOOK_LIST_KEY} array")
        return document

    def save(self, document: Dict[str, Any]) -> None:
        payload = json.dumps({BOOK_LIST_KEY: document[BOOK_LIST_KEY]}).encode("utf-8")
        self.storage.upload_file(self.storage.bucket_name, self.index_path, payload, "application/json")

    def entries(self) -> List[Dict[str, Any]]:
        return self.load()[BOOK_LIST_KEY]

    def names(self) -> List[str]:
        return [name for entry in self.entries() if isinstance(entry, dict) for name in entry]

    def find_path(self, book_name: str) -> str:
        """
        Return the storage path registered for ``book_name``.

        An entry maps the name to ``{"Path": "<xml path>"}`` or straight to
        the path string.

        Raises:
            BookNotFoundError: If no entry has this name
            StorageError: If the entry has neither form
        """
        for entry in self.entries():
            if isinstance(entry, dict) and book_name in entry:
                value = entry[book_name]
                if isinstance(value, dict):
                    value = value.get(PATH_KEY)
                if isinstance(value, str) and value:
                    return value
                raise StorageError(f"Index {self.index_path} has no usable path for book '{book_name}'")
        raise BookNotFoundError(f"Book '{book_name}' is not in the BookList")

    def add(self, book_name: str, path: str, document: Optional[Dict[str, Any]] = None) -> None:
        """
        Register ``book_name`` at ``path``, replacing any existing entry for that name.

        ``document`` is an index already returned by :meth:`load`; it is read
        again when omitted.
        """
        if document is None:
            document = self.load(missing_ok=True)
        books = [entry for entry in document[BOOK_LIST_KEY] if not (isinstance(entry, dict) and book_name in entry)]
        books.append({book_name: {PATH_KEY: path}})
        document[BOOK_LIST_KEY] = books
        self.save(document)
        logger.info(f"Indexed book '{book_name}' at {path}")

    def remove(self, book_name: str) -> bool:
        """
        Drop the first entry for ``book_name`` and rewrite the index.

        The index is written back even when nothing was removed.

        Returns:
            True if an entry was removed
        """
        document = self.load()
        books = document[BOOK_LIST_KEY]
        removed = False
        for position, entry in enumerate(books):
            if isinstance(entry, dict) and book_name in entry:
                del books[position]
                removed = True
                break
        self.save(document)
        if removed:
            logger.info(f"Removed book '{book_name}' from the index")
        else:
            logger.warning(f"Book '{book_name}' was not in the index")
        return removed
