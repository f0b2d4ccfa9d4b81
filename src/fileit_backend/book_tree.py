from __future__ import annotations

import logging
from typing import Any, Dict

from .book_index import BookIndex
from .cloud_storage import CloudStorage
from .utils import book_xml_path
from .xml_json import xml_to_dict

logger = logging.getLogger(__name__)


class BookTreeProcessor:
    """Reads and registers book metadata (the book's XML tree)."""

    def __init__(self, storage: CloudStorage, index: BookIndex | None = None) -> None:
        self.storage = storage
        self.index = index or BookIndex(storage)

    def process_book_xml(self, book_name: str) -> Dict[str, Any]:
        """
        Resolve ``book_name`` through the BookList and return its XML as JSON.

        Raises:
            BookNotFoundError: If the book is not indexed or its XML is missing
            ConversionError: If the stored XML is malformed
        """
        path = self.index.find_path(book_name)
        raw = self.storage.get_file(self.storage.bucket_name, path)
        logger.info(f"Converting {path} ({len(raw)} bytes) for book '{book_name}'")
        return xml_to_dict(raw)

    def register_book(self, book_name: str, xml_content: bytes) -> Dict[str, str]:
        """Validate and store a book's XML, then add it to the BookList."""
        # Malformed XML or a malformed index is rejected before anything is written.
        xml_to_dict(xml_content)
        document = self.index.load(missing_ok=True)

        path = book_xml_path(book_name)
        self.storage.upload_file(self.storage.bucket_name, path, xml_content, "application/xml")
        self.index.add(book_name, path, document)
        return {"Success": "Book Added Successfully", "Path": path}

    def content_url(self, book_name: str) -> str:
        return self.storage.signer.content_url(self.index.find_path(book_name))
