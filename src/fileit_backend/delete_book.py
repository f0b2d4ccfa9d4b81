from __future__ import annotations

import logging
from typing import Dict

from .book_index import BookIndex
from .cloud_storage import CloudStorage
from .utils import images_prefix

logger = logging.getLogger(__name__)


class DeleteBookProcessor:
    def __init__(self, storage: CloudStorage, index: BookIndex | None = None) -> None:
        self.storage = storage
        self.index = index or BookIndex(storage)

    def delete_book(self, book_name: str, purge_images: bool = False) -> Dict[str, str]:
        """
        Remove ``book_name`` from the BookList.

        Returns ``{"Success": "Deleted Successfully"}`` when an entry was
        removed and an empty dict otherwise. With ``purge_images`` the book's
        rendered pages are deleted from the bucket too.
        """
        if not self.index.remove(book_name):
            return {}

        if purge_images:
            bucket = self.storage.bucket_name
            pages = self.storage.list_bucket(bucket, prefix=images_prefix(book_name))
            for name in pages:
                self.storage.delete_file(bucket, name)
            logger.info(f"Purged {len(pages)} page images of '{book_name}'")

        return {"Success": "Deleted Successfully"}
