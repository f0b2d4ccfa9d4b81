"""
Utility functions for storage paths, file names and local directories.

This module provides helper functions for:
- Turning user-provided book names into safe storage path segments
- Building the storage keys for book XML and page images
- Ensuring directory creation with proper error handling
- Validating and parsing document extensions
"""

from __future__ import annotations

import mimetypes
from urllib.parse import quote
from pathlib import Path
from typing import Iterable

WORD_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_CONTENT_TYPE = "application/pdf"

# Segments that would be interpreted as directories on a local filesystem
_DOT_SEGMENTS = {".", ".."}


def safe_segment(name: str) -> str:
    """
    Generate a storage-safe path segment from a book name.

    Reserved characters, slashes included, are percent-encoded so a book
    name can never escape its own prefix. The mapping is one-to-one: two
    different names never share a segment. Letters, digits, spaces and
    ``._-~`` are kept as they are.

    Example:
        >>> safe_segment("Annual Report/2019")
        "Annual Report%2F2019"
        >>> safe_segment("..")
        "%2E%2E"
    """
    segment = quote(name, safe=" ")
    if segment in _DOT_SEGMENTS:
        segment = segment.replace(".", "%2E")
    return segment


def book_xml_path(book_name: str) -> str:
    segment = safe_segment(book_name)
    return f"{segment}/{segment}.xml"


def images_prefix(book_name: str) -> str:
    return f"{safe_segment(book_name)}/Images/"


def image_object_path(book_name: str, page: int, extension: str) -> str:
    """Storage key of a rendered page: ``<book>/Images/<page><ext>``."""
    return f"{images_prefix(book_name)}{page}{extension}"


def image_content_type(extension: str) -> str:
    content_type, _ = mimetypes.guess_type(f"page{extension}")
    return content_type or "application/octet-stream"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Returns:
        The same path object for chaining
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def split_extension(filename: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension components.

    Example:
        >>> split_extension("chapter-1.docx")
        ("chapter-1", ".docx")
    """
    path = Path(filename)
    return path.stem, path.suffix


def allowed_document_extensions() -> Iterable[str]:
    return [".pdf", ".docx"]


def is_word_document(filename: str, content_type: str) -> bool:
    return content_type.lower() == WORD_CONTENT_TYPE or split_extension(filename)[1].lower() == ".docx"
