"""
Document to page-image conversion.

Uploaded Word documents are first converted to PDF with headless LibreOffice;
PDFs are then rendered page by page with PyMuPDF and each page is uploaded
to the bucket as ``<path><page><ext>``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

import pymupdf

from .cloud_storage import CloudStorage
from .errors import ConversionError
from .utils import (
    ensure_directory,
    image_content_type,
    image_object_path,
    images_prefix,
    is_word_document,
    safe_segment,
)

logger = logging.getLogger(__name__)

SOFFICE_CANDIDATES = ("soffice", "libreoffice")
SOFFICE_TIMEOUT = 120

_PIXMAP_FORMATS = {".jpg": "jpg", ".jpeg": "jpg", ".png": "png"}


def word_to_pdf(data: bytes, filename: str = "document.docx") -> bytes:
    """
    Convert a Word document to PDF using LibreOffice in headless mode.

    Raises:
        ConversionError: If LibreOffice is unavailable, fails, or times out
    """
    binary = next((found for found in map(shutil.which, SOFFICE_CANDIDATES) if found), None)
    if binary is None:
        raise ConversionError("LibreOffice (soffice) is required to convert Word documents")

    with tempfile.TemporaryDirectory(prefix="fileit_docx_") as workdir:
        source = Path(workdir) / (Path(filename).name or "document.docx")
        source.write_bytes(data)
        try:
            result = subprocess.run(
                [binary, "--headless", "--convert-to", "pdf", "--outdir", workdir, str(source)],
                capture_output=True,
                text=True,
                timeout=SOFFICE_TIMEOUT,
            )
        except subprocess.TimeoutExpired as exc:
            raise ConversionError(f"Word to PDF conversion timed out after {SOFFICE_TIMEOUT}s") from exc

        converted = source.with_suffix(".pdf")
        if result.returncode != 0 or not converted.exists():
            raise ConversionError(f"Word to PDF conversion failed: {result.stderr.strip() or 'no output produced'}")
        return converted.read_bytes()


def render_pages(pdf_data: bytes, extension: str = ".jpg", dpi: int = 100) -> List[bytes]:
    """
    Rasterise every page of a PDF.

    Args:
        pdf_data: The PDF document
        extension: Image extension deciding the encoding (.jpg, .jpeg or .png)
        dpi: Render resolution

    Returns:
        One encoded image per page, in page order
    """
    image_format = _PIXMAP_FORMATS.get(extension.lower())
    if image_format is None:
        raise ConversionError(f"Unsupported image extension {extension}")

    try:
        document = pymupdf.open(stream=pdf_data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise ConversionError(f"Failed to open PDF: {exc}") from exc

    with document:
        if document.page_count == 0:
            raise ConversionError("PDF has 0 pages")

        zoom = dpi / 72.0
        matrix = pymupdf.Matrix(zoom, zoom)
        images = []
        for page in document:
            pixmap = page.get_pixmap(matrix=matrix, alpha=False)
            images.append(pixmap.tobytes(output=image_format))
        return images


class ContentProcessor:
    """
    Converts uploaded documents into page images stored in the bucket.

    Use ``ContentProcessor.get_instance(storage)`` to share one processor
    per process.
    """

    _instance: Optional["ContentProcessor"] = None
    _instance_lock = Lock()

    def __init__(self, storage: CloudStorage) -> None:
        self.storage = storage

    @classmethod
    def get_instance(cls, storage: CloudStorage) -> "ContentProcessor":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls(storage)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._instance_lock:
            cls._instance = None

    @property
    def extension(self) -> str:
        return self.storage.settings.image_extension

    def image_path(self, book_name: str, page: int) -> str:
        return image_object_path(book_name, page, self.extension)

    def process_content_image(
        self,
        book_name: str,
        data: bytes,
        path: Optional[str] = None,
        content_type: str = "application/pdf",
        filename: str = "",
    ) -> Dict[str, Any]:
        """
        Convert a document to page images and upload them.

        Args:
            book_name: Book the pages belong to
            data: Raw document bytes (PDF or Word .docx)
            path: Key prefix for the pages; defaults to ``<book>/Images/``
            content_type: MIME type of the upload, used to detect Word documents
            filename: Original file name, used as a fallback for type detection

        Returns:
            ``{"Success": ..., "pages": N, "paths": [...]}``
        """
        prefix = path if path is not None else images_prefix(book_name)

        if is_word_document(filename, content_type):
            logger.info(f"Converting Word document for '{book_name}' to PDF")
            data = word_to_pdf(data, filename or f"{safe_segment(book_name)}.docx")

        pages = render_pages(data, self.extension, self.storage.settings.render_dpi)
        mime = image_content_type(self.extension)

        uploaded = []
        for number, image in enumerate(pages, start=1):
            object_path = f"{prefix}{number}{self.extension}"
            self.storage.upload_file(self.storage.bucket_name, object_path, image, mime)
            uploaded.append(object_path)

        logger.info(f"Uploaded {len(uploaded)} page images for '{book_name}' under {prefix}")
        return {"Success": "File Uploaded Successfully", "pages": len(uploaded), "paths": uploaded}

    def image_url(self, book_name: str, page: int) -> str:
        return self.storage.signer.image_url(self.image_path(book_name, page))

    def create_dynamic_image_path(self, i: int, book_name: str, extension: str) -> Path:
        """Local path ``<static_path>/<book>/Images/<i><ext>``, creating the directory."""
        directory = ensure_directory(Path(self.storage.settings.static_path) / safe_segment(book_name) / "Images")
        return directory / f"{i}{extension}"
