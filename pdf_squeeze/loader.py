"""
loader.py - Open source documents from memory using PyMuPDF.

Pages are 1-indexed at this boundary and loaded lazily, one at a time.
"""

import logging
from typing import Optional

try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .config import LoaderOptions
from .exceptions import LoadError

logger = logging.getLogger(__name__)


class SourcePage:
    """A loaded page and its native (scale 1) size in points."""

    def __init__(self, number: int, page: "fitz.Page"):
        self.number = number
        self._page = page

        # page.rect already accounts for /Rotate
        rect = page.rect
        self.width = rect.width
        self.height = rect.height

    @property
    def raw(self) -> "fitz.Page":
        if self._page is None:
            raise LoadError(f"Page {self.number} was already released")
        return self._page

    @property
    def released(self) -> bool:
        return self._page is None

    def release(self):
        """Drop the page handle and ask MuPDF to empty its object store."""
        if self._page is None:
            return
        self._page = None
        fitz.TOOLS.store_shrink(100)


class SourceDocument:
    """An open source document."""

    def __init__(self, doc: "fitz.Document", size: int):
        self._doc = doc
        self.size = size

    @property
    def raw(self) -> "fitz.Document":
        if self._doc is None:
            raise LoadError("Document is closed")
        return self._doc

    @property
    def closed(self) -> bool:
        return self._doc is None

    def close(self):
        if self._doc is None:
            return
        self._doc.close()
        self._doc = None


class DocumentLoader:
    """Opens documents and hands out pages."""

    def open(self, data: bytes, options: Optional[LoaderOptions] = None) -> SourceDocument:
        """
        Open a document from a byte buffer.

        Raises:
            LoadError: empty, corrupt, unsupported or locked input
        """
        options = options or LoaderOptions()

        if not data:
            raise LoadError("Source document is empty")

        try:
            doc = fitz.open(stream=data, filetype=options.filetype)
        except Exception as e:
            raise LoadError(f"Could not open document: {e}") from e

        if doc.needs_pass:
            if not options.password or not doc.authenticate(options.password):
                doc.close()
                raise LoadError("Document is encrypted and no valid password was given")

        logger.debug(f"Opened {options.filetype} document: {len(data):,} bytes, {len(doc)} pages")
        return SourceDocument(doc, len(data))

    def page_count(self, doc: SourceDocument) -> int:
        return doc.raw.page_count

    def get_page(self, doc: SourceDocument, index: int) -> SourcePage:
        """
        Load page `index` (1-indexed).

        Raises:
            LoadError: index out of range or page undecodable
        """
        count = self.page_count(doc)
        if not 1 <= index <= count:
            raise LoadError(f"Page {index} out of range (document has {count} pages)")

        try:
            page = doc.raw.load_page(index - 1)
        except Exception as e:
            raise LoadError(f"Page {index} could not be decoded: {e}") from e

        return SourcePage(index, page)

    def close(self, doc: Optional[SourceDocument]):
        if doc is not None:
            doc.close()
