"""Turn uploaded file bytes into plain text."""
from __future__ import annotations

import io
import logging
from typing import Iterator

from pdfminer.converter import TextConverter
from pdfminer.layout import LAParams
from pdfminer.pdfinterp import PDFPageInterpreter, PDFResourceManager
from pdfminer.pdfpage import PDFPage

from ragqa.errors import DocumentDecodeError, NoExtractableTextError, UnsupportedMediaTypeError
from ragqa.models import Document

LOGGER = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPE = "text/plain"


def normalize_mime_type(mime_type: str | None) -> str:
    """Drop parameters such as ``charset`` and lowercase the media type."""

    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


class DocumentDecoder:
    """Decode PDF and plain-text uploads."""

    def decode(self, data: bytes, mime_type: str | None) -> str:
        media_type = normalize_mime_type(mime_type)
        if media_type == PDF_MIME_TYPE:
            return self.decode_pdf(data)
        if media_type == TEXT_MIME_TYPE:
            return self.decode_text(data)
        raise UnsupportedMediaTypeError(media_type)

    def decode_text(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def decode_pdf(self, data: bytes) -> str:
        """Extract page texts, skipping pages pdfminer cannot interpret.

        Raises :class:`NoExtractableTextError` when nothing survives.
        """

        try:
            pages = list(self._iter_page_texts(data))
        except Exception as error:
            raise DocumentDecodeError(f"failed to read PDF: {error}", cause=error) from error

        text = "\n".join(pages).strip()
        if not text:
            raise NoExtractableTextError("no text could be extracted from PDF")
        return text

    def create_document(self, content: str, name: str) -> Document:
        return Document(name=name, content=content)

    def _iter_page_texts(self, data: bytes) -> Iterator[str]:
        manager = PDFResourceManager()
        for number, page in enumerate(PDFPage.get_pages(io.BytesIO(data)), start=1):
            buffer = io.StringIO()
            device = TextConverter(manager, buffer, laparams=LAParams())
            try:
                PDFPageInterpreter(manager, device).process_page(page)
            except Exception as error:
                LOGGER.warning("Failed to extract text from PDF page %s: %s", number, error)
                continue
            finally:
                device.close()
            yield buffer.getvalue().replace("\x0c", "")


__all__ = [
    "DocumentDecoder",
    "PDF_MIME_TYPE",
    "TEXT_MIME_TYPE",
    "normalize_mime_type",
]
