"""
Content extraction
Turns a stored upload into plain text, dispatching on the declared media type.

CONSTRAINTS:
- Deterministic: same file → same text
- Isolated: no network, no LLM, no database
- Failures are reported, never swallowed: an empty source is not retryable
"""

import logging
import os
from typing import Callable, Dict, List, Optional

from errors import EmptyContentError, UnsupportedTypeError
from ingestion.normalizer import join_elements, normalize_text
from ingestion.schemas import ExtractedContent, UploadedDocument
from ingestion.uploads import DOCX, PDF, PPTX

# Suppress verbose PDF parsing warnings (pdfminer color space issues)
logging.getLogger("pdfminer").setLevel(logging.ERROR)
logging.getLogger("PIL").setLevel(logging.ERROR)
logging.getLogger("unstructured").setLevel(logging.WARNING)

log = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

MIN_CONTENT_CHARS = int(os.getenv("MIN_CONTENT_CHARS", 20))

Decoder = Callable[[str], str]


# ─── Decoders ──────────────────────────────────────────────────────────────────

def decode_plain_text(file_path: str) -> str:
    """Plain text / markdown passthrough. Undecodable bytes become U+FFFD."""
    with open(file_path, "rb") as f:
        raw = f.read()
    return raw.decode("utf-8-sig", errors="replace")


def _elements_to_text(elements: List) -> str:
    # Images and page breaks carry no text; tables keep their text rendering
    return join_elements(getattr(element, "text", None) for element in elements)


def decode_pdf(file_path: str) -> str:
    """
    Parse PDF using unstructured.partition.pdf, strategy="fast"
    (text layer only, no layout/image detection).
    """
    try:
        from unstructured.partition.pdf import partition_pdf
    except ImportError:
        raise RuntimeError("PDF parsing requires: pip install unstructured[pdf]")

    elements = partition_pdf(filename=file_path, strategy="fast", include_page_breaks=False)
    return _elements_to_text(elements)


def decode_docx(file_path: str) -> str:
    try:
        from unstructured.partition.docx import partition_docx
    except ImportError:
        raise RuntimeError("DOCX parsing requires: pip install unstructured[docx]")

    return _elements_to_text(partition_docx(filename=file_path, include_page_breaks=False))


def decode_pptx(file_path: str) -> str:
    try:
        from unstructured.partition.pptx import partition_pptx
    except ImportError:
        raise RuntimeError("PPTX parsing requires: pip install unstructured[pptx]")

    return _elements_to_text(partition_pptx(filename=file_path, include_page_breaks=False))


DEFAULT_DECODERS: Dict[str, Decoder] = {
    "text/plain": decode_plain_text,
    "text/markdown": decode_plain_text,
    PDF: decode_pdf,
    DOCX: decode_docx,
    PPTX: decode_pptx,
}


# ─── Extractor ─────────────────────────────────────────────────────────────────

class ContentExtractor:
    """
    Media type → decoder dispatch, followed by normalization and a length check.

    Example:
        >>> extractor = ContentExtractor()
        >>> content = extractor.extract(document)
        >>> content.status
        <ExtractionStatus.OK: 'ok'>
    """

    def __init__(
        self,
        decoders: Optional[Dict[str, Decoder]] = None,
        min_chars: int = MIN_CONTENT_CHARS,
    ):
        self.decoders = dict(DEFAULT_DECODERS if decoders is None else decoders)
        self.min_chars = min_chars

    def register(self, media_type: str, decoder: Decoder) -> None:
        self.decoders[media_type] = decoder

    def supports(self, media_type: str) -> bool:
        return media_type in self.decoders

    def extract(self, document: UploadedDocument) -> ExtractedContent:
        """
        Decode and normalize an uploaded document.

        Raises:
            UnsupportedTypeError: no decoder for the document's media type
            EmptyContentError: normalized text shorter than min_chars
            RuntimeError: the decoder itself failed (corrupt file, missing extra)
        """
        decoder = self.decoders.get(document.media_type)
        if decoder is None:
            log.warning("extract: unsupported id=%s type=%s", document.id, document.media_type)
            raise UnsupportedTypeError(document.media_type, document_id=document.id)

        log.info("extract: start id=%s type=%s", document.id, document.media_type)
        text = normalize_text(decoder(document.storage_path))

        if len(text) < self.min_chars:
            log.warning("extract: empty id=%s chars=%s", document.id, len(text))
            raise EmptyContentError(len(text), self.min_chars, document_id=document.id)

        log.info("extract: done id=%s chars=%s", document.id, len(text))
        return ExtractedContent(document_id=document.id, text=text)
