"""PDF text extraction for downloaded announcement documents.

Exchange filings come in two flavours: PDFs generated from word processors,
which carry an embedded text layer, and scans uploaded as images. Scans
yield little or no extractable text, so a short extraction result is taken
as the signal to send the raw PDF to the model as an attachment instead.

Classification:
    TEXT: At least `scanned_threshold` characters of text (after trimming)
    SCANNED: Less text than that, including none at all
    FAILED: The parser raised; treated as "nothing usable"
"""

import io
import logging
from dataclasses import dataclass
from enum import Enum

import pdfplumber

logger = logging.getLogger(__name__)

DEFAULT_SCANNED_THRESHOLD = 100


class ExtractionStatus(str, Enum):
    """How a PDF's content should be used downstream."""

    TEXT = "text"
    SCANNED = "scanned"
    FAILED = "failed"


@dataclass(frozen=True)
class PdfTextResult:
    """Extraction result for one PDF buffer.

    Attributes:
        text: Extracted text (empty unless status is TEXT)
        is_scanned: True when the PDF should be analyzed as an image
        status: TEXT, SCANNED, or FAILED
        error: Parser error message for FAILED results
    """

    text: str
    is_scanned: bool
    status: ExtractionStatus
    error: str | None = None

    @classmethod
    def scanned(cls) -> "PdfTextResult":
        return cls(text="", is_scanned=True, status=ExtractionStatus.SCANNED)

    @classmethod
    def failed(cls, error: str) -> "PdfTextResult":
        return cls(text="", is_scanned=False, status=ExtractionStatus.FAILED, error=error)


def _read_pdf_text(data: bytes) -> str:
    """Concatenate the text layer of every page."""
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def extract_text(data: bytes, scanned_threshold: int = DEFAULT_SCANNED_THRESHOLD) -> PdfTextResult:
    """Extract text from a PDF and decide whether it is a scan.

    Args:
        data: Raw PDF bytes
        scanned_threshold: Minimum trimmed text length for a text PDF

    Returns:
        PdfTextResult; never raises on malformed input
    """
    try:
        text = _read_pdf_text(data)
    except Exception as e:
        logger.warning("PDF extraction failed | bytes=%d error=%s", len(data), e)
        return PdfTextResult.failed(f"{type(e).__name__}: {e}")

    if len(text.strip()) < scanned_threshold:
        logger.debug("PDF looks scanned | bytes=%d chars=%d", len(data), len(text.strip()))
        return PdfTextResult.scanned()

    return PdfTextResult(text=text, is_scanned=False, status=ExtractionStatus.TEXT)
