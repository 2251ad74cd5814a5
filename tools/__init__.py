"""Document tools used by the triage pipeline.

fetch_pdf:
    Download document bytes; raises DownloadError on any failure.

extract_text:
    Pull the text layer out of a PDF and flag scanned documents.

Example:
    >>> from tools import fetch_pdf, extract_text
    >>> data = await fetch_pdf("https://www.idx.co.id/.../file.pdf")
    >>> result = extract_text(data)
    >>> result.is_scanned
    False
"""

from tools.fetch import DownloadError, fetch_pdf
from tools.pdf import ExtractionStatus, PdfTextResult, extract_text

__all__ = [
    "DownloadError",
    "fetch_pdf",
    "ExtractionStatus",
    "PdfTextResult",
    "extract_text",
]
