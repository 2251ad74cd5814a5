"""Pydantic models for the IDX Watch triage pipeline.

This package contains all data models used throughout the pipeline:

RawAnnouncement / Attachment:
    A scraped disclosure card and its links.

PdfCandidate:
    A PDF link selected for download.

Verdict / Outcome:
    Classification result with an explicit bucket tag.

CategorizedAnnouncement / TriageReport:
    Per-announcement result and the bucketed batch.

Example:
    >>> from models import RawAnnouncement, Verdict
    >>> ann = RawAnnouncement(time="10:00", title="Akuisisi PT Y", attachments=[])
    >>> Verdict.uninteresting("Tidak ada PDF untuk dianalisis.").outcome
    <Outcome.UNINTERESTING: 'uninteresting'>
"""

from models.announcement import (
    Attachment,
    CategorizedAnnouncement,
    PdfCandidate,
    RawAnnouncement,
    TriageReport,
)
from models.verdict import Outcome, Verdict, reasoning_text

__all__ = [
    "Attachment",
    "CategorizedAnnouncement",
    "Outcome",
    "PdfCandidate",
    "RawAnnouncement",
    "TriageReport",
    "Verdict",
    "reasoning_text",
]
