"""Title-based filtering of routine announcements.

Noise patterns are plain substrings supplied by Config.noise_patterns.
A title is noise when it contains any pattern, ignoring case. The
predicates here are pure so they can run before any network access.
"""

from typing import Iterable

from models.announcement import PdfCandidate, RawAnnouncement


def is_noise(title: str, patterns: Iterable[str]) -> bool:
    """Check whether a title matches any noise pattern.

    An empty title is never noise; the pipeline treats it as an
    announcement with nothing to analyze instead.

    Args:
        title: Announcement headline
        patterns: Substrings marking routine announcements

    Returns:
        True if the normalized title contains any pattern
    """
    if not title:
        return False
    normalized = title.strip().lower()
    return any(pattern.lower() in normalized for pattern in patterns if pattern)


def is_pdf_url(url: str) -> bool:
    """Heuristic PDF check on a link target."""
    return ".pdf" in url.lower()


def collect_pdf_candidates(announcement: RawAnnouncement) -> list[PdfCandidate]:
    """Build the ordered download list for an announcement.

    The headline link comes first when it points at a PDF, followed by
    every attachment whose label or URL mentions '.pdf'. Attachments are
    numbered by their position among PDF attachments.
    """
    candidates = []
    if announcement.title_url and is_pdf_url(announcement.title_url):
        candidates.append(PdfCandidate(url=announcement.title_url, label="Title PDF"))

    pdf_attachments = [
        att for att in announcement.attachments
        if ".pdf" in att.text.lower() or is_pdf_url(att.url)
    ]
    for index, att in enumerate(pdf_attachments, start=1):
        candidates.append(PdfCandidate(url=att.url, label=f"Attachment PDF {index}"))

    return candidates
