"""Announcement data models.

RawAnnouncement is what the page source scrapes from one disclosure card.
CategorizedAnnouncement pairs it with the Verdict the pipeline produced,
and TriageReport splits a batch of those into the four outcome buckets.

Serialization:
    Raw announcements are dumped and loaded as JSON with the camelCase
    `titleUrl` key used by the scraper, so a saved batch can be replayed
    with `main.py run --input`.
"""

from pydantic import BaseModel, ConfigDict, Field

from models.verdict import Outcome, Verdict


class Attachment(BaseModel):
    """One link listed under an announcement card."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Link label as shown on the page")
    url: str = Field(default="", description="Absolute link target")


class RawAnnouncement(BaseModel):
    """A disclosure announcement as scraped from the exchange website.

    Attributes:
        time: Publication time as displayed on the page
        title: Announcement headline
        title_url: Link behind the headline (often the main PDF)
        attachments: Additional links, in page order
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: str = Field(default="", description="Publication time as displayed")
    title: str = Field(default="", description="Announcement headline")
    title_url: str = Field(default="", alias="titleUrl", description="Headline link")
    attachments: tuple[Attachment, ...] = Field(default=(), description="Attachment links")

    def __str__(self) -> str:
        return f"RawAnnouncement([{self.time}] '{self.title[:60]}')"


class PdfCandidate(BaseModel):
    """A URL that looks like a PDF and will be downloaded for analysis."""

    model_config = ConfigDict(frozen=True)

    url: str
    label: str


class CategorizedAnnouncement(BaseModel):
    """A raw announcement together with its final verdict."""

    model_config = ConfigDict(frozen=True)

    announcement: RawAnnouncement
    verdict: Verdict

    @property
    def title(self) -> str:
        return self.announcement.title

    @property
    def outcome(self) -> Outcome:
        return self.verdict.outcome


class TriageReport(BaseModel):
    """A triaged batch split into the four outcome buckets.

    Buckets partition the batch: every result lands in exactly one of them,
    chosen by its verdict's outcome tag, in input order.
    """

    interesting: list[CategorizedAnnouncement] = Field(default_factory=list)
    uninteresting: list[CategorizedAnnouncement] = Field(default_factory=list)
    skipped: list[CategorizedAnnouncement] = Field(default_factory=list)
    failed: list[CategorizedAnnouncement] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[CategorizedAnnouncement]) -> "TriageReport":
        """Partition categorized announcements by outcome."""
        report = cls()
        buckets = {
            Outcome.INTERESTING: report.interesting,
            Outcome.UNINTERESTING: report.uninteresting,
            Outcome.SKIPPED: report.skipped,
            Outcome.FAILED: report.failed,
        }
        for item in results:
            buckets[item.outcome].append(item)
        return report

    @property
    def total(self) -> int:
        return len(self.interesting) + len(self.uninteresting) + len(self.skipped) + len(self.failed)

    def counts(self) -> dict[str, int]:
        """Bucket sizes keyed by outcome value."""
        return {
            Outcome.INTERESTING.value: len(self.interesting),
            Outcome.UNINTERESTING.value: len(self.uninteresting),
            Outcome.SKIPPED.value: len(self.skipped),
            Outcome.FAILED.value: len(self.failed),
        }
