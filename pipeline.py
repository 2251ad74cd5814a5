"""Main pipeline orchestration for announcement triage.

This module coordinates the whole workflow for one batch:

Pipeline Flow:
    1. SCRAPE: Collect the day's announcements from the page source
    2. TRIAGE: For each announcement, strictly in order:
       a. NOISE: Skip titles matching a noise pattern (no downloads)
       b. CANDIDATES: Title PDF first, then PDF attachments
       c. DOWNLOAD: Fetch each candidate, dropping failed downloads
       d. EXTRACT: Split into aggregated text and scanned PDFs
       e. CLASSIFY: Ask the classifier agent for a verdict
    3. BUCKET: Partition verdicts by outcome tag
    4. DELIVER: Log summary, markdown report, email

Everything runs on one control flow with no fan-out. Downloads and
announcements are spaced by pacers because both the exchange site and
the model API punish bursts. A failure inside one announcement becomes
a FAILED verdict; a failure outside the loop aborts the run before
anything is delivered.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import date
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from agents.classifier import ClassifierAgent
from config import Config
from filters import collect_pdf_candidates, is_noise
from models.announcement import CategorizedAnnouncement, PdfCandidate, RawAnnouncement, TriageReport
from models.verdict import Verdict, reasoning_text
from notifications import deliver
from observability.logging import clear_context, set_item_context, set_run_context
from observability.tracing import setup_tracing, trace_operation, tracing_enabled
from pacing import ClockFn, Pacer, SleepFn
from sources import IdxPageSource, load_announcements, save_announcements
from tools.fetch import DownloadError, fetch_pdf
from tools.pdf import ExtractionStatus, extract_text

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[bytes]]
SourceFn = Callable[[date], Awaitable[list[RawAnnouncement]]]


@dataclass
class PipelineStats:
    """Statistics from a single pipeline run.

    Attributes:
        date: Disclosure date processed (YYYY-MM-DD)
        total: Announcements scraped
        interesting / uninteresting / skipped / failed: Bucket sizes
        downloads: PDFs downloaded successfully
        download_errors: PDF downloads that failed
        text_pdfs / scanned_pdfs: Extraction results by kind
        extraction_errors: PDFs the parser could not read
        delivered: Delivery channels that succeeded
        completed: False when the run aborted before delivery
        errors: Batch-level errors
        duration: Total run time in seconds
    """

    date: str = ""
    total: int = 0
    interesting: int = 0
    uninteresting: int = 0
    skipped: int = 0
    failed: int = 0
    downloads: int = 0
    download_errors: int = 0
    text_pdfs: int = 0
    scanned_pdfs: int = 0
    extraction_errors: int = 0
    delivered: int = 0
    completed: bool = False
    errors: int = 0
    duration: float = 0.0

    def record_report(self, report: TriageReport) -> None:
        self.total = report.total
        self.interesting = len(report.interesting)
        self.uninteresting = len(report.uninteresting)
        self.skipped = len(report.skipped)
        self.failed = len(report.failed)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


def combine_documents(
    buffers: Sequence[bytes],
    scanned_threshold: int,
    stats: PipelineStats | None = None,
) -> tuple[str, list[bytes]]:
    """Split downloaded PDFs into aggregated text and scanned buffers.

    Text PDFs are joined in download order, each under a `--- PDF n ---`
    marker; scans are returned as raw bytes; unreadable PDFs are counted
    and left out.
    """
    stats = stats if stats is not None else PipelineStats()
    texts = []
    scanned = []
    for index, data in enumerate(buffers, start=1):
        result = extract_text(data, scanned_threshold)
        if result.status == ExtractionStatus.SCANNED:
            stats.scanned_pdfs += 1
            logger.debug("PDF %d is a scanned image", index)
            scanned.append(data)
        elif result.status == ExtractionStatus.FAILED:
            stats.extraction_errors += 1
            logger.warning("PDF %d unreadable, ignoring | error=%s", index, result.error)
        elif result.text.strip():
            stats.text_pdfs += 1
            logger.debug("PDF %d has %d characters of text", index, len(result.text))
            texts.append(f"\n--- PDF {index} ---\n{result.text}")
    return "\n\n".join(texts), scanned


class Pipeline:
    """Sequential announcement triage pipeline.

    Components:
        - ClassifierAgent: Model-backed verdicts with retry/backoff
        - fetch: PDF downloader (aiohttp by default)
        - Pacers: Minimum spacing between downloads and between announcements

    All collaborators are injectable so tests can run the full decision
    logic with fake downloads, a stubbed model, and no real sleeping.
    """

    def __init__(
        self,
        config: Config,
        classifier: ClassifierAgent | None = None,
        fetch: FetchFn | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ):
        """Initialize pipeline with all components.

        Args:
            config: Application configuration
            classifier: Verdict source; defaults to a Gemini-backed agent
            fetch: Coroutine returning document bytes for a URL
            sleep: Awaitable used for pacing (and classifier backoff by default)
            clock: Monotonic clock used by the pacers
        """
        self.config = config
        self.language = config.language
        self.classifier = classifier or ClassifierAgent(config, sleep=sleep)
        self._fetch = fetch or partial(fetch_pdf, timeout=config.download_timeout)
        self._download_pacer = Pacer(config.download_delay, sleep=sleep, clock=clock, name="download")
        self._announcement_pacer = Pacer(
            config.announcement_delay, sleep=sleep, clock=clock, name="announcement"
        )

        # Optional: Distributed tracing
        if config.enable_logfire:
            setup_tracing(enabled=True, service_name="idx-watch", token=config.logfire_token)

    async def triage(
        self,
        announcements: Sequence[RawAnnouncement],
        stats: PipelineStats | None = None,
    ) -> list[CategorizedAnnouncement]:
        """Produce exactly one categorized announcement per input, in order.

        Args:
            announcements: Raw announcements for one batch
            stats: Optional stats object to accumulate download/extraction counts

        Returns:
            Categorized announcements, positionally matching the input
        """
        stats = stats if stats is not None else PipelineStats()
        # Each batch starts unpaced
        self._download_pacer.reset()
        self._announcement_pacer.reset()
        results: list[CategorizedAnnouncement] = []
        total = len(announcements)

        for position, ann in enumerate(announcements, start=1):
            set_item_context(position)
            with trace_operation("triage_announcement", {"title": ann.title[:100]}) as attrs:
                verdict = await self._triage_one(ann, stats)
                attrs["outcome"] = verdict.outcome.value
            results.append(CategorizedAnnouncement(announcement=ann, verdict=verdict))
            logger.info(
                "Announcement triaged | %d/%d outcome=%s title=%s",
                position, total, verdict.outcome.value, ann.title[:60],
            )
        set_item_context(None)

        return results

    async def _triage_one(self, ann: RawAnnouncement, stats: PipelineStats) -> Verdict:
        if is_noise(ann.title, self.config.noise_patterns):
            logger.debug("Skipping noisy title: %s", ann.title)
            return Verdict.skipped(reasoning_text("noise", self.language))

        await self._announcement_pacer.wait()
        logger.info("Analyzing | time=%s title=%s", ann.time, ann.title[:80])
        try:
            return await self._analyze(ann, stats)
        except Exception as e:
            logger.error(
                "Announcement processing error | title=%s type=%s error=%s",
                ann.title[:60], type(e).__name__, e, exc_info=True,
            )
            return Verdict.failed(reasoning_text("processing_error", self.language))

    async def _analyze(self, ann: RawAnnouncement, stats: PipelineStats) -> Verdict:
        candidates = collect_pdf_candidates(ann)
        if not candidates:
            logger.info("No PDFs found in title or attachments")
            return Verdict.uninteresting(reasoning_text("no_pdf", self.language))

        buffers = await self._download_all(candidates, stats)
        if not buffers:
            logger.warning("Failed to download any PDF | candidates=%d", len(candidates))
            return Verdict.failed(reasoning_text("download_failed", self.language))

        combined_text, scanned = combine_documents(buffers, self.config.scanned_text_threshold, stats)
        logger.info(
            "Classifying combined content | text_chars=%d scanned_pdfs=%d",
            len(combined_text), len(scanned),
        )
        verdict = await self.classifier.classify(combined_text, scanned, ann.title)
        if verdict.is_interesting:
            logger.info("Interesting event found | reasoning=%s", verdict.reasoning)
        return verdict

    async def _download_all(
        self,
        candidates: list[PdfCandidate],
        stats: PipelineStats,
    ) -> list[bytes]:
        """Fetch candidates one by one; failed downloads are dropped."""
        logger.info("Found %d PDF(s), downloading", len(candidates))
        buffers = []
        for candidate in candidates:
            await self._download_pacer.wait()
            try:
                data = await self._fetch(candidate.url)
            except DownloadError as e:
                stats.download_errors += 1
                logger.warning("Download failed | label=%s url=%s error=%s", candidate.label, candidate.url, e.reason)
                continue
            stats.downloads += 1
            logger.debug("Downloaded | label=%s bytes=%d", candidate.label, len(data))
            buffers.append(data)
        return buffers

    async def run_once(
        self,
        source: SourceFn,
        day: date,
        send_email: bool = True,
        save_raw: Path | None = None,
    ) -> PipelineStats:
        """Execute one complete batch.

        Steps:
            1. Collect announcements for `day` from the source
            2. Optionally save the raw batch to JSON
            3. Triage every announcement
            4. Bucket and deliver the report

        A failure in steps 1-3 aborts the run; nothing is delivered.

        Returns:
            PipelineStats (completed=False on abort)
        """
        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id)
        start = time.time()
        stats = PipelineStats(date=day.isoformat())

        logger.info("Pipeline started | date=%s tracing=%s", stats.date, tracing_enabled())

        try:
            with trace_operation("triage_run", {"run_id": run_id, "date": stats.date}) as attrs:
                announcements = await source(day)
                logger.info("Announcements collected | total=%d", len(announcements))

                if save_raw is not None:
                    save_announcements(save_raw, announcements)

                results = await self.triage(announcements, stats)
                report = TriageReport.from_results(results)
                stats.record_report(report)
                attrs.update(report.counts())

                outcomes = await deliver(report, self.config, day, send_email=send_email)
                stats.delivered = sum(1 for ok in outcomes.values() if ok)
                stats.completed = True

        except asyncio.CancelledError:
            logger.info("Pipeline run cancelled")
            raise
        except Exception as e:
            logger.error("Pipeline error | type=%s error=%s", type(e).__name__, e, exc_info=True)
            stats.errors += 1

        stats.duration = time.time() - start
        logger.info(
            "Pipeline done | duration=%.1fs total=%d interesting=%d failed=%d completed=%s",
            stats.duration, stats.total, stats.interesting, stats.failed, stats.completed,
        )
        clear_context()
        return stats


async def run_once(
    config: Config,
    day: date,
    input_path: Path | None = None,
    save_raw: Path | None = None,
    send_email: bool = True,
) -> PipelineStats:
    """Run one batch from the live site or a saved JSON file.

    Args:
        config: Application configuration
        day: Disclosure date to process
        input_path: Replay announcements from this JSON file instead of scraping
        save_raw: Save the scraped batch to this JSON file
        send_email: Send the Mailjet email report
    """
    if input_path is not None:
        async def source(_day: date) -> list[RawAnnouncement]:
            return load_announcements(input_path)
    else:
        source = IdxPageSource(config).get_raw_announcements

    pipeline = Pipeline(config)
    return await pipeline.run_once(source, day, send_email=send_email, save_raw=save_raw)
