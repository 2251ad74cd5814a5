"""Tests for announcement triage and batch runs."""
from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

import pipeline
from agents.classifier import ClassifierAgent
from config import Config
from models import Attachment, Outcome, RawAnnouncement, TriageReport, Verdict
from pipeline import Pipeline, PipelineStats, combine_documents
from tests.fakes import FakeClock, RecordingSleep, ScriptedGenerator
from tools.fetch import DownloadError
from tools.pdf import ExtractionStatus, PdfTextResult

DAY = date(2025, 9, 18)


def _fake_extract(data: bytes, scanned_threshold: int = 100) -> PdfTextResult:
    """Interpret test buffers: b'TEXT:...' has a text layer, b'SCAN...' is a scan."""
    if data.startswith(b"TEXT:"):
        return PdfTextResult(text=data[5:].decode(), is_scanned=False, status=ExtractionStatus.TEXT)
    if data.startswith(b"SCAN"):
        return PdfTextResult.scanned()
    return PdfTextResult.failed("unreadable")


class FakeFetch:
    """Serves bytes from a URL map; unknown URLs fail like a 404."""

    def __init__(self, documents: dict[str, bytes]) -> None:
        self.documents = documents
        self.urls: list[str] = []

    async def __call__(self, url: str) -> bytes:
        self.urls.append(url)
        if url not in self.documents:
            raise DownloadError(url, "HTTP 404", status=404)
        return self.documents[url]


class FakeClassifier:
    """Records classify() arguments and answers by title."""

    def __init__(self, verdicts: dict[str, Verdict] | None = None) -> None:
        self.verdicts = verdicts or {}
        self.calls: list[tuple[str, list[bytes], str]] = []

    async def classify(self, combined_text: str, scanned_buffers, title: str) -> Verdict:
        self.calls.append((combined_text, list(scanned_buffers), title))
        return self.verdicts.get(title, Verdict.uninteresting("Laporan rutin."))


def _ann(title: str, title_url: str = "", *attachments: tuple[str, str]) -> RawAnnouncement:
    return RawAnnouncement(
        time="18 Sep 2025 10:00",
        title=title,
        title_url=title_url,
        attachments=[Attachment(text=text, url=url) for text, url in attachments],
    )


@pytest.fixture(autouse=True)
def fake_extraction(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(pipeline, "extract_text", _fake_extract)


@pytest.fixture
def batch() -> list[RawAnnouncement]:
    return [
        _ann("Laporan Kepemilikan Saham - PT X", "https://idx/a.pdf"),
        _ann("Akuisisi PT Y oleh PT Z", "https://idx/b.pdf"),
        _ann("Keterbukaan Informasi Lainnya", "https://idx/detail"),
        _ann("Rencana Private Placement", "https://idx/missing.pdf"),
        _ann("Panggilan RUPS", "https://idx/c.pdf"),
    ]


@pytest.fixture
def documents() -> dict[str, bytes]:
    return {
        "https://idx/a.pdf": b"TEXT:kepemilikan",
        "https://idx/b.pdf": b"TEXT:akuisisi 60% saham",
        "https://idx/c.pdf": b"TEXT:agenda rapat",
    }


def _pipeline(config: Config, fetch, classifier, sleeper: RecordingSleep, clock: FakeClock) -> Pipeline:
    return Pipeline(config, classifier=classifier, fetch=fetch, sleep=sleeper, clock=clock)


@pytest.mark.asyncio
async def test_every_announcement_lands_in_one_bucket(
    config: Config, batch, documents, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    classifier = FakeClassifier({"Akuisisi PT Y oleh PT Z": Verdict.interesting("Akuisisi material.")})
    p = _pipeline(config, FakeFetch(documents), classifier, sleeper, clock)

    results = await p.triage(batch)
    report = TriageReport.from_results(results)

    assert [r.announcement for r in results] == batch
    assert [r.outcome for r in results] == [
        Outcome.SKIPPED,
        Outcome.INTERESTING,
        Outcome.UNINTERESTING,
        Outcome.FAILED,
        Outcome.UNINTERESTING,
    ]
    assert report.total == len(batch)
    assert report.counts() == {"interesting": 1, "uninteresting": 2, "skipped": 1, "failed": 1}
    assert results[0].verdict.reasoning == "Difilter berdasarkan pola judul."
    assert results[2].verdict.reasoning == "Tidak ada PDF untuk dianalisis."
    assert results[3].verdict.reasoning == "Gagal mengunduh PDF."


@pytest.mark.asyncio
async def test_noise_is_skipped_without_downloads(
    config: Config, batch, documents, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    fetch = FakeFetch(documents)
    classifier = FakeClassifier()
    p = _pipeline(config, fetch, classifier, sleeper, clock)

    await p.triage(batch[:1])

    assert fetch.urls == []
    assert classifier.calls == []
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_empty_card_gets_a_verdict(config: Config, sleeper: RecordingSleep, clock: FakeClock) -> None:
    classifier = FakeClassifier()
    p = _pipeline(config, FakeFetch({}), classifier, sleeper, clock)

    [result] = await p.triage([_ann("")])

    assert result.outcome == Outcome.UNINTERESTING
    assert result.verdict.reasoning == "Tidak ada PDF untuk dianalisis."
    assert classifier.calls == []


@pytest.mark.asyncio
async def test_triage_is_repeatable(
    config: Config, batch, documents, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    classifier = FakeClassifier({"Akuisisi PT Y oleh PT Z": Verdict.interesting("Akuisisi material.")})
    p = _pipeline(config, FakeFetch(documents), classifier, sleeper, clock)

    first = TriageReport.from_results(await p.triage(batch))
    second = TriageReport.from_results(await p.triage(batch))

    assert first.model_dump_json() == second.model_dump_json()


@pytest.mark.asyncio
async def test_failed_download_is_dropped(config: Config, sleeper: RecordingSleep, clock: FakeClock) -> None:
    ann = _ann(
        "Rencana Akuisisi",
        "https://idx/main.pdf",
        ("Lampiran 1.pdf", "https://idx/gone.pdf"),
        ("Lampiran 2.pdf", "https://idx/extra.pdf"),
    )
    fetch = FakeFetch({"https://idx/main.pdf": b"TEXT:pokok", "https://idx/extra.pdf": b"TEXT:tambahan"})
    classifier = FakeClassifier()
    stats = PipelineStats()
    p = _pipeline(config, fetch, classifier, sleeper, clock)

    [result] = await p.triage([ann], stats)

    assert result.outcome == Outcome.UNINTERESTING
    assert fetch.urls == ["https://idx/main.pdf", "https://idx/gone.pdf", "https://idx/extra.pdf"]
    [(text, scanned, title)] = classifier.calls
    assert text == "\n--- PDF 1 ---\npokok\n\n\n--- PDF 2 ---\ntambahan"
    assert scanned == []
    assert title == "Rencana Akuisisi"
    assert stats.downloads == 2
    assert stats.download_errors == 1


@pytest.mark.asyncio
async def test_all_downloads_failing_fails_announcement(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    ann = _ann("Rencana Akuisisi", "https://idx/x.pdf", ("Lampiran.pdf", "https://idx/y.pdf"))
    classifier = FakeClassifier()
    p = _pipeline(config, FakeFetch({}), classifier, sleeper, clock)

    [result] = await p.triage([ann])

    assert result.outcome == Outcome.FAILED
    assert result.verdict.is_interesting is False
    assert classifier.calls == []


@pytest.mark.asyncio
async def test_scans_and_text_both_reach_classifier(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    ann = _ann(
        "Keterbukaan Informasi",
        "https://idx/scan.pdf",
        ("Ringkasan.pdf", "https://idx/text.pdf"),
        ("Rusak.pdf", "https://idx/broken.pdf"),
    )
    fetch = FakeFetch({
        "https://idx/scan.pdf": b"SCAN-1",
        "https://idx/text.pdf": b"TEXT:ringkasan transaksi",
        "https://idx/broken.pdf": b"garbage",
    })
    classifier = FakeClassifier()
    stats = PipelineStats()
    p = _pipeline(config, fetch, classifier, sleeper, clock)

    await p.triage([ann], stats)

    [(text, scanned, _)] = classifier.calls
    assert text == "\n--- PDF 2 ---\nringkasan transaksi"
    assert scanned == [b"SCAN-1"]
    assert (stats.text_pdfs, stats.scanned_pdfs, stats.extraction_errors) == (1, 1, 1)


@pytest.mark.asyncio
async def test_only_unreadable_pdfs_means_no_content(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    ann = _ann("Keterbukaan Informasi", "https://idx/broken.pdf")
    classifier = ClassifierAgent(config, generate=ScriptedGenerator("{}"), sleep=sleeper)
    p = _pipeline(config, FakeFetch({"https://idx/broken.pdf": b"garbage"}), classifier, sleeper, clock)

    [result] = await p.triage([ann])

    assert result.outcome == Outcome.UNINTERESTING
    assert result.verdict.reasoning == "Tidak ada konten untuk dianalisis."


@pytest.mark.asyncio
async def test_downloads_and_announcements_are_paced(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    config.download_delay = 2.0
    config.announcement_delay = 5.0
    anns = [
        _ann("Akuisisi A", "https://idx/a1.pdf", ("a2.pdf", "https://idx/a2.pdf")),
        _ann("Akuisisi B", "https://idx/b1.pdf", ("b2.pdf", "https://idx/b2.pdf")),
    ]
    documents = {url: b"TEXT:isi" for url in (
        "https://idx/a1.pdf", "https://idx/a2.pdf", "https://idx/b1.pdf", "https://idx/b2.pdf",
    )}
    p = _pipeline(config, FakeFetch(documents), FakeClassifier(), sleeper, clock)

    await p.triage(anns)

    assert sleeper.calls == [pytest.approx(2.0), pytest.approx(3.0), pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_each_batch_starts_unpaced(config: Config, sleeper: RecordingSleep, clock: FakeClock) -> None:
    config.download_delay = 2.0
    config.announcement_delay = 5.0
    ann = _ann("Akuisisi A", "https://idx/a1.pdf")
    p = _pipeline(config, FakeFetch({"https://idx/a1.pdf": b"TEXT:isi"}), FakeClassifier(), sleeper, clock)

    await p.triage([ann])
    await p.triage([ann])

    assert sleeper.calls == []


def test_combine_documents_orders_text_and_counts() -> None:
    stats = PipelineStats()

    text, scanned = combine_documents([b"TEXT:satu", b"SCAN-1", b"rusak", b"TEXT:tiga"], 100, stats)

    assert text == "\n--- PDF 1 ---\nsatu\n\n\n--- PDF 4 ---\ntiga"
    assert scanned == [b"SCAN-1"]
    assert (stats.text_pdfs, stats.scanned_pdfs, stats.extraction_errors) == (2, 1, 1)


@pytest.mark.asyncio
async def test_unexpected_error_fails_only_that_announcement(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    class ExplodingClassifier(FakeClassifier):
        async def classify(self, combined_text, scanned_buffers, title):
            if title == "Boom":
                raise RuntimeError("unexpected")
            return await super().classify(combined_text, scanned_buffers, title)

    anns = [_ann("Boom", "https://idx/a.pdf"), _ann("Tenang", "https://idx/a.pdf")]
    p = _pipeline(config, FakeFetch({"https://idx/a.pdf": b"TEXT:isi"}), ExplodingClassifier(), sleeper, clock)

    results = await p.triage(anns)

    assert [r.outcome for r in results] == [Outcome.FAILED, Outcome.UNINTERESTING]
    assert results[0].verdict.reasoning == "Terjadi kesalahan saat memproses pengumuman."


@pytest.mark.asyncio
async def test_run_once_delivers_report(
    config: Config, batch, documents, sleeper: RecordingSleep, clock: FakeClock, tmp_path: Path
) -> None:
    async def source(day: date) -> list[RawAnnouncement]:
        assert day == DAY
        return batch

    raw_path = tmp_path / "raw" / "batch.json"
    p = _pipeline(config, FakeFetch(documents), FakeClassifier(), sleeper, clock)

    stats = await p.run_once(source, DAY, send_email=False, save_raw=raw_path)

    assert stats.completed is True
    assert stats.errors == 0
    assert stats.date == "2025-09-18"
    assert stats.total == 5
    assert (stats.skipped, stats.failed) == (1, 1)
    assert stats.delivered == 2
    [report_file] = list(config.reports_dir.glob("2025-09-18_*_report.md"))
    assert "Akuisisi PT Y oleh PT Z" in report_file.read_text(encoding="utf-8")
    saved = json.loads(raw_path.read_text(encoding="utf-8"))
    assert saved[0]["titleUrl"] == "https://idx/a.pdf"


@pytest.mark.asyncio
async def test_source_failure_aborts_before_delivery(
    config: Config, sleeper: RecordingSleep, clock: FakeClock
) -> None:
    async def source(day: date) -> list[RawAnnouncement]:
        raise RuntimeError("page layout changed")

    p = _pipeline(config, FakeFetch({}), FakeClassifier(), sleeper, clock)

    stats = await p.run_once(source, DAY, send_email=False)

    assert stats.completed is False
    assert stats.errors == 1
    assert stats.delivered == 0
    assert not config.reports_dir.exists()


@pytest.mark.asyncio
async def test_run_once_replays_saved_batch(config: Config, tmp_path: Path) -> None:
    input_path = tmp_path / "batch.json"
    input_path.write_text(json.dumps([
        {"time": "18 Sep 2025", "title": "Jadwal Dividen Tunai", "titleUrl": "https://idx/d.pdf", "attachments": []},
    ]), encoding="utf-8")

    stats = await pipeline.run_once(config, DAY, input_path=input_path, send_email=False)

    assert stats.completed is True
    assert stats.skipped == 1
