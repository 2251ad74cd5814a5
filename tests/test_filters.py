"""Tests for noise filtering and PDF candidate collection."""
from __future__ import annotations

from config import DEFAULT_NOISE_PATTERNS
from filters import collect_pdf_candidates, is_noise, is_pdf_url
from models import Attachment, RawAnnouncement


def test_ownership_report_is_noise() -> None:
    assert is_noise("Laporan Kepemilikan Saham - PT X", DEFAULT_NOISE_PATTERNS) is True


def test_acquisition_is_not_noise() -> None:
    assert is_noise("Akuisisi PT Y oleh PT Z", DEFAULT_NOISE_PATTERNS) is False


def test_empty_title_is_not_noise() -> None:
    assert is_noise("", DEFAULT_NOISE_PATTERNS) is False


def test_match_ignores_case_and_padding() -> None:
    assert is_noise("   JADWAL DIVIDEN TUNAI PT ABC Tbk  ", DEFAULT_NOISE_PATTERNS) is True


def test_patterns_come_from_caller() -> None:
    title = "Penjelasan atas Pemberitaan Media Massa"
    assert is_noise(title, DEFAULT_NOISE_PATTERNS) is False
    assert is_noise(title, ["pemberitaan media"]) is True
    assert is_noise("Laporan Kepemilikan Saham", []) is False


def test_is_pdf_url() -> None:
    assert is_pdf_url("https://www.idx.co.id/StaticData/x/FILE.PDF")
    assert is_pdf_url("https://host/file.pdf?download=1")
    assert not is_pdf_url("https://host/page.html")


def test_candidates_title_first_then_pdf_attachments() -> None:
    ann = RawAnnouncement(
        time="18 Sep 2025 10:00",
        title="Rencana Akuisisi",
        title_url="https://www.idx.co.id/files/Pengumuman.PDF",
        attachments=[
            Attachment(text="Lampiran.pdf", url="https://www.idx.co.id/files/attach-1"),
            Attachment(text="Siaran Pers", url="https://www.idx.co.id/files/press-release"),
        ],
    )

    candidates = collect_pdf_candidates(ann)

    assert [c.url for c in candidates] == [
        "https://www.idx.co.id/files/Pengumuman.PDF",
        "https://www.idx.co.id/files/attach-1",
    ]
    assert [c.label for c in candidates] == ["Title PDF", "Attachment PDF 1"]


def test_attachment_detected_by_url() -> None:
    ann = RawAnnouncement(
        title="Keterbukaan Informasi",
        attachments=[
            Attachment(text="Dokumen", url="https://host/a.html"),
            Attachment(text="Dokumen 2", url="https://host/b.pdf"),
        ],
    )

    candidates = collect_pdf_candidates(ann)

    assert [(c.url, c.label) for c in candidates] == [("https://host/b.pdf", "Attachment PDF 1")]


def test_no_candidates() -> None:
    ann = RawAnnouncement(title="Keterbukaan Informasi", title_url="https://host/detail")
    assert collect_pdf_candidates(ann) == []
