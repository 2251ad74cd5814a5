"""Tests for the command-line entry point."""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

import main
from models import Verdict
from tests.fakes import make_pdf


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setenv("REPORTS_DIR", str(tmp_path / "reports"))
    for key in ("GEMINI_API_KEY", "MAILJET_API_KEY", "NOISE_PATTERNS_FILE", "PROMPT_FILE", "MAX_ATTEMPTS"):
        monkeypatch.delenv(key, raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _run(monkeypatch: pytest.MonkeyPatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    return main.main()


def test_filter_command(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    code = _run(monkeypatch, "filter", "Laporan Kepemilikan Saham - PT X", "Akuisisi PT Y")

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert "noise\tLaporan Kepemilikan Saham - PT X" in out
    assert "keep\tAkuisisi PT Y" in out


def test_status_masks_secrets(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "super-secret")

    code = _run(monkeypatch, "status")

    out = capsys.readouterr().out
    status = json.loads(out[out.index("{"):])
    assert code == 0
    assert status["gemini_api_key"] == "***"
    assert "super-secret" not in out


def test_run_requires_api_key(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    code = _run(monkeypatch, "run", "--date", "2025-09-18", "--no-email")

    assert code == 1
    assert "GEMINI_API_KEY" in capsys.readouterr().err


def test_malformed_environment_exits(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("MAX_ATTEMPTS", "many")

    assert _run(monkeypatch, "filter", "x") == 1
    assert "MAX_ATTEMPTS" in capsys.readouterr().err


def test_run_replays_saved_batch(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    batch = tmp_path / "batch.json"
    batch.write_text(json.dumps([{"title": "Jadwal Dividen Tunai", "titleUrl": "https://idx/d.pdf"}]), encoding="utf-8")

    code = _run(monkeypatch, "run", "--date", "2025-09-18", "--input", str(batch), "--no-email")

    assert code == 0
    assert list((tmp_path / "reports").glob("2025-09-18_*_report.md"))


def test_classify_local_files(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    import agents.classifier

    calls = []

    class RecordingClassifier:
        def __init__(self, config) -> None:
            pass

        async def classify(self, combined_text: str, scanned_buffers, title: str) -> Verdict:
            calls.append((combined_text, list(scanned_buffers), title))
            return Verdict.interesting("Akuisisi material.")

    monkeypatch.setenv("GEMINI_API_KEY", "key")
    monkeypatch.setattr(agents.classifier, "ClassifierAgent", RecordingClassifier)
    text_pdf = tmp_path / "isi.pdf"
    text_pdf.write_bytes(make_pdf([f"PT Contoh Tbk akan mengakuisisi 60% saham PT Target, bagian {n}." for n in range(6)]))
    scan_pdf = tmp_path / "scan.pdf"
    scan_pdf.write_bytes(make_pdf([]))
    broken = tmp_path / "rusak.pdf"
    broken.write_bytes(b"not a pdf")

    code = _run(monkeypatch, "classify", str(text_pdf), str(scan_pdf), str(broken), "--title", "Rencana Akuisisi")

    out = capsys.readouterr().out
    assert code == 0
    assert "text=1 scanned=1 unreadable=1" in out
    [(text, scanned, title)] = calls
    assert text.startswith("\n--- PDF 1 ---\n")
    assert "mengakuisisi" in text
    assert scanned == [scan_pdf.read_bytes()]
    assert title == "Rencana Akuisisi"
    assert json.loads(out[out.rindex("{"):])["outcome"] == "interesting"
