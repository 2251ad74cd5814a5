from __future__ import annotations

from pathlib import Path

import pytest

from config import Config
from tests.fakes import FakeClock, RecordingSleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        gemini_api_key="test-key",
        reports_dir=tmp_path / "reports",
        log_dir=tmp_path / "log",
    )
