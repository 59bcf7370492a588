"""Shared fixtures for the recitation engine tests."""
import os
import tempfile

# Keep log files and the passage directory out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="recallix-log-"))
os.environ.setdefault("PASSAGE_DIR", tempfile.mkdtemp(prefix="recallix-passages-"))

from unittest.mock import MagicMock

import pytest

from recallix.capture import RedisCaptureDevice
from recallix.engine import SessionEngine
from recallix.transcription import Transcriber


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def capture():
    device = MagicMock(spec=RedisCaptureDevice)
    device.begin.return_value = "handle-1"
    device.stop.return_value = b"audio-bytes"
    return device


@pytest.fixture
def transcriber():
    provider = MagicMock(spec=Transcriber)
    provider.transcribe.return_value = ""
    return provider


@pytest.fixture
def completed_scores():
    return []


@pytest.fixture
def engine(capture, transcriber, clock, completed_scores):
    return SessionEngine(
        capture, transcriber, on_complete=completed_scores.append, clock=clock
    )


@pytest.fixture
def fox_text():
    return "the quick brown fox"


@pytest.fixture
def two_paragraphs():
    return "The quick brown fox jumps.\n\nOver the lazy dog!"
