from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SILENT_WORD = "..."


# --- Models ---
class Level(str, Enum):
    PARTIAL_HINT = "partial_hint"
    PURE_RECALL = "pure_recall"


class Step(str, Enum):
    SETUP = "setup"
    PRACTICE = "practice"
    PROCESSING = "processing"
    CORRECTION = "correction"
    RESULTS = "results"


class RecordingStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


class TextSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    text: str


class ReviewItem(BaseModel):
    original_word: str
    spoken_word: str = SILENT_WORD
    is_being_edited: bool = False


class ChunkResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_index: int
    expected_text: str
    spoken_text: str
    accuracy_percent: int = Field(ge=0, le=100)
    missed_words: List[str]
    duration_seconds: int
    level: Level
    run: int = 1


class LevelSummary(BaseModel):
    accuracy: int = 0
    total_duration: int = 0
    completed: bool = False


class RecordingState(BaseModel):
    status: RecordingStatus = RecordingStatus.IDLE
    handle: Optional[str] = None
    accumulated_seconds: float = 0.0
    resumed_at: Optional[float] = None


def _empty_summaries() -> Dict[Level, LevelSummary]:
    return {level: LevelSummary() for level in Level}


class Session(BaseModel):
    segments: List[TextSegment]
    selected_indices: List[int] = []
    selected_chunks: List[str] = []
    current_index: int = 0
    level: Level = Level.PARTIAL_HINT
    step: Step = Step.SETUP
    run: int = 0
    results: List[ChunkResult] = []
    level_summaries: Dict[Level, LevelSummary] = Field(default_factory=_empty_summaries)
    review_items: List[ReviewItem] = []
    recording: RecordingState = Field(default_factory=RecordingState)
    last_error: Optional[str] = None
    final_score: Optional[int] = None
    passage_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def current_chunk(self) -> str:
        return self.selected_chunks[self.current_index]

    @property
    def is_last_chunk(self) -> bool:
        return self.current_index >= len(self.selected_chunks) - 1


class Passage(BaseModel):
    id: str
    title: str
    text: str
