"""
Recitation Scoring

Turns a raw transcription into per-word review items and graded chunk
results, then aggregates chunk results per level and per session.

Alignment is strictly positional: spoken word i is compared with expected
word i. A skipped or extra spoken word therefore shifts the comparison of
every following word. This is the intended behavior, not an edit-distance
alignment.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .config import settings
from .matching import is_match, normalize, word_tokens
from .models import (
    SILENT_WORD,
    ChunkResult,
    Level,
    LevelSummary,
    ReviewItem,
    Session,
)

logger = logging.getLogger(__name__)

MASTERY_THRESHOLD = 90
MAX_REPORTED_MISSED_WORDS = 10


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _mean(values: Sequence[int]) -> int:
    return round_half_up(sum(values) / len(values))


# --- Transcription filtering ---
def is_denylisted(
    raw_text: str, expected_text: str, denylist: Optional[Iterable[str]] = None
) -> bool:
    """
    Check a transcription against known placeholder and refusal phrases.

    A phrase that also occurs in the expected text is ignored when other
    words were transcribed around it. A transcript made of nothing but the
    phrase is always rejected.
    """
    patterns = settings.TRANSCRIPT_DENYLIST if denylist is None else denylist
    for pattern in patterns:
        phrase = re.compile(rf"\b{pattern}\b", re.IGNORECASE)
        if not phrase.search(raw_text):
            continue
        if not phrase.search(expected_text):
            return True
        if not normalize(phrase.sub("", raw_text)):
            return True
    return False


def has_overlap(spoken_words: List[str], expected_words: List[str]) -> bool:
    expected = {normalize(w) for w in expected_words}
    expected.discard("")
    return any(normalize(w) in expected for w in spoken_words)


def filter_transcription(
    raw_text: str, expected_text: str, denylist: Optional[Iterable[str]] = None
) -> str:
    """Return the transcription, or "" when it is a refusal or shares no word with the expected text."""
    text = (raw_text or "").strip()
    if not text:
        return ""
    if is_denylisted(text, expected_text, denylist):
        logger.info(f"Rejected denylisted transcription: {text[:80]!r}")
        return ""
    if not has_overlap(text.split(), word_tokens(expected_text)):
        logger.info(f"Rejected transcription with no expected words: {text[:80]!r}")
        return ""
    return text


# --- Alignment ---
def build_review_items(transcription: str, expected_text: str) -> List[ReviewItem]:
    expected_words = word_tokens(expected_text)
    spoken_words = transcription.split()
    return [
        ReviewItem(
            original_word=word,
            spoken_word=spoken_words[i] if i < len(spoken_words) else SILENT_WORD,
        )
        for i, word in enumerate(expected_words)
    ]


def count_matches(items: Sequence[ReviewItem]) -> int:
    return sum(1 for item in items if is_match(item.original_word, item.spoken_word))


def chunk_accuracy(items: Sequence[ReviewItem]) -> int:
    # a chunk with no words has nothing left to miss
    if not items:
        return 100
    matched = count_matches(items)
    accuracy = round_half_up(100 * matched / len(items))
    # 100 is reserved for a perfect recitation
    if accuracy == 100 and matched < len(items):
        return 99
    return accuracy


def is_silent(items: Sequence[ReviewItem]) -> bool:
    return all(item.spoken_word == SILENT_WORD for item in items)


def missed_words(items: Sequence[ReviewItem]) -> List[str]:
    """Distinct unmatched expected words, in order. Empty for a wholly silent chunk."""
    if is_silent(items):
        return []
    missed: List[str] = []
    for item in items:
        if not is_match(item.original_word, item.spoken_word) and item.original_word not in missed:
            missed.append(item.original_word)
    return missed


def finalize_chunk(
    items: Sequence[ReviewItem],
    chunk_index: int,
    expected_text: str,
    duration_seconds: int,
    level: Level,
    run: int = 1,
) -> ChunkResult:
    return ChunkResult(
        chunk_index=chunk_index,
        expected_text=expected_text,
        spoken_text=" ".join(item.spoken_word for item in items),
        accuracy_percent=chunk_accuracy(items),
        missed_words=missed_words(items),
        duration_seconds=duration_seconds,
        level=level,
        run=run,
    )


# --- Aggregation ---
def summarize_level(results: Iterable[ChunkResult]) -> Optional[LevelSummary]:
    """Mean accuracy and total time of one level's chunk results. None when there are none."""
    results = list(results)
    if not results:
        return None
    return LevelSummary(
        accuracy=_mean([r.accuracy_percent for r in results]),
        total_duration=sum(r.duration_seconds for r in results),
        completed=True,
    )


def session_score(level_summaries: Dict[Level, LevelSummary]) -> int:
    """Mean accuracy over completed levels. Levels never completed are left out."""
    completed = [s.accuracy for s in level_summaries.values() if s.completed]
    if not completed:
        return 0
    return _mean(completed)


def format_timer(total_seconds: int) -> str:
    minutes, seconds = divmod(int(total_seconds), 60)
    return f"{minutes:02d}:{seconds:02d}"


def build_report(session: Session) -> Dict:
    missed: List[str] = []
    for result in session.results:
        for word in result.missed_words:
            word = word.lower()
            if word not in missed:
                missed.append(word)

    return {
        "score": session_score(session.level_summaries),
        "level_summaries": {
            level.value: {
                **summary.model_dump(),
                "total_time": format_timer(summary.total_duration),
            }
            for level, summary in session.level_summaries.items()
        },
        "chunks_completed": len(session.results),
        "chunks_mastered": sum(
            1 for r in session.results if r.accuracy_percent >= MASTERY_THRESHOLD
        ),
        "missed_words": missed[:MAX_REPORTED_MISSED_WORDS],
        "results": [r.model_dump(mode="json") for r in session.results],
    }
