"""
Recitation Session Engine

Explicit state machine over a serializable Session value:

    setup -> practice -> processing -> correction -> (practice | results)

Every operation checks the current step and raises InvalidTransition when it
is not allowed there, so the host can relay user commands without guarding
them itself. The engine never stores session state; it mutates and returns
the Session it is given.
"""

import logging
import time
from typing import Callable, Dict, Optional

from .capture import CaptureDevice
from .config import settings
from .exceptions import InvalidSelection, InvalidTransition, TranscriptionError
from .matching import is_match, masked_hint
from .models import (
    SILENT_WORD,
    ChunkResult,
    Level,
    RecordingState,
    RecordingStatus,
    Session,
    Step,
)
from .scoring import (
    build_review_items,
    chunk_accuracy,
    filter_transcription,
    finalize_chunk,
    format_timer,
    round_half_up,
    session_score,
    summarize_level,
)
from .segmenter import segment_text
from .transcription import Transcriber

logger = logging.getLogger(__name__)


def _require(session: Session, *steps: Step, action: str) -> None:
    if session.step not in steps:
        raise InvalidTransition(f"Cannot {action} during {session.step.value}")


class SessionEngine:
    """Drives one practice session through recording, review and scoring."""

    def __init__(
        self,
        capture: CaptureDevice,
        transcriber: Transcriber,
        on_complete: Optional[Callable[[int], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.capture = capture
        self.transcriber = transcriber
        self.on_complete = on_complete
        self.clock = clock

    # --- Setup ---
    def create_session(
        self,
        text: str,
        passage_id: Optional[str] = None,
        max_words: int = settings.MAX_SEGMENT_WORDS,
    ) -> Session:
        segments = segment_text(text, max_words)
        return Session(
            segments=segments,
            selected_indices=list(range(len(segments))),
            passage_id=passage_id,
        )

    def toggle_segment(self, session: Session, index: int) -> Session:
        _require(session, Step.SETUP, action="change the selection")
        if not 0 <= index < len(session.segments):
            raise InvalidSelection(f"No segment {index}")
        selected = set(session.selected_indices)
        selected ^= {index}
        session.selected_indices = sorted(selected)
        return session

    def toggle_all(self, session: Session) -> Session:
        _require(session, Step.SETUP, action="change the selection")
        if len(session.selected_indices) == len(session.segments):
            session.selected_indices = []
        else:
            session.selected_indices = list(range(len(session.segments)))
        return session

    def set_level(self, session: Session, level: Level) -> Session:
        _require(session, Step.SETUP, action="change the level")
        session.level = Level(level)
        return session

    def start(self, session: Session) -> Session:
        _require(session, Step.SETUP, action="start practice")
        if not session.selected_indices:
            raise InvalidSelection("Select at least one chunk to practice")

        session.selected_chunks = [
            session.segments[i].text for i in sorted(session.selected_indices)
        ]
        session.current_index = 0
        session.run += 1
        session.recording = RecordingState()
        session.review_items = []
        session.last_error = None
        session.final_score = None
        session.step = Step.PRACTICE
        logger.info(
            f"Practice run {session.run} started: {len(session.selected_chunks)} "
            f"chunks at {session.level.value}"
        )
        return session

    # --- Practice ---
    def elapsed_seconds(self, session: Session) -> int:
        """Seconds spent actively recording the current chunk."""
        rec = session.recording
        elapsed = rec.accumulated_seconds
        if rec.status == RecordingStatus.RECORDING and rec.resumed_at is not None:
            elapsed += max(0.0, self.clock() - rec.resumed_at)
        return int(elapsed)

    def start_recording(self, session: Session) -> Session:
        _require(session, Step.PRACTICE, action="start recording")
        rec = session.recording
        if rec.status == RecordingStatus.PAUSED:
            return self.resume_recording(session)
        if rec.status == RecordingStatus.RECORDING:
            raise InvalidTransition("Already recording")

        handle = self.capture.begin()
        session.recording = RecordingState(
            status=RecordingStatus.RECORDING,
            handle=handle,
            resumed_at=self.clock(),
        )
        session.last_error = None
        return session

    def pause_recording(self, session: Session) -> Session:
        _require(session, Step.PRACTICE, action="pause recording")
        rec = session.recording
        if rec.status != RecordingStatus.RECORDING:
            raise InvalidTransition("Not recording")

        self.capture.pause(rec.handle)
        rec.accumulated_seconds += max(0.0, self.clock() - rec.resumed_at)
        rec.resumed_at = None
        rec.status = RecordingStatus.PAUSED
        return session

    def resume_recording(self, session: Session) -> Session:
        _require(session, Step.PRACTICE, action="resume recording")
        rec = session.recording
        if rec.status != RecordingStatus.PAUSED:
            raise InvalidTransition("Recording is not paused")

        self.capture.resume(rec.handle)
        rec.resumed_at = self.clock()
        rec.status = RecordingStatus.RECORDING
        return session

    def _release_recording(self, session: Session) -> None:
        if session.recording.handle:
            self.capture.release(session.recording.handle)
        session.recording = RecordingState()

    def discard_recording(self, session: Session) -> Session:
        _require(session, Step.PRACTICE, action="discard the recording")
        self._release_recording(session)
        return session

    def stop_and_submit(self, session: Session) -> bytes:
        """Stop the capture, freeze its duration and enter processing. Returns the audio."""
        if session.step == Step.PROCESSING:
            raise InvalidTransition("A recording is already being processed")
        _require(session, Step.PRACTICE, action="submit a recording")
        rec = session.recording
        if rec.status == RecordingStatus.IDLE:
            raise InvalidTransition("Nothing has been recorded")

        duration = self.elapsed_seconds(session)
        audio = self.capture.stop(rec.handle)
        session.recording = RecordingState(accumulated_seconds=duration)
        session.step = Step.PROCESSING
        return audio

    # --- Processing ---
    def transcribe(self, session: Session, audio: bytes) -> Session:
        _require(session, Step.PROCESSING, action="transcribe")
        try:
            raw_text = self.transcriber.transcribe(audio, hint=session.current_chunk)
        except TranscriptionError as e:
            return self.fail_transcription(session, e)
        return self.complete_transcription(session, raw_text)

    def process(self, session: Session) -> Session:
        audio = self.stop_and_submit(session)
        return self.transcribe(session, audio)

    def complete_transcription(self, session: Session, raw_text: str) -> Session:
        _require(session, Step.PROCESSING, action="accept a transcription")
        transcription = filter_transcription(raw_text, session.current_chunk)
        session.review_items = build_review_items(transcription, session.current_chunk)
        session.last_error = None
        session.step = Step.CORRECTION
        return session

    def fail_transcription(self, session: Session, error: Exception) -> Session:
        _require(session, Step.PROCESSING, action="report a transcription failure")
        logger.warning(
            f"Transcription failed on chunk {session.current_index}: {error}"
        )
        session.last_error = f"Transcription failed: {error}"
        session.recording = RecordingState()
        session.step = Step.PRACTICE
        return session

    # --- Correction ---
    def _editable_item(self, session: Session, index: int):
        _require(session, Step.CORRECTION, action="edit a word")
        if not 0 <= index < len(session.review_items):
            raise InvalidTransition(f"No review item {index}")
        item = session.review_items[index]
        if is_match(item.original_word, item.spoken_word):
            raise InvalidTransition(f"Word {index} already matches")
        return item

    def begin_edit(self, session: Session, index: int) -> Session:
        item = self._editable_item(session, index)
        item.is_being_edited = not item.is_being_edited
        return session

    def edit_word(self, session: Session, index: int, value: str) -> Session:
        item = self._editable_item(session, index)
        item.spoken_word = value.strip() or SILENT_WORD
        item.is_being_edited = False
        return session

    def retake(self, session: Session) -> Session:
        _require(session, Step.CORRECTION, action="retake")
        session.review_items = []
        self._release_recording(session)
        session.step = Step.PRACTICE
        return session

    def finish_chunk(self, session: Session) -> ChunkResult:
        _require(session, Step.CORRECTION, action="finish a chunk")
        result = finalize_chunk(
            session.review_items,
            chunk_index=session.current_index,
            expected_text=session.current_chunk,
            duration_seconds=int(session.recording.accumulated_seconds),
            level=session.level,
            run=session.run,
        )
        session.results.append(result)
        session.review_items = []
        session.recording = RecordingState()
        logger.info(
            f"Chunk {session.current_index + 1}/{len(session.selected_chunks)} "
            f"scored {result.accuracy_percent}%"
        )

        if not session.is_last_chunk:
            session.current_index += 1
            session.step = Step.PRACTICE
            return result

        summary = summarize_level(
            r for r in session.results
            if r.level == session.level and r.run == session.run
        )
        session.level_summaries[session.level] = summary
        session.final_score = session_score(session.level_summaries)
        session.step = Step.RESULTS
        logger.info(
            f"Run {session.run} finished at {session.level.value}: "
            f"{summary.accuracy}% (session {session.final_score}%)"
        )
        if self.on_complete:
            self.on_complete(session.final_score)
        return result

    # --- Results ---
    def restart(self, session: Session) -> Session:
        _require(session, Step.RESULTS, action="restart")
        return self.abandon(session)

    def abandon(self, session: Session) -> Session:
        self._release_recording(session)
        session.review_items = []
        session.selected_chunks = []
        session.current_index = 0
        session.last_error = None
        session.step = Step.SETUP
        return session

    def describe(self, session: Session) -> Dict:
        """Everything a host needs to render the current step."""
        view = {
            "step": session.step.value,
            "level": session.level.value,
            "last_error": session.last_error,
        }
        if session.step == Step.SETUP:
            view["segments"] = [
                {**seg.model_dump(), "selected": i in session.selected_indices}
                for i, seg in enumerate(session.segments)
            ]
        elif session.step in (Step.PRACTICE, Step.PROCESSING, Step.CORRECTION):
            total = len(session.selected_chunks)
            elapsed = self.elapsed_seconds(session)
            view.update(
                current_index=session.current_index,
                total_chunks=total,
                is_last_chunk=session.is_last_chunk,
                progress=round_half_up(100 * session.current_index / total),
                recording=session.recording.status.value,
                elapsed_seconds=elapsed,
                timer=format_timer(elapsed),
                hint=(
                    masked_hint(session.current_chunk)
                    if session.level == Level.PARTIAL_HINT
                    else None
                ),
            )
            if session.step == Step.CORRECTION:
                view["review_items"] = [
                    {
                        **item.model_dump(),
                        "matches": is_match(item.original_word, item.spoken_word),
                        "missing": item.spoken_word == SILENT_WORD,
                    }
                    for item in session.review_items
                ]
                view["accuracy"] = chunk_accuracy(session.review_items)
        else:
            view["final_score"] = session.final_score
        return view
