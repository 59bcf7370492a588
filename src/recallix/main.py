import logging
import os
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    File,
    Form,
    Request,
    Response,
    UploadFile,
)
from fastapi.responses import JSONResponse

from .capture import CaptureDevice, RedisCaptureDevice
from .config import settings
from .engine import SessionEngine
from .exceptions import (
    InvalidSelection,
    InvalidTransition,
    PermissionDenied,
    RecitationError,
)
from .models import Level, Session, Step
from .passages import PassageLibrary
from .redis_session import SessionStore, audio_redis_client, redis_client
from .scoring import build_report
from .transcription import OpenAITranscriber, Transcriber

# --- Logging Setup ---
logger = logging.getLogger(__name__)
app_logger = logging.getLogger("recallix")
app_logger.setLevel(logging.INFO)

if not os.path.exists(settings.LOG_DIR):
    os.makedirs(settings.LOG_DIR)
log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
file_handler.setFormatter(
    logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
)
app_logger.addHandler(file_handler)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    passage_library.load_all()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

passage_library = PassageLibrary(settings.PASSAGE_DIR)

ERROR_STATUS = {
    InvalidSelection: 409,
    InvalidTransition: 409,
    PermissionDenied: 403,
}


@app.exception_handler(RecitationError)
async def recitation_error_handler(request: Request, exc: RecitationError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.info(f"{request.url.path} rejected: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=status_code)


# --- Dependencies ---
def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_store() -> SessionStore:
    return SessionStore(redis_client)


def get_capture() -> RedisCaptureDevice:
    return RedisCaptureDevice(audio_redis_client)


@lru_cache
def get_transcriber() -> Transcriber:
    return OpenAITranscriber()


def _log_completion(score: int) -> None:
    logger.info(f"Session completed with score {score}")


def get_engine(
    capture: CaptureDevice = Depends(get_capture),
    transcriber: Transcriber = Depends(get_transcriber),
) -> SessionEngine:
    return SessionEngine(capture, transcriber, on_complete=_log_completion)


def get_active_session(
    session_id: Optional[str] = Depends(get_session_id),
    store: SessionStore = Depends(get_store),
) -> Optional[Session]:
    if not session_id:
        return None
    return store.load(session_id)


def _invalid_session() -> JSONResponse:
    return JSONResponse({"error": "Session invalid"}, status_code=401)


# --- Routes ---
@app.get("/api/passages")
def get_passages():
    return passage_library.get_passages()


@app.post("/api/sessions")
def create_session(
    response: Response,
    passage_id: Optional[str] = Form(None),
    text: Optional[str] = Form(None),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    if text and text.strip():
        passage_id = None
    else:
        passage = passage_library.get_passage(passage_id or "")
        if not passage:
            # Fall back to the first passage
            passages = passage_library.get_passages()
            passage = passage_library.get_passage(passages[0]["id"])
        passage_id, text = passage.id, passage.text

    session = engine.create_session(text, passage_id=passage_id)
    if not session.segments:
        return JSONResponse({"error": "Text has no words to practice"}, status_code=400)

    new_id = str(uuid.uuid4())
    store.save(new_id, session)
    logger.info(
        f"New session: {new_id} [Passage: {passage_id or 'custom'}, "
        f"Segments: {len(session.segments)}]"
    )

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    return engine.describe(session)


def _apply(session_id, session, store, engine, operation, *args):
    """Run one engine operation on the stored session and persist the result."""
    if not session:
        return _invalid_session()
    operation(session, *args)
    store.save(session_id, session)
    return engine.describe(session)


@app.get("/api/session")
def get_session_view(
    session: Optional[Session] = Depends(get_active_session),
    engine: SessionEngine = Depends(get_engine),
):
    if not session:
        return _invalid_session()
    return engine.describe(session)


@app.post("/api/session/selection/{index}")
def toggle_segment(
    index: int,
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.toggle_segment, index)


@app.post("/api/session/selection")
def toggle_all_segments(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.toggle_all)


@app.post("/api/session/level")
def set_level(
    level: Level = Form(...),
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.set_level, level)


@app.post("/api/session/start")
def start_practice(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.start)


@app.post("/api/session/restart")
def restart_session(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.restart)


@app.post("/api/session/abandon")
def abandon_session(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.abandon)


@app.post("/api/recording/start")
def start_recording(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.start_recording)


@app.post("/api/recording/pause")
def pause_recording(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.pause_recording)


@app.post("/api/recording/resume")
def resume_recording(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.resume_recording)


@app.post("/api/recording/discard")
def discard_recording(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.discard_recording)


@app.post("/api/recording/audio")
def upload_audio(
    audio: UploadFile = File(...),
    session: Optional[Session] = Depends(get_active_session),
    capture: RedisCaptureDevice = Depends(get_capture),
):
    if not session:
        return _invalid_session()
    handle = session.recording.handle
    if session.step != Step.PRACTICE or not handle:
        return JSONResponse({"error": "Not recording"}, status_code=409)

    accepted = capture.append(handle, audio.file.read())
    return {"accepted": accepted}


@app.post("/api/recording/submit")
def submit_recording(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    if not session:
        return _invalid_session()
    if not store.claim_submission(session_id):
        return JSONResponse({"error": "Submission already in progress"}, status_code=409)

    try:
        audio = engine.stop_and_submit(session)
        # Other requests now see the session as processing
        store.save(session_id, session)
        try:
            engine.transcribe(session, audio)
        except Exception as e:
            logger.exception(f"Unexpected transcription error in session {session_id}")
            engine.fail_transcription(session, e)

        current = store.load(session_id)
        if not current or current.step != Step.PROCESSING:
            logger.info(f"Session {session_id} left processing, transcription dropped")
            return engine.describe(current) if current else _invalid_session()
        store.save(session_id, session)
    finally:
        store.release_submission(session_id)

    return engine.describe(session)


@app.post("/api/review/retake")
def retake_chunk(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.retake)


@app.post("/api/review/finish")
def finish_chunk(
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    if not session:
        return _invalid_session()
    result = engine.finish_chunk(session)
    store.save(session_id, session)
    return {**engine.describe(session), "chunk_result": result.model_dump(mode="json")}


@app.post("/api/review/{index}/edit")
def begin_edit(
    index: int,
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.begin_edit, index)


@app.post("/api/review/{index}")
def edit_word(
    index: int,
    value: str = Form(""),
    session_id: str = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    return _apply(session_id, session, store, engine, engine.edit_word, index, value)


@app.get("/api/result")
def get_result_data(session: Optional[Session] = Depends(get_active_session)):
    if not session:
        return _invalid_session()
    return build_report(session)


@app.post("/api/reset")
def reset_session(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    session: Optional[Session] = Depends(get_active_session),
    store: SessionStore = Depends(get_store),
    engine: SessionEngine = Depends(get_engine),
):
    if session:
        engine.abandon(session)
    if session_id:
        store.delete(session_id)
        logger.info(f"Reset session: {session_id}")
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


def run():
    uvicorn.run("recallix.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
