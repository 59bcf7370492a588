import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    PROJECT_NAME: str = "recallix"
    DEBUG: bool = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")
    LOG_DIR: str = os.getenv("LOG_DIR", "log")
    LOG_FILE: str = "recallix.log"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    PASSAGE_DIR: str = os.getenv("PASSAGE_DIR", "passages")
    SESSION_COOKIE_NAME: str = "recite_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    AUDIO_BUFFER_TIMEOUT_MINUTES: int = 30
    SUBMISSION_LOCK_SECONDS: int = 120
    MAX_SEGMENT_WORDS: int = 150
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    TRANSCRIPTION_MODEL: str = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
    TRANSCRIPTION_TIMEOUT_SECONDS: float = 60.0
    TRANSCRIPTION_SEND_HINT: bool = False
    TRANSCRIPT_DENYLIST: tuple = (
        r"empty string",
        r"no spoken words",
        r"no (?:clear )?speech",
        r"unintelligible",
        r"inaudible",
        r"silence",
        r"background noise",
        r"transcription",
        r"as an ai",
        r"i(?:'m| am) (?:unable|not able)",
    )


settings = Settings()
