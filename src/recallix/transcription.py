import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import OpenAI, OpenAIError

from .config import settings
from .exceptions import TranscriptionError

logger = logging.getLogger(__name__)


# --- Strategy Pattern: Transcription providers ---
class Transcriber(ABC):
    """Abstract speech-to-text provider. Output is treated as unreliable."""

    @abstractmethod
    def transcribe(self, audio: bytes, hint: Optional[str] = None) -> str:
        """Return the raw transcription. Raises TranscriptionError on failure."""


class OpenAITranscriber(Transcriber):
    """
    Transcribes recorded chunks with the OpenAI audio transcription endpoint.

    The client is built on the first transcription, so a missing API key only
    affects submissions.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: str = settings.TRANSCRIPTION_MODEL,
        send_hint: bool = settings.TRANSCRIPTION_SEND_HINT,
    ):
        self._client = client
        self.model = model
        self.send_hint = send_hint

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            try:
                self._client = OpenAI(
                    api_key=settings.OPENAI_API_KEY or None,
                    timeout=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
                )
            except OpenAIError as e:
                logger.error(f"Transcription client unavailable: {e}")
                raise TranscriptionError(str(e)) from e
        return self._client

    def transcribe(self, audio: bytes, hint: Optional[str] = None) -> str:
        if not audio:
            return ""

        params = {
            "model": self.model,
            "file": ("recording.webm", audio, "audio/webm"),
            "response_format": "text",
        }
        if self.send_hint and hint:
            params["prompt"] = hint

        try:
            response = self.client.audio.transcriptions.create(**params)
        except OpenAIError as e:
            logger.error(f"Transcription request failed: {e}")
            raise TranscriptionError(str(e)) from e

        text = response if isinstance(response, str) else getattr(response, "text", "")
        return (text or "").strip()
