import logging
import uuid
from abc import ABC, abstractmethod
from datetime import timedelta

from redis import Redis

from .config import settings

logger = logging.getLogger(__name__)


# --- Capture devices ---
class CaptureDevice(ABC):
    """Abstract audio capture device. Handles are opaque strings."""

    @abstractmethod
    def begin(self) -> str:
        """Start a capture. May raise PermissionDenied."""

    @abstractmethod
    def pause(self, handle: str) -> None:
        pass

    @abstractmethod
    def resume(self, handle: str) -> None:
        pass

    @abstractmethod
    def stop(self, handle: str) -> bytes:
        """Finish the capture and return the recorded audio."""

    @abstractmethod
    def release(self, handle: str) -> None:
        """Drop the capture without returning audio."""


class RedisCaptureDevice(CaptureDevice):
    """
    Buffers audio uploaded by the browser in Redis.

    The browser owns the microphone; it posts recorded blobs which are
    appended to the buffer of the active handle. Blobs arriving while the
    capture is paused are dropped.
    """

    def __init__(self, client: Redis):
        self.client = client
        self.ttl = timedelta(minutes=settings.AUDIO_BUFFER_TIMEOUT_MINUTES)

    @staticmethod
    def _key(handle: str) -> str:
        return f"audio:{handle}"

    @staticmethod
    def _paused_key(handle: str) -> str:
        return f"audio:{handle}:paused"

    def begin(self) -> str:
        handle = str(uuid.uuid4())
        self.client.set(self._key(handle), b"", ex=self.ttl)
        logger.info(f"Capture started: {handle}")
        return handle

    def append(self, handle: str, data: bytes) -> bool:
        if not self.client.exists(self._key(handle)):
            logger.warning(f"Audio for unknown capture {handle} dropped")
            return False
        if self.client.exists(self._paused_key(handle)):
            logger.info(f"Audio for paused capture {handle} dropped")
            return False
        self.client.append(self._key(handle), data)
        self.client.expire(self._key(handle), self.ttl)
        return True

    def pause(self, handle: str) -> None:
        self.client.set(self._paused_key(handle), b"1", ex=self.ttl)

    def resume(self, handle: str) -> None:
        self.client.delete(self._paused_key(handle))

    def stop(self, handle: str) -> bytes:
        audio = self.client.get(self._key(handle)) or b""
        self.release(handle)
        logger.info(f"Capture stopped: {handle} ({len(audio)} bytes)")
        return audio

    def release(self, handle: str) -> None:
        self.client.delete(self._key(handle), self._paused_key(handle))
