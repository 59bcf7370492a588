from datetime import datetime, timedelta
from typing import Optional

import redis
from redis import Redis

from .config import settings
from .models import Session

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
# audio buffers are binary
audio_redis_client = redis.from_url(settings.REDIS_URL)


class SessionStore:
    """Persists Session values as JSON in Redis."""

    def __init__(self, client: Redis):
        self.client = client
        self.ttl = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)

    def load(self, session_id: str) -> Optional[Session]:
        session_data = self.client.get(session_id)
        if not session_data:
            return None

        session = Session.model_validate_json(session_data)
        if datetime.now() - session.created_at > self.ttl:
            self.delete(session_id)
            return None
        return session

    def save(self, session_id: str, session: Session) -> None:
        self.client.set(session_id, session.model_dump_json(), ex=self.ttl)

    def delete(self, session_id: str) -> None:
        self.client.delete(session_id, self._submission_key(session_id))

    @staticmethod
    def _submission_key(session_id: str) -> str:
        return f"{session_id}:submission"

    def claim_submission(self, session_id: str) -> bool:
        """Mark a transcription as in flight. False if one already is."""
        return bool(
            self.client.set(
                self._submission_key(session_id),
                "1",
                nx=True,
                ex=settings.SUBMISSION_LOCK_SECONDS,
            )
        )

    def release_submission(self, session_id: str) -> None:
        self.client.delete(self._submission_key(session_id))
