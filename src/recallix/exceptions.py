"""Custom exceptions for the recitation session engine."""


class RecitationError(Exception):
    """Base exception for recitation session errors."""
    pass


class PermissionDenied(RecitationError):
    """Audio capture device unavailable or access denied."""
    pass


class TranscriptionError(RecitationError):
    """Transcription service call failed or timed out."""
    pass


class InvalidSelection(RecitationError):
    """No chunks selected when starting a practice run."""
    pass


class InvalidTransition(RecitationError):
    """Operation not allowed in the session's current step."""
    pass
