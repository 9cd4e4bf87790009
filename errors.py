class AutoharmonyError(Exception):
    """Base error for the harmony engine."""


class InvalidNoteError(AutoharmonyError, ValueError):
    """Raised when a note name or pitch cannot be understood."""


class AudioBackendError(AutoharmonyError):
    """Raised when the audio output sink cannot be created or resumed."""
