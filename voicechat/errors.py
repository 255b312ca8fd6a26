"""Error taxonomy for the voice pipeline and its collaborators."""

from typing import Optional


class VoiceChatError(Exception):
    """Base class for all VoiceChat errors."""


class CaptureError(VoiceChatError):
    """Microphone capture could not be started."""


class PermissionDenied(CaptureError):
    """The user or the platform refused access to the microphone."""


class UnsupportedEnvironment(CaptureError):
    """The host lacks a capability needed for capture (host API, input device)."""


class NoSupportedFormat(CaptureError):
    """None of the candidate capture formats is accepted by the input device."""


class TranscriptionFailed(VoiceChatError):
    """The transcription endpoint answered with a non-success status."""

    def __init__(self, status: int, detail: str = ""):
        self.status = status
        self.detail = detail
        super().__init__(f"Transcription request failed: {status} {detail}".strip())


class SynthesisFailed(VoiceChatError):
    """The synthesis endpoint answered with an error or with non-audio content."""

    def __init__(self, status: int, detail: str = ""):
        self.status = status
        self.detail = detail
        super().__init__(f"TTS request failed: {status} {detail}".strip())


class AutoplayBlocked(VoiceChatError):
    """Playback was refused because no user gesture preceded it.

    Recoverable: the synthesized audio is kept for a manual replay.
    """


class PlaybackError(VoiceChatError):
    """Audio output failed for a reason other than the playback policy."""


class CharacterApiError(VoiceChatError):
    """Error reported by the character store."""

    kind = "error"
    status = 500

    def __init__(self, message: str = "", surface: str = "api",
                 status: Optional[int] = None, cause: Optional[str] = None):
        self.surface = surface
        self.cause = cause
        if status is not None:
            self.status = status
        super().__init__(message or f"{self.kind}:{surface}")

    @property
    def code(self) -> str:
        return f"{self.kind}:{self.surface}"


class Unauthorized(CharacterApiError):
    kind = "unauthorized"
    status = 401


class BadRequest(CharacterApiError):
    kind = "bad_request"
    status = 400


class NotFound(CharacterApiError):
    kind = "not_found"
    status = 404


CHARACTER_ERRORS = {
    cls.kind: cls for cls in (Unauthorized, BadRequest, NotFound)
}
