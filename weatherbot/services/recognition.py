import enum
from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Union

# Reasons that mean the user must grant access before listening can resume.
PERMISSION_ERRORS = frozenset({"not-allowed", "service-not-allowed"})

RECOGNITION_ERROR_MESSAGES = {
    "no-speech": "I didn't hear anything. Please try again.",
    "audio-capture": "I can't access the microphone. Please check your settings.",
    "not-allowed": "I need permission to use the microphone. Please allow microphone access.",
    "service-not-allowed": "I need permission to use the microphone. Please allow microphone access.",
    "network": "I'm having trouble connecting. Please check your internet connection.",
    "aborted": "Listening was stopped.",
}
DEFAULT_RECOGNITION_ERROR_MESSAGE = "Something went wrong. Please try again."


class RecognitionMode(enum.Enum):
    # Keeps listening and reports interim results, used for the wake phrase
    CONTINUOUS = "continuous"
    # Ends after the first final result
    SINGLE_SHOT = "single_shot"


@dataclass(frozen=True)
class TranscriptEvent:
    transcript: str
    confidence: float = 1.0
    is_final: bool = True


@dataclass(frozen=True)
class RecognitionErrorEvent:
    reason: str

    @property
    def is_permission_error(self) -> bool:
        return self.reason in PERMISSION_ERRORS

    @property
    def message(self) -> str:
        return RECOGNITION_ERROR_MESSAGES.get(self.reason, DEFAULT_RECOGNITION_ERROR_MESSAGE)


RecognitionEvent = Union[TranscriptEvent, RecognitionErrorEvent]


class RecognitionSession(Protocol):
    """An open microphone session.

    Iterating yields events until the session ends, either on its own or
    after ``abort``.
    """

    def __aiter__(self) -> AsyncIterator[RecognitionEvent]: ...

    async def abort(self) -> None: ...


class SpeechRecognizer(Protocol):
    async def open_session(self, mode: RecognitionMode, language: str) -> RecognitionSession: ...
