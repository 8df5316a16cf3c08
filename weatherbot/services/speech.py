import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from weatherbot.config import Settings, settings
from weatherbot.exceptions import SpeechSynthesisError
from weatherbot.utils import fire_callback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeechOptions:
    rate: float = 0.9
    pitch: float = 1.1
    volume: float = 1.0
    language: str = "en-US"

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "SpeechOptions":
        return cls(
            rate=config.VOICE_RATE,
            pitch=config.VOICE_PITCH,
            volume=config.VOICE_VOLUME,
            language=config.VOICE_LANGUAGE,
        )


class SpeechSynthesizer(Protocol):
    """Text-to-speech backend.

    ``synthesize`` returns once playback has finished. ``cancel`` stops any
    audio that is currently playing.
    """

    async def synthesize(self, text: str, options: SpeechOptions) -> None: ...

    def cancel(self) -> None: ...


class SpeechOutputQueue:
    """
    Plays utterances one at a time.

    Queued utterances play in FIFO order. ``speak`` bypasses the queue and
    cuts off whatever is playing. ``stop`` empties the queue and silences
    the current utterance in a single synchronous step.
    """

    def __init__(
            self,
            synthesizer: SpeechSynthesizer,
            default_options: Optional[SpeechOptions] = None,
            on_error: Optional[Callable[[str, SpeechSynthesisError], Any]] = None,
    ):
        self.synthesizer = synthesizer
        self.default_options = default_options or SpeechOptions.from_settings()
        self.on_error = on_error
        self._queue: Deque[str] = deque()
        self._current: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    @property
    def pending(self) -> List[str]:
        return list(self._queue)

    def _options(self, options: Optional[Dict[str, Any]]) -> SpeechOptions:
        if not options:
            return self.default_options
        if isinstance(options, SpeechOptions):
            return options
        return replace(self.default_options, **options)

    def _interrupt(self):
        task = self._current
        self._current = None
        if task is not None and not task.done():
            task.cancel()
            self.synthesizer.cancel()

    async def speak(self, text: str, options: Optional[Dict[str, Any]] = None) -> bool:
        """
        Speak ``text`` right away, interrupting anything already playing.

        Returns:
            True when playback completed, False for empty text or when the
            utterance was cut off by another ``speak`` or ``stop``

        Raises:
            SpeechSynthesisError: the synthesizer failed
        """
        if not text:
            return False

        self._interrupt()
        task = asyncio.ensure_future(self.synthesizer.synthesize(text, self._options(options)))
        self._current = task

        try:
            await task
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                raise
            logger.debug(f"Utterance interrupted: {text[:40]!r}")
            return False
        except SpeechSynthesisError:
            raise
        except Exception as e:
            raise SpeechSynthesisError(str(e) or type(e).__name__) from e
        finally:
            if self._current is task:
                self._current = None

        return True

    def add_to_queue(self, text: str):
        self._queue.append(text)

    async def process_queue(self) -> Dict[str, int]:
        """
        Speak every queued utterance in order.

        A failed utterance is reported and skipped. ``stop`` ends processing.

        Returns:
            Dict with "spoken" and "failed" counts
        """
        generation = self._generation
        spoken = 0
        failed = 0

        while self._queue and generation == self._generation:
            text = self._queue.popleft()
            try:
                if await self.speak(text):
                    spoken += 1
            except SpeechSynthesisError as e:
                failed += 1
                logger.error(f"Could not speak {text[:40]!r}: {e.reason}")
                await fire_callback(self.on_error, text, e)

        return {"spoken": spoken, "failed": failed}

    def stop(self):
        self._queue.clear()
        self._generation += 1
        self._interrupt()
