import asyncio
import logging
import sys
from typing import AsyncIterator, Optional, TextIO

from .recognition import RecognitionErrorEvent, RecognitionEvent, RecognitionMode, TranscriptEvent
from .speech import SpeechOptions

logger = logging.getLogger(__name__)


class ConsoleSession:
    def __init__(self, lines: "asyncio.Queue[Optional[str]]", mode: RecognitionMode):
        self.mode = mode
        self._lines = lines
        self._aborted = asyncio.Event()

    def __aiter__(self) -> AsyncIterator[RecognitionEvent]:
        return self._events()

    async def _events(self):
        while not self._aborted.is_set():
            line_task = asyncio.ensure_future(self._lines.get())
            abort_task = asyncio.ensure_future(self._aborted.wait())
            done, pending = await asyncio.wait({line_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if line_task not in done:
                return

            line = line_task.result()
            if line is None:
                # keep EOF visible to later sessions
                self._lines.put_nowait(None)
                return
            if not line:
                continue

            if line.startswith("!"):
                yield RecognitionErrorEvent(line[1:].strip() or "aborted")
            else:
                yield TranscriptEvent(line, confidence=1.0, is_final=True)

            if self.mode is RecognitionMode.SINGLE_SHOT:
                return

    async def abort(self) -> None:
        self._aborted.set()


class ConsoleRecognizer:
    """
    Treats each line typed on stdin as a final transcript.

    A line starting with "!" is reported as a recognition error, e.g.
    "!no-speech" or "!not-allowed".
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdin
        self.exhausted = asyncio.Event()
        self._lines: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._reader: Optional[asyncio.Task] = None

    async def _read_lines(self):
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), self.stream)
        while True:
            raw = await reader.readline()
            if not raw:
                logger.info("Console input closed")
                self.exhausted.set()
                await self._lines.put(None)
                return
            await self._lines.put(raw.decode("utf-8", errors="replace").strip())

    async def open_session(self, mode: RecognitionMode, language: str) -> ConsoleSession:
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_lines())
        logger.debug(f"Opening {mode.value} console session ({language})")
        return ConsoleSession(self._lines, mode)

    async def close(self):
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()


class ConsoleSynthesizer:
    """Prints utterances and waits roughly as long as reading them aloud would take."""

    def __init__(self, words_per_second: float = 2.5, stream: Optional[TextIO] = None):
        self.words_per_second = words_per_second
        self.stream = stream or sys.stdout

    async def synthesize(self, text: str, options: SpeechOptions) -> None:
        print(f"🔊 {text}", file=self.stream, flush=True)
        duration = len(text.split()) / (self.words_per_second * max(options.rate, 0.1))
        await asyncio.sleep(duration)

    def cancel(self) -> None:
        logger.debug("Console speech interrupted")
