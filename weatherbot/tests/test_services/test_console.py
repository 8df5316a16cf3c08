import asyncio
import io

from weatherbot.services.console import ConsoleSession, ConsoleSynthesizer
from weatherbot.services.recognition import RecognitionErrorEvent, RecognitionMode, TranscriptEvent
from weatherbot.services.speech import SpeechOptions


def lines_queue(*lines):
    queue = asyncio.Queue()
    for line in lines:
        queue.put_nowait(line)
    return queue


async def collect(session):
    return [event async for event in session]


async def test_continuous_session_reads_until_eof():
    lines = lines_queue("good morning weatherbot", "", "!network", None)

    events = await collect(ConsoleSession(lines, RecognitionMode.CONTINUOUS))

    assert events == [
        TranscriptEvent("good morning weatherbot", confidence=1.0, is_final=True),
        RecognitionErrorEvent("network"),
    ]
    # EOF stays queued for the next session
    assert await collect(ConsoleSession(lines, RecognitionMode.CONTINUOUS)) == []


async def test_single_shot_session_stops_after_one_event():
    lines = lines_queue("what should I wear", "leftover")

    events = await collect(ConsoleSession(lines, RecognitionMode.SINGLE_SHOT))

    assert [event.transcript for event in events] == ["what should I wear"]
    assert lines.qsize() == 1


async def test_abort_ends_a_waiting_session():
    session = ConsoleSession(asyncio.Queue(), RecognitionMode.CONTINUOUS)
    consumer = asyncio.create_task(collect(session))
    await asyncio.sleep(0)

    await session.abort()

    assert await asyncio.wait_for(consumer, 1) == []


async def test_bare_bang_is_reported_as_aborted():
    events = await collect(ConsoleSession(lines_queue("!", None), RecognitionMode.CONTINUOUS))

    assert events == [RecognitionErrorEvent("aborted")]


async def test_synthesizer_prints_utterance():
    out = io.StringIO()
    synthesizer = ConsoleSynthesizer(words_per_second=1000, stream=out)

    await synthesizer.synthesize("Wear your raincoat!", SpeechOptions())
    synthesizer.cancel()

    assert out.getvalue() == "🔊 Wear your raincoat!\n"
