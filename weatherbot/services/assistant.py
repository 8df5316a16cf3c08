import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from weatherbot.config import settings
from weatherbot.exceptions import ProfileNotFoundError, SpeechSynthesisError, ValidationError, WeatherFetchError
from weatherbot.models import Location, Recommendation, VoiceQuery, WeatherSnapshot
from weatherbot.utils import fire_callback
from .cache import WeatherCache
from .context import LocationProvider, ProfileProvider
from .geocoding import Geocoder
from .intent import OUT_OF_SCOPE_MESSAGE, contains_wake_phrase, is_query_in_scope, parse_voice_query
from .recognition import (
    RecognitionErrorEvent,
    RecognitionEvent,
    RecognitionMode,
    RecognitionSession,
    SpeechRecognizer,
    TranscriptEvent,
)
from .recommendation import describe_weather, generate_recommendation, summarize
from .speech import SpeechOutputQueue

logger = logging.getLogger(__name__)

WEATHER_APOLOGY = "Sorry, I couldn't get the weather right now. Please ask me again in a little while."
LOCATION_APOLOGY = "Sorry, I'm not sure where we are right now. Please try again later."
GENERIC_APOLOGY = "Oops, something went wrong. Please ask me again."

FORECAST_CONFIDENCE = 0.8


class AssistantState(enum.Enum):
    IDLE = "idle"
    WAITING_FOR_WAKE_WORD = "waiting_for_wake_word"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"
    ERROR = "error"


@dataclass
class AssistantStatus:
    state: AssistantState = AssistantState.IDLE
    session: Optional[RecognitionSession] = None
    session_mode: Optional[RecognitionMode] = None
    # Bumped whenever a session is replaced so stale consumers stop reacting
    session_token: int = 0
    # Bumped by start() and stop(); a pipeline from an older run must go quiet
    run_id: int = 0
    consumer: Optional[asyncio.Task] = None
    pipeline: Optional[asyncio.Task] = None
    last_query: Optional[VoiceQuery] = None
    last_response: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def is_capturing_query(self) -> bool:
        return self.state is AssistantState.LISTENING


def estimate_confidence(snapshot: WeatherSnapshot, recognition_confidence: float = 1.0,
                        forecast: bool = False) -> float:
    """
    Confidence handed to the recommendation engine.

    Stale data costs 0.2, each missing precipitation or wind reading 0.1,
    with a floor of 0.5. Forecast days are capped at 0.8. The result never
    exceeds how sure the recognizer was about the question.
    """
    confidence = 1.0
    if snapshot.is_stale:
        confidence -= 0.2
    if snapshot.precipitation_probability is None:
        confidence -= 0.1
    if snapshot.wind_speed is None:
        confidence -= 0.1
    confidence = max(0.5, min(1.0, confidence))
    if forecast:
        confidence = min(confidence, FORECAST_CONFIDENCE)
    return round(max(0.0, min(confidence, recognition_confidence)), 2)


class VoiceAssistant:
    """
    Wake word → listen → process → speak state machine.

    A continuous recognition session scans for the wake phrase. Once heard,
    a single-shot session captures the question, the answer is computed in
    a background task and spoken through the output queue, and the
    assistant goes back to waiting for the wake phrase. Recognition errors
    are reported and recovered from; permission errors park the assistant
    in IDLE until ``start`` is called again.
    """

    def __init__(
            self,
            recognizer: SpeechRecognizer,
            speech_queue: SpeechOutputQueue,
            weather_cache: WeatherCache,
            location_provider: LocationProvider,
            profile_provider: ProfileProvider,
            geocoder: Optional[Geocoder] = None,
            wake_phrase: Optional[str] = None,
            language: Optional[str] = None,
            on_wake_detected: Optional[Callable[[str], Any]] = None,
            on_error: Optional[Callable[[str], Any]] = None,
            on_state_change: Optional[Callable[[AssistantState, AssistantState], Any]] = None,
            on_response: Optional[Callable[[VoiceQuery, str, Optional[Recommendation]], Any]] = None,
            clock: Callable[[], float] = time.monotonic,
            restart_delay: float = 0.3,
    ):
        self.recognizer = recognizer
        self.speech_queue = speech_queue
        self.weather_cache = weather_cache
        self.location_provider = location_provider
        self.profile_provider = profile_provider
        self.geocoder = geocoder
        self.wake_phrase = wake_phrase or settings.WAKE_PHRASE
        self.language = language or settings.VOICE_LANGUAGE
        self.on_wake_detected = on_wake_detected
        self.on_error = on_error
        self.on_state_change = on_state_change
        self.on_response = on_response
        self.clock = clock
        self.restart_delay = restart_delay
        self.status = AssistantStatus()

    @property
    def state(self) -> AssistantState:
        return self.status.state

    async def _set_state(self, state: AssistantState):
        previous = self.status.state
        if previous is state:
            return
        self.status.state = state
        logger.info(f"Assistant state: {previous.value} → {state.value}")
        await fire_callback(self.on_state_change, previous, state)

    # Lifecycle

    async def start(self):
        if self.status.state in (AssistantState.WAITING_FOR_WAKE_WORD, AssistantState.LISTENING):
            return
        logger.info("🚀 Starting voice assistant")
        self.status.run_id += 1
        self.speech_queue.stop()
        await self._cancel_pipeline()
        await self._listen_for_wake_word()

    async def stop(self):
        """Stop listening and speaking. Safe to call repeatedly."""
        self.status.run_id += 1
        await self._set_state(AssistantState.IDLE)
        self.speech_queue.stop()
        await self._cancel_pipeline()
        await self._close_session()

    async def _cancel_pipeline(self):
        task = self.status.pipeline
        self.status.pipeline = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    # Recognition sessions

    async def _open_session(self, mode: RecognitionMode, state: AssistantState):
        await self._close_session()
        session = await self.recognizer.open_session(mode, self.language)
        self.status.session = session
        self.status.session_mode = mode
        token = self.status.session_token
        await self._set_state(state)
        self.status.consumer = asyncio.create_task(self._consume(session, token))

    async def _close_session(self):
        session = self.status.session
        consumer = self.status.consumer
        self.status.session = None
        self.status.session_mode = None
        self.status.consumer = None
        self.status.session_token += 1

        if session is not None:
            try:
                await session.abort()
            except Exception as e:
                logger.warning(f"Failed to abort recognition session: {e}")
        if consumer is not None and not consumer.done() and consumer is not asyncio.current_task():
            consumer.cancel()

    async def _listen_for_wake_word(self):
        try:
            await self._open_session(RecognitionMode.CONTINUOUS, AssistantState.WAITING_FOR_WAKE_WORD)
        except Exception as e:
            logger.error(f"❌ Could not start wake word listening: {e}")
            self.status.last_error = "audio-capture"
            await self._set_state(AssistantState.ERROR)
            await fire_callback(self.on_error, "audio-capture")
            await self._set_state(AssistantState.IDLE)

    async def _consume(self, session: RecognitionSession, token: int):
        try:
            async for event in session:
                if token != self.status.session_token:
                    return
                await self.handle_event(event)
                if token != self.status.session_token:
                    return
        except Exception as e:
            logger.exception(f"Recognition session failed: {e}")
            if token == self.status.session_token:
                await self._handle_recognition_error(RecognitionErrorEvent(str(e) or "unknown"))
            return

        if token == self.status.session_token:
            await self._on_session_end()

    async def _on_session_end(self):
        state = self.status.state
        await self._close_session()

        if state is AssistantState.LISTENING:
            await self._handle_recognition_error(RecognitionErrorEvent("no-speech"))
        elif state is AssistantState.WAITING_FOR_WAKE_WORD:
            token = self.status.session_token
            logger.debug(f"Wake word session ended, restarting in {self.restart_delay}s")
            await asyncio.sleep(self.restart_delay)
            if token == self.status.session_token and self.status.state is AssistantState.WAITING_FOR_WAKE_WORD:
                await self._listen_for_wake_word()

    # Events

    async def handle_event(self, event: RecognitionEvent):
        """Feed one recognition event into the state machine."""
        if isinstance(event, RecognitionErrorEvent):
            await self._handle_recognition_error(event)
            return

        state = self.status.state
        if state is AssistantState.WAITING_FOR_WAKE_WORD:
            if contains_wake_phrase(event.transcript, self.wake_phrase):
                await self._on_wake(event)
        elif state is AssistantState.LISTENING:
            if event.is_final:
                await self._on_query(event)
        else:
            logger.debug(f"Ignoring transcript in state {state.value}: {event.transcript!r}")

    async def _on_wake(self, event: TranscriptEvent):
        logger.info(f"👂 Wake phrase detected: {event.transcript!r}")
        try:
            await self._open_session(RecognitionMode.SINGLE_SHOT, AssistantState.LISTENING)
        except Exception as e:
            logger.error(f"❌ Could not start query capture: {e}")
            await self._handle_recognition_error(RecognitionErrorEvent("audio-capture"))
            return
        await fire_callback(self.on_wake_detected, event.transcript)

    async def _on_query(self, event: TranscriptEvent):
        await self._close_session()
        try:
            query = parse_voice_query(event.transcript, event.confidence, wake_phrase=self.wake_phrase)
        except ValidationError as e:
            logger.warning(f"Unusable transcript {event.transcript!r}: {e}")
            await self._handle_recognition_error(RecognitionErrorEvent("no-speech"))
            return

        logger.info(f"❓ Query: {query.raw_transcript!r} ({query.parsed_intent})")
        run_id = self.status.run_id
        await self._set_state(AssistantState.PROCESSING)
        if self._superseded(run_id):
            return
        self.status.pipeline = asyncio.create_task(self._process(query, run_id))

    async def _handle_recognition_error(self, event: RecognitionErrorEvent):
        previous = self.status.state
        if previous not in (AssistantState.WAITING_FOR_WAKE_WORD, AssistantState.LISTENING):
            logger.debug(f"Ignoring recognition error {event.reason!r} in state {previous.value}")
            return

        logger.warning(f"Recognition error: {event.reason}")
        self.status.last_error = event.reason
        await self._set_state(AssistantState.ERROR)
        await self._close_session()
        await fire_callback(self.on_error, event.reason)

        if previous is AssistantState.LISTENING or event.is_permission_error:
            await self._say(event.message)

        if self.status.state is not AssistantState.ERROR:
            # stop() or start() was called while we were talking
            return
        if event.is_permission_error:
            await self._set_state(AssistantState.IDLE)
            return
        await self._listen_for_wake_word()

    async def _say(self, text: str):
        try:
            await self.speech_queue.speak(text)
        except SpeechSynthesisError as e:
            logger.error(f"Could not speak guidance: {e.reason}")

    # Processing

    def _superseded(self, run_id: int) -> bool:
        return run_id != self.status.run_id

    async def _process(self, query: VoiceQuery, run_id: int):
        started = self.clock()
        try:
            try:
                text, recommendation = await self._answer(query)
            except WeatherFetchError as e:
                logger.error(f"❌ Weather unavailable: {e}")
                text, recommendation = WEATHER_APOLOGY, None
            except (ValidationError, ProfileNotFoundError) as e:
                logger.error(f"❌ Could not answer query: {e}")
                text, recommendation = LOCATION_APOLOGY, None
            except Exception as e:
                logger.exception(f"❌ Unexpected error while answering: {e}")
                self.status.last_error = "processing"
                await self._set_state(AssistantState.ERROR)
                await fire_callback(self.on_error, "processing")
                if self._superseded(run_id):
                    return
                text, recommendation = GENERIC_APOLOGY, None

            query.record_response_time((self.clock() - started) * 1000)
            self.status.last_query = query
            self.status.last_response = text
            await fire_callback(self.on_response, query, text, recommendation)
            if self._superseded(run_id):
                logger.info("Assistant was stopped, dropping the answer")
                return

            self.speech_queue.add_to_queue(text)
            await self._set_state(AssistantState.SPEAKING)
            result = await self.speech_queue.process_queue()
            if result["failed"]:
                logger.warning(f"{result['failed']} utterances could not be spoken")

            if self.status.state is AssistantState.SPEAKING and not self._superseded(run_id):
                await self._listen_for_wake_word()
        finally:
            if self.status.pipeline is asyncio.current_task():
                self.status.pipeline = None

    async def _answer(self, query: VoiceQuery) -> Tuple[str, Optional[Recommendation]]:
        if not is_query_in_scope(query.raw_transcript):
            logger.info("Query is out of scope")
            return OUT_OF_SCOPE_MESSAGE, None

        profile = await self.profile_provider.get_active_profile()
        query.profile_id = profile.id
        location = await self._resolve_location(query)

        when = "today"
        snapshot = None
        if query.entities.get("timeReference") == "tomorrow":
            forecast = await self.weather_cache.get_forecast(location, days=2)
            if len(forecast) > 1:
                when = "tomorrow"
                snapshot = forecast[1]
        if snapshot is None:
            snapshot = await self.weather_cache.get_current_weather(location)

        confidence = estimate_confidence(snapshot, query.recognition_confidence, forecast=when == "tomorrow")

        if query.parsed_intent == "weather_check":
            return describe_weather(snapshot, when), None

        recommendation = generate_recommendation(snapshot, profile, confidence, when)
        logger.info(f"👕 Recommendation for {profile.id} in {location.name}: {summarize(recommendation)}")
        return recommendation.spoken_response, recommendation

    async def _resolve_location(self, query: VoiceQuery) -> Location:
        device = await self.location_provider.get_location()
        place = query.entities.get("location")
        if not place or self.geocoder is None:
            return device

        resolved = await self.geocoder.resolve_location(place, device.timezone)
        if resolved is None:
            logger.info(f"Could not find '{place}', using {device.name}")
            return device
        return resolved
