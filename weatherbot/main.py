import asyncio
import logging
from contextlib import asynccontextmanager

from weatherbot.config import settings
from weatherbot.profiles import list_profiles
from weatherbot.scheduler import TaskScheduler
from weatherbot.services.assistant import VoiceAssistant
from weatherbot.services.cache import WeatherCache
from weatherbot.services.console import ConsoleRecognizer, ConsoleSynthesizer
from weatherbot.services.context import StaticLocationProvider, StaticProfileProvider
from weatherbot.services.geocoding import Geocoder
from weatherbot.services.speech import SpeechOutputQueue
from weatherbot.services.stores import build_store
from weatherbot.services.weather import WeatherAPI

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.LOG_FILE, encoding='utf-8'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def _log_wake(transcript: str):
    logger.info(f"Wake phrase heard in {transcript!r}, listening for a question")


def _log_error(reason: str):
    logger.warning(f"Assistant reported an error: {reason}")


@asynccontextmanager
async def lifespan():
    store = await build_store(settings)
    weather_cache = WeatherCache(WeatherAPI(), store)
    location_provider = StaticLocationProvider.from_settings(settings)
    profiles = ", ".join(profile.id for profile in list_profiles())
    logger.info(f"Profiles: {profiles} (active: {settings.ACTIVE_PROFILE_ID})")
    recognizer = ConsoleRecognizer()

    assistant = VoiceAssistant(
        recognizer=recognizer,
        speech_queue=SpeechOutputQueue(ConsoleSynthesizer()),
        weather_cache=weather_cache,
        location_provider=location_provider,
        profile_provider=StaticProfileProvider(settings.ACTIVE_PROFILE_ID),
        geocoder=Geocoder(),
        on_wake_detected=_log_wake,
        on_error=_log_error,
    )

    scheduler = TaskScheduler(weather_cache, location_provider)
    scheduler.start()

    try:
        yield {"assistant": assistant, "recognizer": recognizer, "scheduler": scheduler}
    finally:
        scheduler.shutdown()
        await assistant.stop()
        await recognizer.close()
        await weather_cache.close()


async def main():
    async with lifespan() as context:
        assistant = context["assistant"]
        recognizer = context["recognizer"]
        print(f"Say '{settings.WAKE_PHRASE}' to wake me up. Type '!no-speech' to simulate an error.")
        try:
            await assistant.start()
            await recognizer.exhausted.wait()
        except Exception as e:
            logger.error(f"Critical error: {e}")
            raise


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
