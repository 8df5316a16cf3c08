from .assistant import AssistantState, VoiceAssistant, estimate_confidence
from .cache import WeatherCache
from .intent import parse_voice_query
from .recommendation import describe_weather, generate_recommendation
from .speech import SpeechOptions, SpeechOutputQueue
from .weather import WeatherAPI

__all__ = [
    'AssistantState',
    'VoiceAssistant',
    'estimate_confidence',
    'WeatherCache',
    'parse_voice_query',
    'describe_weather',
    'generate_recommendation',
    'SpeechOptions',
    'SpeechOutputQueue',
    'WeatherAPI'
]
