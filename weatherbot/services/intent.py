import re
from typing import Optional

from weatherbot.config import settings
from weatherbot.models import VoiceQuery

CLOTHING_KEYWORDS = ("wear", "clothing", "clothes", "outfit", "dress", "put on")
WEATHER_KEYWORDS = ("weather", "temperature", "forecast", "rain", "sunny", "cold", "hot")
OUT_OF_SCOPE_KEYWORDS = (
    "play music",
    "call",
    "text message",
    "email",
    "search for",
    "open",
    "navigate",
    "directions",
)

# Checked in order; the first matching pattern wins.
TIME_REFERENCES = {
    "today": ("today", "right now", "currently"),
    "tomorrow": ("tomorrow",),
    "this afternoon": ("afternoon", "later today"),
    "this evening": ("evening", "tonight"),
    "this weekend": ("weekend",),
    "this week": ("this week",),
}

OUT_OF_SCOPE_MESSAGE = "I can help with weather and clothing advice. Try asking 'What should I wear today?'"

_LOCATION_PATTERNS = (
    re.compile(r"\bin\s+([a-zA-Z\s]+)", re.IGNORECASE),
    re.compile(r"\bat\s+([a-zA-Z\s]+)", re.IGNORECASE),
)
_TRAILING_TIME = re.compile(
    r"\s+(today|tomorrow|tonight|right now|now|this\s+\w+|later(\s+today)?|the\s+(morning|afternoon|evening))$",
    re.IGNORECASE,
)
_ARTICLES = {"the", "a", "an", "my", "our", "your"}
# Things children are dressed "in" or "at" that are not places to look up
NON_PLACE_WORDS = {
    "rain", "snow", "sun", "sunshine", "wind", "cold", "heat", "fog", "storm", "puddles",
    "school", "home", "house", "park", "playground", "daycare", "preschool", "recess",
    "practice", "class", "pool", "beach", "yard", "backyard", "garden", "bed",
    "morning", "afternoon", "evening", "night",
}


def contains_wake_phrase(transcript: str, wake_phrase: Optional[str] = None) -> bool:
    phrase = (wake_phrase or settings.WAKE_PHRASE).lower()
    return phrase in transcript.lower().strip()


def remove_wake_phrase(transcript: str, wake_phrase: Optional[str] = None) -> str:
    phrase = wake_phrase or settings.WAKE_PHRASE
    return re.sub(re.escape(phrase), "", transcript, flags=re.IGNORECASE).strip(" ,.!?")


def parse_intent(transcript: str) -> str:
    normalized = transcript.lower()
    if any(keyword in normalized for keyword in CLOTHING_KEYWORDS):
        return "clothing_advice"
    if any(keyword in normalized for keyword in WEATHER_KEYWORDS):
        return "weather_check"
    if " in " in normalized or " at " in normalized:
        return "location_query"
    return "clothing_advice"


def extract_time_reference(transcript: str) -> str:
    normalized = transcript.lower()
    for reference, patterns in TIME_REFERENCES.items():
        if any(pattern in normalized for pattern in patterns):
            return reference
    return "today"


def _is_place_name(phrase: str) -> bool:
    words = phrase.lower().split()
    if words and words[0] in _ARTICLES:
        words = words[1:]
    return bool(words) and words[-1] not in NON_PLACE_WORDS


def extract_location(transcript: str) -> Optional[str]:
    """Return the place named after "in"/"at", without trailing time words."""
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(transcript)
        if not match:
            continue
        place = match.group(1).strip()
        while True:
            trimmed = _TRAILING_TIME.sub("", place).strip()
            if trimmed == place:
                break
            place = trimmed
        if _is_place_name(place):
            return place
    return None


def is_query_in_scope(transcript: str) -> bool:
    normalized = transcript.lower()
    return not any(keyword in normalized for keyword in OUT_OF_SCOPE_KEYWORDS)


def parse_voice_query(
        raw_transcript: str,
        confidence: float = 1.0,
        profile_id: Optional[str] = None,
        wake_phrase: Optional[str] = None,
) -> VoiceQuery:
    """
    Parse a final transcript into a validated VoiceQuery.

    The wake phrase is stripped before intent and entity extraction. A
    query spoken without the wake phrase is marked as a follow up.

    Raises:
        ValidationError: empty transcript or confidence outside [0, 1]
    """
    cleaned = remove_wake_phrase(raw_transcript, wake_phrase) if raw_transcript else ""
    text = cleaned or raw_transcript or ""
    return VoiceQuery(
        raw_transcript=raw_transcript,
        parsed_intent=parse_intent(text),
        entities={
            "timeReference": extract_time_reference(text),
            "location": extract_location(text),
            "followUp": not contains_wake_phrase(raw_transcript or "", wake_phrase),
        },
        recognition_confidence=confidence,
        profile_id=profile_id,
    )
