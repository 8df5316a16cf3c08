import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from weatherbot.exceptions import ValidationError

logger = logging.getLogger(__name__)

INTENTS = ("clothing_advice", "weather_check", "location_query")
LOCATION_SOURCES = ("device", "user_specified")
COMPLEXITY_LEVELS = ("simple", "moderate", "complex")
VOCABULARY_STYLES = ("girl-typical", "boy-typical")

# Responses slower than this are reported but still accepted.
SLOW_RESPONSE_MS = 10000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_now() -> str:
    return utc_now().isoformat()


def _check_number(value: Any, name: str, low: Optional[float] = None,
                  high: Optional[float] = None, message: Optional[str] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValidationError(f"{name} must be a number, got {value!r}", field=name)
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValidationError(message or f"{name} must be between {low} and {high}", field=name)


def _check_optional(value: Any, name: str, low: Optional[float] = None,
                    high: Optional[float] = None, message: Optional[str] = None) -> None:
    if value is not None:
        _check_number(value, name, low, high, message)


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal finding produced while validating a model."""
    code: str
    message: str


class _Diagnosable:
    diagnostics: List[Diagnostic]

    def _report(self, code: str, message: str) -> None:
        self.diagnostics.append(Diagnostic(code, message))
        logger.warning(f"{type(self).__name__} diagnostic [{code}]: {message}")


@dataclass(eq=True)
class VoiceQuery(_Diagnosable):
    """A single spoken question after transcription and parsing."""

    raw_transcript: str
    parsed_intent: str = "clothing_advice"
    entities: Dict[str, Any] = field(default_factory=dict)
    recognition_confidence: float = 1.0
    profile_id: Optional[str] = None
    response_time: Optional[float] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = field(default_factory=_iso_now)
    diagnostics: List[Diagnostic] = field(default_factory=list, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.raw_transcript, str) or not self.raw_transcript.strip():
            raise ValidationError("Transcript must be a non-empty string", field="raw_transcript")
        if self.parsed_intent not in INTENTS:
            raise ValidationError(
                f"Intent must be one of {', '.join(INTENTS)}, got {self.parsed_intent!r}",
                field="parsed_intent",
            )
        _check_number(
            self.recognition_confidence, "recognition_confidence", 0.0, 1.0,
            "Recognition confidence must be between 0 and 1",
        )
        if self.response_time is not None:
            self.record_response_time(self.response_time)

    def record_response_time(self, milliseconds: float) -> None:
        _check_number(milliseconds, "response_time", 0.0, None, "Response time must be >= 0")
        self.response_time = milliseconds
        if milliseconds > SLOW_RESPONSE_MS:
            self._report(
                "slow_response",
                f"Response took {milliseconds:.0f}ms, target is {SLOW_RESPONSE_MS}ms",
            )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rawTranscript": self.raw_transcript,
            "parsedIntent": self.parsed_intent,
            "entities": dict(self.entities),
            "profileId": self.profile_id,
            "recognitionConfidence": self.recognition_confidence,
            "timestamp": self.timestamp,
            "responseTime": self.response_time,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "VoiceQuery":
        kwargs = {}
        if data.get("id"):
            kwargs["id"] = data["id"]
        if data.get("timestamp"):
            kwargs["timestamp"] = data["timestamp"]
        return cls(
            raw_transcript=data.get("rawTranscript", ""),
            parsed_intent=data.get("parsedIntent", "clothing_advice"),
            entities=dict(data.get("entities") or {}),
            recognition_confidence=data.get("recognitionConfidence", 1.0),
            profile_id=data.get("profileId"),
            response_time=data.get("responseTime"),
            **kwargs,
        )


@dataclass(eq=True)
class Location(_Diagnosable):
    lat: float
    lon: float
    name: str
    timezone: str
    source: str = "device"
    accuracy: Optional[float] = None
    last_updated: str = field(default_factory=_iso_now)
    diagnostics: List[Diagnostic] = field(default_factory=list, compare=False, repr=False)

    def __post_init__(self):
        _check_number(self.lat, "lat", -90, 90, "Latitude must be between -90 and 90")
        _check_number(self.lon, "lon", -180, 180, "Longitude must be between -180 and 180")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("Location name is required", field="name")
        if not isinstance(self.timezone, str) or not self.timezone.strip():
            raise ValidationError("Location timezone is required", field="timezone")
        if self.source not in LOCATION_SOURCES:
            raise ValidationError(
                f"Location source must be one of {', '.join(LOCATION_SOURCES)}, got {self.source!r}",
                field="source",
            )
        _check_optional(self.accuracy, "accuracy", 0, None, "Accuracy must be >= 0")

        if self.source == "device" and self.accuracy is None:
            self._report("missing_accuracy", f"Device location {self.name!r} has no accuracy")

    def to_json(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "name": self.name,
            "source": self.source,
            "accuracy": self.accuracy,
            "timezone": self.timezone,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Location":
        kwargs = {}
        if data.get("lastUpdated"):
            kwargs["last_updated"] = data["lastUpdated"]
        return cls(
            lat=data.get("lat"),
            lon=data.get("lon"),
            name=data.get("name", ""),
            timezone=data.get("timezone", ""),
            source=data.get("source", "device"),
            accuracy=data.get("accuracy"),
            **kwargs,
        )


@dataclass
class WeatherSnapshot:
    """Weather at one location, either current or for a single forecast day.

    Temperatures are in Fahrenheit, wind in mph, precipitation and humidity
    in percent. Optional readings are ``None`` when the backend omits them.
    """

    temperature: float
    conditions: str = ""
    feels_like: Optional[float] = None
    precipitation_probability: Optional[float] = None
    wind_speed: Optional[float] = None
    uv_index: Optional[float] = None
    humidity: Optional[float] = None
    date: Optional[str] = None
    fetched_at: Optional[datetime] = None
    is_stale: bool = False

    def __post_init__(self):
        _check_number(self.temperature, "temperature", -100, 150,
                      "Temperature must be between -100°F and 150°F")
        if self.feels_like is None:
            self.feels_like = self.temperature
        _check_number(self.feels_like, "feels_like")
        _check_optional(self.precipitation_probability, "precipitation_probability", 0, 100,
                        "Precipitation probability must be between 0 and 100")
        _check_optional(self.wind_speed, "wind_speed", 0, None, "Wind speed must be >= 0")
        _check_optional(self.uv_index, "uv_index", 0, None, "UV index must be >= 0")
        _check_optional(self.humidity, "humidity", 0, 100, "Humidity must be between 0 and 100")
        if self.conditions is None:
            self.conditions = ""

    def to_json(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "feelsLike": self.feels_like,
            "conditions": self.conditions,
            "precipitationProbability": self.precipitation_probability,
            "windSpeed": self.wind_speed,
            "uvIndex": self.uv_index,
            "humidity": self.humidity,
            "date": self.date,
            "fetchedAt": self.fetched_at.isoformat() if self.fetched_at else None,
            "isStale": self.is_stale,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "WeatherSnapshot":
        fetched_at = data.get("fetchedAt")
        return cls(
            temperature=data.get("temperature"),
            conditions=data.get("conditions", ""),
            feels_like=data.get("feelsLike"),
            precipitation_probability=data.get("precipitationProbability"),
            wind_speed=data.get("windSpeed"),
            uv_index=data.get("uvIndex"),
            humidity=data.get("humidity"),
            date=data.get("date"),
            fetched_at=datetime.fromisoformat(fetched_at) if fetched_at else None,
            is_stale=bool(data.get("isStale", False)),
        )


@dataclass(frozen=True)
class Profile:
    id: str
    age: int
    gender: str
    complexity_level: str
    vocabulary_style: str
    display_name: str = ""

    def __post_init__(self):
        if self.complexity_level not in COMPLEXITY_LEVELS:
            raise ValidationError(f"Unknown complexity level {self.complexity_level!r}",
                                  field="complexity_level")
        if self.vocabulary_style not in VOCABULARY_STYLES:
            raise ValidationError(f"Unknown vocabulary style {self.vocabulary_style!r}",
                                  field="vocabulary_style")

    @property
    def is_simple(self) -> bool:
        return self.complexity_level == "simple"

    @property
    def is_girl_typical(self) -> bool:
        return self.vocabulary_style == "girl-typical"


@dataclass(frozen=True)
class ClothingItem:
    item: str
    reason: str = ""

    def to_json(self) -> Dict[str, str]:
        return {"item": self.item, "reason": self.reason}


@dataclass
class Recommendation:
    profile_id: str
    weather: WeatherSnapshot
    outerwear: List[ClothingItem] = field(default_factory=list)
    base_layers: List[ClothingItem] = field(default_factory=list)
    accessories: List[ClothingItem] = field(default_factory=list)
    footwear: List[ClothingItem] = field(default_factory=list)
    special_notes: List[str] = field(default_factory=list)
    spoken_response: str = ""
    confidence: float = 1.0

    def __post_init__(self):
        _check_number(self.confidence, "confidence", 0.0, 1.0, "Confidence must be between 0 and 1")

    @staticmethod
    def item_names(items: List[ClothingItem]) -> List[str]:
        return [entry.item for entry in items]

    def to_json(self) -> Dict[str, Any]:
        return {
            "profileId": self.profile_id,
            "weatherData": self.weather.to_json(),
            "recommendations": {
                "outerwear": [entry.to_json() for entry in self.outerwear],
                "baseLayers": [entry.to_json() for entry in self.base_layers],
                "accessories": [entry.to_json() for entry in self.accessories],
                "footwear": [entry.to_json() for entry in self.footwear],
                "specialNotes": list(self.special_notes),
            },
            "spokenResponse": self.spoken_response,
            "confidence": self.confidence,
        }
