from typing import Optional


class WeatherbotError(Exception):
    """Base class for every error raised by weatherbot."""


class ValidationError(WeatherbotError, ValueError):
    """Invalid input detected before any I/O took place."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ProfileNotFoundError(WeatherbotError, LookupError):
    pass


class WeatherFetchError(WeatherbotError):
    """The weather backend could not produce a usable snapshot."""


class WeatherNetworkError(WeatherFetchError):
    pass


class WeatherTimeoutError(WeatherFetchError):
    pass


class WeatherHTTPError(WeatherFetchError):
    def __init__(self, status: int, message: str = ""):
        super().__init__(f"Weather backend returned {status}: {message}".rstrip(": "))
        self.status = status


class WeatherPayloadError(WeatherFetchError):
    pass


class SpeechSynthesisError(WeatherbotError):
    def __init__(self, reason: str):
        super().__init__(f"Speech synthesis failed: {reason}")
        self.reason = reason
