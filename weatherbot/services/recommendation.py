import logging
from typing import Dict, List, Optional

from weatherbot.models import ClothingItem, Profile, Recommendation, WeatherSnapshot

logger = logging.getLogger(__name__)

# Band lower bounds in °F, inclusive.
COLD = 32
COOL = 45
MILD = 60
WARM = 75
HOT = 85

PRECIPITATION_LOW = 30
PRECIPITATION_MODERATE = 60
WIND_LIGHT = 10
WIND_MODERATE = 20
UV_MODERATE = 3
UV_HIGH = 6

SEVERE_CONDITIONS = ("thunderstorm", "hurricane", "tornado", "severe", "blizzard", "ice storm")

EXTREME_WEATHER = {
    "extreme-cold": {
        "message": "The weather is extremely cold today. It might be safer to stay indoors if possible.",
        "items": [
            "Heavy winter coat",
            "Warm layers underneath",
            "Insulated snow boots",
            "Warm hat that covers ears",
            "Insulated gloves",
            "Scarf to cover face",
        ],
    },
    "extreme-heat": {
        "message": "The weather is very hot today. Try to stay indoors during the hottest part of the day.",
        "items": ["Light, breathable clothing", "Wide-brimmed hat", "Sunglasses", "Sunscreen",
                  "Plenty of water"],
    },
    "high-winds": {
        "message": "Very strong winds today. Be careful outside and hold on to hats!",
        "items": ["Secure jacket with zipper", "No loose clothing", "Sturdy shoes"],
    },
    "severe-storm": {
        "message": "There is severe weather today. It is safest to stay indoors.",
        "items": ["Stay inside", "Emergency kit ready", "Follow weather alerts"],
    },
}

STALE_NOTICE = "I couldn't check the latest weather, so this is based on the last forecast I heard."


class _Outfit:
    """Mutable working set the modifiers operate on."""

    def __init__(self, outerwear, base_layers, accessories, footwear, notes):
        self.outerwear: List[ClothingItem] = outerwear
        self.base_layers: List[ClothingItem] = base_layers
        self.accessories: List[ClothingItem] = accessories
        self.footwear: List[ClothingItem] = footwear
        self.notes: List[str] = notes

    @staticmethod
    def add(items: List[ClothingItem], name: str, reason: str, first: bool = False, replaces=()):
        """Add ``name`` once; an item listed in ``replaces`` is swapped out in place."""
        if any(entry.item.lower() == name.lower() for entry in items):
            return
        entry = ClothingItem(name, reason)
        for index, existing in enumerate(items):
            if existing.item.lower() in replaces:
                items[index] = entry
                return
        if first:
            items.insert(0, entry)
        else:
            items.append(entry)


def _items(names: List[str], reason: str) -> List[ClothingItem]:
    return [ClothingItem(name, reason) for name in names]


def _base_outfit(temperature: float, profile: Profile) -> _Outfit:
    girl = profile.is_girl_typical
    simple = profile.is_simple

    if temperature < COLD:
        reason = "It's below freezing"
        return _Outfit(
            _items(["Heavy winter coat"], reason),
            _items([
                "Warm long sleeve shirt",
                ("Pull-on leggings" if simple else "Leggings") if girl
                else ("Pull-on sweatpants" if simple else "Sweatpants"),
                "Warm socks",
            ], reason),
            _items(["Hat", "Mittens" if simple else "Gloves", "Scarf"], reason),
            _items(["Boots with easy fasteners" if simple else "Winter boots"], reason),
            ["It's very cold today, dress warmly!"],
        )
    if temperature < COOL:
        reason = "It's chilly"
        return _Outfit(
            _items(["Winter jacket"], reason),
            _items([
                "Long sleeve shirt",
                "Pull-on pants" if simple else ("Pants" if girl else "Jeans"),
            ], reason),
            _items(["Hat", "Gloves (optional)"], reason),
            _items(["Sneakers with velcro" if simple else "Sneakers"], reason),
            ["It's chilly outside, wear your jacket!"],
        )
    if temperature < MILD:
        reason = "It's cool"
        return _Outfit(
            _items(["Light jacket or hoodie"], reason),
            _items([
                "Long sleeve shirt or short sleeves with cardigan" if girl
                else "Long sleeve shirt or short sleeve with hoodie",
                "Pull-on pants" if simple else ("Pants or skirt" if girl else "Jeans or khakis"),
            ], reason),
            [],
            _items(["Sneakers with velcro" if simple else "Sneakers"], reason),
            ["It's cool today, you might want a light jacket."],
        )
    if temperature < WARM:
        reason = "It's comfortable"
        if girl:
            layers = ["Short or long sleeve shirt",
                      "Pull-on pants" if simple else "Pants, skirt, or leggings"]
        else:
            layers = ["T-shirt or polo shirt", "Pull-on shorts" if simple else "Shorts or pants"]
        return _Outfit(
            [],
            _items(layers, reason),
            [],
            _items(["Sneakers or slip-on shoes" if simple else "Sneakers or sandals"], reason),
            ["The weather is nice today!"],
        )
    if temperature < HOT:
        reason = "It's warm"
        if girl:
            layers = ["Light t-shirt or tank top",
                      "Pull-on shorts" if simple else "Shorts, skirt, or sundress"]
        else:
            layers = ["Light t-shirt", "Pull-on shorts" if simple else "Shorts"]
        return _Outfit(
            [],
            _items(layers, reason),
            [],
            _items(["Sandals with easy straps" if simple else "Sandals or sneakers"], reason),
            ["It's warm today, wear something light!"],
        )

    reason = "It's very hot"
    if girl:
        layers = ["Light, breathable t-shirt or tank top",
                  "Pull-on shorts" if simple else "Shorts or sundress"]
    else:
        layers = ["Light, breathable t-shirt", "Pull-on shorts" if simple else "Shorts"]
    return _Outfit(
        [],
        _items(layers, reason),
        _items(["Sun hat"], reason),
        _items(["Sandals with easy straps" if simple else "Sandals"], reason),
        ["It's very hot today, stay cool and hydrated!"],
    )


def _apply_precipitation(outfit: _Outfit, probability: float, simple: bool):
    if probability > PRECIPITATION_MODERATE:
        reason = "Rain is likely"
        outfit.add(outfit.outerwear, "Raincoat (easy-on)" if simple else "Raincoat", reason, first=True)
        outfit.add(outfit.accessories, "Umbrella", reason)
        outfit.footwear = [ClothingItem(
            "Rain boots (easy-on)" if simple else "Rain boots or waterproof shoes", reason
        )]
        outfit.notes.append("It's going to rain, so wear your raincoat and boots!")
    elif probability > PRECIPITATION_LOW:
        outfit.notes.append("There might be rain, bring an umbrella just in case.")
        outfit.add(outfit.accessories, "Umbrella (just in case)", "Rain is possible")


def _apply_wind(outfit: _Outfit, wind_speed: float, temperature: float, simple: bool):
    if wind_speed > WIND_MODERATE:
        reason = "It's windy"
        if temperature < MILD:
            outfit.add(outfit.accessories, "Secure hat", reason, replaces=("hat",))
            outfit.add(outfit.accessories, "Mittens" if simple else "Gloves", reason,
                       replaces=("gloves", "gloves (optional)", "mittens"))
            outfit.notes.append("It's windy and cold, make sure your hat won't blow away!")
        else:
            outfit.notes.append("It's windy today, secure your hat!")

        if not any("windbreaker" in entry.item.lower() for entry in outfit.outerwear):
            outfit.add(outfit.outerwear, "Windbreaker (if you have one)", reason)
    elif wind_speed > WIND_LIGHT and temperature < MILD:
        outfit.notes.append("It's a bit windy, wear an extra layer.")


def _apply_sun(outfit: _Outfit, uv_index: float):
    if uv_index >= UV_HIGH:
        reason = "The sun is strong"
        outfit.add(outfit.accessories, "Sunglasses", reason)
        outfit.add(outfit.accessories, "Sun hat", reason)
        outfit.notes.append("The sun is strong today, wear sunscreen and a hat!")
    elif uv_index >= UV_MODERATE:
        outfit.notes.append("Apply sunscreen if you'll be outside for a while.")


def _apply_mixed_conditions(outfit: _Outfit, snapshot: WeatherSnapshot):
    conditions = snapshot.conditions.lower()
    precipitation = snapshot.precipitation_probability or 0
    wind = snapshot.wind_speed or 0
    uv = snapshot.uv_index or 0

    if ("clear" in conditions or "sunny" in conditions) and precipitation > 50:
        outfit.notes.append("The weather might change! It looks sunny now but rain is likely later.")
        if not any(entry.item.lower().startswith("umbrella") for entry in outfit.accessories):
            outfit.add(outfit.accessories, "Umbrella", "Rain is likely later")

    if snapshot.temperature > 70 and wind > 15:
        outfit.notes.append("It's warm but windy. You might want a light jacket that's easy to take off.")

    if snapshot.temperature < 50 and uv > 5:
        outfit.add(outfit.accessories, "Sunglasses", "The sun is strong")
        outfit.notes.append("Even though it's cold, the sun is strong. Protect your eyes!")


def detect_extreme_weather(snapshot: WeatherSnapshot) -> Optional[str]:
    """Return the extreme-weather category for ``snapshot`` or ``None``."""
    if snapshot.temperature < 0:
        return "extreme-cold"
    if snapshot.temperature > 100:
        return "extreme-heat"
    if snapshot.wind_speed is not None and snapshot.wind_speed > 45:
        return "high-winds"
    conditions = snapshot.conditions.lower()
    if any(severe in conditions for severe in SEVERE_CONDITIONS):
        return "severe-storm"
    return None


def temperature_description(temperature: float) -> str:
    if temperature < 32:
        return "very cold"
    if temperature < 45:
        return "cold"
    if temperature < 60:
        return "chilly"
    if temperature < 70:
        return "nice"
    if temperature < 80:
        return "warm"
    if temperature < 90:
        return "hot"
    return "very hot"


def format_list(items: List[str]) -> str:
    """Join ``items`` the way they are read aloud: "a, b, and c"."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def _degrees(value: float) -> int:
    return int(round(value))


def _weather_sentence(snapshot: WeatherSnapshot, when: str) -> str:
    description = temperature_description(snapshot.temperature)
    temperature = _degrees(snapshot.temperature)
    feels_like = _degrees(snapshot.feels_like)
    verb = "It will be" if when == "tomorrow" else "It's"
    sentence = f"{verb} {description} {when}, {temperature} degrees"
    if feels_like != temperature:
        sentence += f" but feels like {feels_like}"
    return sentence + "."


def _spoken_response(snapshot: WeatherSnapshot, outfit: _Outfit, when: str) -> str:
    parts = ["Good morning!", _weather_sentence(snapshot, when)]

    if snapshot.conditions:
        parts.append(f"The weather is {snapshot.conditions.lower()}.")

    main_items = []
    if outfit.outerwear:
        main_items.append(format_list(Recommendation.item_names(outfit.outerwear)))
    if outfit.base_layers:
        main_items.append(format_list(Recommendation.item_names(outfit.base_layers)))
    if main_items:
        parts.append(f"You should wear {', and '.join(main_items)}.")

    if outfit.footwear:
        parts.append(f"For your feet, wear {format_list(Recommendation.item_names(outfit.footwear))}.")

    if outfit.accessories:
        parts.append(f"Don't forget {format_list(Recommendation.item_names(outfit.accessories))}!")

    parts.extend(outfit.notes)

    if snapshot.is_stale:
        parts.append(STALE_NOTICE)

    parts.append("Have a great day!")
    return " ".join(parts)


def generate_recommendation(
        snapshot: WeatherSnapshot,
        profile: Profile,
        confidence: float = 1.0,
        when: str = "today",
) -> Recommendation:
    """
    Build a clothing recommendation for one child and one weather snapshot.

    The temperature band picks the base outfit, then precipitation, wind and
    UV modifiers are applied in that order. Missing readings skip their
    modifier. The function has no side effects and is deterministic.

    Args:
        snapshot: Weather to dress for
        profile: Child profile selecting vocabulary and fastener simplicity
        confidence: Upstream confidence, copied into the result
        when: Day phrase used in the spoken response ("today", "tomorrow")

    Returns:
        Recommendation with a ready-to-speak response
    """
    outfit = _base_outfit(snapshot.temperature, profile)

    if snapshot.precipitation_probability:
        _apply_precipitation(outfit, snapshot.precipitation_probability, profile.is_simple)
    if snapshot.wind_speed:
        _apply_wind(outfit, snapshot.wind_speed, snapshot.temperature, profile.is_simple)
    if snapshot.uv_index:
        _apply_sun(outfit, snapshot.uv_index)

    _apply_mixed_conditions(outfit, snapshot)

    extreme = detect_extreme_weather(snapshot)
    if extreme:
        safety = EXTREME_WEATHER[extreme]
        outfit.notes.append(safety["message"])
        spoken = f"Important safety message: {safety['message']} {', '.join(safety['items'])}."
        logger.warning(f"Extreme weather detected ({extreme}) at {snapshot.temperature}°F")
    else:
        spoken = _spoken_response(snapshot, outfit, when)

    return Recommendation(
        profile_id=profile.id,
        weather=snapshot,
        outerwear=outfit.outerwear,
        base_layers=outfit.base_layers,
        accessories=outfit.accessories,
        footwear=outfit.footwear,
        special_notes=outfit.notes,
        spoken_response=spoken,
        confidence=confidence,
    )


def describe_weather(snapshot: WeatherSnapshot, when: str = "today") -> str:
    """Spoken weather summary for questions that don't ask about clothes."""
    parts = [_weather_sentence(snapshot, when)]
    if snapshot.conditions:
        parts.append(f"The weather is {snapshot.conditions.lower()}.")
    if snapshot.precipitation_probability:
        parts.append(f"There's a {_degrees(snapshot.precipitation_probability)} percent chance of rain.")
    if snapshot.wind_speed and snapshot.wind_speed > WIND_LIGHT:
        parts.append(f"The wind is blowing at {_degrees(snapshot.wind_speed)} miles per hour.")
    if snapshot.uv_index and snapshot.uv_index >= UV_HIGH:
        parts.append("The sun is strong, so remember your sunscreen.")
    if snapshot.is_stale:
        parts.append(STALE_NOTICE)
    return " ".join(parts)


def summarize(recommendation: Recommendation) -> Dict[str, List[str]]:
    """Item names per category, mostly useful for logging."""
    return {
        "outerwear": Recommendation.item_names(recommendation.outerwear),
        "base_layers": Recommendation.item_names(recommendation.base_layers),
        "accessories": Recommendation.item_names(recommendation.accessories),
        "footwear": Recommendation.item_names(recommendation.footwear),
    }
