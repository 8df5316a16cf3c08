import pytest

from weatherbot.models import Recommendation, WeatherSnapshot
from weatherbot.profiles import get_profile
from weatherbot.services.recommendation import (
    describe_weather,
    detect_extreme_weather,
    format_list,
    generate_recommendation,
    temperature_description,
)

names = Recommendation.item_names


def test_cold_rain_and_wind(boy):
    snapshot = WeatherSnapshot(
        temperature=20, conditions="Sleet", precipitation_probability=70, wind_speed=25, uv_index=2
    )

    rec = generate_recommendation(snapshot, boy)

    outerwear = names(rec.outerwear)
    assert outerwear.index("Raincoat") < outerwear.index("Heavy winter coat")
    assert names(rec.footwear) == ["Rain boots or waterproof shoes"]
    assert "It's very cold today, dress warmly!" in rec.special_notes
    assert "It's going to rain, so wear your raincoat and boots!" in rec.special_notes
    assert "It's windy and cold, make sure your hat won't blow away!" in rec.special_notes
    assert outerwear.count("Windbreaker (if you have one)") == 1
    assert "Secure hat" in names(rec.accessories)


def test_hot_and_sunny_without_rain_or_wind_data(boy):
    snapshot = WeatherSnapshot(temperature=90, conditions="Sunny", uv_index=8)

    rec = generate_recommendation(snapshot, boy)

    accessories = names(rec.accessories)
    assert "Sun hat" in accessories
    assert "Sunglasses" in accessories
    assert accessories.count("Sun hat") == 1
    assert names(rec.footwear) == ["Sandals"]
    assert not any("rain" in note.lower() or "wind" in note.lower() for note in rec.special_notes)


@pytest.mark.parametrize("temperature, outerwear, note", [
    (31.9, ["Heavy winter coat"], "It's very cold today, dress warmly!"),
    (32, ["Winter jacket"], "It's chilly outside, wear your jacket!"),
    (45, ["Light jacket or hoodie"], "It's cool today, you might want a light jacket."),
    (60, [], "The weather is nice today!"),
    (75, [], "It's warm today, wear something light!"),
    (85, [], "It's very hot today, stay cool and hydrated!"),
])
def test_temperature_bands_use_inclusive_lower_bound(boy, temperature, outerwear, note):
    rec = generate_recommendation(WeatherSnapshot(temperature=temperature), boy)

    assert names(rec.outerwear) == outerwear
    assert rec.special_notes == [note]


def test_vocabulary_and_complexity_axes():
    cold = WeatherSnapshot(temperature=10)

    girl = generate_recommendation(cold, get_profile("4yo-girl"))
    boy = generate_recommendation(cold, get_profile("10yo-boy"))

    assert "Pull-on leggings" in names(girl.base_layers)
    assert names(girl.footwear) == ["Boots with easy fasteners"]
    assert "Mittens" in names(girl.accessories)
    assert "Sweatpants" in names(boy.base_layers)
    assert names(boy.footwear) == ["Winter boots"]


def test_simple_profile_gets_easy_on_rain_gear(girl):
    rec = generate_recommendation(WeatherSnapshot(temperature=50, precipitation_probability=80), girl)

    assert names(rec.outerwear)[0] == "Raincoat (easy-on)"
    assert names(rec.footwear) == ["Rain boots (easy-on)"]
    assert "Umbrella" in names(rec.accessories)


def test_possible_rain(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=65, precipitation_probability=45), boy)

    assert names(rec.accessories) == ["Umbrella (just in case)"]
    assert "There might be rain, bring an umbrella just in case." in rec.special_notes
    assert names(rec.footwear) == ["Sneakers or sandals"]


def test_low_rain_chance_changes_nothing(boy):
    plain = generate_recommendation(WeatherSnapshot(temperature=65), boy)
    low = generate_recommendation(WeatherSnapshot(temperature=65, precipitation_probability=30), boy)

    assert low.accessories == plain.accessories
    assert low.special_notes == plain.special_notes


def test_zero_readings_behave_like_missing_ones(boy):
    missing = generate_recommendation(WeatherSnapshot(temperature=50), boy)
    zeros = generate_recommendation(
        WeatherSnapshot(temperature=50, precipitation_probability=0, wind_speed=0, uv_index=0), boy
    )

    assert zeros.outerwear == missing.outerwear
    assert zeros.accessories == missing.accessories
    assert zeros.special_notes == missing.special_notes


def test_strong_wind_when_warm_only_adds_note_and_windbreaker(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=68, wind_speed=25), boy)

    assert "It's windy today, secure your hat!" in rec.special_notes
    assert names(rec.outerwear) == ["Windbreaker (if you have one)"]
    assert "Secure hat" not in names(rec.accessories)


def test_moderate_wind_note_only_when_cold(boy):
    cold = generate_recommendation(WeatherSnapshot(temperature=50, wind_speed=15), boy)
    warm = generate_recommendation(WeatherSnapshot(temperature=65, wind_speed=15), boy)

    assert "It's a bit windy, wear an extra layer." in cold.special_notes
    assert "It's a bit windy, wear an extra layer." not in warm.special_notes


def test_moderate_uv_is_a_note_only(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=65, uv_index=4), boy)

    assert rec.accessories == []
    assert "Apply sunscreen if you'll be outside for a while." in rec.special_notes


def test_no_duplicate_items_in_any_category(girl):
    snapshot = WeatherSnapshot(
        temperature=20, conditions="Clear", precipitation_probability=90, wind_speed=30, uv_index=9
    )

    rec = generate_recommendation(snapshot, girl)

    for items in (rec.outerwear, rec.base_layers, rec.accessories, rec.footwear):
        lowered = [name.lower() for name in names(items)]
        assert len(lowered) == len(set(lowered))


def test_wind_upgrades_cold_weather_accessories(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=40, wind_speed=25), boy)

    assert names(rec.accessories) == ["Secure hat", "Gloves"]
    assert all(item.reason == "It's windy" for item in rec.accessories)


def test_wind_upgrades_accessories_for_simple_profile(girl):
    cool = generate_recommendation(WeatherSnapshot(temperature=40, wind_speed=25), girl)
    freezing = generate_recommendation(WeatherSnapshot(temperature=20, wind_speed=25), girl)

    assert names(cool.accessories) == ["Secure hat", "Mittens"]
    assert names(freezing.accessories) == ["Secure hat", "Mittens", "Scarf"]


def test_items_carry_reasons(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=40, precipitation_probability=70), boy)

    assert all(item.reason for item in rec.outerwear + rec.base_layers + rec.footwear)
    assert rec.outerwear[0].reason == "Rain is likely"


def test_is_deterministic(boy, mild_day):
    first = generate_recommendation(mild_day, boy, confidence=0.9)
    second = generate_recommendation(mild_day, boy, confidence=0.9)

    assert first == second
    assert first.confidence == 0.9


def test_spoken_response(boy):
    snapshot = WeatherSnapshot(temperature=40, feels_like=35, conditions="Cloudy")

    rec = generate_recommendation(snapshot, boy)

    assert rec.spoken_response.startswith("Good morning! It's cold today, 40 degrees but feels like 35.")
    assert "The weather is cloudy." in rec.spoken_response
    assert "You should wear Winter jacket, and Long sleeve shirt and Jeans." in rec.spoken_response
    assert "For your feet, wear Sneakers." in rec.spoken_response
    assert "Don't forget Hat and Gloves (optional)!" in rec.spoken_response
    assert rec.spoken_response.endswith("Have a great day!")


def test_spoken_response_mentions_stale_data(boy):
    snapshot = WeatherSnapshot(temperature=65, is_stale=True)

    rec = generate_recommendation(snapshot, boy, when="tomorrow")

    assert "It will be nice tomorrow" in rec.spoken_response
    assert "last forecast" in rec.spoken_response


def test_extreme_weather_adds_safety_message(boy):
    rec = generate_recommendation(WeatherSnapshot(temperature=-5), boy)

    assert rec.spoken_response.startswith("Important safety message:")
    assert "stay indoors" in rec.special_notes[-1]
    assert names(rec.outerwear) == ["Heavy winter coat"]


@pytest.mark.parametrize("snapshot, expected", [
    (WeatherSnapshot(temperature=-1), "extreme-cold"),
    (WeatherSnapshot(temperature=101), "extreme-heat"),
    (WeatherSnapshot(temperature=60, wind_speed=50), "high-winds"),
    (WeatherSnapshot(temperature=60, conditions="Severe Thunderstorm"), "severe-storm"),
    (WeatherSnapshot(temperature=60, wind_speed=45, conditions="Rain"), None),
])
def test_detect_extreme_weather(snapshot, expected):
    assert detect_extreme_weather(snapshot) == expected


def test_mixed_sun_and_rain(boy):
    rec = generate_recommendation(
        WeatherSnapshot(temperature=70, conditions="Sunny", precipitation_probability=55), boy
    )

    assert "The weather might change! It looks sunny now but rain is likely later." in rec.special_notes
    assert names(rec.accessories) == ["Umbrella (just in case)"]


def test_helpers():
    assert format_list([]) == ""
    assert format_list(["Hat"]) == "Hat"
    assert format_list(["Hat", "Scarf"]) == "Hat and Scarf"
    assert format_list(["Hat", "Scarf", "Gloves"]) == "Hat, Scarf, and Gloves"
    assert temperature_description(69.9) == "nice"
    assert temperature_description(95) == "very hot"


def test_describe_weather():
    text = describe_weather(WeatherSnapshot(temperature=55, conditions="Rain", precipitation_probability=80,
                                            wind_speed=22))

    assert text.startswith("It's chilly today, 55 degrees.")
    assert "80 percent chance of rain" in text
    assert "22 miles per hour" in text
