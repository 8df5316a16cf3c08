from typing import Dict, List

from weatherbot.exceptions import ProfileNotFoundError
from weatherbot.models import Profile

PREDEFINED_PROFILES: Dict[str, Profile] = {
    "4yo-girl": Profile(
        id="4yo-girl",
        age=4,
        gender="girl",
        complexity_level="simple",
        vocabulary_style="girl-typical",
        display_name="4 year old girl",
    ),
    "7yo-boy": Profile(
        id="7yo-boy",
        age=7,
        gender="boy",
        complexity_level="moderate",
        vocabulary_style="boy-typical",
        display_name="7 year old boy",
    ),
    "10yo-boy": Profile(
        id="10yo-boy",
        age=10,
        gender="boy",
        complexity_level="complex",
        vocabulary_style="boy-typical",
        display_name="10 year old boy",
    ),
}


def get_profile(profile_id: str) -> Profile:
    try:
        return PREDEFINED_PROFILES[profile_id]
    except KeyError:
        raise ProfileNotFoundError(f"Unknown profile: {profile_id}") from None


def list_profiles() -> List[Profile]:
    return list(PREDEFINED_PROFILES.values())
