from typing import Dict, Optional

from loguru import logger
from pydantic import ValidationError

from suraksha_jal.schemas import ProfilePatch, UserProfile
from suraksha_jal.storage import ALL_PROFILES_KEY, CURRENT_PROFILE_KEY, KeyValueStore, read_json, write_json


def merge_profile(existing: UserProfile, patch: ProfilePatch) -> UserProfile:
    """Fields set in the patch win; fields left as None keep the existing value"""
    updates = patch.model_dump(exclude_none=True)
    return existing.model_copy(update=updates)


class ProfileRepository:
    """Current-profile slot plus the all-profiles map keyed by email"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def current(self) -> Optional[UserProfile]:
        raw = read_json(self.store, CURRENT_PROFILE_KEY, {})
        if not raw:
            return None
        try:
            return UserProfile.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed current profile: {}", e)
            return None

    def all(self) -> Dict[str, UserProfile]:
        profiles = {}
        for email, raw in read_json(self.store, ALL_PROFILES_KEY, {}).items():
            try:
                profiles[email] = UserProfile.model_validate(raw)
            except ValidationError:
                logger.warning("Ignoring malformed stored profile for {}", email)
        return profiles

    def get(self, email: str) -> Optional[UserProfile]:
        return self.all().get(email)

    def save(self, profile: UserProfile, make_current: bool = True) -> UserProfile:
        """Write the profile into the map and, by default, the current slot"""
        raw_map = read_json(self.store, ALL_PROFILES_KEY, {})
        raw_map[profile.email] = profile.model_dump()
        write_json(self.store, ALL_PROFILES_KEY, raw_map)
        if make_current:
            write_json(self.store, CURRENT_PROFILE_KEY, profile.model_dump())
        return profile

    def set_current(self, profile: UserProfile) -> None:
        write_json(self.store, CURRENT_PROFILE_KEY, profile.model_dump())

    def update(self, email: str, patch: ProfilePatch) -> Optional[UserProfile]:
        existing = self.get(email)
        if existing is None:
            current = self.current()
            if current is None or current.email != email:
                return None
            existing = current
        updated = merge_profile(existing, patch)
        current = self.current()
        self.save(updated, make_current=current is not None and current.email == email)
        return updated

    def clear_current(self) -> None:
        self.store.remove(CURRENT_PROFILE_KEY)
