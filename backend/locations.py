"""Safety Spotter Backend — Saved home / interest locations.

The manager owns the invariants on saved locations (one home at most,
MAX_INTEREST_LOCATIONS interests at most) and persists them as one JSON
document under LOCATIONS_STORAGE_KEY in an injected key-value store.
"""

import time
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from config import LOCATIONS_STORAGE_KEY, MAX_INTEREST_LOCATIONS
from models import Coordinate, LocationSettings, SavedLocation
from store import KeyValueStore

logger = logging.getLogger("safety.locations")

HOME_ID = "home"


class LocationLimitError(Exception):
    """Raised when adding an interest location would exceed the limit."""


class LocationNotFoundError(Exception):
    """Raised when a location id does not match any saved location."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocationSettingsManager:
    def __init__(self, store: KeyValueStore, key: str = LOCATIONS_STORAGE_KEY):
        self._store = store
        self._key = key

    def get_settings(self) -> LocationSettings:
        raw = self._store.get(self._key)
        if not raw:
            return LocationSettings()
        try:
            return LocationSettings.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Stored location settings are unreadable, using defaults: {e}")
            return LocationSettings()

    def save(self, settings: LocationSettings) -> LocationSettings:
        if len(settings.interestLocations) > MAX_INTEREST_LOCATIONS:
            raise LocationLimitError(
                f"최대 {MAX_INTEREST_LOCATIONS}곳까지만 설정할 수 있습니다."
            )
        if settings.homeLocation is not None and settings.homeLocation.type != "home":
            raise ValueError("homeLocation must have type 'home'")
        if any(loc.type != "interest" for loc in settings.interestLocations):
            raise ValueError("interestLocations may only hold 'interest' locations")
        if settings.homeLocation is not None and settings.homeLocation.id != HOME_ID:
            raise ValueError(f"homeLocation id must be '{HOME_ID}'")
        interest_ids = [loc.id for loc in settings.interestLocations]
        if HOME_ID in interest_ids:
            raise ValueError(f"'{HOME_ID}' is reserved for the home location")
        if len(set(interest_ids)) != len(interest_ids):
            raise ValueError("interest location ids must be unique")
        self._store.set(self._key, settings.model_dump_json())
        return settings

    def add_home(self, name: str, address: str, coordinates: Coordinate) -> SavedLocation:
        """Set the home location, replacing any previous one."""
        settings = self.get_settings()
        home = SavedLocation(
            id=HOME_ID,
            name=name,
            address=address,
            coordinates=coordinates,
            type="home",
            isActive=True,
            createdAt=_now_iso(),
        )
        self.save(settings.model_copy(update={"homeLocation": home}))
        logger.info(f"Home location set: {name} ({coordinates.lat:.4f}, {coordinates.lng:.4f})")
        return home

    def add_interest(self, name: str, address: str, coordinates: Coordinate) -> SavedLocation:
        settings = self.get_settings()
        if len(settings.interestLocations) >= MAX_INTEREST_LOCATIONS:
            raise LocationLimitError(
                f"최대 {MAX_INTEREST_LOCATIONS}곳까지만 설정할 수 있습니다."
            )
        location_id = f"interest_{int(time.time() * 1000)}"
        existing = {loc.id for loc in settings.interestLocations}
        while location_id in existing:
            location_id += "_"
        interest = SavedLocation(
            id=location_id,
            name=name,
            address=address,
            coordinates=coordinates,
            type="interest",
            isActive=True,
            createdAt=_now_iso(),
        )
        interests = settings.interestLocations + [interest]
        self.save(settings.model_copy(update={"interestLocations": interests}))
        logger.info(f"Interest location added: {name} ({len(interests)}/{MAX_INTEREST_LOCATIONS})")
        return interest

    def remove(self, location_id: str) -> None:
        settings = self.get_settings()
        if location_id == HOME_ID:
            if settings.homeLocation is None:
                raise LocationNotFoundError(location_id)
            self.save(settings.model_copy(update={"homeLocation": None}))
            return
        remaining = [loc for loc in settings.interestLocations if loc.id != location_id]
        if len(remaining) == len(settings.interestLocations):
            raise LocationNotFoundError(location_id)
        self.save(settings.model_copy(update={"interestLocations": remaining}))

    def toggle_active(self, location_id: str) -> SavedLocation:
        settings = self.get_settings()
        if location_id == HOME_ID and settings.homeLocation is not None:
            home = settings.homeLocation.model_copy(
                update={"isActive": not settings.homeLocation.isActive}
            )
            self.save(settings.model_copy(update={"homeLocation": home}))
            return home

        toggled: Optional[SavedLocation] = None
        interests = []
        for loc in settings.interestLocations:
            if loc.id == location_id:
                loc = loc.model_copy(update={"isActive": not loc.isActive})
                toggled = loc
            interests.append(loc)
        if toggled is None:
            raise LocationNotFoundError(location_id)
        self.save(settings.model_copy(update={"interestLocations": interests}))
        return toggled

    def set_preferences(
        self,
        show_on_map: Optional[bool] = None,
        notifications_enabled: Optional[bool] = None,
    ) -> LocationSettings:
        update = {}
        if show_on_map is not None:
            update["showOnMap"] = show_on_map
        if notifications_enabled is not None:
            update["notificationsEnabled"] = notifications_enabled
        return self.save(self.get_settings().model_copy(update=update))

    def active_locations(self) -> list[SavedLocation]:
        """Active saved locations, home first."""
        settings = self.get_settings()
        locations = []
        if settings.homeLocation is not None and settings.homeLocation.isActive:
            locations.append(settings.homeLocation)
        locations.extend(loc for loc in settings.interestLocations if loc.isActive)
        return locations
