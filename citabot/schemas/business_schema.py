"""Business profile models and the snapshot source that reloads them."""

import json
import logging
import os
import threading
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _ProfileModel(BaseModel):
    """Immutable, camelCase-aliased base for profile sections."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Personality(_ProfileModel):
    tone: str = "friendly"  # formal | friendly | casual | custom
    custom_tone: str = ""
    additional_languages: tuple[str, ...] = ()


class DaySchedule(_ProfileModel):
    open: bool = False
    start: str = ""  # HH:MM
    end: str = ""  # HH:MM


class Schedule(_ProfileModel):
    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)
    timezone: str = ""


class Holiday(_ProfileModel):
    date: str  # YYYY-MM-DD
    name: str


class Service(_ProfileModel):
    title: str
    description: str = ""
    price_type: str = "normal"  # normal | promotion
    price: float = 0.0
    original_price: float = 0.0
    promo_price: float = 0.0

    @property
    def on_promotion(self) -> bool:
        return self.price_type == "promotion" and self.promo_price > 0


class Worker(_ProfileModel):
    name: str
    start_time: str = ""
    end_time: str = ""
    days: tuple[str, ...] = ()


class Location(_ProfileModel):
    address: str = ""
    number: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""
    between_streets: str = ""


class SocialMedia(_ProfileModel):
    facebook: str = ""
    instagram: str = ""
    twitter: str = ""
    linkedin: str = ""


class BusinessProfile(_ProfileModel):
    """Read-only description of the business the assistant represents."""

    agent_name: str = "nuestro negocio"
    business_type: str = "negocio"
    phone_number: str = ""
    personality: Personality = Field(default_factory=Personality)
    schedule: Schedule = Field(default_factory=Schedule)
    holidays: tuple[Holiday, ...] = ()
    services: tuple[Service, ...] = ()
    workers: tuple[Worker, ...] = ()
    location: Location = Field(default_factory=Location)
    social_media: SocialMedia = Field(default_factory=SocialMedia)

    @property
    def requires_worker(self) -> bool:
        """A worker must be chosen only when there is more than one."""
        return len(self.workers) > 1


def load_business_profile(path: str) -> BusinessProfile:
    """Read and validate a business profile JSON file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the JSON is malformed or fails validation.
    """
    with open(path, encoding="utf-8") as fh:
        raw = fh.read()
    try:
        return BusinessProfile.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Invalid business profile in {path}: {exc}") from exc


class BusinessProfileSource:
    """
    Hands out immutable profile snapshots, re-reading the file when it changes.

    The profile file is owned by an external process that rewrites it; each
    caller gets whatever snapshot was current when it asked. A profile that
    fails to load keeps the previous snapshot in place.
    """

    def __init__(self, path: Optional[str] = None, profile: Optional[BusinessProfile] = None) -> None:
        self._path = path
        self._profile = profile or BusinessProfile()
        self._mtime: Optional[float] = None
        self._lock = threading.Lock()

    @classmethod
    def static(cls, profile: BusinessProfile) -> "BusinessProfileSource":
        """A source that never reloads, for tests and the offline console."""
        return cls(path=None, profile=profile)

    def snapshot(self) -> BusinessProfile:
        if self._path is None:
            return self._profile
        with self._lock:
            try:
                mtime = os.path.getmtime(self._path)
            except OSError:
                if self._mtime is None:
                    logger.warning("Business profile not found at %s, using defaults", self._path)
                    self._mtime = -1.0
                return self._profile
            if mtime != self._mtime:
                try:
                    self._profile = load_business_profile(self._path)
                    logger.info("Business profile loaded from %s", self._path)
                except (OSError, ValueError):
                    logger.exception("Keeping previous business profile")
                self._mtime = mtime
            return self._profile
