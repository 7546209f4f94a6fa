# =============================================================================
# aviation_core/models/entities.py
# Domain Entities Stored Locally and Synced to Supabase
# =============================================================================
"""
One dataclass per entity kind.

Each class declares its domain columns as dataclass fields. Fields that exist
only on the device (nested children, computed aggregates) are listed in
``LOCAL_ONLY_FIELDS`` and are dropped by ``to_wire()``, which is the only
payload ever handed to the remote backend. Sync bookkeeping is not part of
these classes at all; it lives on ``LocalRecord``.
"""

from __future__ import annotations
from dataclasses import MISSING, asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

from aviation_core.errors import EntityDecodeError, LocalStoreError


class Entity:
    """Behaviour shared by every entity dataclass."""

    LOCAL_ONLY_FIELDS: Tuple[str, ...] = ()

    id: str

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def required_fields(cls) -> List[str]:
        return [
            f.name for f in fields(cls)
            if f.default is MISSING and f.default_factory is MISSING
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """
        Build an entity from a row dict, ignoring columns the class does not know.

        Raises:
            EntityDecodeError: if a required field is missing or null
        """
        missing = [name for name in cls.required_fields() if data.get(name) is None]
        if missing:
            raise EntityDecodeError(
                f"Cannot build {cls.__name__}: missing {', '.join(missing)}",
                kind=cls.__name__,
                missing=missing,
            )
        known = set(cls.field_names())
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """All fields, including local-only ones."""
        return asdict(self)

    def to_wire(self) -> Dict[str, Any]:
        """The payload sent to the remote backend."""
        data = asdict(self)
        for name in self.LOCAL_ONLY_FIELDS:
            data.pop(name, None)
        return data

    def replace(self, **changes):
        """Return a copy with ``changes`` applied; the id cannot change."""
        if "id" in changes and changes["id"] != self.id:
            raise LocalStoreError(
                f"Entity id is immutable ({self.id!r})",
                record_id=self.id,
            )
        data = asdict(self)
        data.update(changes)
        return type(self).from_dict(data)


# =============================================================================
# DUTY / ROSTER
# =============================================================================

@dataclass
class DutyDay(Entity):
    id: str
    user_id: str
    date_local: str
    airline_id: Optional[str] = None
    base_airport_code: Optional[str] = None
    checkin_time_utc: Optional[str] = None
    checkout_time_utc: Optional[str] = None
    timezone: Optional[str] = None
    status: str = "scheduled"           # scheduled | completed | cancelled
    source_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Local-only relations
    airline: Optional[Dict[str, Any]] = None
    legs: Optional[List[Dict[str, Any]]] = None

    LOCAL_ONLY_FIELDS = ("airline", "legs")


@dataclass
class DutyLeg(Entity):
    id: str
    duty_day_id: str
    flight_number: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    std_utc: Optional[str] = None
    sta_utc: Optional[str] = None
    block_off_utc: Optional[str] = None
    block_on_utc: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# =============================================================================
# LOGBOOK
# =============================================================================

@dataclass
class LogbookEntry(Entity):
    id: str
    user_id: str
    date: str
    duty_day_id: Optional[str] = None
    aircraft_type: Optional[str] = None
    registration: Optional[str] = None
    from_airport: Optional[str] = None
    to_airport: Optional[str] = None
    block_time_minutes: int = 0
    role: Optional[str] = None
    ifr_minutes: int = 0
    night_minutes: int = 0
    notes: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Local-only relation; approaches sync through their own table
    approach_details: Optional[List[Dict[str, Any]]] = None

    LOCAL_ONLY_FIELDS = ("approach_details",)


@dataclass
class ApproachDetail(Entity):
    id: str
    logbook_entry_id: str
    approach_type: str = "OTHER"        # ILS_CAT_I ... CIRCLING, OTHER
    other_description: Optional[str] = None
    conditions: str = "VMC"             # VMC | IMC
    time_of_day: str = "day"            # day | night
    outcome: str = "landing"            # landing | go_around | diversion
    stabilized: bool = True
    cfit_notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# =============================================================================
# STUDY
# =============================================================================

@dataclass
class StudyTopic(Entity):
    id: str
    name: str
    category: str
    user_id: Optional[str] = None
    aircraft_type: Optional[str] = None
    regulation: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Computed on device
    accuracy_percentage: Optional[float] = None

    LOCAL_ONLY_FIELDS = ("accuracy_percentage",)


@dataclass
class StudyQuestion(Entity):
    id: str
    topic_id: str
    text: str
    options: List[str] = field(default_factory=list)
    correct_index: int = 0
    explanation_base: str = ""
    difficulty: str = "medium"          # easy | medium | hard
    source_type: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class StudySession(Entity):
    id: str
    user_id: str
    topic_id: Optional[str] = None
    mode: str = "test"                  # test | flash | checkride
    total_questions: int = 0
    completed: bool = False
    score: float = 0
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Manual(Entity):
    id: str
    user_id: str
    name: str
    category: Optional[str] = None
    aircraft_type: Optional[str] = None
    airline: Optional[str] = None
    storage_path: Optional[str] = None
    available_offline: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# =============================================================================
# LAYOVER
# =============================================================================

@dataclass
class Place(Entity):
    id: str
    user_id: str
    name: str
    category: str = "other"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    price_range: Optional[str] = None   # $ .. $$$$
    recommended_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Computed on device
    average_rating: Optional[float] = None
    reviews: Optional[List[Dict[str, Any]]] = None

    LOCAL_ONLY_FIELDS = ("average_rating", "reviews")


@dataclass
class PlaceReview(Entity):
    id: str
    place_id: str
    user_id: str
    rating: int = 0
    text: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# =============================================================================
# DOCUMENTS
# =============================================================================

@dataclass
class Document(Entity):
    id: str
    user_id: str
    type: str                           # license | medical | passport | visa | ...
    name: str
    issuer: Optional[str] = None
    number: Optional[str] = None
    country: Optional[str] = None
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    attachment_path: Optional[str] = None
    notify_90: bool = True
    notify_60: bool = True
    notify_30: bool = True
    notify_7: bool = True
    notify_day: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
