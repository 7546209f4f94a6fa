# =============================================================================
# aviation_core/models/kinds.py
# Entity Kind Registry - tables, indexes and pull policy per kind
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from aviation_core.models.entities import (
    ApproachDetail,
    Document,
    DutyDay,
    DutyLeg,
    Entity,
    LogbookEntry,
    Manual,
    Place,
    PlaceReview,
    StudyQuestion,
    StudySession,
    StudyTopic,
)


class EntityKind(Enum):
    """Logical tables held on the device."""
    DUTY_DAY = "duty_day"
    DUTY_LEG = "duty_leg"
    LOGBOOK_ENTRY = "logbook_entry"
    APPROACH_DETAIL = "approach_detail"
    STUDY_TOPIC = "study_topic"
    STUDY_QUESTION = "study_question"
    STUDY_SESSION = "study_session"
    MANUAL = "manual"
    PLACE = "place"
    PLACE_REVIEW = "place_review"
    DOCUMENT = "document"


@dataclass(frozen=True)
class PullPolicy:
    """How a kind is refreshed from the backend."""
    user_scoped: bool = False
    page_size: Optional[int] = None     # None = settings.pull_page_size


@dataclass(frozen=True)
class EntityDefinition:
    kind: EntityKind
    model: Type[Entity]
    table: str                          # same name locally and in Supabase
    indexed_fields: Tuple[str, ...]
    pull: Optional[PullPolicy] = None


ENTITY_DEFINITIONS: Dict[EntityKind, EntityDefinition] = {
    definition.kind: definition
    for definition in (
        EntityDefinition(
            EntityKind.DUTY_DAY, DutyDay, "duty_days",
            ("user_id", "date_local", "airline_id"),
            pull=PullPolicy(user_scoped=True, page_size=100),
        ),
        EntityDefinition(
            EntityKind.DUTY_LEG, DutyLeg, "duty_legs",
            ("duty_day_id",),
        ),
        EntityDefinition(
            EntityKind.LOGBOOK_ENTRY, LogbookEntry, "logbook_entries",
            ("user_id", "date", "duty_day_id"),
        ),
        EntityDefinition(
            EntityKind.APPROACH_DETAIL, ApproachDetail, "approach_details",
            ("logbook_entry_id",),
        ),
        EntityDefinition(
            EntityKind.STUDY_TOPIC, StudyTopic, "study_topics",
            ("user_id", "category"),
            pull=PullPolicy(),
        ),
        EntityDefinition(
            EntityKind.STUDY_QUESTION, StudyQuestion, "study_questions",
            ("topic_id",),
            pull=PullPolicy(),
        ),
        EntityDefinition(
            EntityKind.STUDY_SESSION, StudySession, "study_sessions",
            ("user_id", "topic_id"),
        ),
        EntityDefinition(
            EntityKind.MANUAL, Manual, "manuals",
            ("user_id", "category", "aircraft_type"),
        ),
        EntityDefinition(
            EntityKind.PLACE, Place, "places",
            ("user_id", "category"),
            pull=PullPolicy(page_size=200),
        ),
        EntityDefinition(
            EntityKind.PLACE_REVIEW, PlaceReview, "place_reviews",
            ("place_id", "user_id"),
        ),
        EntityDefinition(
            EntityKind.DOCUMENT, Document, "documents",
            ("user_id", "type", "expiry_date"),
            pull=PullPolicy(user_scoped=True),
        ),
    )
}


def get_definition(kind: EntityKind) -> EntityDefinition:
    """Registry lookup; accepts the enum or its string value."""
    return ENTITY_DEFINITIONS[EntityKind(kind)]


def pulled_kinds() -> Tuple[EntityKind, ...]:
    """Kinds refreshed by the pull phase, in registry order."""
    return tuple(kind for kind, definition in ENTITY_DEFINITIONS.items() if definition.pull is not None)
