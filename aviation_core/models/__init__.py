# =============================================================================
# aviation_core/models/__init__.py
# Domain entities and the entity-kind registry
# =============================================================================

from aviation_core.models.entities import (
    Entity,
    DutyDay,
    DutyLeg,
    LogbookEntry,
    ApproachDetail,
    StudyTopic,
    StudyQuestion,
    StudySession,
    Manual,
    Place,
    PlaceReview,
    Document,
)

from aviation_core.models.kinds import (
    EntityKind,
    EntityDefinition,
    PullPolicy,
    ENTITY_DEFINITIONS,
    get_definition,
    pulled_kinds,
)

from aviation_core.models.records import LocalRecord

__all__ = [
    # Entities
    "Entity",
    "DutyDay",
    "DutyLeg",
    "LogbookEntry",
    "ApproachDetail",
    "StudyTopic",
    "StudyQuestion",
    "StudySession",
    "Manual",
    "Place",
    "PlaceReview",
    "Document",
    # Registry
    "EntityKind",
    "EntityDefinition",
    "PullPolicy",
    "ENTITY_DEFINITIONS",
    "get_definition",
    "pulled_kinds",
    # Storage wrapper
    "LocalRecord",
]
