"""
Domain Events.

Domain events are records of significant business occurrences.
They are used for decoupling and eventual consistency.

A mutation collects ``HierarchyEvent`` drafts while it runs; the drafts
are persisted and fanned out only after the mutation transaction commits.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """
    Base class for all domain events.

    Domain events are immutable records of something that happened in the domain.
    They are used for:
    - Triggering side effects (notifications, recalculations)
    - Audit trail
    """

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__


# =============================================================================
# ACTIONS
# =============================================================================

class EventAction(str, Enum):
    """Kinds of mutation recorded in the event log."""

    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    PROJECT_RECALCULATED = "project_recalculated"

    LOT_CREATED = "lot_created"
    LOT_DELETED = "lot_deleted"

    # "gbloc" is the historical name of an ouvrage
    GBLOC_CREATED = "gbloc_created"
    GBLOC_UPDATED = "gbloc_updated"
    GBLOC_DELETED = "gbloc_deleted"
    GBLOC_DUPLICATED = "gbloc_duplicated"

    BLOC_CREATED = "bloc_created"
    BLOC_ATTACHED = "bloc_attached"
    BLOC_UPDATED = "bloc_updated"
    BLOC_DELETED = "bloc_deleted"

    ARTICLE_ADDED = "article_added"
    ARTICLE_UPDATED = "article_updated"
    ARTICLE_DELETED = "article_deleted"

    HIERARCHY_REORDERED = "hierarchy_reordered"

    @property
    def label(self) -> str:
        return ACTION_LABELS.get(self, self.value)

    @property
    def is_structural(self) -> bool:
        """Whether the action changes sibling occupancy (and so numbering)."""
        return self in STRUCTURAL_ACTIONS

    @property
    def is_mergeable(self) -> bool:
        return self in MERGEABLE_ACTIONS


ACTION_LABELS: Dict[EventAction, str] = {
    EventAction.PROJECT_CREATED: "Projet créé",
    EventAction.PROJECT_UPDATED: "Projet modifié",
    EventAction.PROJECT_DELETED: "Projet supprimé",
    EventAction.PROJECT_RECALCULATED: "Projet recalculé",
    EventAction.LOT_CREATED: "Lot créé",
    EventAction.LOT_DELETED: "Lot supprimé",
    EventAction.GBLOC_CREATED: "Ouvrage créé",
    EventAction.GBLOC_UPDATED: "Ouvrage modifié",
    EventAction.GBLOC_DELETED: "Ouvrage supprimé",
    EventAction.GBLOC_DUPLICATED: "Ouvrage dupliqué",
    EventAction.BLOC_CREATED: "Bloc créé",
    EventAction.BLOC_ATTACHED: "Bloc rattaché",
    EventAction.BLOC_UPDATED: "Bloc modifié",
    EventAction.BLOC_DELETED: "Bloc supprimé",
    EventAction.ARTICLE_ADDED: "Article ajouté",
    EventAction.ARTICLE_UPDATED: "Article modifié",
    EventAction.ARTICLE_DELETED: "Article supprimé",
    EventAction.HIERARCHY_REORDERED: "Ordre modifié",
}

STRUCTURAL_ACTIONS = frozenset({
    EventAction.LOT_CREATED,
    EventAction.LOT_DELETED,
    EventAction.GBLOC_CREATED,
    EventAction.GBLOC_DELETED,
    EventAction.GBLOC_DUPLICATED,
    EventAction.BLOC_CREATED,
    EventAction.BLOC_ATTACHED,
    EventAction.BLOC_DELETED,
    EventAction.ARTICLE_ADDED,
    EventAction.ARTICLE_DELETED,
    EventAction.HIERARCHY_REORDERED,
})

# Only project field updates collapse inside the merge window
MERGEABLE_ACTIONS = frozenset({
    EventAction.PROJECT_UPDATED,
})


# =============================================================================
# FIELD DIFFS
# =============================================================================

def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def sanitize_changes(changes: Optional[Dict[str, Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """
    Drop diff entries that carry no information.

    An entry is ``{"from": old, "to": new}``; it is dropped when ``new`` is
    empty or equal to ``old``.
    """
    cleaned = {}
    for name, change in (changes or {}).items():
        if not isinstance(change, dict):
            continue
        old, new = change.get("from"), change.get("to")
        if _is_empty(new) or old == new:
            continue
        cleaned[name] = {"from": old, "to": new}
    return cleaned


def merge_changes(
    previous: Dict[str, Dict[str, Any]],
    incoming: Dict[str, Dict[str, Any]],
) -> Dict[str, Dict[str, Any]]:
    """
    Fold ``incoming`` into ``previous``.

    The earliest ``from`` of every field is kept; fields that end up back at
    their original value disappear from the merged diff.
    """
    merged = {name: dict(change) for name, change in previous.items()}
    for name, change in incoming.items():
        if name in merged:
            merged[name]["to"] = change["to"]
        else:
            merged[name] = dict(change)
    return sanitize_changes(merged)


# =============================================================================
# HIERARCHY EVENTS
# =============================================================================

@dataclass(frozen=True)
class HierarchyEvent(DomainEvent):
    """
    Draft of one event-log row.

    Names of the ouvrage and bloc are captured while the mutation runs so
    the event keeps them after the nodes are renamed or deleted.
    ``recipients`` overrides audience computation when the project rows
    will be gone by the time the event is written (project deletion).
    """

    action: EventAction = EventAction.PROJECT_UPDATED
    actor_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    project_nom: Optional[str] = None
    lot: Optional[str] = None
    lot_id: Optional[int] = None
    ouvrage_id: Optional[int] = None
    ouvrage_nom: Optional[str] = None
    bloc_id: Optional[int] = None
    bloc_nom: Optional[str] = None
    article_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_system_event: bool = False
    recipients: Optional[Tuple[UUID, ...]] = None

    def as_system_event(self) -> HierarchyEvent:
        return replace(self, is_system_event=True)

    @property
    def changes(self) -> Dict[str, Dict[str, Any]]:
        return self.metadata.get("changes", {})

    @property
    def touches_designation(self) -> bool:
        """Structural actions, plus ouvrage edits that changed the designation."""
        if self.action.is_structural:
            return True
        if self.action in (EventAction.GBLOC_UPDATED, EventAction.BLOC_UPDATED):
            return "designation" in self.changes
        return False

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe form, for handing the draft to a worker."""
        return {
            "action": self.action.value,
            "actor_id": _str_or_none(self.actor_id),
            "project_id": _str_or_none(self.project_id),
            "project_nom": self.project_nom,
            "lot": self.lot,
            "lot_id": self.lot_id,
            "ouvrage_id": self.ouvrage_id,
            "ouvrage_nom": self.ouvrage_nom,
            "bloc_id": self.bloc_id,
            "bloc_nom": self.bloc_nom,
            "article_id": self.article_id,
            "metadata": self.metadata,
            "is_system_event": self.is_system_event,
            "recipients": None if self.recipients is None else [str(uid) for uid in self.recipients],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> HierarchyEvent:
        data = dict(payload)
        data["action"] = EventAction(data["action"])
        for name in ("actor_id", "project_id"):
            if data.get(name) is not None:
                data[name] = UUID(str(data[name]))
        if data.get("recipients") is not None:
            data["recipients"] = tuple(UUID(str(uid)) for uid in data["recipients"])
        return cls(**data)


def _str_or_none(value: Any) -> Optional[str]:
    return None if value is None else str(value)
