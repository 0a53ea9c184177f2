"""Data models for the notelinks engine."""

import datetime
import os
import threading
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Collection, Dict, List

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite drops timezone information, so values read back from the
    database are naive and are assumed to be UTC.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc": date, ``T``,
        time, 6-digit microseconds and a 6-digit counter that separates
        IDs generated within the same microsecond.
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = utc_now()
        current_timestamp = int(now.timestamp() * 1_000_000)

        if current_timestamp == _last_timestamp:
            _counter += 1
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000
        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


class Note(BaseModel):
    """A note as supplied by the note store.

    ``outgoing_links`` is maintained by the caller after parsing the
    content; the engine never derives it on its own.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    title: str = Field(..., description="Display title, used as the link key")
    content: str = Field(default="", description="Raw note text")
    outgoing_links: List[str] = Field(
        default_factory=list, description="Ordered target titles this note links to"
    )
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is not blank."""
        if not v.strip():
            raise ValueError("Note ID cannot be empty")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    def links_to(self, title: str) -> bool:
        """Whether ``title`` appears in this note's outgoing links (exact match)."""
        return title in self.outgoing_links


class LinkOccurrence(BaseModel):
    """A single ``[[Target]]`` or ``[[Target|Display]]`` found in text.

    Offsets index into the scanned string; ``end_offset`` is exclusive.
    ``exists`` stays False until a resolution step checks the target
    against the live set of titles.
    """

    target_title: str
    display_text: str
    start_offset: int
    end_offset: int
    exists: bool = False

    model_config = {"validate_assignment": True}

    @property
    def span(self) -> tuple:
        return (self.start_offset, self.end_offset)


class LinkQuery(BaseModel):
    """An unfinished ``[[`` link being typed at the cursor."""

    start_offset: int = Field(..., description="Index of the opening [[")
    query: str = Field(..., description="Text typed between [[ and the cursor")

    model_config = {"frozen": True}


class GraphNode(BaseModel):
    """A graph node for one note.

    ``x``, ``y``, ``vx`` and ``vy`` belong to the layout animator; they
    start at zero and are not persisted.
    """

    id: str
    title: str
    connection_count: int = 0
    tags: List[str] = Field(default_factory=list)
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "connectionCount": self.connection_count,
            "tags": list(self.tags),
            "x": self.x,
            "y": self.y,
        }


class GraphEdge(BaseModel):
    """A directed edge; parallel edges are kept to preserve multiplicity."""

    source_id: str
    target_id: str

    model_config = {"frozen": True}

    def to_payload(self) -> Dict[str, str]:
        return {"sourceId": self.source_id, "targetId": self.target_id}


class GraphData(BaseModel):
    """Nodes and edges of the note graph, built fresh on every request."""

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> GraphNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def subgraph(self, node_ids: Collection[str]) -> "GraphData":
        """Nodes in ``node_ids`` and the edges running between them."""
        keep = set(node_ids)
        return GraphData(
            nodes=[node for node in self.nodes if node.id in keep],
            edges=[
                edge
                for edge in self.edges
                if edge.source_id in keep and edge.target_id in keep
            ],
        )

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        """Convert to the payload consumed by the visualization layer."""
        return {
            "nodes": [node.to_payload() for node in self.nodes],
            "edges": [edge.to_payload() for edge in self.edges],
        }


@dataclass
class PlannedUpdate:
    """One note rewrite computed by a rename cascade before any write."""

    note_id: str
    title: str
    updated_note: Note


@dataclass
class RenameResult:
    """Outcome of a rename cascade.

    Attributes:
        old_title: Title being replaced.
        new_title: Replacement title.
        planned_ids: IDs of every note that referenced the old title, in
            the order the updates were applied.
        succeeded_ids: IDs whose update was persisted.
        failed: Mapping of note ID to the error message of its failed update.
        skipped_ids: IDs not attempted because the cascade stopped early.
    """

    old_title: str
    new_title: str
    planned_ids: List[str] = field(default_factory=list)
    succeeded_ids: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped_ids: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every planned update was persisted."""
        return not self.failed and not self.skipped_ids

    @property
    def pending_ids(self) -> List[str]:
        """IDs that still reference the old title (failed or skipped)."""
        return list(self.failed) + list(self.skipped_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "old_title": self.old_title,
            "new_title": self.new_title,
            "planned_ids": list(self.planned_ids),
            "succeeded_ids": list(self.succeeded_ids),
            "failed": dict(self.failed),
            "skipped_ids": list(self.skipped_ids),
            "complete": self.complete,
        }
