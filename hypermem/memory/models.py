"""Data models for the hypergraph memory.

This module defines the stored graph records (nodes, hyperedges and their
memberships), the extraction artifacts handed to the store, and the
result records reported by the decay scheduler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

NODE_KINDS = frozenset({"user", "channel", "topic", "emotion", "event", "concept"})
EDGE_TYPES = frozenset({"conversation", "fact", "observation", "relationship"})
MEMBERSHIP_ROLES = frozenset({"participant", "subject", "location", "topic"})

# Channel used by document/RSS ingestion for guild-wide knowledge
INGESTION_CHANNEL_ID = "system-ingestion"


@dataclass
class Node:
    """An entity referenced by memories.

    Identity within a guild is ``(tenant_id, kind, external_id)``; the
    integer ``id`` is internal to the store.
    """
    id: int
    tenant_id: str
    external_id: str  # Discord snowflake for users/channels/roles, lower-cased keyword for topics
    kind: str  # "user", "channel", "topic", "emotion", "event", "concept"
    name: str

    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class MemberView:
    """A membership joined with the node it points to."""
    node_id: int
    external_id: str
    kind: str
    name: str
    role: str
    weight: float


@dataclass
class Edge:
    """A hyperedge: one memory linking any number of nodes.

    ``importance`` is fixed at creation. ``urgency`` starts equal to it and
    afterwards only moves through decay recomputation, with one exception:
    ``record_memory_access`` multiplies it by 1.1 (capped at 1.0) until the
    next decay pass recomputes it from ``access_count``.
    """
    id: int
    tenant_id: str
    channel_id: str
    edge_type: str  # "conversation", "fact", "observation", "relationship"
    summary: str
    importance: float
    urgency: float

    content: Optional[str] = None
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    source_message_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated by read queries that join memberships
    members: list[MemberView] = field(default_factory=list)

    def age_days(self, now: datetime) -> float:
        """Age of the memory in (fractional) days at ``now``."""
        if self.created_at is None:
            return 0.0
        return (now - self.created_at).total_seconds() / 86400.0


@dataclass
class Membership:
    """Join row between a hyperedge and a node."""
    edge_id: int
    node_id: int
    role: str  # "participant", "subject", "location", "topic"
    weight: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedEntity:
    """An entity found in a message, before it is resolved to a node."""
    kind: str
    external_id: str
    name: str
    role: str
    weight: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedMemory:
    """Candidate memory produced by the structural extractor."""
    summary: str
    edge_type: str
    importance: float
    entities: list[ExtractedEntity] = field(default_factory=list)
    content: Optional[str] = None


@dataclass
class HyperedgeRequest:
    """Everything the store needs to write one memory."""
    channel_id: str
    edge_type: str
    summary: str
    entities: list[ExtractedEntity]
    content: Optional[str] = None
    importance: float = 1.0
    source_message_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_extracted(
        cls,
        memory: ExtractedMemory,
        channel_id: str,
        source_message_id: Optional[str] = None,
    ) -> "HyperedgeRequest":
        return cls(
            channel_id=channel_id,
            edge_type=memory.edge_type,
            summary=memory.summary,
            content=memory.content,
            importance=memory.importance,
            source_message_id=source_message_id,
            entities=list(memory.entities),
        )


@dataclass
class Tenant:
    """A guild the scheduler should process."""
    id: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass
class DecayResult:
    """Counts from one guild's decay run."""
    tenant_id: str
    updated: int = 0
    pruned: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"updated": self.updated, "pruned": self.pruned}


@dataclass
class TickReport:
    """Aggregate outcome of one scheduler tick."""
    results: list[DecayResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)  # tenant id -> error message
    duration_ms: float = 0.0
    skipped: bool = False

    @property
    def total_updated(self) -> int:
        return sum(r.updated for r in self.results)

    @property
    def total_pruned(self) -> int:
        return sum(r.pruned for r in self.results)
