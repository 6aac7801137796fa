"""hypermem Memory System

Hypergraph memory for a persistent conversational bot: structural
extraction of memories from chat text, a guild-scoped SQLite graph store,
and a decay scheduler that ages and prunes memories.
"""

from hypermem.memory.models import (
    Node,
    Edge,
    Membership,
    MemberView,
    ExtractedEntity,
    ExtractedMemory,
    HyperedgeRequest,
    Tenant,
    DecayResult,
    TickReport,
)
from hypermem.memory.errors import (
    HypergraphError,
    InvalidMemoryError,
    TenantConfigError,
)
from hypermem.memory.extraction import (
    IncomingMessage,
    MentionedUser,
    MentionedChannel,
    MentionedRole,
    StructuralExtractor,
    extract_structural_memory,
    extract_keywords,
    create_memory_data,
)
from hypermem.memory.scoring import compute_urgency, should_prune
from hypermem.memory.store import HypergraphStore
from hypermem.memory.tenants import (
    TenantSource,
    StaticTenantSource,
    StoreTenantSource,
)
from hypermem.memory.timers import (
    Timer,
    AsyncioTimer,
    ManualTimer,
)
from hypermem.memory.decay import DecayScheduler
from hypermem.memory.recorder import MemoryRecorder

__all__ = [
    "Node",
    "Edge",
    "Membership",
    "MemberView",
    "ExtractedEntity",
    "ExtractedMemory",
    "HyperedgeRequest",
    "Tenant",
    "DecayResult",
    "TickReport",
    "HypergraphError",
    "InvalidMemoryError",
    "TenantConfigError",
    "IncomingMessage",
    "MentionedUser",
    "MentionedChannel",
    "MentionedRole",
    "StructuralExtractor",
    "extract_structural_memory",
    "extract_keywords",
    "create_memory_data",
    "compute_urgency",
    "should_prune",
    "HypergraphStore",
    "TenantSource",
    "StaticTenantSource",
    "StoreTenantSource",
    "Timer",
    "AsyncioTimer",
    "ManualTimer",
    "DecayScheduler",
    "MemoryRecorder",
]
