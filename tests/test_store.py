"""Tests for the SQLite hypergraph store."""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from hypermem.config.schema import HypergraphConfig, MemoryConfig
from hypermem.memory.errors import InvalidMemoryError
from hypermem.memory.models import INGESTION_CHANNEL_ID, ExtractedEntity, ExtractedMemory, HyperedgeRequest
from hypermem.memory.scoring import should_prune
from hypermem.memory.store import HypergraphStore

BASE = datetime(2026, 7, 1, 12, 0, 0)


def user(external_id="100", name="Alice", weight=1.0):
    return ExtractedEntity(kind="user", external_id=external_id, name=name, role="participant", weight=weight)


def topic(keyword="pizza", weight=0.3):
    return ExtractedEntity(kind="topic", external_id=keyword, name=keyword, role="topic", weight=weight)


def make_request(
    summary="User likes pizza",
    edge_type="fact",
    importance=0.7,
    channel_id="chan-1",
    entities=None,
):
    return HyperedgeRequest(
        channel_id=channel_id,
        edge_type=edge_type,
        summary=summary,
        content=summary,
        importance=importance,
        entities=entities if entities is not None else [user(), topic()],
    )


@pytest.fixture
def store():
    """Create a HypergraphStore in a temporary workspace."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = MemoryConfig(db_path="memory/test.db")
        s = HypergraphStore(config, Path(tmpdir))
        yield s
        s.close()


class TestSchema:
    """Test database initialization."""

    def test_db_path_under_workspace(self, store):
        assert store.db_path == store.workspace / "memory" / "test.db"

    def test_tables_created_with_wal(self, store):
        conn = store._get_connection()

        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"hyper_nodes", "hyperedges", "hyperedge_memberships", "hypergraph_config"} <= tables

        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


class TestNodes:
    """Test node upserts."""

    def test_find_or_create_is_idempotent(self, store):
        first = store.find_or_create_node("guild-1", "100", "user", "Alice")
        second = store.find_or_create_node("guild-1", "100", "user", "Alice")

        assert first == second
        assert len(store.get_all_nodes("guild-1")) == 1

    def test_name_refreshed(self, store):
        node_id = store.find_or_create_node("guild-1", "100", "user", "Alice")
        store.find_or_create_node("guild-1", "100", "user", "Alice B.")

        assert store.get_node(node_id).name == "Alice B."

    def test_empty_metadata_keeps_existing(self, store):
        node_id = store.find_or_create_node("guild-1", "100", "user", "Alice", metadata={"tz": "UTC"})
        store.find_or_create_node("guild-1", "100", "user", "Alice", metadata={})

        assert store.get_node(node_id).metadata == {"tz": "UTC"}

        store.find_or_create_node("guild-1", "100", "user", "Alice", metadata={"tz": "CET"})
        assert store.get_node(node_id).metadata == {"tz": "CET"}

    def test_identity_includes_kind(self, store):
        """Test that the same external ID under two kinds gives two nodes."""
        a = store.find_or_create_node("guild-1", "42", "user", "Forty Two")
        b = store.find_or_create_node("guild-1", "42", "channel", "forty-two")

        assert a != b
        assert store.find_node("guild-1", "42", "channel").id == b

    def test_unknown_kind_rejected(self, store):
        with pytest.raises(InvalidMemoryError):
            store.find_or_create_node("guild-1", "x", "planet", "Mars")

    def test_get_nodes_by_type(self, store):
        store.find_or_create_node("guild-1", "100", "user", "Alice")
        store.find_or_create_node("guild-1", "pizza", "topic", "pizza")

        users = store.get_nodes_by_type("guild-1", "user")
        assert [n.external_id for n in users] == ["100"]


class TestCreateHyperedge:
    """Test hyperedge creation."""

    def test_urgency_starts_at_importance(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=0.7))
        edge = store.get_edge(edge_id)

        assert edge.importance == pytest.approx(0.7)
        assert edge.urgency == pytest.approx(0.7)
        assert edge.access_count == 0
        assert edge.last_accessed_at is None

    def test_members_attached(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request())
        members = store.get_members(edge_id)

        assert [(m.external_id, m.role, m.weight) for m in members] == [
            ("100", "participant", 1.0),
            ("pizza", "topic", 0.3),
        ]
        assert len(store.get_memberships(edge_id)) == 2

    def test_nodes_shared_between_edges(self, store):
        store.create_hyperedge("guild-1", make_request())
        store.create_hyperedge("guild-1", make_request(summary="Alice about pizza", edge_type="observation"))

        assert len(store.get_all_nodes("guild-1")) == 2
        assert store.count_edges("guild-1") == 2

    def test_importance_clamped(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=1.7))

        assert store.get_edge(edge_id).importance == 1.0

    def test_empty_entities_rejected(self, store):
        with pytest.raises(InvalidMemoryError):
            store.create_hyperedge("guild-1", make_request(entities=[]))
        assert store.count_edges("guild-1") == 0

    def test_unknown_edge_type_rejected(self, store):
        with pytest.raises(InvalidMemoryError):
            store.create_hyperedge("guild-1", make_request(edge_type="gossip"))

    def test_unknown_role_rejected(self, store):
        bad = ExtractedEntity(kind="user", external_id="1", name="A", role="spectator", weight=1.0)
        with pytest.raises(InvalidMemoryError):
            store.create_hyperedge("guild-1", make_request(entities=[bad]))

    def test_failed_write_leaves_nothing(self, store):
        """Test that a failure mid-write rolls back the edge and earlier nodes."""
        broken = ExtractedEntity(
            kind="topic", external_id="x", name="x", role="topic", weight=0.3, metadata={"bad": object()}
        )

        with pytest.raises(TypeError):
            store.create_hyperedge("guild-1", make_request(entities=[user(), broken]))

        assert store.count_edges("guild-1") == 0
        assert store.find_node("guild-1", "100", "user") is None

    def test_save_extracted_memory(self, store):
        memory = ExtractedMemory(
            summary="User likes pizza", edge_type="fact", importance=0.7,
            entities=[user(), topic()], content="I love pizza",
        )
        edge_id = store.save_extracted_memory("guild-1", "chan-1", memory, source_message_id="m-1")
        edge = store.get_edge(edge_id)

        assert edge.channel_id == "chan-1"
        assert edge.source_message_id == "m-1"
        assert edge.content == "I love pizza"


class TestTenancy:
    """Test guild isolation."""

    def test_same_external_id_distinct_per_guild(self, store):
        a = store.find_or_create_node("guild-1", "100", "user", "Alice")
        b = store.find_or_create_node("guild-2", "100", "user", "Alice")

        assert a != b

    def test_queries_scoped_to_guild(self, store):
        store.create_hyperedge("guild-1", make_request())

        assert store.query_memories_by_node("guild-2", "100") == []
        assert store.list_edges("guild-2") == []
        assert store.get_hypergraph_stats("guild-2")["total_edges"] == 0
        assert len(store.query_memories_by_node("guild-1", "100")) == 1

    def test_list_tenants(self, store):
        store.create_hyperedge("guild-b", make_request())
        store.update_hypergraph_config("guild-a", {})

        assert store.list_tenants() == ["guild-a", "guild-b"]


class TestReads:
    """Test retrieval queries."""

    def test_query_memories_by_node(self, store):
        high = store.create_hyperedge("guild-1", make_request(importance=0.9))
        low = store.create_hyperedge("guild-1", make_request(importance=0.05))
        store.create_hyperedge("guild-1", make_request(entities=[user("200", "Bob")]))

        edges = store.query_memories_by_node("guild-1", "100", min_urgency=0.1)
        assert [e.id for e in edges] == [high]

        edges = store.query_memories_by_node("guild-1", "100", min_urgency=0.0)
        assert [e.id for e in edges] == [high, low]

        assert store.query_memories_by_node("guild-1", "100", kind="topic") == []

    def test_channel_memories(self, store):
        in_channel = store.create_hyperedge("guild-1", make_request(channel_id="chan-1"))
        store.create_hyperedge("guild-1", make_request(channel_id="chan-2"))

        assert [e.id for e in store.get_channel_memories("guild-1", "chan-1")] == [in_channel]

    def test_contextual_memories_user_first(self, store):
        """Test that the user's memories come first and other channels are excluded."""
        mine = store.create_hyperedge("guild-1", make_request(importance=0.4))
        other = store.create_hyperedge(
            "guild-1", make_request(importance=0.9, entities=[user("200", "Bob"), topic("chess")])
        )
        store.create_hyperedge("guild-1", make_request(importance=0.05, entities=[user("300", "Cy")]))
        store.create_hyperedge("guild-1", make_request(importance=0.9, channel_id="chan-2"))

        edges = store.get_contextual_memories("guild-1", "chan-1", "100")
        assert [e.id for e in edges] == [mine, other]

    def test_user_facts_cross_channel(self, store):
        fact_a = store.create_hyperedge("guild-1", make_request(channel_id="chan-1"))
        fact_b = store.create_hyperedge("guild-1", make_request(channel_id="chan-2", importance=0.9))
        store.create_hyperedge("guild-1", make_request(edge_type="observation"))

        assert [e.id for e in store.get_user_facts("guild-1", "100")] == [fact_b, fact_a]

    def test_global_knowledge(self, store):
        ingested = store.create_hyperedge(
            "guild-1", make_request(channel_id=INGESTION_CHANNEL_ID, entities=[topic("rules")])
        )
        store.create_hyperedge("guild-1", make_request())

        assert [e.id for e in store.get_global_knowledge("guild-1")] == [ingested]

    def test_graph_data(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request())
        store.find_or_create_node("guild-1", "999", "user", "Lurker")

        data = store.get_graph_data("guild-1")

        assert [e.id for e in data["edges"]] == [edge_id]
        assert {n.external_id for n in data["nodes"]} == {"100", "pizza"}
        assert len(data["edges"][0].members) == 2

    def test_graph_data_empty(self, store):
        assert store.get_graph_data("guild-1") == {"nodes": [], "edges": []}

    def test_record_memory_access(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=0.5))

        store.record_memory_access(edge_id, now=BASE)
        edge = store.get_edge(edge_id)

        assert edge.access_count == 1
        assert edge.urgency == pytest.approx(0.55)
        assert edge.last_accessed_at == BASE

    def test_record_memory_access_capped(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=0.95))

        store.record_memory_access(edge_id)
        assert store.get_edge(edge_id).urgency == 1.0


class TestDecayOperations:
    """Test urgency recomputation and pruning."""

    def test_recompute_after_ten_days(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=0.8), now=BASE)

        updated = store.update_memory_urgency("guild-1", decay_rate=0.1, now=BASE + timedelta(days=10))

        assert len(updated) == 1
        assert store.get_edge(edge_id).urgency == pytest.approx(0.2943, abs=1e-4)

    def test_recompute_counts_access(self, store):
        edge_id = store.create_hyperedge("guild-1", make_request(importance=0.5), now=BASE)
        store.record_memory_access(edge_id, now=BASE)
        store.record_memory_access(edge_id, now=BASE)

        store.update_memory_urgency("guild-1", decay_rate=0.1, access_boost=0.05, now=BASE)

        assert store.get_edge(edge_id).urgency == pytest.approx(0.6)

    def test_recompute_idempotent(self, store):
        store.create_hyperedge("guild-1", make_request(importance=0.8), now=BASE)
        later = BASE + timedelta(days=3)

        first = store.update_memory_urgency("guild-1", now=later)
        second = store.update_memory_urgency("guild-1", now=later)

        assert [edge_id for edge_id, _ in first] == [edge_id for edge_id, _ in second]
        assert [u for _, u in first] == pytest.approx([u for _, u in second])

    def test_recompute_scoped_to_guild(self, store):
        other = store.create_hyperedge("guild-2", make_request(importance=0.8), now=BASE)

        assert store.update_memory_urgency("guild-1", now=BASE + timedelta(days=10)) == []
        assert store.get_edge(other).urgency == pytest.approx(0.8)

    def test_prune_requires_both_conditions(self, store):
        """Test that only low-urgency memories older than the cutoff are pruned."""
        old_low = store.create_hyperedge(
            "guild-1", make_request(importance=0.05), now=BASE - timedelta(days=31)
        )
        young_low = store.create_hyperedge(
            "guild-1", make_request(importance=0.05), now=BASE - timedelta(days=10)
        )
        old_high = store.create_hyperedge(
            "guild-1", make_request(importance=0.9), now=BASE - timedelta(days=31)
        )

        pruned = store.prune_low_urgency_memories("guild-1", min_urgency=0.1, min_age_days=30, now=BASE)

        assert pruned == 1
        assert store.get_edge(old_low) is None
        assert store.get_edge(young_low) is not None
        assert store.get_edge(old_high) is not None

    def test_prune_matches_should_prune(self, store):
        """Test that the SQL prune rule agrees with should_prune on every case."""
        cases = {}
        for importance in (0.02, 0.0999, 0.1, 0.5):
            for age in (5, 29, 31, 60):
                edge_id = store.create_hyperedge(
                    "guild-1", make_request(importance=importance), now=BASE - timedelta(days=age)
                )
                cases[edge_id] = should_prune(importance, age, min_urgency=0.1, min_age_days=30)

        pruned = store.prune_low_urgency_memories("guild-1", min_urgency=0.1, min_age_days=30, now=BASE)

        assert pruned == sum(cases.values())
        for edge_id, expected in cases.items():
            assert (store.get_edge(edge_id) is None) == expected

    def test_prune_cascades_memberships_keeps_nodes(self, store):
        edge_id = store.create_hyperedge(
            "guild-1", make_request(importance=0.01), now=BASE - timedelta(days=40)
        )

        store.prune_low_urgency_memories("guild-1", now=BASE)

        assert store.get_memberships(edge_id) == []
        assert store.find_node("guild-1", "100", "user") is not None


class TestStats:
    """Test analytics."""

    def test_stats(self, store):
        store.create_hyperedge("guild-1", make_request(importance=0.6))
        store.create_hyperedge("guild-1", make_request(importance=0.8))
        store.create_hyperedge(
            "guild-1",
            make_request(edge_type="observation", importance=0.3, channel_id="chan-2",
                         entities=[user(), user("200", "Bob")]),
        )

        stats = store.get_hypergraph_stats("guild-1")

        assert stats["total_nodes"] == 3
        assert stats["total_edges"] == 3
        assert stats["nodes_by_type"] == {"user": 2, "topic": 1}
        assert stats["edges_by_type"]["fact"]["count"] == 2
        assert stats["edges_by_type"]["fact"]["avg_urgency"] == pytest.approx(0.7)
        assert stats["top_entities"][0] == {"kind": "user", "name": "Alice", "memory_count": 3}
        assert stats["channels"][0] == {"channel_id": "chan-1", "count": 2}


class TestConfig:
    """Test per-guild hypergraph config."""

    def test_defaults_without_row(self, store):
        assert store.get_hypergraph_config("guild-1") == HypergraphConfig()

    def test_update_and_read_back(self, store):
        store.update_hypergraph_config(
            "guild-1", {"decayRate": 0.2, "extraction_enabled": False, "pruneOlderThanDays": 7}
        )
        config = store.get_hypergraph_config("guild-1")

        assert config.decay_rate == pytest.approx(0.2)
        assert config.extraction_enabled is False
        assert config.prune_older_than_days == 7

    def test_update_resets_unspecified_fields(self, store):
        store.update_hypergraph_config("guild-1", {"decay_rate": 0.5, "min_urgency_threshold": 0.3})
        store.update_hypergraph_config("guild-1", {"decay_rate": 0.4})

        config = store.get_hypergraph_config("guild-1")
        assert config.decay_rate == pytest.approx(0.4)
        assert config.min_urgency_threshold == pytest.approx(0.1)
