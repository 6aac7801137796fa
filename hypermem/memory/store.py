"""SQLite storage layer for the hypergraph memory.

This module provides the HypergraphStore class which manages nodes,
hyperedges, memberships and per-guild hypergraph configuration using
SQLite with WAL mode. Every query is filtered by guild (tenant).
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from hypermem.config.schema import HypergraphConfig, MemoryConfig
from hypermem.memory.errors import InvalidMemoryError
from hypermem.memory.models import (
    EDGE_TYPES,
    INGESTION_CHANNEL_ID,
    MEMBERSHIP_ROLES,
    NODE_KINDS,
    Edge,
    ExtractedMemory,
    HyperedgeRequest,
    MemberView,
    Membership,
    Node,
)
from hypermem.memory.scoring import SECONDS_PER_DAY, clamp_unit, compute_urgency

# Edges loaded for prompt context must be at least this urgent
CONTEXT_MIN_URGENCY = 0.1


class HypergraphStore:
    """
    SQLite-based storage for the hypergraph memory.

    Uses WAL mode (Write-Ahead Logging) so readers (dashboard, context
    assembly) don't block the message handler's writes or the decay
    scheduler. One connection is shared and guarded by a re-entrant lock.
    """

    def __init__(self, config: MemoryConfig, workspace: Path):
        """
        Initialize the hypergraph store.

        Args:
            config: Memory system configuration
            workspace: Path to workspace directory
        """
        self.config = config
        self.workspace = workspace

        self.db_path = workspace / config.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Connection (created on first use)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        logger.info(f"HypergraphStore initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection with WAL mode."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row

            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            # Memberships cascade with their hyperedge
            self._conn.execute("PRAGMA foreign_keys=ON;")

            self._init_tables()

            logger.debug("Database connection established with WAL mode")

        return self._conn

    def _init_tables(self):
        """Create all required tables if they don't exist."""
        conn = self._conn

        # Nodes - entities referenced by memories
        conn.execute("""
            CREATE TABLE IF NOT EXISTS hyper_nodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                external_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                name TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL,
                UNIQUE (tenant_id, external_id, kind)
            )
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_nodes_tenant_kind ON hyper_nodes(tenant_id, kind);")

        # Hyperedges - one memory each
        conn.execute("""
            CREATE TABLE IF NOT EXISTS hyperedges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                channel_id TEXT NOT NULL,
                edge_type TEXT NOT NULL,
                summary TEXT NOT NULL,
                content TEXT,
                importance REAL NOT NULL,
                urgency REAL NOT NULL,
                access_count INTEGER NOT NULL DEFAULT 0,
                last_accessed_at REAL,
                source_message_id TEXT,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_tenant_urgency ON hyperedges(tenant_id, urgency);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_tenant_channel ON hyperedges(tenant_id, channel_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_created ON hyperedges(created_at);")

        # Memberships - n-ary join between hyperedges and nodes
        conn.execute("""
            CREATE TABLE IF NOT EXISTS hyperedge_memberships (
                hyperedge_id INTEGER NOT NULL,
                node_id INTEGER NOT NULL,
                role TEXT NOT NULL,
                weight REAL NOT NULL DEFAULT 1.0,
                metadata TEXT NOT NULL DEFAULT '{}',
                PRIMARY KEY (hyperedge_id, node_id, role),
                FOREIGN KEY (hyperedge_id) REFERENCES hyperedges(id) ON DELETE CASCADE,
                FOREIGN KEY (node_id) REFERENCES hyper_nodes(id)
            )
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_memberships_node ON hyperedge_memberships(node_id);")

        # Per-guild settings
        conn.execute("""
            CREATE TABLE IF NOT EXISTS hypergraph_config (
                tenant_id TEXT PRIMARY KEY,
                extraction_enabled INTEGER NOT NULL DEFAULT 1,
                decay_rate REAL NOT NULL DEFAULT 0.1,
                importance_boost_on_access REAL NOT NULL DEFAULT 0.05,
                min_urgency_threshold REAL NOT NULL DEFAULT 0.1,
                prune_older_than_days REAL NOT NULL DEFAULT 30,
                max_memories_per_node INTEGER NOT NULL DEFAULT 100,
                updated_at REAL
            )
        """)

        conn.commit()
        logger.debug("Hypergraph tables initialized")

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    # =========================================================================
    # Node Operations
    # =========================================================================

    def find_or_create_node(
        self,
        tenant_id: str,
        external_id: str,
        kind: str,
        name: str,
        metadata: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Find or create a node, refreshing its display name.

        An empty metadata map keeps whatever metadata the node already has.

        Returns:
            Internal node ID
        """
        with self._lock:
            conn = self._get_connection()
            try:
                node_id = self._upsert_node(conn, tenant_id, external_id, kind, name, metadata, now)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return node_id

    def _upsert_node(
        self,
        conn: sqlite3.Connection,
        tenant_id: str,
        external_id: str,
        kind: str,
        name: str,
        metadata: Optional[dict],
        now: Optional[datetime],
    ) -> int:
        if kind not in NODE_KINDS:
            raise InvalidMemoryError(f"Unknown node kind: {kind}")
        ts = _ts(now)
        conn.execute(
            """
            INSERT INTO hyper_nodes (tenant_id, external_id, kind, name, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (tenant_id, external_id, kind) DO UPDATE SET
                name = excluded.name,
                metadata = CASE WHEN excluded.metadata = '{}' THEN hyper_nodes.metadata ELSE excluded.metadata END,
                updated_at = excluded.updated_at
            """,
            (tenant_id, external_id, kind, name, json.dumps(metadata or {}), ts, ts)
        )
        row = conn.execute(
            "SELECT id FROM hyper_nodes WHERE tenant_id = ? AND external_id = ? AND kind = ?",
            (tenant_id, external_id, kind)
        ).fetchone()
        return row["id"]

    def get_node(self, node_id: int) -> Optional[Node]:
        """Retrieve a node by internal ID."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM hyper_nodes WHERE id = ?", (node_id,)
            ).fetchone()
        return self._row_to_node(row) if row else None

    def find_node(self, tenant_id: str, external_id: str, kind: str) -> Optional[Node]:
        """Find a node by its guild-scoped identity."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM hyper_nodes WHERE tenant_id = ? AND external_id = ? AND kind = ?",
                (tenant_id, external_id, kind)
            ).fetchone()
        return self._row_to_node(row) if row else None

    def get_nodes_by_type(self, tenant_id: str, kind: str) -> list[Node]:
        """Get nodes of one kind for a guild, newest first."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM hyper_nodes WHERE tenant_id = ? AND kind = ? ORDER BY created_at DESC, id DESC",
                (tenant_id, kind)
            ).fetchall()
        return [self._row_to_node(row) for row in rows]

    def get_all_nodes(self, tenant_id: str) -> list[Node]:
        """Get all nodes for a guild grouped by kind, newest first."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM hyper_nodes WHERE tenant_id = ? ORDER BY kind, created_at DESC, id DESC",
                (tenant_id,)
            ).fetchall()
        return [self._row_to_node(row) for row in rows]

    def _row_to_node(self, row: sqlite3.Row) -> Node:
        return Node(
            id=row["id"],
            tenant_id=row["tenant_id"],
            external_id=row["external_id"],
            kind=row["kind"],
            name=row["name"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    # =========================================================================
    # Hyperedge Operations
    # =========================================================================

    def create_hyperedge(
        self,
        tenant_id: str,
        request: HyperedgeRequest,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Create a hyperedge together with its member nodes and memberships.

        Node upserts, the edge row and every membership are written in one
        transaction; on any failure nothing is kept.

        Args:
            tenant_id: Guild that owns the memory
            request: Edge fields and the entities it links
            now: Creation time (defaults to the current time)

        Returns:
            The new hyperedge ID
        """
        if not request.entities:
            raise InvalidMemoryError("A hyperedge needs at least one member")
        if request.edge_type not in EDGE_TYPES:
            raise InvalidMemoryError(f"Unknown edge type: {request.edge_type}")
        for entity in request.entities:
            if entity.role not in MEMBERSHIP_ROLES:
                raise InvalidMemoryError(f"Unknown membership role: {entity.role}")
            if entity.kind not in NODE_KINDS:
                raise InvalidMemoryError(f"Unknown node kind: {entity.kind}")

        importance = clamp_unit(request.importance)
        ts = _ts(now)

        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO hyperedges (
                        tenant_id, channel_id, edge_type, summary, content,
                        importance, urgency, access_count, source_message_id,
                        metadata, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                    """,
                    (
                        tenant_id,
                        request.channel_id,
                        request.edge_type,
                        request.summary,
                        request.content,
                        importance,
                        importance,
                        request.source_message_id,
                        json.dumps(request.metadata or {}),
                        ts,
                        ts,
                    )
                )
                edge_id = cursor.lastrowid

                for entity in request.entities:
                    node_id = self._upsert_node(
                        conn, tenant_id, entity.external_id, entity.kind, entity.name, entity.metadata, now
                    )
                    conn.execute(
                        """
                        INSERT OR IGNORE INTO hyperedge_memberships (hyperedge_id, node_id, role, weight, metadata)
                        VALUES (?, ?, ?, ?, '{}')
                        """,
                        (edge_id, node_id, entity.role, entity.weight)
                    )

                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to create hyperedge for guild {tenant_id}: {e}")
                raise

        logger.info(f"Created hyperedge {edge_id}: {request.summary}")
        return edge_id

    def save_extracted_memory(
        self,
        tenant_id: str,
        channel_id: str,
        memory: ExtractedMemory,
        source_message_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Persist an extractor result as a hyperedge."""
        request = HyperedgeRequest.from_extracted(memory, channel_id, source_message_id)
        return self.create_hyperedge(tenant_id, request, now=now)

    def get_edge(self, edge_id: int) -> Optional[Edge]:
        """Retrieve a hyperedge with its members."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("SELECT * FROM hyperedges WHERE id = ?", (edge_id,)).fetchone()
            if not row:
                return None
            return self._with_members(conn, [self._row_to_edge(row)])[0]

    def get_members(self, edge_id: int) -> list[MemberView]:
        """Members of a hyperedge, heaviest first."""
        with self._lock:
            members = self._load_members(self._get_connection(), [edge_id])
        return members.get(edge_id, [])

    def get_memberships(self, edge_id: int) -> list[Membership]:
        """Raw membership rows of a hyperedge."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM hyperedge_memberships WHERE hyperedge_id = ? ORDER BY weight DESC",
                (edge_id,)
            ).fetchall()
        return [
            Membership(
                edge_id=row["hyperedge_id"],
                node_id=row["node_id"],
                role=row["role"],
                weight=row["weight"],
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            )
            for row in rows
        ]

    def list_edges(
        self,
        tenant_id: str,
        edge_type: Optional[str] = None,
        min_urgency: float = 0.0,
        limit: int = 100,
    ) -> list[Edge]:
        """List a guild's hyperedges, most urgent first."""
        sql = "SELECT * FROM hyperedges WHERE tenant_id = ? AND urgency >= ?"
        params: list[Any] = [tenant_id, min_urgency]
        if edge_type:
            sql += " AND edge_type = ?"
            params.append(edge_type)
        sql += " ORDER BY urgency DESC, id DESC LIMIT ?"
        params.append(limit)
        return self._query_edges(sql, params)

    def count_edges(self, tenant_id: str) -> int:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS n FROM hyperedges WHERE tenant_id = ?", (tenant_id,)
            ).fetchone()
        return row["n"]

    def query_memories_by_node(
        self,
        tenant_id: str,
        external_id: str,
        min_urgency: float = 0.1,
        limit: int = 20,
        kind: Optional[str] = None,
    ) -> list[Edge]:
        """
        Hyperedges that include a given node.

        Args:
            tenant_id: Guild ID
            external_id: External ID of the node (user ID, keyword, ...)
            min_urgency: Minimum urgency score
            limit: Max results
            kind: Optional node kind to disambiguate the external ID

        Returns:
            Hyperedges with members, most urgent first
        """
        sql = """
            SELECT e.* FROM hyperedges e
            WHERE e.tenant_id = ?
              AND e.urgency >= ?
              AND EXISTS (
                  SELECT 1 FROM hyperedge_memberships m
                  JOIN hyper_nodes n ON m.node_id = n.id
                  WHERE m.hyperedge_id = e.id AND n.external_id = ?{kind_filter}
              )
            ORDER BY e.urgency DESC, e.id DESC
            LIMIT ?
        """
        params: list[Any] = [tenant_id, min_urgency, external_id]
        if kind:
            sql = sql.format(kind_filter=" AND n.kind = ?")
            params.append(kind)
        else:
            sql = sql.format(kind_filter="")
        params.append(limit)
        return self._query_edges(sql, params)

    def get_channel_memories(
        self,
        tenant_id: str,
        channel_id: str,
        min_urgency: float = 0.0,
        limit: int = 50,
    ) -> list[Edge]:
        """Memories recorded in one channel, most urgent first."""
        return self._query_edges(
            """
            SELECT * FROM hyperedges
            WHERE tenant_id = ? AND channel_id = ? AND urgency >= ?
            ORDER BY urgency DESC, id DESC
            LIMIT ?
            """,
            [tenant_id, channel_id, min_urgency, limit]
        )

    def get_contextual_memories(
        self,
        tenant_id: str,
        channel_id: str,
        user_id: Optional[str],
        limit: int = 10,
    ) -> list[Edge]:
        """
        Memories for reply context, isolated to one channel.

        Memories involving the current user come first, then everything
        else in the channel by urgency.
        """
        return self._query_edges(
            """
            SELECT e.*,
                   EXISTS (
                       SELECT 1 FROM hyperedge_memberships m
                       JOIN hyper_nodes n ON m.node_id = n.id
                       WHERE m.hyperedge_id = e.id AND n.external_id = ?
                   ) AS involves_user
            FROM hyperedges e
            WHERE e.tenant_id = ? AND e.channel_id = ? AND e.urgency > ?
            ORDER BY involves_user DESC, e.urgency DESC, e.id DESC
            LIMIT ?
            """,
            [user_id, tenant_id, channel_id, CONTEXT_MIN_URGENCY, limit]
        )

    def get_user_facts(self, tenant_id: str, user_id: str, limit: int = 10) -> list[Edge]:
        """Facts about a user, shareable across the guild's channels."""
        return self._query_edges(
            """
            SELECT e.* FROM hyperedges e
            WHERE e.tenant_id = ?
              AND e.edge_type = 'fact'
              AND e.urgency > ?
              AND EXISTS (
                  SELECT 1 FROM hyperedge_memberships m
                  JOIN hyper_nodes n ON m.node_id = n.id
                  WHERE m.hyperedge_id = e.id AND n.external_id = ?
              )
            ORDER BY e.urgency DESC, e.id DESC
            LIMIT ?
            """,
            [tenant_id, CONTEXT_MIN_URGENCY, user_id, limit]
        )

    def get_global_knowledge(self, tenant_id: str, limit: int = 10) -> list[Edge]:
        """Guild-wide facts written by ingestion rather than by a user."""
        return self._query_edges(
            """
            SELECT * FROM hyperedges
            WHERE tenant_id = ? AND edge_type = 'fact' AND urgency > ? AND channel_id = ?
            ORDER BY urgency DESC, id DESC
            LIMIT ?
            """,
            [tenant_id, CONTEXT_MIN_URGENCY, INGESTION_CHANNEL_ID, limit]
        )

    def get_graph_data(
        self,
        tenant_id: str,
        channel_id: Optional[str] = None,
        limit: int = 100,
    ) -> dict[str, list]:
        """
        Hyperedges and the nodes they touch, for visualization.

        Edges are returned as native n-ary hyperedges with their members;
        flattening them into pairwise links is up to the consumer.

        Returns:
            Dict with 'nodes' (list of Node) and 'edges' (list of Edge)
        """
        sql = "SELECT * FROM hyperedges WHERE tenant_id = ?"
        params: list[Any] = [tenant_id]
        if channel_id:
            sql += " AND channel_id = ?"
            params.append(channel_id)
        sql += " ORDER BY urgency DESC, id DESC LIMIT ?"
        params.append(limit)

        edges = self._query_edges(sql, params)

        node_ids = sorted({m.node_id for edge in edges for m in edge.members})
        nodes: list[Node] = []
        if node_ids:
            placeholders = ",".join("?" for _ in node_ids)
            with self._lock:
                rows = self._get_connection().execute(
                    f"SELECT * FROM hyper_nodes WHERE id IN ({placeholders}) ORDER BY kind, name",
                    node_ids
                ).fetchall()
            nodes = [self._row_to_node(row) for row in rows]

        return {"nodes": nodes, "edges": edges}

    def record_memory_access(self, edge_id: int, now: Optional[datetime] = None) -> None:
        """Record that a memory was retrieved and nudge its urgency up."""
        ts = _ts(now)
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                UPDATE hyperedges
                SET access_count = access_count + 1,
                    last_accessed_at = ?,
                    urgency = MIN(urgency * 1.1, 1.0),
                    updated_at = ?
                WHERE id = ?
                """,
                (ts, ts, edge_id)
            )
            conn.commit()

    def _query_edges(self, sql: str, params: Iterable[Any]) -> list[Edge]:
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(sql, list(params)).fetchall()
            edges = [self._row_to_edge(row) for row in rows]
            return self._with_members(conn, edges)

    def _with_members(self, conn: sqlite3.Connection, edges: list[Edge]) -> list[Edge]:
        if not edges:
            return edges
        members = self._load_members(conn, [e.id for e in edges])
        for edge in edges:
            edge.members = members.get(edge.id, [])
        return edges

    def _load_members(self, conn: sqlite3.Connection, edge_ids: list[int]) -> dict[int, list[MemberView]]:
        placeholders = ",".join("?" for _ in edge_ids)
        rows = conn.execute(
            f"""
            SELECT m.hyperedge_id, m.role, m.weight, n.id AS node_id, n.external_id, n.kind, n.name
            FROM hyperedge_memberships m
            JOIN hyper_nodes n ON m.node_id = n.id
            WHERE m.hyperedge_id IN ({placeholders})
            ORDER BY m.weight DESC, n.id
            """,
            edge_ids
        ).fetchall()

        members: dict[int, list[MemberView]] = {}
        for row in rows:
            members.setdefault(row["hyperedge_id"], []).append(MemberView(
                node_id=row["node_id"],
                external_id=row["external_id"],
                kind=row["kind"],
                name=row["name"],
                role=row["role"],
                weight=row["weight"],
            ))
        return members

    def _row_to_edge(self, row: sqlite3.Row) -> Edge:
        return Edge(
            id=row["id"],
            tenant_id=row["tenant_id"],
            channel_id=row["channel_id"],
            edge_type=row["edge_type"],
            summary=row["summary"],
            content=row["content"],
            importance=row["importance"],
            urgency=row["urgency"],
            access_count=row["access_count"],
            last_accessed_at=_dt(row["last_accessed_at"]),
            source_message_id=row["source_message_id"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    # =========================================================================
    # Decay Operations
    # =========================================================================

    def update_memory_urgency(
        self,
        tenant_id: str,
        decay_rate: float = 0.1,
        access_boost: float = 0.05,
        now: Optional[datetime] = None,
    ) -> list[tuple[int, float]]:
        """
        Recompute urgency for every memory in a guild.

        urgency = importance * exp(-decay_rate * age_days) + access_count * access_boost

        Args:
            tenant_id: Guild ID
            decay_rate: Daily decay rate
            access_boost: Boost per recorded access
            now: Reference time (defaults to the current time)

        Returns:
            (edge id, new urgency) for each updated memory
        """
        now_ts = _ts(now)
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT id, importance, access_count, created_at FROM hyperedges WHERE tenant_id = ?",
                (tenant_id,)
            ).fetchall()

            updated = []
            for row in rows:
                age_days = (now_ts - row["created_at"]) / SECONDS_PER_DAY
                urgency = compute_urgency(
                    row["importance"], age_days, row["access_count"], decay_rate, access_boost
                )
                updated.append((row["id"], urgency))

            try:
                conn.executemany(
                    "UPDATE hyperedges SET urgency = ?, updated_at = ? WHERE id = ?",
                    [(urgency, now_ts, edge_id) for edge_id, urgency in updated]
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.debug(f"Recomputed urgency for {len(updated)} memories in guild {tenant_id}")
        return updated

    def prune_low_urgency_memories(
        self,
        tenant_id: str,
        min_urgency: float = 0.1,
        min_age_days: float = 30,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Delete memories that are both low-urgency and old.

        The WHERE clause is ``scoring.should_prune`` expressed in SQL.
        Memberships go with their hyperedge; nodes are left in place.

        Returns:
            Number of pruned memories
        """
        cutoff = _ts(now) - min_age_days * SECONDS_PER_DAY
        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "DELETE FROM hyperedges WHERE tenant_id = ? AND urgency < ? AND created_at < ?",
                    (tenant_id, min_urgency, cutoff)
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        pruned = cursor.rowcount
        logger.info(f"Pruned {pruned} memories from guild {tenant_id}")
        return pruned

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_hypergraph_stats(self, tenant_id: str) -> dict:
        """
        Hypergraph statistics for a guild.

        Returns:
            Dict with nodes_by_type, edges_by_type (with avg_urgency),
            top_entities, channels, total_nodes and total_edges
        """
        with self._lock:
            conn = self._get_connection()
            node_rows = conn.execute(
                """
                SELECT kind, COUNT(*) AS count FROM hyper_nodes
                WHERE tenant_id = ? GROUP BY kind ORDER BY count DESC
                """,
                (tenant_id,)
            ).fetchall()
            edge_rows = conn.execute(
                """
                SELECT edge_type, COUNT(*) AS count, AVG(urgency) AS avg_urgency FROM hyperedges
                WHERE tenant_id = ? GROUP BY edge_type ORDER BY count DESC
                """,
                (tenant_id,)
            ).fetchall()
            top_rows = conn.execute(
                """
                SELECT n.kind, n.name, COUNT(DISTINCT m.hyperedge_id) AS memory_count
                FROM hyper_nodes n
                JOIN hyperedge_memberships m ON n.id = m.node_id
                WHERE n.tenant_id = ?
                GROUP BY n.id
                ORDER BY memory_count DESC, n.name
                LIMIT 20
                """,
                (tenant_id,)
            ).fetchall()
            channel_rows = conn.execute(
                """
                SELECT channel_id, COUNT(*) AS count FROM hyperedges
                WHERE tenant_id = ? GROUP BY channel_id ORDER BY count DESC LIMIT 10
                """,
                (tenant_id,)
            ).fetchall()

        nodes_by_type = {row["kind"]: row["count"] for row in node_rows}
        edges_by_type = {
            row["edge_type"]: {"count": row["count"], "avg_urgency": row["avg_urgency"]}
            for row in edge_rows
        }
        return {
            "nodes_by_type": nodes_by_type,
            "edges_by_type": edges_by_type,
            "top_entities": [
                {"kind": row["kind"], "name": row["name"], "memory_count": row["memory_count"]}
                for row in top_rows
            ],
            "channels": [{"channel_id": row["channel_id"], "count": row["count"]} for row in channel_rows],
            "total_nodes": sum(nodes_by_type.values()),
            "total_edges": sum(v["count"] for v in edges_by_type.values()),
        }

    def list_tenants(self) -> list[str]:
        """Every guild that has graph data or a config row."""
        with self._lock:
            rows = self._get_connection().execute(
                """
                SELECT tenant_id FROM hyperedges
                UNION SELECT tenant_id FROM hyper_nodes
                UNION SELECT tenant_id FROM hypergraph_config
                ORDER BY tenant_id
                """
            ).fetchall()
        return [row["tenant_id"] for row in rows]

    # =========================================================================
    # Config Operations
    # =========================================================================

    def get_hypergraph_config(self, tenant_id: str) -> HypergraphConfig:
        """Hypergraph config for a guild (defaults when none is stored)."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM hypergraph_config WHERE tenant_id = ?", (tenant_id,)
            ).fetchone()

        if not row:
            return HypergraphConfig()

        return HypergraphConfig(
            extraction_enabled=bool(row["extraction_enabled"]),
            decay_rate=row["decay_rate"],
            importance_boost_on_access=row["importance_boost_on_access"],
            min_urgency_threshold=row["min_urgency_threshold"],
            prune_older_than_days=row["prune_older_than_days"],
            max_memories_per_node=row["max_memories_per_node"],
        )

    def update_hypergraph_config(
        self,
        tenant_id: str,
        values: Mapping[str, Any] | HypergraphConfig,
    ) -> HypergraphConfig:
        """
        Replace a guild's hypergraph config.

        Fields missing from ``values`` are reset to their defaults, not
        carried over from the previous row.
        """
        if isinstance(values, HypergraphConfig):
            config = values
        else:
            config = HypergraphConfig.model_validate(dict(values))

        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO hypergraph_config (
                    tenant_id, extraction_enabled, decay_rate, importance_boost_on_access,
                    min_urgency_threshold, prune_older_than_days, max_memories_per_node, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (tenant_id) DO UPDATE SET
                    extraction_enabled = excluded.extraction_enabled,
                    decay_rate = excluded.decay_rate,
                    importance_boost_on_access = excluded.importance_boost_on_access,
                    min_urgency_threshold = excluded.min_urgency_threshold,
                    prune_older_than_days = excluded.prune_older_than_days,
                    max_memories_per_node = excluded.max_memories_per_node,
                    updated_at = excluded.updated_at
                """,
                (
                    tenant_id,
                    int(config.extraction_enabled),
                    config.decay_rate,
                    config.importance_boost_on_access,
                    config.min_urgency_threshold,
                    config.prune_older_than_days,
                    config.max_memories_per_node,
                    _ts(None),
                )
            )
            conn.commit()

        logger.info(f"Hypergraph config updated for guild {tenant_id}")
        return config


def _ts(value: Optional[datetime]) -> float:
    return (value or datetime.now()).timestamp()


def _dt(value: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(value) if value is not None else None
