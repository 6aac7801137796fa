"""Tests for the hypermem CLI."""

import json
import tempfile
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from hypermem import __version__
from hypermem.cli.main import app
from hypermem.config.schema import MemoryConfig
from hypermem.memory.models import ExtractedEntity, HyperedgeRequest
from hypermem.memory.store import HypergraphStore

runner = CliRunner()


@pytest.fixture
def workspace(monkeypatch):
    """Point the CLI at a config whose workspace and log file live in a temp dir."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        config_path = root / "config.json"
        config_path.write_text(json.dumps({
            "workspace": str(root / "workspace"),
            "logging": {"level": "WARNING", "logFile": str(root / "hypermem.log")},
        }))
        monkeypatch.setenv("HYPERMEM_CONFIG", str(config_path))
        yield root / "workspace"
        logger.remove()


def open_store(workspace: Path) -> HypergraphStore:
    workspace.mkdir(parents=True, exist_ok=True)
    return HypergraphStore(MemoryConfig(), workspace)


def seed_memory(workspace: Path, importance: float = 0.7) -> int:
    with open_store(workspace) as store:
        return store.create_hyperedge("guild-1", HyperedgeRequest(
            channel_id="chan-1",
            edge_type="fact",
            summary="User likes pizza",
            importance=importance,
            entities=[
                ExtractedEntity(kind="user", external_id="100", name="Alice", role="participant", weight=1.0),
                ExtractedEntity(kind="topic", external_id="pizza", name="pizza", role="topic", weight=0.3),
            ],
        ))


class TestCli:
    """Test top-level commands."""

    def test_version(self, workspace):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_extract_fact(self, workspace):
        result = runner.invoke(app, ["extract", "I love pizza", "--author", "Alice"])

        assert result.exit_code == 0
        assert "User likes pizza" in result.output
        assert "0.70" in result.output

    def test_extract_nothing(self, workspace):
        result = runner.invoke(app, ["extract", "hi"])

        assert result.exit_code == 0
        assert "Nothing worth remembering" in result.output


class TestMemoryCommands:
    """Test `hypermem memory` commands."""

    def test_stats(self, workspace):
        seed_memory(workspace)

        result = runner.invoke(app, ["memory", "stats", "guild-1"])

        assert result.exit_code == 0
        assert "Memories: 1" in result.output
        assert "Alice" in result.output

    def test_nodes(self, workspace):
        seed_memory(workspace)

        result = runner.invoke(app, ["memory", "nodes", "guild-1", "--type", "topic"])

        assert result.exit_code == 0
        assert "pizza" in result.output
        assert "Alice" not in result.output

    def test_list_by_node(self, workspace):
        seed_memory(workspace)

        result = runner.invoke(app, ["memory", "list", "guild-1", "--node", "100"])

        assert result.exit_code == 0
        assert "User likes pizza" in result.output

    def test_list_requires_filter(self, workspace):
        result = runner.invoke(app, ["memory", "list", "guild-1"])

        assert result.exit_code == 2

    def test_decay(self, workspace):
        seed_memory(workspace)

        result = runner.invoke(app, ["memory", "decay", "guild-1"])

        assert result.exit_code == 0
        assert "1 updated, 0 pruned" in result.output

    def test_config_set(self, workspace):
        result = runner.invoke(app, ["memory", "config", "guild-1", "--set", "decayRate=0.2"])

        assert result.exit_code == 0
        assert "Config updated" in result.output

        with open_store(workspace) as store:
            config = store.get_hypergraph_config("guild-1")
        assert config.decay_rate == pytest.approx(0.2)

    def test_config_set_rejects_bad_value(self, workspace):
        result = runner.invoke(app, ["memory", "config", "guild-1", "--set", "decayRate=fast"])

        assert result.exit_code == 1
