"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DecayDefaults(Base):
    """Fallback decay parameters used when a guild has no value of its own."""
    decay_rate: float = 0.1                   # 10% decay per day
    importance_boost_on_access: float = 0.05
    min_urgency_threshold: float = 0.1
    prune_older_than_days: float = 30


class SchedulerConfig(Base):
    """Decay scheduler configuration."""
    enabled: bool = True
    interval_minutes: float = 60        # Hourly by default


class ExtractionConfig(Base):
    """Structural extraction configuration."""
    enabled: bool = True
    min_length: int = 3                 # Trimmed messages shorter than this are skipped
    max_keywords: int = 5


class HypergraphConfig(Base):
    """Per-guild hypergraph settings.

    Stored one row per guild in the ``hypergraph_config`` table. A guild
    without a row gets these defaults.
    """
    extraction_enabled: bool = True
    decay_rate: float = 0.1
    importance_boost_on_access: float = 0.05
    min_urgency_threshold: float = 0.1
    prune_older_than_days: float = 30
    max_memories_per_node: int = 100


class DecayConfig(Base):
    """Resolved decay parameters for one guild."""
    decay_rate: float = 0.1
    importance_boost_on_access: float = 0.05
    min_urgency_threshold: float = 0.1
    prune_older_than_days: float = 30

    @classmethod
    def from_mapping(
        cls,
        values: Optional[Mapping[str, Any] | BaseModel],
        defaults: Optional[DecayDefaults] = None,
    ) -> "DecayConfig":
        """Build a config from partial values, filling gaps from defaults.

        Accepts a plain mapping (camelCase or snake_case keys), any pydantic
        model, or None. Keys that are missing or set to None fall back to
        the defaults.
        """
        defaults = defaults or DecayDefaults()
        if values is None:
            data: dict[str, Any] = {}
        elif isinstance(values, BaseModel):
            data = values.model_dump()
        else:
            data = dict(values)

        resolved = {}
        for name in cls.model_fields:
            value = data.get(name)
            if value is None:
                value = data.get(to_camel(name))
            if value is None:
                value = getattr(defaults, name)
            resolved[name] = value
        return cls(**resolved)


class MemoryConfig(Base):
    """Memory system configuration."""
    enabled: bool = True
    db_path: str = "memory/hypergraph.db"   # Relative to workspace

    decay: DecayDefaults = Field(default_factory=DecayDefaults)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)


class LoggingConfig(Base):
    """Logging sinks configuration."""
    level: str = "INFO"
    log_file: str = ""                  # Defaults to ~/.hypermem/hypermem.log


class Config(BaseSettings):
    """Root configuration for hypermem."""
    workspace: str = "~/.hypermem/workspace"
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.workspace).expanduser()

    model_config = ConfigDict(
        env_prefix="HYPERMEM_",
        env_nested_delimiter="__"
    )
