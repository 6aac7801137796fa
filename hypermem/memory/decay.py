"""Memory decay and pruning scheduler.

Background process that, for every active guild:
1. Recomputes memory urgency from age and access counts
2. Prunes memories that are both low-urgency and old

Uses exponential decay:
urgency = importance * exp(-decay_rate * age_days) + access_count * boost
"""

import inspect
import time
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from hypermem.config.schema import DecayConfig, DecayDefaults
from hypermem.memory.errors import TenantConfigError
from hypermem.memory.models import DecayResult, Tenant, TickReport
from hypermem.memory.store import HypergraphStore
from hypermem.memory.tenants import TenantSource
from hypermem.memory.timers import AsyncioTimer, Timer
from hypermem.metrics import (
    DECAY_LAST_TICK_MS,
    DECAY_PRUNED,
    DECAY_TENANT_FAILED,
    DECAY_UPDATED,
    get_metrics,
)

# tenant id -> partial decay settings (mapping, pydantic model or None); may be async
ConfigResolver = Callable[[str], Any]


class DecayScheduler:
    """
    Keeps per-guild urgency current and bounds graph size by eviction.

    Build one per process and hand it to whoever needs it (message handler,
    operator CLI). Each tick walks the guilds one after another; nothing is
    cached between calls, so a manual trigger can overlap a scheduled tick.
    """

    def __init__(
        self,
        store: HypergraphStore,
        tenant_source: Optional[TenantSource] = None,
        config_resolver: Optional[ConfigResolver] = None,
        timer: Optional[Timer] = None,
        clock: Callable[[], datetime] = datetime.now,
        defaults: Optional[DecayDefaults] = None,
    ):
        """
        Initialize the decay scheduler.

        Args:
            store: HypergraphStore that applies recomputation and pruning
            tenant_source: Lists the guilds to process (may be set later)
            config_resolver: Per-guild decay settings; defaults to the store's config table
            timer: Recurring timer; defaults to an asyncio-based one
            clock: Returns the current time
            defaults: Fallback values for settings a guild does not define
        """
        self.store = store
        self.tenant_source = tenant_source
        self.config_resolver = config_resolver or store.get_hypergraph_config
        self.timer = timer or AsyncioTimer()
        self.clock = clock
        self.defaults = defaults or DecayDefaults()

        self._running = False
        self._handle: Any = None
        # Bumped by every start and stop; a start only arms the timer if it is still current
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def set_tenant_source(self, tenant_source: TenantSource) -> None:
        """Attach the guild list once the transport is connected."""
        self.tenant_source = tenant_source

    async def start(self, interval_minutes: float = 60) -> None:
        """
        Run one decay pass now, then every ``interval_minutes``.

        Calling start on a running scheduler only logs a warning.
        """
        if self._running:
            logger.warning("Decay scheduler already running")
            return

        self._running = True
        self._generation += 1
        generation = self._generation
        logger.info(f"Starting memory decay scheduler (interval: {interval_minutes} minutes)")

        await self.tick()

        # stop() or a stop/start pair may have happened during the first tick
        if self._running and self._generation == generation and self._handle is None:
            self._handle = self.timer.schedule(interval_minutes * 60, self.tick)

    async def stop(self) -> None:
        """Cancel future ticks. An in-flight tick is left to finish."""
        if self._handle is not None:
            self.timer.cancel(self._handle)
            self._handle = None
        self._running = False
        self._generation += 1
        logger.info("Memory decay scheduler stopped")

    async def tick(self) -> TickReport:
        """
        Run the decay process for every active guild.

        A failure in one guild is logged and recorded in the report; the
        remaining guilds are still processed.
        """
        start = time.perf_counter()
        metrics = get_metrics()
        logger.info("Running memory decay process...")

        if self.tenant_source is None:
            logger.warning("Decay scheduler: no tenant source set, skipping decay run")
            return TickReport(skipped=True)

        report = TickReport()
        try:
            tenants = self.tenant_source.list_active_tenants()
        except Exception as e:
            logger.error(f"Memory decay process failed to list guilds: {e}")
            report.skipped = True
            return report

        for tenant in tenants:
            try:
                result = await self._run_for_tenant(tenant)
            except Exception as e:
                logger.error(f"Decay failed for guild {tenant.display_name}: {e}")
                report.failures[tenant.id] = str(e)
                metrics.incr(DECAY_TENANT_FAILED, tags={"tenant": tenant.id})
                continue

            report.results.append(result)
            metrics.incr(DECAY_UPDATED, result.updated)
            metrics.incr(DECAY_PRUNED, result.pruned)
            logger.info(
                f"Decay complete for {tenant.display_name}: {result.updated} updated, {result.pruned} pruned"
            )

        report.duration_ms = (time.perf_counter() - start) * 1000
        metrics.set_gauge(DECAY_LAST_TICK_MS, report.duration_ms)
        logger.info(
            f"Memory decay complete: {report.total_updated} updated, {report.total_pruned} pruned "
            f"({report.duration_ms:.0f}ms)"
        )
        return report

    async def trigger_for_guild(self, tenant_id: str) -> DecayResult:
        """
        Manually run decay for one guild.

        Errors are raised to the caller.

        Returns:
            DecayResult with updated and pruned counts
        """
        logger.info(f"Manual decay trigger for guild {tenant_id}")
        return await self._run_for_tenant(Tenant(id=tenant_id))

    async def get_guild_config(self, tenant_id: str) -> DecayConfig:
        """Decay settings for a guild, with defaults for anything unset."""
        raw = self.config_resolver(tenant_id)
        if inspect.isawaitable(raw):
            raw = await raw

        config = DecayConfig.from_mapping(raw, self.defaults)
        if config.decay_rate < 0:
            raise TenantConfigError(f"Negative decay rate for guild {tenant_id}: {config.decay_rate}")
        if config.prune_older_than_days < 0:
            raise TenantConfigError(
                f"Negative prune age for guild {tenant_id}: {config.prune_older_than_days}"
            )
        return config

    async def _run_for_tenant(self, tenant: Tenant) -> DecayResult:
        config = await self.get_guild_config(tenant.id)
        now = self.clock()

        updated = self.store.update_memory_urgency(
            tenant.id,
            decay_rate=config.decay_rate,
            access_boost=config.importance_boost_on_access,
            now=now,
        )
        pruned = self.store.prune_low_urgency_memories(
            tenant.id,
            min_urgency=config.min_urgency_threshold,
            min_age_days=config.prune_older_than_days,
            now=now,
        )
        return DecayResult(tenant_id=tenant.id, updated=len(updated), pruned=pruned or 0)
