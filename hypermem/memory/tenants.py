"""Sources of the guild list the decay scheduler walks each tick."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Protocol, runtime_checkable

from loguru import logger

from hypermem.memory.models import Tenant

if TYPE_CHECKING:
    from hypermem.memory.store import HypergraphStore


@runtime_checkable
class TenantSource(Protocol):
    """Anything that can list the guilds currently served by the bot."""

    def list_active_tenants(self) -> list[Tenant]:
        ...


class StaticTenantSource:
    """
    A guild list kept in memory.

    The transport layer adds guilds as the bot joins them and removes them
    when it leaves.
    """

    def __init__(self, tenants: Iterable[Tenant | tuple[str, str] | str] = ()):
        self._tenants: dict[str, Tenant] = {}
        for tenant in tenants:
            self.add(tenant)

    def add(self, tenant: Tenant | tuple[str, str] | str) -> None:
        tenant = _coerce(tenant)
        self._tenants[tenant.id] = tenant
        logger.debug(f"Tenant registered: {tenant.display_name}")

    def remove(self, tenant_id: str) -> None:
        self._tenants.pop(tenant_id, None)

    def list_active_tenants(self) -> list[Tenant]:
        return list(self._tenants.values())


class StoreTenantSource:
    """Every guild the store holds data or config for."""

    def __init__(self, store: "HypergraphStore"):
        self.store = store

    def list_active_tenants(self) -> list[Tenant]:
        return [Tenant(id=tenant_id) for tenant_id in self.store.list_tenants()]


def _coerce(value: Tenant | tuple[str, str] | str) -> Tenant:
    if isinstance(value, Tenant):
        return value
    if isinstance(value, str):
        return Tenant(id=value)
    tenant_id, name = value
    return Tenant(id=tenant_id, name=name)
