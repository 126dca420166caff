"""
Report Cache -- tenant-scoped memo for generated reports.

Responsibility:
    Defines the ``ReportCache`` protocol the reporting service consumes
    (get / set / invalidate), the key convention, and an in-process,
    thread-safe default implementation.

Architecture position:
    Kernel > Services.  Injected per call context; there is no
    process-wide cache instance.

Invariants enforced:
    - Keys are ``report:{entity_id|all}:{kind}:{params}`` inside a tenant
      namespace, so differing parameters never collide and one tenant can
      never read another tenant's entries.
    - Any mutation of an entity's journal state clears both that entity's
      keys and the tenant's consolidated ("all") keys.

Audit relevance:
    The cache is an optimisation only.  Two concurrent misses may both
    recompute; generation is deterministic so the results are identical.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.logging_config import get_logger

logger = get_logger("services.report_cache")

KEY_PREFIX = "report"
CONSOLIDATED_SCOPE = "all"


@runtime_checkable
class ReportCache(Protocol):
    """Opaque tenant-scoped get/set/invalidate memo."""

    def get(self, tenant_id: UUID, key: str) -> Any | None: ...

    def set(self, tenant_id: UUID, key: str, value: Any) -> None: ...

    def invalidate(self, tenant_id: UUID, key_prefix: str | None = None) -> int: ...


def _format_param(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def entity_key_prefix(entity_id: UUID | None) -> str:
    """``report:{entity_id}:`` or ``report:all:`` for consolidated reports."""
    scope = CONSOLIDATED_SCOPE if entity_id is None else str(entity_id)
    return f"{KEY_PREFIX}:{scope}:"


def report_cache_key(
    entity_id: UUID | None, kind: str, params: Mapping[str, Any],
) -> str:
    """Build the cache key for one report request; params are sorted by name."""
    rendered = "|".join(
        f"{name}={_format_param(params[name])}" for name in sorted(params)
    )
    return f"{entity_key_prefix(entity_id)}{kind}:{rendered}"


def invalidate_entity_reports(cache: ReportCache, tenant_id: UUID, entity_id: UUID) -> int:
    """Drop every cached report that may include ``entity_id``'s journal."""
    removed = cache.invalidate(tenant_id, entity_key_prefix(entity_id))
    removed += cache.invalidate(tenant_id, entity_key_prefix(None))
    logger.info(
        "report_cache_invalidated",
        extra={
            "tenant_id": str(tenant_id),
            "entity_id": str(entity_id),
            "removed": removed,
        },
    )
    return removed


class InMemoryReportCache:
    """
    Dict-backed ReportCache guarded by a lock.

    Values are stored as given; reports are frozen dataclasses, so callers
    cannot mutate a cached entry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[UUID, dict[str, Any]] = {}

    def get(self, tenant_id: UUID, key: str) -> Any | None:
        with self._lock:
            return self._store.get(tenant_id, {}).get(key)

    def set(self, tenant_id: UUID, key: str, value: Any) -> None:
        with self._lock:
            self._store.setdefault(tenant_id, {})[key] = value

    def invalidate(self, tenant_id: UUID, key_prefix: str | None = None) -> int:
        """Remove the tenant's keys starting with ``key_prefix`` (all when None)."""
        with self._lock:
            entries = self._store.get(tenant_id)
            if not entries:
                return 0
            if key_prefix is None:
                removed = len(entries)
                entries.clear()
                return removed
            doomed = [key for key in entries if key.startswith(key_prefix)]
            for key in doomed:
                del entries[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._store.values())
