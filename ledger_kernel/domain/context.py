"""Per-call tenant/user context injected into every selector and service."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class TenantContext:
    """Who is calling, and on behalf of which tenant."""

    tenant_id: UUID
    user_id: UUID
