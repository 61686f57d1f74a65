"""
State Layer

Responsibility:
Cache remote DPDA resources and keep them consistent with writes.

PRINCIPLES:
1. Writes are authoritative, cached reads are advisory
2. Invalidate, never patch
3. One explicit store per SyncContext, no module-level cache
"""

from .keys import (
    CacheKey, CachePolicy, KeyTemplate, ResourceKind, CACHE_POLICIES, key_matches
)
from .store import (
    CacheClearedError, CacheEntry, FetchStatus, ResourceStore
)
from .invalidation import (
    CacheAction, InvalidationRule, MutationKind, ResolvedInvalidation,
    INVALIDATION_GRAPH, apply_invalidations, resolve
)
from .bindings import (
    MutationBinding, MutationStatus, QueryBinding
)
from .context import SyncContext

__all__ = [
    'CacheKey', 'CachePolicy', 'KeyTemplate', 'ResourceKind', 'CACHE_POLICIES', 'key_matches',
    'CacheClearedError', 'CacheEntry', 'FetchStatus', 'ResourceStore',
    'CacheAction', 'InvalidationRule', 'MutationKind', 'ResolvedInvalidation',
    'INVALIDATION_GRAPH', 'apply_invalidations', 'resolve',
    'MutationBinding', 'MutationStatus', 'QueryBinding',
    'SyncContext',
]
