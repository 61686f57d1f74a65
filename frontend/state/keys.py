"""
Resource Keys and Cache Policies

Every cached resource is addressed by a tuple key resolved from a
template. Templates and freshness windows live in one table so the
invalidation graph and the bindings agree on key shapes.

KEY SHAPES:
===========
("dpdas",)                             entity list
("dpda", id)                           entity detail
("dpda", id, "states")                 states config
("dpda", id, "alphabets")              alphabets config
("transitions", id)                    whole transition list
("dpda", id, "validate")               validation result
("dpda", id, "visualize", format)      visualization payload
("dpda", id, "export", format)         export payload

Derived resources sit under ("dpda", id) so invalidating the entity
prefix also marks them stale. The transition list does not: it is
invalidated explicitly, as a whole, by transition writes.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Optional, Tuple


CacheKey = Tuple[Hashable, ...]

ENTITY_ID = "{id}"
FORMAT = "{format}"

MINUTE = 60.0


@dataclass(frozen=True)
class KeyTemplate:
    parts: Tuple[str, ...]

    @property
    def needs_entity(self) -> bool:
        return ENTITY_ID in self.parts

    def resolve(self, entity_id: Optional[str] = None, format: Optional[str] = None) -> CacheKey:
        """
        Fill placeholders.

        A missing format truncates the key at that point, which yields a
        prefix covering every format. A missing entity id is an error.
        """
        key = []
        for part in self.parts:
            if part == ENTITY_ID:
                if not entity_id:
                    raise ValueError(f"Key template {self.parts} requires an entity id")
                key.append(entity_id)
            elif part == FORMAT:
                if format is None:
                    break
                key.append(format)
            else:
                key.append(part)
        return tuple(key)


@dataclass(frozen=True)
class CachePolicy:
    """
    Freshness policy for one resource kind.

    stale_time None means fresh until invalidated (derived resources:
    same dependency, same session, same data).
    """
    template: KeyTemplate
    stale_time: Optional[float]
    gc_time: float


class ResourceKind(Enum):
    ENTITY_LIST = "entity_list"
    ENTITY = "entity"
    STATES = "states"
    ALPHABETS = "alphabets"
    TRANSITIONS = "transitions"
    VALIDATION = "validation"
    VISUALIZATION = "visualization"
    EXPORT = "export"

    @property
    def policy(self) -> CachePolicy:
        return CACHE_POLICIES[self]

    def key(self, entity_id: Optional[str] = None, format: Optional[str] = None) -> CacheKey:
        return self.policy.template.resolve(entity_id, format)


CACHE_POLICIES: Dict[ResourceKind, CachePolicy] = {
    ResourceKind.ENTITY_LIST: CachePolicy(
        template=KeyTemplate(("dpdas",)),
        stale_time=5 * MINUTE,
        gc_time=10 * MINUTE,
    ),
    ResourceKind.ENTITY: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID)),
        stale_time=5 * MINUTE,
        gc_time=10 * MINUTE,
    ),
    ResourceKind.STATES: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID, "states")),
        stale_time=5 * MINUTE,
        gc_time=10 * MINUTE,
    ),
    ResourceKind.ALPHABETS: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID, "alphabets")),
        stale_time=5 * MINUTE,
        gc_time=10 * MINUTE,
    ),
    # Edited often while authoring
    ResourceKind.TRANSITIONS: CachePolicy(
        template=KeyTemplate(("transitions", ENTITY_ID)),
        stale_time=2 * MINUTE,
        gc_time=5 * MINUTE,
    ),
    ResourceKind.VALIDATION: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID, "validate")),
        stale_time=None,
        gc_time=10 * MINUTE,
    ),
    ResourceKind.VISUALIZATION: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID, "visualize", FORMAT)),
        stale_time=None,
        gc_time=10 * MINUTE,
    ),
    ResourceKind.EXPORT: CachePolicy(
        template=KeyTemplate(("dpda", ENTITY_ID, "export", FORMAT)),
        stale_time=None,
        gc_time=10 * MINUTE,
    ),
}


def key_matches(key: CacheKey, pattern: CacheKey, exact: bool = False) -> bool:
    """Tuple-prefix match, or equality when exact."""
    if exact:
        return key == pattern
    return key[:len(pattern)] == pattern
