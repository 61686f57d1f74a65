"""
Invalidation Graph

Which cache keys each mutation touches on success, as inspectable data.

RULES:
======
- A failed mutation applies nothing
- Transition writes invalidate the WHOLE list; positions are only valid
  for the fetch that produced them, so a cached list is never patched
- Entity deletion purges (not just invalidates) every key scoped to it
- The entity prefix covers states, alphabets and the derived views
  (validation, visualization, export), since all of them follow the
  definition
- The list key is invalidated wherever validity may change, because the
  list shows is_valid
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .keys import CacheKey, ResourceKind
from .store import ResourceStore


class MutationKind(Enum):
    CREATE_ENTITY = "create_entity"
    DELETE_ENTITY = "delete_entity"
    UPDATE_ENTITY = "update_entity"
    SET_STATES = "set_states"
    REPLACE_STATES = "replace_states"
    PATCH_STATES = "patch_states"
    SET_ALPHABETS = "set_alphabets"
    REPLACE_ALPHABETS = "replace_alphabets"
    PATCH_ALPHABETS = "patch_alphabets"
    ADD_TRANSITION = "add_transition"
    DELETE_TRANSITION = "delete_transition"
    UPDATE_TRANSITION = "update_transition"
    COMPUTE = "compute"

    @property
    def is_positional(self) -> bool:
        return self in (MutationKind.DELETE_TRANSITION, MutationKind.UPDATE_TRANSITION)


class CacheAction(Enum):
    INVALIDATE = "invalidate"
    REMOVE = "remove"


@dataclass(frozen=True)
class InvalidationRule:
    """One key template a mutation touches. Prefix match unless exact."""
    kind: ResourceKind
    action: CacheAction = CacheAction.INVALIDATE
    exact: bool = False


@dataclass(frozen=True)
class ResolvedInvalidation:
    key: CacheKey
    action: CacheAction
    exact: bool


_LIST = InvalidationRule(ResourceKind.ENTITY_LIST, exact=True)
_ENTITY_TREE = InvalidationRule(ResourceKind.ENTITY)
_TRANSITIONS = InvalidationRule(ResourceKind.TRANSITIONS, exact=True)

_CONFIG_RULES = (_ENTITY_TREE, _LIST)
_TRANSITION_RULES = (_TRANSITIONS, _ENTITY_TREE, _LIST)


INVALIDATION_GRAPH: Dict[MutationKind, Tuple[InvalidationRule, ...]] = {
    MutationKind.CREATE_ENTITY: (_LIST,),
    MutationKind.DELETE_ENTITY: (
        _LIST,
        InvalidationRule(ResourceKind.ENTITY, CacheAction.REMOVE),
        InvalidationRule(ResourceKind.TRANSITIONS, CacheAction.REMOVE),
    ),
    MutationKind.UPDATE_ENTITY: (_ENTITY_TREE, _LIST),
    MutationKind.SET_STATES: _CONFIG_RULES,
    MutationKind.REPLACE_STATES: _CONFIG_RULES,
    MutationKind.PATCH_STATES: _CONFIG_RULES,
    MutationKind.SET_ALPHABETS: _CONFIG_RULES,
    MutationKind.REPLACE_ALPHABETS: _CONFIG_RULES,
    MutationKind.PATCH_ALPHABETS: _CONFIG_RULES,
    MutationKind.ADD_TRANSITION: _TRANSITION_RULES,
    MutationKind.DELETE_TRANSITION: _TRANSITION_RULES,
    MutationKind.UPDATE_TRANSITION: _TRANSITION_RULES,
    # A run may surface problems the last validation missed
    MutationKind.COMPUTE: (InvalidationRule(ResourceKind.VALIDATION, exact=True),),
}


def resolve(kind: MutationKind, entity_id: Optional[str]) -> Tuple[ResolvedInvalidation, ...]:
    """Concrete keys for one mutation against one entity."""
    resolved = []
    for rule in INVALIDATION_GRAPH[kind]:
        resolved.append(ResolvedInvalidation(
            key=rule.kind.key(entity_id),
            action=rule.action,
            exact=rule.exact,
        ))
    return tuple(resolved)


def apply_invalidations(
    store: ResourceStore,
    kind: MutationKind,
    entity_id: Optional[str],
) -> Tuple[ResolvedInvalidation, ...]:
    resolved = resolve(kind, entity_id)
    for item in resolved:
        if item.action is CacheAction.REMOVE:
            store.remove(item.key, exact=item.exact)
        else:
            store.invalidate(item.key, exact=item.exact)
    return resolved
