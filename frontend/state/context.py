"""
Sync Context

The single process-wide owner of the ResourceStore. Hands out query and
mutation bindings wired to DpdaApi calls and the invalidation graph.

LIFECYCLE:
==========
- Init: empty store
- Teardown: aclose() (or leaving `async with`) clears the store and
  closes the HTTP client

Bindings are cheap; build one per use.
"""

from __future__ import annotations
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Union
import logging

import httpx

from api.config import ClientConfig
from api.contracts import (
    AlphabetsConfig,
    ComputeResult,
    CreatedDpda,
    DpdaInfo,
    DpdaList,
    ExportFormat,
    ExportResult,
    StatesConfig,
    TransitionList,
    ValidationResult,
    VisualizationFormat,
    VisualizationPayload,
)
from api.endpoints import DpdaApi
from api.pipeline import RequestPipeline
from session.identity import IdentityProvider
from session.storage import select_store

from ..mapper import snapshot_from_payload
from ..visualization.controller import VisualizationController
from ..visualization.engine import NetworkXRenderEngine
from ..visualization.graph import VisualizationSnapshot
from .bindings import MutationBinding, QueryBinding
from .invalidation import MutationKind
from .keys import ResourceKind
from .store import ResourceStore


logger = logging.getLogger(__name__)


class SyncContext:
    """
    Process-wide sync context.

    Usage:
        async with SyncContext.from_config(ClientConfig.from_env()) as ctx:
            created = await ctx.create_dpda().mutate(CreateDpdaRequest(name="E"))
            info = await ctx.dpda(created.id).read()
    """

    def __init__(
        self,
        api: DpdaApi,
        store: Optional[ResourceStore] = None,
        layout_seed: int = 42,
        layout_iterations: int = 50,
    ):
        self._api = api
        self._store = store if store is not None else ResourceStore()
        self._layout_seed = layout_seed
        self._layout_iterations = layout_iterations
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        identity: Optional[IdentityProvider] = None,
    ) -> SyncContext:
        if identity is None:
            identity = IdentityProvider(select_store(config.session_file))
        pipeline = RequestPipeline.from_config(config, identity, transport=transport)
        return cls(
            DpdaApi(pipeline),
            layout_seed=config.layout_seed,
            layout_iterations=config.layout_iterations,
        )

    @property
    def api(self) -> DpdaApi:
        return self._api

    @property
    def store(self) -> ResourceStore:
        return self._store

    @property
    def identity(self) -> IdentityProvider:
        return self._api.pipeline.identity

    # =========================================================================
    # QUERIES
    # =========================================================================

    def dpda_list(self, enabled: Optional[bool] = None) -> QueryBinding[DpdaList]:
        return self._query(ResourceKind.ENTITY_LIST, None, self._api.list_dpdas, enabled)

    def dpda(self, dpda_id: Optional[str], enabled: Optional[bool] = None) -> QueryBinding[DpdaInfo]:
        return self._query(
            ResourceKind.ENTITY, dpda_id,
            lambda: self._api.get_dpda(dpda_id), enabled,
        )

    def states(self, dpda_id: Optional[str], enabled: Optional[bool] = None) -> QueryBinding[Optional[StatesConfig]]:
        async def fetch() -> Optional[StatesConfig]:
            info = await self._api.get_dpda(dpda_id)
            return info.states

        return self._query(ResourceKind.STATES, dpda_id, fetch, enabled)

    def alphabets(self, dpda_id: Optional[str], enabled: Optional[bool] = None) -> QueryBinding[Optional[AlphabetsConfig]]:
        async def fetch() -> Optional[AlphabetsConfig]:
            info = await self._api.get_dpda(dpda_id)
            return info.alphabets

        return self._query(ResourceKind.ALPHABETS, dpda_id, fetch, enabled)

    def transitions(self, dpda_id: Optional[str], enabled: Optional[bool] = None) -> QueryBinding[TransitionList]:
        return self._query(
            ResourceKind.TRANSITIONS, dpda_id,
            lambda: self._api.get_transitions(dpda_id), enabled,
        )

    def validation(self, dpda_id: Optional[str], enabled: Optional[bool] = None) -> QueryBinding[ValidationResult]:
        return self._query(
            ResourceKind.VALIDATION, dpda_id,
            lambda: self._api.validate(dpda_id), enabled,
        )

    def visualization(
        self,
        dpda_id: Optional[str],
        format: Union[VisualizationFormat, str] = VisualizationFormat.CYTOSCAPE,
        enabled: Optional[bool] = None,
    ) -> QueryBinding[VisualizationPayload]:
        fmt = VisualizationFormat(format)
        return self._query(
            ResourceKind.VISUALIZATION, dpda_id,
            lambda: self._api.visualize(dpda_id, fmt), enabled, format=fmt.value,
        )

    def export(
        self,
        dpda_id: Optional[str],
        format: Union[ExportFormat, str] = ExportFormat.JSON,
        enabled: Optional[bool] = None,
    ) -> QueryBinding[ExportResult]:
        fmt = ExportFormat(format)
        return self._query(
            ResourceKind.EXPORT, dpda_id,
            lambda: self._api.export(dpda_id, fmt), enabled, format=fmt.value,
        )

    def _query(
        self,
        kind: ResourceKind,
        dpda_id: Optional[str],
        fetcher: Callable[[], Awaitable[Any]],
        enabled: Optional[bool],
        format: Optional[str] = None,
    ) -> QueryBinding:
        key = None
        if not kind.policy.template.needs_entity or dpda_id:
            key = kind.key(dpda_id, format)
        return QueryBinding(self._store, kind, key, fetcher, enabled=enabled)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_dpda(self) -> MutationBinding[CreatedDpda]:
        def seed(created: CreatedDpda) -> None:
            self._store.set_data(
                ResourceKind.ENTITY.key(created.id),
                DpdaInfo.from_created(created),
                gc_time=ResourceKind.ENTITY.policy.gc_time,
            )

        return MutationBinding(
            self._store, MutationKind.CREATE_ENTITY, self._api.create_dpda,
            entity_of=lambda created: created.id,
            on_success=seed,
        )

    def delete_dpda(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.DELETE_ENTITY, self._api.delete_dpda, dpda_id)

    def update_dpda(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.UPDATE_ENTITY, self._api.update_dpda, dpda_id)

    def set_states(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.SET_STATES, self._api.set_states, dpda_id)

    def replace_states(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.REPLACE_STATES, self._api.replace_states, dpda_id)

    def patch_states(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.PATCH_STATES, self._api.patch_states, dpda_id)

    def set_alphabets(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.SET_ALPHABETS, self._api.set_alphabets, dpda_id)

    def replace_alphabets(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.REPLACE_ALPHABETS, self._api.replace_alphabets, dpda_id)

    def patch_alphabets(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.PATCH_ALPHABETS, self._api.patch_alphabets, dpda_id)

    def add_transition(self, dpda_id: str) -> MutationBinding:
        return self._mutation(MutationKind.ADD_TRANSITION, self._api.add_transition, dpda_id)

    def delete_transition(self, dpda_id: str) -> MutationBinding:
        """mutate(index): the index as the caller sees it right now."""
        return self._mutation(MutationKind.DELETE_TRANSITION, self._api.delete_transition, dpda_id)

    def update_transition(self, dpda_id: str) -> MutationBinding:
        """mutate(index, patch)"""
        return self._mutation(MutationKind.UPDATE_TRANSITION, self._api.update_transition, dpda_id)

    def compute(self, dpda_id: str) -> MutationBinding[ComputeResult]:
        return self._mutation(MutationKind.COMPUTE, self._api.compute, dpda_id)

    def _mutation(
        self,
        kind: MutationKind,
        write: Callable[..., Awaitable[Any]],
        dpda_id: str,
    ) -> MutationBinding:
        if not dpda_id:
            raise ValueError(f"{kind.value} requires a dpda id")
        return MutationBinding(self._store, kind, partial(write, dpda_id), entity_id=dpda_id)

    # =========================================================================
    # VISUALIZATION
    # =========================================================================

    def snapshot_loader(
        self,
        dpda_id: Optional[str],
        format: Union[VisualizationFormat, str] = VisualizationFormat.CYTOSCAPE,
    ) -> Callable[[], Awaitable[Optional[VisualizationSnapshot]]]:
        """Fetch function for VisualizationController.load()."""
        binding = self.visualization(dpda_id, format)

        async def load() -> Optional[VisualizationSnapshot]:
            return snapshot_from_payload(await binding.read())

        return load

    def visualization_controller(self) -> VisualizationController:
        return VisualizationController(
            engine_factory=partial(
                NetworkXRenderEngine,
                seed=self._layout_seed,
                iterations=self._layout_iterations,
            )
        )

    # =========================================================================
    # CACHE CONTROL
    # =========================================================================

    async def prefetch_dpda(self, dpda_id: str) -> None:
        await self.dpda(dpda_id).prefetch()

    async def prefetch_transitions(self, dpda_id: str) -> None:
        await self.transitions(dpda_id).prefetch()

    def invalidate_all_dpdas(self) -> int:
        touched = self._store.invalidate(ResourceKind.ENTITY_LIST.key())
        touched += self._store.invalidate(("dpda",))
        touched += self._store.invalidate(("transitions",))
        return touched

    def collect_garbage(self) -> int:
        removed = self._store.collect_garbage()
        if removed:
            logger.debug("Collected %d idle cache entries", removed)
        return removed

    # =========================================================================
    # SESSION
    # =========================================================================

    def reset_session(self) -> str:
        """New session identity. Cached data belonged to the old one."""
        session_id = self.identity.reset()
        self._store.clear()
        return session_id

    def import_session(self, session_id: str) -> None:
        self.identity.import_id(session_id)
        self._store.clear()

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store.clear()
        await self._api.aclose()

    async def __aenter__(self) -> SyncContext:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
