"""
Visualization Lifecycle Controller
==================================

Owns at most one render engine and rebuilds it when the snapshot changes.

STATES:
=======
IDLE      no data, no engine
LOADING   fetch in flight, no engine
ERROR     fetch failed, no engine
RENDERED  engine exists and reflects the current snapshot

RELEASE CONTRACT:
=================
Every engine is registered on an ExitStack the moment it is constructed.
Every exit from RENDERED closes the stack, so each engine is destroyed
exactly once, including on abnormal teardown.

A load superseded by a newer load, or outlived by close(), constructs
nothing when its fetch resolves.
"""

from __future__ import annotations
from contextlib import ExitStack
from enum import Enum
from typing import Awaitable, Callable, Optional
import asyncio
import logging

from .engine import NetworkXRenderEngine, RenderEngine
from .graph import NetworkGraphView, VisualizationSnapshot


logger = logging.getLogger(__name__)

EngineFactory = Callable[[VisualizationSnapshot], RenderEngine]
SnapshotFetch = Callable[[], Awaitable[Optional[VisualizationSnapshot]]]


class ControllerState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    RENDERED = "rendered"


class VisualizationController:
    """
    Drives one render engine from a stream of snapshots.

    Usage:
        async with VisualizationController() as controller:
            await controller.load(fetch_snapshot)
            view = controller.view
    """

    def __init__(self, engine_factory: EngineFactory = NetworkXRenderEngine):
        self._engine_factory = engine_factory
        self._state = ControllerState.IDLE
        self._engine: Optional[RenderEngine] = None
        self._snapshot: Optional[VisualizationSnapshot] = None
        self._guard = ExitStack()
        self._message: Optional[str] = None
        self._error: Optional[BaseException] = None
        self._load_token = 0
        self._closed = False
        self._constructed = 0
        self._destroyed = 0

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def engine(self) -> Optional[RenderEngine]:
        return self._engine

    @property
    def snapshot(self) -> Optional[VisualizationSnapshot]:
        return self._snapshot

    @property
    def view(self) -> Optional[NetworkGraphView]:
        return self._engine.view if self._engine is not None else None

    @property
    def message(self) -> Optional[str]:
        """Error message while in ERROR."""
        return self._message

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def constructed(self) -> int:
        return self._constructed

    @property
    def destroyed(self) -> int:
        return self._destroyed

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def load(self, fetch: SnapshotFetch) -> ControllerState:
        """
        Fetch a snapshot and render it.

        While RENDERED the current engine stays up during the fetch and is
        replaced only if the new snapshot differs. A failed fetch moves to
        ERROR; there is no retry.
        """
        self._ensure_open()
        self._load_token += 1
        token = self._load_token
        if self._state is not ControllerState.RENDERED:
            self._enter(ControllerState.LOADING)

        try:
            snapshot = await fetch()
        except asyncio.CancelledError:
            if token == self._load_token and self._state is ControllerState.LOADING:
                self._enter(ControllerState.IDLE)
            raise
        except Exception as e:
            if not self._is_current(token):
                logger.debug("Discarding failure of superseded visualization load")
                return self._state
            logger.error("Visualization fetch failed: %s", e)
            self._fail(str(e), e)
            return self._state

        if not self._is_current(token):
            logger.debug("Discarding superseded visualization snapshot")
            return self._state

        self._apply(snapshot)
        return self._state

    def show(self, snapshot: Optional[VisualizationSnapshot]) -> ControllerState:
        """Render a snapshot already in hand. Supersedes any pending load."""
        self._ensure_open()
        self._load_token += 1
        self._apply(snapshot)
        return self._state

    def fail(self, message: str) -> ControllerState:
        self._ensure_open()
        self._load_token += 1
        self._fail(message, None)
        return self._state

    def close(self) -> None:
        """Teardown. Releases the engine and cancels any pending construction."""
        if self._closed:
            return
        self._closed = True
        self._load_token += 1
        self._release()
        self._enter(ControllerState.IDLE)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _apply(self, snapshot: Optional[VisualizationSnapshot]) -> None:
        if snapshot is None or snapshot.is_empty:
            self._release()
            self._enter(ControllerState.IDLE)
            return

        if self._state is ControllerState.RENDERED and snapshot == self._snapshot:
            return

        # Element identity is not stable across snapshots: rebuild, never patch
        self._release()
        try:
            engine = self._engine_factory(snapshot)
        except Exception as e:
            self._fail(f"Failed to build graph: {e}", e)
            raise

        self._guard.callback(self._destroy_engine, engine)
        self._engine = engine
        self._snapshot = snapshot
        self._constructed += 1
        self._enter(ControllerState.RENDERED)
        logger.info(
            "Rendered visualization: %d nodes, %d edges",
            len(snapshot.nodes), len(snapshot.edges),
        )

    def _fail(self, message: str, error: Optional[BaseException]) -> None:
        self._release()
        self._enter(ControllerState.ERROR)
        self._message = message
        self._error = error

    def _release(self) -> None:
        self._guard.close()

    def _destroy_engine(self, engine: RenderEngine) -> None:
        try:
            engine.destroy()
        finally:
            self._destroyed += 1
            if self._engine is engine:
                self._engine = None
                self._snapshot = None

    def _enter(self, state: ControllerState) -> None:
        if state is not ControllerState.ERROR:
            self._message = None
            self._error = None
        if state is not self._state:
            logger.debug("Visualization %s -> %s", self._state.value, state.value)
        self._state = state

    def _is_current(self, token: int) -> bool:
        return token == self._load_token and not self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("VisualizationController is closed")

    # =========================================================================
    # SCOPE
    # =========================================================================

    def __enter__(self) -> VisualizationController:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def __aenter__(self) -> VisualizationController:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
