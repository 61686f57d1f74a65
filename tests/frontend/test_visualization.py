"""
Visualization Lifecycle Tests
=============================

Tests for the payload mapper, the NetworkX render engine and the
lifecycle controller.

RELEASE CONTRACT VERIFICATION:
==============================
1. Every constructed engine is destroyed exactly once
2. No engine exists while LOADING or ERROR
3. A torn-down or superseded load constructs nothing
"""

import asyncio

import pytest

from api import VisualizationFormat, VisualizationPayload
from frontend.mapper import snapshot_from_payload
from frontend.visualization import (
    ControllerState,
    NetworkXRenderEngine,
    RenderEngine,
    SnapshotEdge,
    SnapshotNode,
    VisualizationController,
    VisualizationSnapshot,
)

from ..fixtures import FakeDpdaServer, cytoscape_payload, run_in_context
from .test_bindings import create_configured


def make_snapshot(node_count, edge_count):
    nodes = tuple(SnapshotNode(node_id=f"q{i}", label=f"q{i}", is_initial=(i == 0)) for i in range(node_count))
    edges = tuple(
        SnapshotEdge(edge_id=f"e{i}", source_id=f"q{i}", target_id=f"q{(i + 1) % node_count}", label="a")
        for i in range(edge_count)
    )
    return VisualizationSnapshot(nodes=nodes, edges=edges)


class RecordingEngine(RenderEngine):
    """Engine double that counts its own releases."""

    def __init__(self, snapshot):
        super().__init__(snapshot)
        self.releases = 0

    @property
    def view(self):
        return None

    def _release(self):
        self.releases += 1


class EngineLog:

    def __init__(self):
        self.engines = []

    def __call__(self, snapshot):
        engine = RecordingEngine(snapshot)
        self.engines.append(engine)
        return engine


def returning(snapshot):
    async def fetch():
        return snapshot
    return fetch


# =============================================================================
# MAPPER
# =============================================================================

class TestSnapshotMapper:

    def test_cytoscape_flat_elements(self):
        payload = VisualizationPayload.from_payload(
            cytoscape_payload(["q0", "q1"], [("q0", "q1", "0, $ → A$")])
        )

        snapshot = snapshot_from_payload(payload)

        assert snapshot.node_ids == ("q0", "q1")
        assert snapshot.edges[0].label == "0, $ → A$"

    def test_cytoscape_grouped_elements_and_classes(self):
        payload = VisualizationPayload(VisualizationFormat.CYTOSCAPE, {"elements": {
            "nodes": [
                {"data": {"id": "q0"}, "classes": "initial"},
                {"data": {"id": "q1"}, "classes": ["accept"]},
            ],
            "edges": [{"data": {"source": "q0", "target": "q1"}}],
        }})

        snapshot = snapshot_from_payload(payload)

        assert snapshot.nodes[0].is_initial
        assert snapshot.nodes[1].is_accept
        assert snapshot.nodes[1].label == "q1"
        assert snapshot.edges[0].edge_id == "q0->q1#0"

    def test_d3_index_endpoints(self):
        payload = VisualizationPayload(VisualizationFormat.D3, {
            "nodes": [{"id": "q0", "is_initial": True}, {"id": "q1", "is_accept": True}],
            "links": [{"source": 0, "target": 1, "label": "a"}, {"source": {"id": "q1"}, "target": "q1"}],
        })

        snapshot = snapshot_from_payload(payload)

        assert {(e.source_id, e.target_id) for e in snapshot.edges} == {("q0", "q1"), ("q1", "q1")}
        assert snapshot.nodes[0].is_initial and snapshot.nodes[1].is_accept

    def test_order_does_not_matter(self):
        a = snapshot_from_payload(VisualizationPayload.from_payload(
            cytoscape_payload(["q0", "q1", "q2"], [("q0", "q1", "a"), ("q1", "q2", "b")])
        ))
        b = snapshot_from_payload(VisualizationPayload.from_payload(
            cytoscape_payload(["q2", "q0", "q1"], [("q1", "q2", "b"), ("q0", "q1", "a")])
        ))
        # Edge ids follow payload order, so compare without them
        assert a.nodes == b.nodes
        assert [(e.source_id, e.target_id, e.label) for e in a.edges] == \
            [(e.source_id, e.target_id, e.label) for e in b.edges]

    @pytest.mark.parametrize("data", [{"elements": []}, {"elements": {"nodes": [], "edges": []}}, None])
    def test_empty_is_absent(self, data):
        assert snapshot_from_payload(VisualizationPayload(VisualizationFormat.CYTOSCAPE, data)) is None

    def test_absent_payload(self):
        assert snapshot_from_payload(None) is None

    def test_dot_not_mappable(self):
        with pytest.raises(ValueError):
            snapshot_from_payload(VisualizationPayload(VisualizationFormat.DOT, "digraph {}"))

    def test_node_without_id_rejected(self):
        with pytest.raises(ValueError):
            snapshot_from_payload(VisualizationPayload(VisualizationFormat.D3, {"nodes": [{"label": "x"}]}))


# =============================================================================
# ENGINE
# =============================================================================

class TestNetworkXRenderEngine:

    def test_layout_is_deterministic(self):
        snapshot = make_snapshot(4, 3)

        first = NetworkXRenderEngine(snapshot, seed=7).view
        second = NetworkXRenderEngine(snapshot, seed=7).view

        assert first == second

    def test_view_covers_snapshot(self):
        snapshot = make_snapshot(3, 2)

        view = NetworkXRenderEngine(snapshot).view

        assert [n.node_id for n in view.nodes] == ["q0", "q1", "q2"]
        assert len(view.edges) == 2
        assert view.nodes[0].is_initial
        assert all(isinstance(n.x, float) and isinstance(n.y, float) for n in view.nodes)

    def test_large_graph_layout(self):
        # 500+ nodes takes the sparse spring layout path
        snapshot = make_snapshot(520, 520)

        view = NetworkXRenderEngine(snapshot, iterations=5).view

        assert len(view.nodes) == 520
        assert len(view.edges) == 520

    def test_parallel_edges_and_loops_kept(self):
        snapshot = VisualizationSnapshot(
            nodes=(SnapshotNode("q0", "q0"), SnapshotNode("q1", "q1")),
            edges=(
                SnapshotEdge("e0", "q0", "q1", "a"),
                SnapshotEdge("e1", "q0", "q1", "b"),
                SnapshotEdge("e2", "q1", "q1", "c"),
            ),
        )

        engine = NetworkXRenderEngine(snapshot)

        assert engine.graph.number_of_edges() == 3
        assert [e.style for e in engine.view.edges] == ["solid", "solid", "loop"]

    def test_edge_to_unlisted_state(self):
        snapshot = VisualizationSnapshot(
            nodes=(SnapshotNode("q0", "q0"),),
            edges=(SnapshotEdge("e0", "q0", "qx", "a"),),
        )

        view = NetworkXRenderEngine(snapshot).view

        assert [n.node_id for n in view.nodes] == ["q0", "qx"]

    def test_destroy_once(self):
        engine = NetworkXRenderEngine(make_snapshot(2, 1))

        engine.destroy()

        assert engine.is_destroyed
        with pytest.raises(RuntimeError):
            engine.destroy()
        with pytest.raises(RuntimeError):
            engine.view


# =============================================================================
# CONTROLLER
# =============================================================================

class TestVisualizationController:

    def test_snapshot_sequence_construct_and_destroy_counts(self):
        log = EngineLog()
        controller = VisualizationController(engine_factory=log)
        observed = []

        def observing(snapshot):
            async def fetch():
                observed.append((controller.state, controller.engine))
                return snapshot
            return fetch

        async def scenario():
            await controller.load(observing(None))
            await controller.load(observing(make_snapshot(3, 2)))
            await controller.load(observing(make_snapshot(4, 3)))
            await controller.load(observing(None))

        asyncio.run(scenario())

        assert controller.constructed == 2
        assert controller.destroyed == 2
        assert [e.releases for e in log.engines] == [1, 1]
        assert controller.state is ControllerState.IDLE
        assert all(engine is None for state, engine in observed if state is ControllerState.LOADING)

    def test_rendered_keeps_engine_during_refetch(self):
        controller = VisualizationController(engine_factory=EngineLog())
        snapshot = make_snapshot(3, 2)
        states = []

        async def fetch_again():
            states.append(controller.state)
            return snapshot

        async def scenario():
            await controller.load(returning(snapshot))
            await controller.load(fetch_again)

        asyncio.run(scenario())

        assert states == [ControllerState.RENDERED]
        assert controller.constructed == 1
        assert controller.destroyed == 0

    def test_equal_snapshot_is_noop(self):
        controller = VisualizationController(engine_factory=EngineLog())

        controller.show(make_snapshot(3, 2))
        controller.show(make_snapshot(3, 2))

        assert controller.constructed == 1

    def test_changed_snapshot_destroys_before_rebuild(self):
        log = EngineLog()
        seen_at_construction = []

        def factory(snapshot):
            seen_at_construction.append([e.is_destroyed for e in log.engines])
            return log(snapshot)

        controller = VisualizationController(engine_factory=factory)
        controller.show(make_snapshot(3, 2))
        controller.show(make_snapshot(4, 3))

        assert seen_at_construction == [[], [True]]

    def test_fetch_failure(self):
        log = EngineLog()
        controller = VisualizationController(engine_factory=log)

        async def failing():
            raise RuntimeError("Visualization failed")

        async def scenario():
            await controller.load(returning(make_snapshot(3, 2)))
            return await controller.load(failing)

        state = asyncio.run(scenario())

        assert state is ControllerState.ERROR
        assert controller.message == "Visualization failed"
        assert controller.engine is None
        assert log.engines[0].releases == 1

    def test_no_automatic_retry(self):
        calls = []
        controller = VisualizationController(engine_factory=EngineLog())

        async def failing():
            calls.append(1)
            raise RuntimeError("down")

        asyncio.run(controller.load(failing))

        assert calls == [1]
        assert controller.constructed == 0

    def test_recovery_from_error(self):
        controller = VisualizationController(engine_factory=EngineLog())
        controller.fail("earlier failure")

        asyncio.run(controller.load(returning(make_snapshot(2, 1))))

        assert controller.state is ControllerState.RENDERED
        assert controller.message is None

    def test_close_during_fetch_constructs_nothing(self):
        controller = VisualizationController(engine_factory=EngineLog())

        async def scenario():
            gate = asyncio.Event()

            async def slow():
                await gate.wait()
                return make_snapshot(3, 2)

            pending = asyncio.ensure_future(controller.load(slow))
            await asyncio.sleep(0)
            controller.close()
            gate.set()
            await pending

        asyncio.run(scenario())

        assert controller.constructed == 0
        assert controller.state is ControllerState.IDLE

    def test_superseded_load_constructs_nothing(self):
        log = EngineLog()
        controller = VisualizationController(engine_factory=log)
        newer = make_snapshot(4, 3)

        async def scenario():
            gate = asyncio.Event()

            async def slow():
                await gate.wait()
                return make_snapshot(3, 2)

            older = asyncio.ensure_future(controller.load(slow))
            await asyncio.sleep(0)
            await controller.load(returning(newer))
            gate.set()
            await older

        asyncio.run(scenario())

        assert controller.constructed == 1
        assert log.engines[0].snapshot == newer

    def test_teardown_releases_exactly_once(self):
        log = EngineLog()

        async def scenario():
            async with VisualizationController(engine_factory=log) as controller:
                await controller.load(returning(make_snapshot(3, 2)))
            controller.close()
            return controller

        controller = asyncio.run(scenario())

        assert controller.destroyed == 1
        assert log.engines[0].releases == 1

    def test_teardown_on_error_exit(self):
        log = EngineLog()

        with pytest.raises(KeyError):
            with VisualizationController(engine_factory=log) as controller:
                controller.show(make_snapshot(3, 2))
                raise KeyError("view closed abnormally")

        assert log.engines[0].releases == 1

    def test_closed_controller_rejects_loads(self):
        controller = VisualizationController(engine_factory=EngineLog())
        controller.close()

        with pytest.raises(RuntimeError):
            controller.show(make_snapshot(2, 1))

    def test_factory_failure_is_error_state(self):
        def broken(snapshot):
            raise RuntimeError("no canvas")

        controller = VisualizationController(engine_factory=broken)

        with pytest.raises(RuntimeError):
            controller.show(make_snapshot(2, 1))

        assert controller.state is ControllerState.ERROR
        assert controller.constructed == 0


class TestVisualizationFromContext:

    def test_loader_renders_remote_graph(self):
        server = FakeDpdaServer()

        async def scenario(ctx):
            dpda_id = await create_configured(ctx)
            controller = ctx.visualization_controller()
            with controller:
                await controller.load(ctx.snapshot_loader(dpda_id))
                view = controller.view
            return controller, view

        controller, view = run_in_context(server, scenario)

        assert controller.constructed == controller.destroyed == 1
        assert [n.node_id for n in view.nodes] == ["q0", "q1", "q2"]
        assert len(view.edges) == 2
        accept = [n.node_id for n in view.nodes if n.is_accept]
        assert accept == ["q2"]

    def test_transition_write_leads_to_rebuild(self):
        server = FakeDpdaServer()

        async def scenario(ctx):
            dpda_id = await create_configured(ctx)
            controller = ctx.visualization_controller()
            async with controller:
                await controller.load(ctx.snapshot_loader(dpda_id))
                await controller.load(ctx.snapshot_loader(dpda_id))
                await ctx.delete_transition(dpda_id).mutate(1)
                await controller.load(ctx.snapshot_loader(dpda_id))
                edges = len(controller.view.edges)
            return dpda_id, controller, edges

        dpda_id, controller, edges = run_in_context(server, scenario)

        assert edges == 1
        assert controller.constructed == 2
        assert controller.destroyed == 2
        assert server.count("GET", f"/api/dpda/{dpda_id}/visualize") == 2
