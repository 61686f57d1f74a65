"""
Render Engines
==============

A render engine owns the positioned graph built from one snapshot.
Constructing an engine acquires it; destroy() releases it.

LIFECYCLE:
==========
- One engine per snapshot. A changed snapshot means a new engine.
- destroy() runs exactly once per engine. A second call is a bug in the
  owner and raises.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Tuple
import logging

import networkx as nx

from .graph import GraphEdge, GraphNode, NetworkGraphView, VisualizationSnapshot


logger = logging.getLogger(__name__)


NODE_COLORS = {
    (False, False): "#9E9E9E",
    (True, False): "#4CAF50",
    (False, True): "#2196F3",
    (True, True): "#009688",
}

NODE_RADIUS = 20.0
ACCEPT_RADIUS = 24.0


class RenderEngine(ABC):
    """Resource-holding renderer for one VisualizationSnapshot."""

    def __init__(self, snapshot: VisualizationSnapshot):
        self._snapshot = snapshot
        self._destroyed = False

    @property
    def snapshot(self) -> VisualizationSnapshot:
        return self._snapshot

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    @abstractmethod
    def view(self) -> NetworkGraphView:
        """Positioned graph; unavailable after destroy()."""
        pass

    def destroy(self) -> None:
        if self._destroyed:
            raise RuntimeError(f"{type(self).__name__} already destroyed")
        self._destroyed = True
        self._release()

    @abstractmethod
    def _release(self) -> None:
        pass


class NetworkXRenderEngine(RenderEngine):
    """
    Force-directed layout over a NetworkX multigraph.

    Multiple edges between the same pair of states stay distinct, and
    self-loops are kept. The spring layout is seeded, so the same
    snapshot and seed always produce the same positions.
    """

    def __init__(
        self,
        snapshot: VisualizationSnapshot,
        seed: int = 42,
        iterations: int = 50,
        scale: float = 300.0,
    ):
        super().__init__(snapshot)
        self._graph = self._build_graph(snapshot)
        positions = nx.spring_layout(
            self._graph, seed=seed, iterations=iterations, scale=scale
        )
        self._view = self._build_view(snapshot, positions)
        logger.debug(
            "Laid out %d nodes and %d edges",
            self._graph.number_of_nodes(), self._graph.number_of_edges(),
        )

    @property
    def graph(self) -> nx.MultiDiGraph:
        return self._graph

    @property
    def view(self) -> NetworkGraphView:
        if self._destroyed:
            raise RuntimeError("Render engine was destroyed")
        return self._view

    def _build_graph(self, snapshot: VisualizationSnapshot) -> nx.MultiDiGraph:
        G = nx.MultiDiGraph()

        for node in snapshot.nodes:
            G.add_node(
                node.node_id,
                label=node.label,
                is_initial=node.is_initial,
                is_accept=node.is_accept,
            )

        for edge in snapshot.edges:
            # Edges may reference states the payload did not list
            G.add_edge(edge.source_id, edge.target_id, key=edge.edge_id, label=edge.label)

        return G

    def _build_view(
        self,
        snapshot: VisualizationSnapshot,
        positions: Dict[str, Tuple[float, float]],
    ) -> NetworkGraphView:
        nodes = []
        for node_id in sorted(self._graph.nodes):
            attrs = self._graph.nodes[node_id]
            is_initial = bool(attrs.get("is_initial", False))
            is_accept = bool(attrs.get("is_accept", False))
            x, y = positions[node_id]
            nodes.append(GraphNode(
                node_id=node_id,
                x=float(x),
                y=float(y),
                radius=ACCEPT_RADIUS if is_accept else NODE_RADIUS,
                color=NODE_COLORS[(is_initial, is_accept)],
                label=attrs.get("label", node_id),
                is_initial=is_initial,
                is_accept=is_accept,
            ))

        edges = tuple(
            GraphEdge(
                edge_id=edge.edge_id,
                source_id=edge.source_id,
                target_id=edge.target_id,
                thickness=1.5,
                style="loop" if edge.source_id == edge.target_id else "solid",
                label=edge.label or None,
            )
            for edge in snapshot.edges
        )

        view_id = f"dpda_graph_{len(nodes)}n_{len(edges)}e"
        return NetworkGraphView(view_id=view_id, nodes=tuple(nodes), edges=edges)

    def _release(self) -> None:
        self._graph.clear()
        logger.debug("Released render engine %s", self._view.view_id)
