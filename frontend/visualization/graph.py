"""
Graph Visualization Contracts

Responsibility:
Render-engine-agnostic snapshot of a DPDA graph, and the positioned view
a render engine produces from it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class SnapshotNode:
    """State node as delivered by the remote visualization payload."""
    node_id: str
    label: str
    is_initial: bool = False
    is_accept: bool = False


@dataclass(frozen=True)
class SnapshotEdge:
    """Labeled directed edge (one transition, or several merged by the server)."""
    edge_id: str
    source_id: str
    target_id: str
    label: str = ""


@dataclass(frozen=True)
class VisualizationSnapshot:
    """
    Structural graph snapshot.

    Nodes and edges are sorted at construction, so equality is
    structural and independent of payload order.
    """
    nodes: Tuple[SnapshotNode, ...]
    edges: Tuple[SnapshotEdge, ...]

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(sorted(self.nodes, key=lambda n: n.node_id)))
        object.__setattr__(self, "edges", tuple(sorted(
            self.edges, key=lambda e: (e.source_id, e.target_id, e.label, e.edge_id)
        )))

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return tuple(n.node_id for n in self.nodes)


@dataclass(frozen=True)
class GraphNode:
    """Renderable graph node."""
    node_id: str
    x: float
    y: float
    radius: float
    color: str
    label: str
    is_initial: bool
    is_accept: bool


@dataclass(frozen=True)
class GraphEdge:
    """Renderable graph edge."""
    edge_id: str
    source_id: str
    target_id: str
    thickness: float
    style: str  # solid, loop
    label: Optional[str]


@dataclass(frozen=True)
class NetworkGraphView:
    """
    Pre-layouted network graph.
    Layout must be stable for a given snapshot and seed.
    """
    view_id: str
    nodes: Tuple[GraphNode, ...]
    edges: Tuple[GraphEdge, ...]
