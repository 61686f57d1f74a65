"""
Visualization Layer

Snapshot contracts, render engines, and the lifecycle controller that
owns the current engine.
"""

from .graph import (
    SnapshotNode, SnapshotEdge, VisualizationSnapshot,
    GraphNode, GraphEdge, NetworkGraphView,
)
from .engine import RenderEngine, NetworkXRenderEngine
from .controller import ControllerState, VisualizationController

__all__ = [
    'SnapshotNode', 'SnapshotEdge', 'VisualizationSnapshot',
    'GraphNode', 'GraphEdge', 'NetworkGraphView',
    'RenderEngine', 'NetworkXRenderEngine',
    'ControllerState', 'VisualizationController',
]
