"""
Visualization Payload Mapper

Converts remote visualization payloads to VisualizationSnapshot.

MAPPING BOUNDARY:
=================
This is the ONLY place where wire graph formats become snapshots.
Render engines never see format-specific payloads.

MAPPING RULES:
==============
1. cytoscape: "elements" as a flat list or as {"nodes", "edges"}
2. d3: "nodes" + "links" (endpoints by id, object, or node index)
3. dot is text for external tools; it is not mapped
4. A payload with no nodes maps to None (nothing to render)
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence

from api.contracts import VisualizationFormat, VisualizationPayload

from frontend.visualization.graph import SnapshotEdge, SnapshotNode, VisualizationSnapshot


class SnapshotMapper:
    """Maps VisualizationPayload → VisualizationSnapshot."""

    def map_payload(self, payload: Optional[VisualizationPayload]) -> Optional[VisualizationSnapshot]:
        if payload is None or payload.data is None:
            return None

        if payload.format is VisualizationFormat.CYTOSCAPE:
            snapshot = self._map_cytoscape(payload.data)
        elif payload.format is VisualizationFormat.D3:
            snapshot = self._map_d3(payload.data)
        else:
            raise ValueError(f"Cannot build a graph snapshot from {payload.format.value} payloads")

        return None if snapshot.is_empty else snapshot

    # =========================================================================
    # CYTOSCAPE
    # =========================================================================

    def _map_cytoscape(self, data: Any) -> VisualizationSnapshot:
        if not isinstance(data, Mapping):
            raise ValueError("cytoscape payload must be an object")

        elements = data.get("elements", data)
        node_items: List[Mapping[str, Any]] = []
        edge_items: List[Mapping[str, Any]] = []

        if isinstance(elements, Mapping):
            node_items = [self._element_data(e) for e in elements.get("nodes") or ()]
            edge_items = [self._element_data(e) for e in elements.get("edges") or ()]
        elif isinstance(elements, Sequence):
            for element in elements:
                item = self._element_data(element)
                if "source" in item and "target" in item:
                    edge_items.append(item)
                else:
                    node_items.append(item)
        else:
            raise ValueError("cytoscape elements must be a list or an object")

        nodes = tuple(self._node(item, self._classes(item)) for item in node_items)
        edges = tuple(self._edge(item, i) for i, item in enumerate(edge_items))
        return VisualizationSnapshot(nodes=nodes, edges=edges)

    def _element_data(self, element: Any) -> Dict[str, Any]:
        if not isinstance(element, Mapping):
            raise ValueError(f"Malformed cytoscape element: {element!r}")
        item = dict(element.get("data", element))
        if "classes" in element and "classes" not in item:
            item["classes"] = element["classes"]
        return item

    def _classes(self, item: Mapping[str, Any]) -> frozenset:
        classes = item.get("classes") or ()
        if isinstance(classes, str):
            classes = classes.split()
        return frozenset(classes)

    # =========================================================================
    # D3
    # =========================================================================

    def _map_d3(self, data: Any) -> VisualizationSnapshot:
        if not isinstance(data, Mapping):
            raise ValueError("d3 payload must be an object")

        raw_nodes = list(data.get("nodes") or ())
        nodes = tuple(self._node(item, frozenset()) for item in raw_nodes)
        ids_by_index = [n.get("id") for n in raw_nodes]

        edges = []
        for i, link in enumerate(data.get("links") or data.get("edges") or ()):
            item = dict(link)
            item["source"] = self._endpoint(item.get("source"), ids_by_index)
            item["target"] = self._endpoint(item.get("target"), ids_by_index)
            edges.append(self._edge(item, i))

        return VisualizationSnapshot(nodes=nodes, edges=tuple(edges))

    def _endpoint(self, value: Any, ids_by_index: List[Any]) -> str:
        if isinstance(value, Mapping):
            value = value.get("id")
        elif isinstance(value, int) and not isinstance(value, bool):
            value = ids_by_index[value]
        if value is None:
            raise ValueError("d3 link without an endpoint")
        return str(value)

    # =========================================================================
    # SHARED
    # =========================================================================

    def _node(self, item: Mapping[str, Any], classes: frozenset) -> SnapshotNode:
        if item.get("id") is None:
            raise ValueError(f"Graph node without id: {item!r}")
        node_id = str(item["id"])
        return SnapshotNode(
            node_id=node_id,
            label=str(item.get("label") or node_id),
            is_initial=bool(item.get("is_initial") or item.get("initial") or "initial" in classes),
            is_accept=bool(
                item.get("is_accept") or item.get("accepting") or item.get("accept")
                or "accept" in classes
            ),
        )

    def _edge(self, item: Mapping[str, Any], position: int) -> SnapshotEdge:
        source = str(item["source"])
        target = str(item["target"])
        return SnapshotEdge(
            edge_id=str(item.get("id") or f"{source}->{target}#{position}"),
            source_id=source,
            target_id=target,
            label=str(item.get("label") or ""),
        )


_default_mapper = SnapshotMapper()


def snapshot_from_payload(payload: Optional[VisualizationPayload]) -> Optional[VisualizationSnapshot]:
    return _default_mapper.map_payload(payload)
