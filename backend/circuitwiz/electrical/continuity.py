"""Continuity — is there any conductive path from source to ground?"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

from circuitwiz.electrical.trace import AnalysisTrace, ensure_trace
from circuitwiz.schemas.circuit import CircuitNode, NodeType
from circuitwiz.schemas.grid import Position
from circuitwiz.schemas.wire import WireConnection

# Without wires, a source and ground this close are treated as touching.
ADJACENCY_DISTANCE = 2

_NEIGHBOUR_OFFSETS = ((-1, 0), (1, 0), (0, -1), (0, 1))
_TERMINAL_NODE_TYPES = frozenset({NodeType.VOLTAGE_SOURCE, NodeType.GROUNDING_SOURCE})


def _manhattan(a: Position, b: Position) -> int:
    return abs(a.x - b.x) + abs(a.y - b.y)


def check_continuity(
    nodes: Sequence[CircuitNode],
    wires: Sequence[WireConnection],
    trace: AnalysisTrace | None = None,
) -> bool:
    """Breadth-first search from the first voltage source to the first ground.

    A position conducts to: both ends of every segment of any wire touching
    it, any orthogonally adjacent node position, and (for loads) the other
    terminals of the node sitting on it.
    """
    trace = ensure_trace(trace)
    source = next((n for n in nodes if n.type == NodeType.VOLTAGE_SOURCE), None)
    ground = next((n for n in nodes if n.type == NodeType.GROUNDING_SOURCE), None)

    if source is None or ground is None:
        trace.record("continuity", "No voltage source or grounding source - no continuity")
        return False

    if not wires:
        distance = _manhattan(source.position, ground.position)
        adjacent = distance <= ADJACENCY_DISTANCE
        trace.record(
            "continuity",
            f"No wires - grid adjacency distance={distance}, adjacent={adjacent}",
        )
        return adjacent

    node_positions = {n.position.key for n in nodes}
    conducts_through: dict[str, list[Position]] = {}
    for node in nodes:
        if node.type in _TERMINAL_NODE_TYPES:
            continue
        spots = [node.position, *node.terminals]
        for spot in spots:
            conducts_through.setdefault(spot.key, []).extend(spots)

    target = ground.position.key
    visited: set[str] = set()
    queue: deque[Position] = deque([source.position])

    while queue:
        current = queue.popleft()
        key = current.key
        if key in visited:
            continue
        visited.add(key)

        if key == target:
            trace.record("continuity", "Found path to grounding source")
            return True

        for wire in wires:
            if not wire.touches(current):
                continue
            for segment in wire.segments:
                for pos in (segment.from_, segment.to):
                    if pos.key not in visited:
                        queue.append(pos)

        for dx, dy in _NEIGHBOUR_OFFSETS:
            pos = current.offset(dx, dy)
            if pos.key not in visited and pos.key in node_positions:
                queue.append(pos)

        for pos in conducts_through.get(key, ()):
            if pos.key not in visited:
                queue.append(pos)

    trace.record("continuity", "No path found to grounding source")
    return False
