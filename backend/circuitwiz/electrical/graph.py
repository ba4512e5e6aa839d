"""Wire graph — adjacency over grid positions built from wire segments."""

from __future__ import annotations

from collections.abc import Sequence

from circuitwiz.schemas.circuit import JunctionNode
from circuitwiz.schemas.grid import GridCell, Position
from circuitwiz.schemas.wire import WireConnection

ConnectionMap = dict[str, set[str]]


def position_key(x: int, y: int) -> str:
    return f"{x},{y}"


def parse_position_key(key: str) -> Position:
    x, y = key.split(",")
    return Position(x=int(x), y=int(y))


def cell_at(grid: Sequence[Sequence[GridCell]], x: int, y: int) -> GridCell | None:
    """Grid lookup that tolerates out-of-range and ragged rows."""
    if y < 0 or y >= len(grid):
        return None
    row = grid[y]
    if not row or x < 0 or x >= len(row):
        return None
    return row[x]


def build_connection_map(wires: Sequence[WireConnection]) -> ConnectionMap:
    """Undirected position → neighbours map from every segment endpoint."""
    connections: ConnectionMap = {}

    for wire in wires:
        for segment in wire.segments:
            from_key = segment.from_.key
            to_key = segment.to.key
            connections.setdefault(from_key, set()).add(to_key)
            connections.setdefault(to_key, set()).add(from_key)

    return connections


def find_circuit_nodes(
    grid: Sequence[Sequence[GridCell]],
    connections: ConnectionMap,
) -> dict[str, JunctionNode]:
    """Junctions: > 2 neighbours, or a component cell with ≥ 2 connections."""
    nodes: dict[str, JunctionNode] = {}

    for key, neighbours in connections.items():
        position = parse_position_key(key)
        cell = cell_at(grid, position.x, position.y)

        is_junction = len(neighbours) > 2
        is_component_junction = (
            cell is not None
            and cell.occupied
            and cell.component_id is not None
            and len(neighbours) >= 2
        )

        if is_junction or is_component_junction:
            nodes[key] = JunctionNode(
                id=key,
                position=position,
                connections=sorted(neighbours),
            )

    return nodes
