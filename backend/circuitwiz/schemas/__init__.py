from circuitwiz.schemas.grid import GridCell, PlacedComponent, Position, TerminalCell
from circuitwiz.schemas.wire import WireConnection, WireSegment, WireGroup
from circuitwiz.schemas.circuit import (
    CircuitNode,
    ComponentState,
    ParallelBranch,
    PathwayComponent,
)
from circuitwiz.schemas.board import Board

__all__ = [
    "GridCell",
    "PlacedComponent",
    "Position",
    "TerminalCell",
    "WireConnection",
    "WireSegment",
    "WireGroup",
    "CircuitNode",
    "ComponentState",
    "ParallelBranch",
    "PathwayComponent",
    "Board",
]
