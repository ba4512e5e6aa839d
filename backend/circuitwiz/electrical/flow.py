"""Electrical flow — the entry point run on every grid / wire change.

    grid + wires
      → power sources, connection map, junctions
      → parallel resistor groups
      → fan-out branches per source → process_branch
      → merged component states
      → updated wires and grid (copy-on-write)
"""

from __future__ import annotations

from collections.abc import Sequence

from circuitwiz.electrical.calculator import process_branch
from circuitwiz.electrical.graph import build_connection_map, find_circuit_nodes
from circuitwiz.electrical.nodes import CircuitInputError, validate_grid
from circuitwiz.electrical.propagation import update_grid_data, update_wire_states
from circuitwiz.electrical.topology import find_circuit_branches, find_parallel_resistors
from circuitwiz.electrical.trace import AnalysisTrace, ensure_trace
from circuitwiz.schemas.circuit import ComponentState, ElectricalFlowResult, PowerSource
from circuitwiz.schemas.grid import GridCell, Position
from circuitwiz.schemas.wire import WireConnection

DEFAULT_SOURCE_MAX_CURRENT = 0.1
SOURCE_TERMINAL_TYPES = frozenset({"VCC", "POSITIVE", "DIGITAL"})


def find_power_sources(grid: Sequence[Sequence[GridCell]]) -> list[PowerSource]:
    """Every powerable VCC / POSITIVE / DIGITAL cell with a voltage set."""
    sources: list[PowerSource] = []

    for y, row in enumerate(grid):
        if not row:
            continue
        for x, cell in enumerate(row):
            if not (cell.occupied and cell.component_id and cell.module_definition):
                continue
            terminal = cell.terminal
            if (
                terminal is not None
                and terminal.is_powerable
                and (terminal.voltage or 0) > 0
                and terminal.type in SOURCE_TERMINAL_TYPES
            ):
                sources.append(
                    PowerSource(
                        id=cell.component_id,
                        voltage=terminal.voltage,
                        position=Position(x=x, y=y),
                        max_current=terminal.current or DEFAULT_SOURCE_MAX_CURRENT,
                    )
                )

    return sources


def _check_wires(wires: Sequence[WireConnection]) -> None:
    for wire in wires:
        if not wire.segments:
            raise CircuitInputError(f"Wire {wire.id} has no segments")


def calculate_electrical_flow(
    grid: list[list[GridCell]],
    wires: Sequence[WireConnection],
    trace: AnalysisTrace | None = None,
    max_width: int | None = None,
    max_height: int | None = None,
) -> ElectricalFlowResult:
    """Run one full electrical pass. Raises ``CircuitInputError`` only for a
    malformed board; incomplete circuits simply yield fewer states."""
    trace = ensure_trace(trace)
    validate_grid(grid, max_width, max_height)
    _check_wires(wires)

    sources = find_power_sources(grid)
    connections = build_connection_map(wires)
    junctions = find_circuit_nodes(grid, connections)
    trace.record(
        "flow",
        f"Found {len(connections)} wire connection points and"
        f" {len(junctions)} circuit nodes",
        sources=[s.id for s in sources],
    )

    parallel_branches = find_parallel_resistors(grid, connections, trace)

    states: dict[str, ComponentState] = {}
    circuit_current = 0.0

    for source in sources:
        branches = find_circuit_branches(source.position, grid, connections)
        trace.record("flow", f"Power source {source.id}: Found {len(branches)} branches")

        for branch in branches:
            branch_states = process_branch(
                branch, source.voltage, source.max_current, parallel_branches, trace
            )
            states.update(branch_states)
            if branch_states and circuit_current == 0:
                circuit_current = next(iter(branch_states.values())).output_current

    trace.record(
        "flow",
        f"Total component states: {len(states)}",
        circuit_current=circuit_current,
    )

    return ElectricalFlowResult(
        component_states=states,
        updated_wires=update_wire_states(wires, states, circuit_current),
        updated_grid_data=update_grid_data(grid, states),
        parallel_branches=parallel_branches,
        circuit_current=circuit_current,
        trace=list(trace.events),
    )
