"""Fold computed component states back onto wires and the grid.

Both functions return new objects; inputs are left untouched.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from circuitwiz.schemas.circuit import ComponentState
from circuitwiz.schemas.grid import POWER_MODULES, GridCell
from circuitwiz.schemas.wire import WireConnection

# A wire with no state at its ends picks up states this close to a segment start.
NEARBY_DISTANCE = 2.0
# Voltage moves smaller than this do not rewrite a grid cell.
VOLTAGE_EPSILON = 0.01


def _connected_states(
    wire: WireConnection, states: Mapping[str, ComponentState]
) -> list[ComponentState]:
    connected = [
        state
        for segment in wire.segments
        for state in states.values()
        if segment.touches(state.position)
    ]
    if connected:
        return connected

    return [
        state
        for segment in wire.segments
        for state in states.values()
        if math.hypot(
            segment.from_.x - state.position.x, segment.from_.y - state.position.y
        )
        <= NEARBY_DISTANCE
    ]


def update_wire_states(
    wires: Sequence[WireConnection],
    states: Mapping[str, ComponentState],
    circuit_current: float = 0.0,
) -> list[WireConnection]:
    """Every wire of a series circuit carries the same current; its voltage
    is the highest output voltage among the states it connects."""
    updated: list[WireConnection] = []

    for wire in wires:
        voltage = current = wire_power = 0.0
        is_powered = is_grounded = False

        connected = _connected_states(wire, states)
        if connected:
            current = circuit_current
            voltage = max(s.output_voltage for s in connected)
            wire_power = voltage * current
            is_powered = voltage > 0
            is_grounded = any(s.is_grounded for s in connected)

        live = {
            "voltage": voltage,
            "current": current,
            "power": wire_power,
            "is_powered": is_powered,
            "is_grounded": is_grounded,
        }
        updated.append(
            wire.model_copy(
                update={
                    **live,
                    "segments": [seg.model_copy(update=live) for seg in wire.segments],
                }
            )
        )

    return updated


def _cell_update(state: ComponentState) -> dict:
    return {
        "voltage": state.output_voltage,
        "current": state.output_current,
        "is_powered": state.output_voltage > 0,
        "is_on": state.is_on,
    }


# Live values of a cell whose component took no part in this pass.
_UNPOWERED_CELL = {"voltage": None, "current": None, "is_powered": False, "is_on": None}


def _differs(cell: GridCell, update: dict) -> bool:
    if abs((cell.voltage or 0.0) - (update["voltage"] or 0.0)) > VOLTAGE_EPSILON:
        return True
    return (
        (cell.current or 0.0) != (update["current"] or 0.0)
        or cell.is_powered != update["is_powered"]
        or cell.is_on != update["is_on"]
    )


def update_grid_data(
    grid: list[list[GridCell]],
    states: Mapping[str, ComponentState],
) -> list[list[GridCell]]:
    """Copy-on-write grid update.

    A state lands on the cell at its position. For multi-cell components
    other than power supplies, every cell sharing the component id takes the
    same values. Occupied cells with no state this pass are reset to
    unpowered. A cell is rewritten when its voltage moves by more than
    ``VOLTAGE_EPSILON`` or its current, powered or lit flag changes; with no
    change at all the input grid object is returned.
    """
    by_component: dict[str, ComponentState] = {}
    by_position: dict[tuple[int, int], ComponentState] = {}
    for state in states.values():
        by_position[(state.position.x, state.position.y)] = state
        by_component.setdefault(state.component_id, state)

    new_grid: list[list[GridCell]] | None = None

    for y, row in enumerate(grid):
        if not row:
            continue
        new_row: list[GridCell] | None = None
        for x, cell in enumerate(row):
            if not cell.occupied:
                continue
            state = by_position.get((x, y))
            if (
                state is None
                and cell.component_id
                and cell.component_type not in POWER_MODULES
            ):
                state = by_component.get(cell.component_id)
            update = _cell_update(state) if state is not None else _UNPOWERED_CELL
            if not _differs(cell, update):
                continue

            if new_grid is None:
                new_grid = list(grid)
            if new_row is None:
                new_row = list(row)
                new_grid[y] = new_row
            new_row[x] = cell.model_copy(update=update)

    return new_grid if new_grid is not None else grid
