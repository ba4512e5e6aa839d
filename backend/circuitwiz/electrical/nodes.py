"""Grid ⇄ component conversions.

The UI hands over a dense grid where every cell of a multi-cell component
repeats the component id. The engine mostly wants one record per placed
component (``PlacedComponent``) or one ``CircuitNode`` per electrical
terminal; this module converts between those views.
"""

from __future__ import annotations

from collections.abc import Sequence

from circuitwiz.electrical.graph import cell_at
from circuitwiz.schemas.circuit import CircuitNode, NodeType
from circuitwiz.schemas.grid import (
    POWER_MODULES,
    ComponentDefinition,
    GridCell,
    PlacedComponent,
    Position,
    TerminalCell,
)

DEFAULT_GRID_SIZE = (50, 50)
DEFAULT_RESISTANCE = 1000.0
DEFAULT_FORWARD_VOLTAGE = 2.0
DEFAULT_SOURCE_VOLTAGE = 5.0

CATEGORY_NODE_TYPES: dict[str, NodeType] = {
    "power": NodeType.POWER_SUPPLY,
    "passive": NodeType.RESISTOR,
    "output": NodeType.LED,
    "actuator": NodeType.MOTOR,
    "switch": NodeType.SWITCH,
    "sensor": NodeType.SENSOR,
    "microcontroller": NodeType.ARDUINO,
}


class CircuitInputError(ValueError):
    """The board itself is malformed (not merely an incomplete circuit)."""


# ─── Grid construction ───


def empty_grid(width: int, height: int) -> list[list[GridCell]]:
    return [[GridCell(x=x, y=y) for x in range(width)] for y in range(height)]


def get_grid_size(grid: Sequence[Sequence[GridCell]]) -> tuple[int, int]:
    """(width, height); an empty grid reports the default board size."""
    if not grid:
        return DEFAULT_GRID_SIZE
    return (len(grid[0]) or DEFAULT_GRID_SIZE[0], len(grid))


def place_component(
    grid: list[list[GridCell]],
    definition: ComponentDefinition,
    x: int,
    y: int,
    component_id: str,
    resistance: float | None = None,
) -> list[list[GridCell]]:
    """Return a new grid with ``definition`` anchored at (x, y).

    Only the rows touched by the footprint are copied.
    """
    new_grid = list(grid)
    copied_rows: set[int] = set()

    for index, terminal in enumerate(definition.grid):
        cx, cy = x + terminal.x, y + terminal.y
        existing = cell_at(grid, cx, cy)
        if existing is None:
            raise CircuitInputError(
                f"{definition.module} {component_id} does not fit at ({cx}, {cy})"
            )
        if existing.occupied:
            raise CircuitInputError(
                f"Cell ({cx}, {cy}) already holds {existing.component_id}"
            )
        if cy not in copied_rows:
            new_grid[cy] = list(new_grid[cy])
            copied_rows.add(cy)
        new_grid[cy][cx] = existing.model_copy(
            update={
                "occupied": True,
                "component_id": component_id,
                "component_type": definition.module,
                "module_definition": definition,
                "cell_index": index,
                "resistance": resistance,
            }
        )

    return new_grid


def validate_grid(
    grid: Sequence[Sequence[GridCell]],
    max_width: int | None = None,
    max_height: int | None = None,
) -> None:
    """Raise ``CircuitInputError`` for boards the engine cannot interpret."""
    if not grid:
        return

    width = len(grid[0])
    if any(len(row) != width for row in grid):
        raise CircuitInputError("Grid rows must all have the same length")
    if max_width is not None and width > max_width:
        raise CircuitInputError(f"Grid width {width} exceeds limit {max_width}")
    if max_height is not None and len(grid) > max_height:
        raise CircuitInputError(
            f"Grid height {len(grid)} exceeds limit {max_height}"
        )

    for y, row in enumerate(grid):
        for x, cell in enumerate(row):
            if not cell.occupied:
                continue
            if not cell.component_id or cell.module_definition is None:
                raise CircuitInputError(
                    f"Occupied cell ({x}, {y}) has no component id or definition"
                )
            if cell.terminal is None:
                raise CircuitInputError(
                    f"Cell ({x}, {y}) of {cell.component_id} has cell_index "
                    f"{cell.cell_index} outside its definition"
                )


# ─── Placed components ───


def extract_placed_components(
    grid: Sequence[Sequence[GridCell]],
) -> list[PlacedComponent]:
    """One record per component id, anchored where its cell 0 sits."""
    components: dict[str, PlacedComponent] = {}

    for y, row in enumerate(grid):
        if not row:
            continue
        for x, cell in enumerate(row):
            if not (cell.occupied and cell.component_id and cell.module_definition):
                continue
            placed = components.get(cell.component_id)
            if placed is None:
                terminal = cell.terminal
                dx, dy = (terminal.x, terminal.y) if terminal else (0, 0)
                components[cell.component_id] = PlacedComponent(
                    component_id=cell.component_id,
                    component_type=cell.component_type or cell.module_definition.module,
                    x=x - dx,
                    y=y - dy,
                    module_definition=cell.module_definition,
                    resistance=cell.resistance,
                )
            elif placed.resistance is None and cell.resistance is not None:
                placed.resistance = cell.resistance

    return list(components.values())


def reconstruct_grid_data(
    components: Sequence[PlacedComponent],
    size: tuple[int, int] = DEFAULT_GRID_SIZE,
) -> list[list[GridCell]]:
    """Inverse of ``extract_placed_components`` on a fresh board."""
    width, height = size
    grid = empty_grid(width, height)
    for comp in components:
        grid = place_component(
            grid,
            comp.module_definition,
            comp.x,
            comp.y,
            comp.component_id,
            resistance=comp.resistance,
        )
    return grid


# ─── Electrical property resolution ───


def resolve_resistance(
    definition: ComponentDefinition,
    terminal: TerminalCell | None,
    live: float | None = None,
) -> float:
    """Live value, then the cell's value, then the definition default."""
    if live:
        return live
    if terminal is not None and terminal.resistance:
        return terminal.resistance
    body = next((c for c in definition.grid if c.resistance), None)
    if body is not None:
        return body.resistance
    return getattr(definition, "resistance", None) or DEFAULT_RESISTANCE


def resolve_max_power(
    definition: ComponentDefinition, terminal: TerminalCell | None
) -> float | None:
    if terminal is not None and terminal.max_power:
        return terminal.max_power
    return getattr(definition, "power_rating", None) or getattr(
        definition, "max_power", None
    )


def resolve_forward_voltage(
    definition: ComponentDefinition, terminal: TerminalCell | None
) -> float:
    return (
        getattr(definition, "forward_voltage", None)
        or (terminal.voltage if terminal is not None else None)
        or DEFAULT_FORWARD_VOLTAGE
    )


def resolve_source_voltage(
    definition: ComponentDefinition, terminal: TerminalCell | None
) -> float:
    return (
        (terminal.voltage if terminal is not None else None)
        or getattr(definition, "voltage", None)
        or DEFAULT_SOURCE_VOLTAGE
    )


def component_to_node(component: PlacedComponent, entry: Position) -> CircuitNode:
    """Node for a component entered through the cell at ``entry``."""
    definition = component.module_definition
    found = component.cell_at(entry)
    cell_index, terminal = found if found else (0, definition.cell(0))
    node_type = CATEGORY_NODE_TYPES.get(definition.category, NodeType.SENSOR)

    node = CircuitNode(
        type=node_type,
        id=component.component_id,
        position=entry,
        component_id=component.component_id,
        cell_index=cell_index,
        terminals=component.terminal_positions(),
    )

    if node_type == NodeType.RESISTOR:
        node.resistance = resolve_resistance(definition, terminal, component.resistance)
        node.max_power = resolve_max_power(definition, terminal)
    elif node_type == NodeType.LED:
        node.forward_voltage = resolve_forward_voltage(definition, terminal)
        node.max_current = definition.max_current
        node.max_power = definition.max_power
    elif node_type == NodeType.POWER_SUPPLY:
        node.voltage = resolve_source_voltage(definition, terminal)
        node.max_current = definition.max_current
        node.max_power = definition.max_power
    elif node_type == NodeType.MOTOR:
        node.voltage = definition.nominal_voltage
        node.current = definition.running_current

    return node


def power_terminal_node(
    component: PlacedComponent, cell_index: int, terminal: TerminalCell
) -> CircuitNode | None:
    """VoltageSource / GroundingSource node for one power-capable terminal."""
    definition = component.module_definition
    position = component.absolute(terminal)
    common = {
        "position": position,
        "component_id": component.component_id,
        "cell_index": cell_index,
        "terminals": component.terminal_positions(),
    }

    if terminal.is_positive() or (terminal.type == "GPIO" and terminal.is_powerable):
        suffix = "positive" if component.module in POWER_MODULES else (
            terminal.pin or str(cell_index)
        )
        return CircuitNode(
            type=NodeType.VOLTAGE_SOURCE,
            id=f"{component.component_id}_{suffix}",
            voltage=resolve_source_voltage(definition, terminal),
            current=terminal.current or getattr(definition, "max_current", None) or 1.0,
            max_power=terminal.max_power or getattr(definition, "max_power", None),
            **common,
        )
    # Every negative cell of one component maps to the same ground node id.
    if terminal.is_negative():
        return CircuitNode(
            type=NodeType.GROUNDING_SOURCE,
            id=f"{component.component_id}_negative",
            voltage=0.0,
            current=terminal.current or getattr(definition, "max_current", None) or 1.0,
            **common,
        )
    return None


def convert_grid_to_nodes(grid: Sequence[Sequence[GridCell]]) -> list[CircuitNode]:
    """Flatten a board into ``CircuitNode``s for ``calculate_circuit``.

    Power modules and microcontrollers yield one node per power terminal;
    every other component yields a single node at its first connectable
    cell (row-major).
    """
    placed = {c.component_id: c for c in extract_placed_components(grid)}
    nodes: list[CircuitNode] = []
    processed: set[str] = set()

    for y, row in enumerate(grid):
        if not row:
            continue
        for x, cell in enumerate(row):
            if not (cell.occupied and cell.component_id and cell.module_definition):
                continue
            terminal = cell.terminal
            if terminal is None or not terminal.is_connectable:
                continue
            component = placed[cell.component_id]
            category = cell.module_definition.category

            if category in ("power", "microcontroller"):
                node = power_terminal_node(component, cell.cell_index or 0, terminal)
                if node is not None:
                    nodes.append(node)
                continue

            if cell.component_id in processed:
                continue
            processed.add(cell.component_id)
            nodes.append(component_to_node(component, Position(x=x, y=y)))

    return nodes
