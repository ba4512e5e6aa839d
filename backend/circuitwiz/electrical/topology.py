"""Topology discovery — which components actually form circuits.

Three strategies live here:

  1. ``find_circuit_pathways`` — trace from every voltage-source terminal
     along wires and through components to a ground terminal. Produces
     ordered ``CircuitNode`` pathways plus per-pathway errors (open
     circuit, loop, miswired body …) and circuit-level warnings.
  2. ``find_parallel_resistors`` — group resistors that share two or more
     connection points.
  3. ``find_circuit_branches`` — fan-out walk over the raw connection map,
     used by the flow pass together with ``process_branch``.

All three are pure: inputs are never mutated.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from circuitwiz.electrical.graph import ConnectionMap, cell_at, parse_position_key
from circuitwiz.electrical.laws import parallel_resistance
from circuitwiz.electrical.nodes import (
    DEFAULT_RESISTANCE,
    component_to_node,
    resolve_forward_voltage,
    resolve_resistance,
    resolve_source_voltage,
)
from circuitwiz.electrical.trace import AnalysisTrace, ensure_trace
from circuitwiz.schemas.circuit import (
    CircuitNode,
    NodeType,
    ParallelBranch,
    PathwayComponent,
    PathwayProperties,
    PathwayReport,
)
from circuitwiz.schemas.grid import (
    POWER_MODULES,
    GridCell,
    PlacedComponent,
    Position,
)
from circuitwiz.schemas.wire import WireConnection


# ─── Terminal discovery ───


def find_voltage_sources(components: Sequence[PlacedComponent]) -> list[CircuitNode]:
    """Positive terminal of each Battery / PowerSupply (one per component)."""
    sources: list[CircuitNode] = []

    for comp in components:
        if comp.module not in POWER_MODULES:
            continue
        found = next(
            (
                (i, c)
                for i, c in comp.module_definition.connectable_cells()
                if c.is_positive()
            ),
            None,
        )
        if found is None:
            continue
        cell_index, cell = found
        sources.append(
            CircuitNode(
                type=NodeType.VOLTAGE_SOURCE,
                id=f"{comp.component_id}_positive",
                voltage=resolve_source_voltage(comp.module_definition, cell),
                max_power=comp.module_definition.max_power,
                position=comp.absolute(cell),
                component_id=comp.component_id,
                cell_index=cell_index,
                terminals=comp.terminal_positions(),
            )
        )

    return sources


def find_ground_sources(components: Sequence[PlacedComponent]) -> list[CircuitNode]:
    """Every negative / GND cell of each Battery / PowerSupply."""
    grounds: list[CircuitNode] = []

    for comp in components:
        if comp.module not in POWER_MODULES:
            continue
        # All negative cells of one supply share the `<id>_negative` id: they
        # are a single electrical node, and per-id results keep one state.
        for cell_index, cell in enumerate(comp.module_definition.grid):
            if cell.is_negative():
                grounds.append(
                    CircuitNode(
                        type=NodeType.GROUNDING_SOURCE,
                        id=f"{comp.component_id}_negative",
                        voltage=0.0,
                        position=comp.absolute(cell),
                        component_id=comp.component_id,
                        cell_index=cell_index,
                        terminals=comp.terminal_positions(),
                    )
                )

    return grounds


def find_wires_at_position(
    position: Position, wires: Sequence[WireConnection]
) -> list[WireConnection]:
    return [w for w in wires if w.touches(position)]


def wire_destination(wire: WireConnection, start: Position) -> Position:
    """The far end of ``wire`` when entered at ``start``."""
    endpoints = wire.endpoints()
    if endpoints is None:
        return start
    first, last = endpoints
    if first.x == start.x and first.y == start.y:
        return last
    if last.x == start.x and last.y == start.y:
        return first
    # Entered mid-wire (a tap on one of its bends): run to the end.
    return last


def find_component_at_position(
    position: Position, components: Sequence[PlacedComponent]
) -> PlacedComponent | None:
    for comp in components:
        if comp.cell_at(position) is not None:
            return comp
    return None


def find_other_terminal(
    component: PlacedComponent, current: Position
) -> Position | None:
    """Any connectable cell of ``component`` away from ``current``."""
    for _, cell in component.module_definition.connectable_cells():
        pos = component.absolute(cell)
        if pos.x != current.x or pos.y != current.y:
            return pos
    return None


# ─── Pathway tracer ───


class _TraceFailure(Exception):
    """Ends one candidate pathway; the message becomes a report error."""


@dataclass
class _PathwayTrace:
    grounds: Sequence[CircuitNode]
    components: Sequence[PlacedComponent]
    wires: Sequence[WireConnection]
    path: list[CircuitNode] = field(default_factory=list)
    visited_wires: set[str] = field(default_factory=set)
    visited_components: set[str] = field(default_factory=set)

    def ground_at(self, position: Position) -> CircuitNode | None:
        return next(
            (
                g
                for g in self.grounds
                if g.position.x == position.x and g.position.y == position.y
            ),
            None,
        )

    def follow_wire(self, wire: WireConnection, origin: Position) -> Position | None:
        """Cross ``wire`` and the component at its far end.

        Returns the terminal to continue from, or None once ground is reached.
        """
        self.visited_wires.add(wire.id)
        destination = wire_destination(wire, origin)

        ground = self.ground_at(destination)
        if ground is not None:
            self.path.append(ground)
            return None

        component = find_component_at_position(destination, self.components)
        if component is None:
            raise _TraceFailure(
                f"Wire leads to empty space at ({destination.x}, {destination.y})"
                " - no component found"
            )

        if component.module in POWER_MODULES:
            found = component.cell_at(destination)
            if found is None or not found[1].is_power_terminal():
                raise _TraceFailure(
                    f"Wire leads to {component.module} component body"
                    " - circuit should only use terminals"
                )

        if component.component_id in self.visited_components:
            raise _TraceFailure(
                f"Circuit loop detected - component {component.component_id}"
                " already in path"
            )

        self.path.append(component_to_node(component, destination))
        self.visited_components.add(component.component_id)

        other = find_other_terminal(component, destination)
        if other is None:
            raise _TraceFailure(
                f"Component {component.component_id} has only one terminal"
                " - cannot continue circuit"
            )
        return other

    def next_wire(self, position: Position) -> WireConnection | None:
        """First unused wire at a terminal, or None if the terminal is ground."""
        ground = self.ground_at(position)
        if ground is not None:
            self.path.append(ground)
            return None

        candidates = [
            w
            for w in find_wires_at_position(position, self.wires)
            if w.id not in self.visited_wires
        ]
        if not candidates:
            raise _TraceFailure(
                f"Circuit ends at ({position.x}, {position.y})"
                " - no wires connected to continue path"
            )
        return candidates[0]

    def run(self, wire: WireConnection, origin: Position) -> None:
        while True:
            terminal = self.follow_wire(wire, origin)
            if terminal is None:
                return
            next_wire = self.next_wire(terminal)
            if next_wire is None:
                return
            wire, origin = next_wire, terminal


def trace_circuit_from_wire(
    start_wire: WireConnection,
    voltage_source: CircuitNode,
    grounds: Sequence[CircuitNode],
    components: Sequence[PlacedComponent],
    wires: Sequence[WireConnection],
) -> tuple[list[CircuitNode], str | None]:
    """Trace one candidate pathway. Returns (pathway, None) or ([], error)."""
    state = _PathwayTrace(
        grounds=grounds,
        components=components,
        wires=wires,
        path=[voltage_source],
    )
    # The source's own component counts as visited so a ring back to it
    # ends as a loop instead of re-entering the battery.
    if voltage_source.component_id:
        state.visited_components.add(voltage_source.component_id)

    try:
        state.run(start_wire, voltage_source.position)
    except _TraceFailure as exc:
        return [], str(exc)
    return state.path, None


def find_circuit_pathways(
    components: Sequence[PlacedComponent],
    wires: Sequence[WireConnection],
    trace: AnalysisTrace | None = None,
) -> PathwayReport:
    """Find every complete source → ground pathway on the board."""
    trace = ensure_trace(trace)
    report = PathwayReport()

    voltage_sources = find_voltage_sources(components)
    ground_sources = find_ground_sources(components)
    trace.record(
        "pathways",
        f"{len(voltage_sources)} voltage source(s), {len(ground_sources)} ground(s)",
        components=len(components),
        wires=len(wires),
    )

    if not voltage_sources:
        report.errors.append(
            "No voltage sources found - circuit needs at least one battery"
            " or power supply"
        )
    if not ground_sources:
        report.errors.append(
            "No ground sources found - circuit needs at least one ground connection"
        )
    if not wires and len(components) > 1:
        report.warnings.append(
            "No wires found - components may not be properly connected"
        )
    if not components:
        report.warnings.append("No components placed on the circuit board")

    for source in voltage_sources:
        connected = find_wires_at_position(source.position, wires)
        if not connected:
            report.errors.append(
                f"Voltage source {source.id} has no wires connected"
                " - circuit is open"
            )

        for wire in connected:
            pathway, error = trace_circuit_from_wire(
                wire, source, ground_sources, components, wires
            )
            if pathway:
                trace.record(
                    "pathways",
                    f"Complete circuit via wire {wire.id}",
                    nodes=[n.id for n in pathway],
                )
                report.pathways.append(pathway)
            else:
                trace.record(
                    "pathways", f"Open circuit via wire {wire.id}: {error}"
                )
                report.errors.append(f"Open circuit from {source.id}: {error}")

    connected_ids = {
        node.component_id
        for pathway in report.pathways
        for node in pathway
        if node.component_id
    }
    isolated = [c.component_id for c in components if c.component_id not in connected_ids]
    if isolated:
        report.warnings.append(
            f"{len(isolated)} isolated component(s) found: {', '.join(isolated)}"
        )

    if len(voltage_sources) > 1 and report.pathways:
        report.warnings.append(
            f"Multiple voltage sources detected ({len(voltage_sources)})"
            " - ensure they don't conflict"
        )

    trace.record(
        "pathways",
        f"{len(report.pathways)} complete circuit(s), {len(report.errors)} error(s),"
        f" {len(report.warnings)} warning(s)",
    )
    return report


# ─── Parallel resistor grouping ───


@dataclass
class _ResistorEntry:
    id: str
    position: Position
    resistance: float
    contacts: set[str] = field(default_factory=set)


def _collect_resistors(
    grid: Sequence[Sequence[GridCell]], connections: ConnectionMap
) -> list[_ResistorEntry]:
    resistors: dict[str, _ResistorEntry] = {}

    for y, row in enumerate(grid):
        if not row:
            continue
        for x, cell in enumerate(row):
            if not (
                cell.occupied
                and cell.component_id
                and cell.component_type == "Resistor"
            ):
                continue
            entry = resistors.get(cell.component_id)
            if entry is None:
                resistance = (
                    resolve_resistance(cell.module_definition, cell.terminal, cell.resistance)
                    if cell.module_definition is not None
                    else cell.resistance or DEFAULT_RESISTANCE
                )
                entry = resistors[cell.component_id] = _ResistorEntry(
                    id=cell.component_id,
                    position=Position(x=x, y=y),
                    resistance=resistance,
                )
            entry.contacts |= connections.get(f"{x},{y}", set())

    return list(resistors.values())


def find_parallel_resistors(
    grid: Sequence[Sequence[GridCell]],
    connections: ConnectionMap,
    trace: AnalysisTrace | None = None,
) -> list[ParallelBranch]:
    """Group resistors whose connection points overlap in two or more places."""
    trace = ensure_trace(trace)
    resistors = _collect_resistors(grid, connections)
    processed: set[str] = set()
    branches: list[ParallelBranch] = []

    trace.record("parallel", f"Found {len(resistors)} resistors in grid")

    for i, first in enumerate(resistors):
        if first.id in processed:
            continue
        processed.add(first.id)
        group = [first]

        for second in resistors[i + 1 :]:
            if second.id in processed:
                continue
            shared = first.contacts & second.contacts
            if len(shared) >= 2:
                group.append(second)
                processed.add(second.id)
                trace.record(
                    "parallel",
                    f"Parallel resistors {first.id} and {second.id}"
                    f" share {len(shared)} connection points",
                    shared=sorted(shared),
                )

        if len(group) > 1:
            branches.append(
                ParallelBranch(
                    id="parallel-" + "-".join(r.id for r in group),
                    components=[
                        PathwayComponent(
                            id=r.id,
                            type="Resistor",
                            position=r.position,
                            component_id=r.id,
                            properties=PathwayProperties(resistance=r.resistance),
                        )
                        for r in group
                    ],
                )
            )
            trace.record(
                "parallel",
                f"Parallel branch: {len(group)} resistors,"
                f" {parallel_resistance(r.resistance for r in group):.0f}Ω total",
            )

    return branches


# ─── Fan-out branch walk ───

BranchPathway = list[list[PathwayComponent]]


def pathway_component_for_cell(
    cell: GridCell, position: Position
) -> PathwayComponent | None:
    """Branch element for one occupied cell.

    Power-module terminals get ``<id>_positive`` / ``<id>_negative`` ids so
    that both ends of one battery can sit in the same branch.
    """
    terminal = cell.terminal
    definition = cell.module_definition
    if terminal is None or definition is None or not cell.component_id:
        return None

    element_id = cell.component_id
    if definition.module in POWER_MODULES:
        if terminal.is_positive():
            element_id = f"{cell.component_id}_positive"
        elif terminal.is_negative():
            element_id = f"{cell.component_id}_negative"

    properties = PathwayProperties(
        terminal_type=terminal.type,
        is_groundable=terminal.is_groundable,
        voltage=terminal.voltage,
        current=terminal.current,
    )
    if definition.category == "passive":
        properties.resistance = resolve_resistance(definition, terminal, cell.resistance)
    elif definition.category == "output":
        properties.forward_voltage = resolve_forward_voltage(definition, terminal)
        properties.max_current = definition.max_current
    elif definition.category == "actuator":
        properties.nominal_voltage = definition.nominal_voltage
        properties.running_current = definition.running_current
    elif definition.category == "power" and terminal.is_positive():
        properties.voltage = resolve_source_voltage(definition, terminal)

    return PathwayComponent(
        id=element_id,
        type=cell.component_type or definition.module,
        position=position,
        properties=properties,
        component_id=cell.component_id,
    )


def _merge(pathway: list[PathwayComponent], sub: list[PathwayComponent]) -> list[PathwayComponent]:
    merged = list(pathway)
    seen = {c.id for c in merged}
    for comp in sub:
        if comp.id not in seen:
            merged.append(comp)
            seen.add(comp.id)
    return merged


def _walk_targets(
    key: str,
    grid: Sequence[Sequence[GridCell]],
    connections: ConnectionMap,
) -> Iterator[str]:
    """Keys explored from ``key``, in walk order.

    A neighbouring component cell expands to all of that component's wire
    contacts, which is how a walk crosses from one lead to the other.
    """
    for neighbour_key in sorted(connections.get(key, ())):
        neighbour = parse_position_key(neighbour_key)
        neighbour_cell = cell_at(grid, neighbour.x, neighbour.y)

        if neighbour_cell is not None and neighbour_cell.occupied and neighbour_cell.component_id:
            targets = _component_contacts(neighbour_cell.component_id, grid, connections)
            targets.discard(key)
        else:
            targets = {neighbour_key}

        yield from sorted(targets)


@dataclass
class _BranchFrame:
    pathway: list[PathwayComponent]
    targets: Iterator[str]
    branches: BranchPathway = field(default_factory=list)


def find_circuit_branches(
    start: Position,
    grid: Sequence[Sequence[GridCell]],
    connections: ConnectionMap,
    visited: set[str] | None = None,
) -> BranchPathway:
    """Every branch reachable from ``start``; one list per fan-out leaf.

    Depth-first over the connection map with an explicit stack, so long
    wires drawn point by point never hit the interpreter's recursion limit.
    Each finished sub-walk is merged into its parent's pathway, skipping
    ids already present. A position with no connections yields its own
    pathway; a position whose every target was already visited does too.
    """
    if visited is None:
        visited = set()
    if start.key in visited:
        return []

    def enter(key: str) -> _BranchFrame | BranchPathway:
        visited.add(key)
        position = parse_position_key(key)
        pathway: list[PathwayComponent] = []
        cell = cell_at(grid, position.x, position.y)
        if cell is not None and cell.occupied and cell.component_id:
            element = pathway_component_for_cell(cell, position)
            if element is not None:
                pathway.append(element)
        if not connections.get(key):
            return [pathway]
        return _BranchFrame(pathway, _walk_targets(key, grid, connections))

    entered = enter(start.key)
    if isinstance(entered, list):
        return entered
    stack = [entered]

    while stack:
        frame = stack[-1]
        target_key = next(frame.targets, None)

        if target_key is None:
            stack.pop()
            finished = frame.branches if frame.branches else [frame.pathway]
            if not stack:
                return finished
            parent = stack[-1]
            parent.branches.extend(_merge(parent.pathway, sub) for sub in finished)
            continue

        if target_key in visited:
            continue
        entered = enter(target_key)
        if isinstance(entered, list):
            frame.branches.extend(_merge(frame.pathway, sub) for sub in entered)
        else:
            stack.append(entered)

    return []


def _component_contacts(
    component_id: str,
    grid: Sequence[Sequence[GridCell]],
    connections: ConnectionMap,
) -> set[str]:
    """Both ends of every connection that touches a cell of ``component_id``."""
    contacts: set[str] = set()
    for key, neighbours in connections.items():
        for neighbour_key in neighbours:
            pos = parse_position_key(neighbour_key)
            cell = cell_at(grid, pos.x, pos.y)
            if cell is not None and cell.occupied and cell.component_id == component_id:
                contacts.add(key)
                contacts.add(neighbour_key)
    return contacts
