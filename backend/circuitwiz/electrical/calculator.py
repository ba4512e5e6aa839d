"""Per-component state calculation.

``calculate_circuit`` is the authoritative evaluator for one traced series
pathway of ``CircuitNode``s. ``process_branch`` / ``process_circuit_pathway``
evaluate the fan-out branches used by the flow pass, where each element is
run through its component calculator and parallel resistor groups are
folded in at the branch's effective voltage.

Overloads and insufficient voltage are reported in the result, never raised.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from circuitwiz.electrical.laws import (
    ohm_current,
    ohm_voltage,
    parallel_resistance,
    power,
    power_led,
    power_resistor,
)
from circuitwiz.electrical.trace import AnalysisTrace, ensure_trace
from circuitwiz.schemas.circuit import (
    SOURCE_NODE_TYPES,
    CircuitCalculation,
    CircuitNode,
    ComponentState,
    NodeType,
    ParallelBranch,
    PathwayComponent,
    PathwayProperties,
)
from circuitwiz.schemas.wire import WireConnection

DEFAULT_LED_CURRENT = 0.02
DEFAULT_BRANCH_RESISTANCE = 1000.0
DEFAULT_LED_FORWARD_VOLTAGE = 2.0
# Absorbs float error when a drop lands exactly on a forward voltage.
VOLTAGE_TOLERANCE = 1e-9


# ═══════════════════════════════════════════════════════════════
# Component calculators
# ═══════════════════════════════════════════════════════════════
#
# Each maps (properties, input voltage, input current) to the fields of a
# ComponentState. Output voltage of one element is the input of the next.

Calculator = Callable[[PathwayProperties, float, float], dict[str, Any]]


def _calc_source(props: PathwayProperties, _voltage: float, current: float) -> dict[str, Any]:
    voltage = props.voltage or 0.0
    return {
        "output_voltage": voltage,
        "output_current": current,
        "power": power(voltage, current),
        "status": "active",
        "is_powered": True,
    }


def _calc_ground(_props: PathwayProperties, _voltage: float, current: float) -> dict[str, Any]:
    return {
        "output_voltage": 0.0,
        "output_current": current,
        "power": 0.0,
        "status": "grounded",
        "is_grounded": True,
    }


def _calc_resistor(props: PathwayProperties, voltage: float, current: float) -> dict[str, Any]:
    resistance = props.resistance or DEFAULT_BRANCH_RESISTANCE
    drop = ohm_voltage(current, resistance)
    return {
        "output_voltage": max(0.0, voltage - drop),
        "output_current": current,
        "power": drop * current,
        "voltage_drop": drop,
        "status": "active",
        "is_powered": current > 0,
    }


def _calc_led(props: PathwayProperties, voltage: float, current: float) -> dict[str, Any]:
    forward_voltage = props.forward_voltage or props.voltage or DEFAULT_LED_FORWARD_VOLTAGE
    is_on = voltage + VOLTAGE_TOLERANCE >= forward_voltage and current > 0
    return {
        "output_voltage": max(0.0, voltage - forward_voltage),
        "output_current": current,
        "power": power_led(current, forward_voltage),
        "forward_voltage": forward_voltage,
        "is_on": is_on,
        "status": "on" if is_on else "off",
        "is_powered": is_on,
    }


def _calc_motor(props: PathwayProperties, voltage: float, current: float) -> dict[str, Any]:
    nominal = props.nominal_voltage or props.voltage or 0.0
    drop = min(voltage, nominal)
    running = voltage >= nominal and current > 0
    return {
        "output_voltage": max(0.0, voltage - nominal),
        "output_current": current,
        "power": power(drop, current),
        "voltage_drop": drop,
        "status": "running" if running else "stalled",
        "is_powered": running,
    }


COMPONENT_CALCULATORS: dict[str, Calculator] = {
    "battery": _calc_source,
    "powersupply": _calc_source,
    "ground": _calc_ground,
    "resistor": _calc_resistor,
    "led": _calc_led,
    "motor": _calc_motor,
}


def calculator_for(component: PathwayComponent) -> Calculator | None:
    """Negative terminals of a supply evaluate as ground, not as a source."""
    key = component.type.lower().replace(" ", "")
    if key in ("battery", "powersupply") and component.is_ground():
        key = "ground"
    return COMPONENT_CALCULATORS.get(key)


# ═══════════════════════════════════════════════════════════════
# Single pathway evaluation
# ═══════════════════════════════════════════════════════════════


def _failed(
    reason: str,
    error: str,
    battery_voltage: float = 0.0,
    total_led_voltage: float = 0.0,
    total_resistance: float = 0.0,
) -> CircuitCalculation:
    return CircuitCalculation(
        works=False,
        reason=reason,
        battery_voltage=battery_voltage,
        total_led_voltage=total_led_voltage,
        total_resistance=total_resistance,
        errors=[error],
    )


def calculate_circuit(
    nodes: Sequence[CircuitNode],
    wires: Sequence[WireConnection] = (),
    has_continuity: bool = False,
    trace: AnalysisTrace | None = None,
) -> CircuitCalculation:
    """Evaluate one series pathway in encounter order.

    Resistances add in series, LED forward voltages add, source voltages
    add. Current is what the remaining voltage pushes through the total
    resistance; with no resistance at all no current is modelled.
    """
    trace = ensure_trace(trace)

    battery_voltage = 0.0
    total_resistance = 0.0
    total_led_voltage = 0.0
    has_source = False
    has_ground = False

    for node in nodes:
        if node.type in SOURCE_NODE_TYPES:
            battery_voltage += node.voltage or 0.0
            has_source = True
        elif node.type == NodeType.GROUNDING_SOURCE:
            has_ground = True
        elif node.type == NodeType.RESISTOR:
            total_resistance += node.resistance or 0.0
        elif node.type == NodeType.LED:
            total_led_voltage += node.forward_voltage or DEFAULT_LED_FORWARD_VOLTAGE

    trace.record(
        "calculate",
        f"{len(nodes)} nodes, {len(wires)} wires: {battery_voltage}V,"
        f" {total_resistance}Ω, LEDs {total_led_voltage}V",
        has_continuity=has_continuity,
    )

    if not has_source:
        return _failed("No voltage source found in circuit", "No voltage source found")
    if not has_ground:
        return _failed(
            "No grounding source found in circuit",
            "No grounding source found",
            battery_voltage=battery_voltage,
        )
    if not has_continuity:
        return _failed(
            "No continuity - circuit is not complete",
            "No continuity - circuit path is incomplete",
            battery_voltage=battery_voltage,
        )
    if battery_voltage < total_led_voltage:
        return _failed(
            "Battery voltage too low to power LEDs",
            f"Battery voltage ({battery_voltage}V) too low to power LEDs"
            f" ({total_led_voltage}V)",
            battery_voltage=battery_voltage,
            total_led_voltage=total_led_voltage,
            total_resistance=total_resistance,
        )

    voltage_across_resistors = battery_voltage - total_led_voltage
    current = (
        ohm_current(voltage_across_resistors, total_resistance)
        if total_resistance > 0
        else 0.0
    )
    trace.record(
        "calculate",
        f"Current: {voltage_across_resistors}V / {total_resistance}Ω"
        f" = {current * 1000:.2f}mA",
    )

    errors: list[str] = []
    states: dict[str, ComponentState] = {}
    cumulative_drop = 0.0

    for node in nodes:
        state = ComponentState(
            component_id=node.id,
            component_type=node.type.value,
            position=node.position,
        )

        if node.type in SOURCE_NODE_TYPES:
            source_power = power(node.voltage or 0.0, current)
            state.output_voltage = node.voltage or 0.0
            state.output_current = current
            state.power = source_power
            state.status = "active"
            state.is_powered = True
            if node.max_power and source_power > node.max_power:
                errors.append(
                    f"Voltage source {node.id} exceeded power limit:"
                    f" {source_power:.3f}W > {node.max_power}W"
                )

        elif node.type == NodeType.GROUNDING_SOURCE:
            state.output_current = current
            state.status = "grounded"
            state.is_grounded = True

        elif node.type == NodeType.RESISTOR:
            resistance = node.resistance or 0.0
            drop = ohm_voltage(current, resistance)
            resistor_power = power_resistor(current, resistance)
            state.output_voltage = max(0.0, battery_voltage - cumulative_drop - drop)
            state.output_current = current
            state.power = resistor_power
            state.voltage_drop = drop
            state.status = "active"
            state.is_powered = True
            cumulative_drop += drop
            if node.max_power and resistor_power > node.max_power:
                errors.append(
                    f"Resistor {node.id} exceeded power limit:"
                    f" {resistor_power:.3f}W > {node.max_power}W"
                )

        elif node.type == NodeType.LED:
            forward_voltage = node.forward_voltage or DEFAULT_LED_FORWARD_VOLTAGE
            is_on = (
                battery_voltage + VOLTAGE_TOLERANCE >= cumulative_drop + forward_voltage
                and current > 0
            )
            led_power = power_led(current, forward_voltage)
            state.output_voltage = max(
                0.0, battery_voltage - cumulative_drop - forward_voltage
            )
            state.output_current = current
            state.power = led_power
            state.forward_voltage = forward_voltage
            state.is_on = is_on
            state.status = "on" if is_on else "off"
            state.is_powered = is_on
            state.is_grounded = True
            cumulative_drop += forward_voltage
            if node.max_power and led_power > node.max_power:
                errors.append(
                    f"LED {node.id} exceeded power limit:"
                    f" {led_power:.3f}W > {node.max_power}W"
                )

        states[node.id] = state

    for error in errors:
        trace.record("calculate", error)

    return CircuitCalculation(
        works=not errors,
        battery_voltage=battery_voltage,
        total_led_voltage=total_led_voltage,
        total_resistance=total_resistance,
        current=current,
        voltage_across_resistors=voltage_across_resistors,
        power_battery=power(battery_voltage, current),
        power_resistors=power_resistor(current, total_resistance),
        power_leds=current * total_led_voltage,
        component_states=states,
        errors=errors,
    )


# ═══════════════════════════════════════════════════════════════
# Branch evaluation
# ═══════════════════════════════════════════════════════════════


class CircuitParameters:
    __slots__ = (
        "total_resistance",
        "total_voltage_drop",
        "led_current_requirement",
        "motor_current_requirement",
        "total_load_current",
        "parallel_resistance",
    )

    def __init__(self) -> None:
        self.total_resistance = 0.0
        self.total_voltage_drop = 0.0
        self.led_current_requirement = DEFAULT_LED_CURRENT
        self.motor_current_requirement = 0.0
        self.total_load_current = 0.0
        self.parallel_resistance = 0.0


def _resistor_value(component: PathwayComponent) -> float:
    return component.properties.resistance or DEFAULT_BRANCH_RESISTANCE


def group_resistance(branch: ParallelBranch) -> float:
    return parallel_resistance(
        _resistor_value(c) for c in branch.components if c.type == "Resistor"
    )


def _member_ids(branch: ParallelBranch) -> set[str]:
    return {c.component_id or c.id for c in branch.components}


def branches_on_pathway(
    pathway: Sequence[PathwayComponent],
    parallel_branches: Sequence[ParallelBranch],
) -> list[ParallelBranch]:
    """Parallel groups that share at least one resistor with ``pathway``."""
    ids = {c.component_id or c.id for c in pathway}
    return [b for b in parallel_branches if _member_ids(b) & ids]


def calculate_circuit_parameters(
    pathway: Sequence[PathwayComponent],
    parallel_branches: Sequence[ParallelBranch] = (),
) -> CircuitParameters:
    """Series totals for ``pathway``; each parallel group adds its combined
    resistance once, and its members are left out of the series sum."""
    params = CircuitParameters()
    grouped: set[str] = set()
    for branch in parallel_branches:
        grouped |= _member_ids(branch)

    series = 0.0
    for comp in pathway:
        props = comp.properties
        if comp.type == "Resistor":
            if (comp.component_id or comp.id) not in grouped:
                series += _resistor_value(comp)
        elif comp.type == "LED":
            params.total_voltage_drop += (
                props.forward_voltage or props.voltage or DEFAULT_LED_FORWARD_VOLTAGE
            )
            params.led_current_requirement = (
                props.max_current or props.current or DEFAULT_LED_CURRENT
            )
            params.total_load_current += params.led_current_requirement
        elif comp.type == "Motor":
            params.total_voltage_drop += props.nominal_voltage or props.voltage or 0.0
            params.motor_current_requirement = (
                props.running_current or props.current or 0.0
            )
            params.total_load_current += params.motor_current_requirement

    params.parallel_resistance = sum(
        (group_resistance(b) for b in parallel_branches), 0.0
    )
    params.total_resistance = series + params.parallel_resistance
    return params


def calculate_parallel_branch_currents(
    parallel_branches: Sequence[ParallelBranch], voltage: float
) -> list[ParallelBranch]:
    """Ohm's law for each group at ``voltage``; returns new branch records."""
    updated: list[ParallelBranch] = []
    for branch in parallel_branches:
        resistance = group_resistance(branch)
        updated.append(
            branch.model_copy(
                update={
                    "total_resistance": resistance,
                    "current": ohm_current(voltage, resistance) if resistance > 0 else 0.0,
                    "voltage": voltage,
                }
            )
        )
    return updated


def _walk(
    pathway: Sequence[PathwayComponent],
    source_voltage: float,
    current: float,
    parallel_branches: Sequence[ParallelBranch],
    trace: AnalysisTrace,
) -> dict[str, ComponentState]:
    states: dict[str, ComponentState] = {}
    group_of: dict[str, ParallelBranch] = {}
    for branch in parallel_branches:
        for member in _member_ids(branch):
            group_of[member] = branch
    crossed: set[str] = set()

    # Fan-out walks can reach a supply's ground terminal before the loads
    # behind it; ground always closes the walk.
    ordered = [c for c in pathway if not c.is_ground()]
    ordered += [c for c in pathway if c.is_ground()]

    voltage = source_voltage
    for comp in ordered:
        group = group_of.get(comp.component_id or comp.id)
        if group is not None:
            # The whole group drops once, at its combined resistance.
            if group.id not in crossed:
                crossed.add(group.id)
                voltage = max(0.0, voltage - ohm_voltage(current, group_resistance(group)))
            continue

        calculator = calculator_for(comp)
        if calculator is None:
            continue
        result = calculator(comp.properties, voltage, current)
        states[comp.id] = ComponentState(
            component_id=comp.id,
            component_type=comp.type,
            position=comp.position,
            **result,
        )
        trace.record(
            "branch",
            f"{comp.type} {comp.id}: in {voltage:.2f}V {current * 1000:.1f}mA,"
            f" out {result['output_voltage']:.2f}V ({result['status']})",
        )
        voltage = result["output_voltage"]
        current = result["output_current"]

    return states


def _parallel_states(
    parallel_branches: Sequence[ParallelBranch],
    voltage: float,
    trace: AnalysisTrace,
) -> dict[str, ComponentState]:
    states: dict[str, ComponentState] = {}
    for branch in calculate_parallel_branch_currents(parallel_branches, voltage):
        trace.record(
            "branch",
            f"Parallel group {branch.id}: {branch.total_resistance:.1f}Ω,"
            f" {branch.current * 1000:.1f}mA at {branch.voltage:.2f}V",
        )
        for comp in branch.components:
            calculator = calculator_for(comp)
            if calculator is None:
                continue
            resistance = _resistor_value(comp)
            member_current = ohm_current(voltage, resistance) if resistance > 0 else 0.0
            states[comp.id] = ComponentState(
                component_id=comp.id,
                component_type=comp.type,
                position=comp.position,
                **calculator(comp.properties, voltage, member_current),
            )
    return states


def process_circuit_pathway(
    pathway: Sequence[PathwayComponent],
    source_voltage: float,
    max_current: float,
    parallel_branches: Sequence[ParallelBranch] = (),
    trace: AnalysisTrace | None = None,
) -> dict[str, ComponentState]:
    """Evaluate ``pathway`` without a ground check.

    Current is the smallest of the LED requirement, the resistor limit and
    the source limit; a non-positive effective voltage draws nothing.
    """
    trace = ensure_trace(trace)
    if not pathway:
        return {}

    groups = branches_on_pathway(pathway, parallel_branches)
    params = calculate_circuit_parameters(pathway, groups)
    effective_voltage = source_voltage - params.total_voltage_drop
    resistor_current = (
        effective_voltage / params.total_resistance
        if effective_voltage > 0 and params.total_resistance > 0
        else 0.0
    )
    current = min(params.led_current_requirement, resistor_current, max_current)
    trace.record(
        "branch",
        f"Pathway: {effective_voltage:.2f}V effective, {current * 1000:.2f}mA,"
        f" {params.total_resistance:.1f}Ω",
    )

    states = _walk(pathway, source_voltage, current, groups, trace)
    states.update(_parallel_states(groups, max(0.0, effective_voltage), trace))
    return states


def process_branch(
    branch: Sequence[PathwayComponent],
    source_voltage: float,
    max_current: float,
    parallel_branches: Sequence[ParallelBranch] = (),
    trace: AnalysisTrace | None = None,
) -> dict[str, ComponentState]:
    """Evaluate one fan-out branch; no ground terminal means no current.

    Branch current = min(LED + motor requirement, resistor limit, source
    limit). Parallel groups on the branch are evaluated independently at
    the branch's effective voltage.
    """
    trace = ensure_trace(trace)
    if not branch:
        return {}

    if not any(comp.is_ground() for comp in branch):
        trace.record("branch", "No ground connection - no current flow")
        return {}

    groups = branches_on_pathway(branch, parallel_branches)
    params = calculate_circuit_parameters(branch, groups)
    effective_voltage = max(0.0, source_voltage - params.total_voltage_drop)
    resistor_current = (
        effective_voltage / params.total_resistance
        if params.total_resistance > 0
        else max_current
    )
    current = min(
        params.led_current_requirement + params.motor_current_requirement,
        resistor_current,
        max_current,
    )
    trace.record(
        "branch",
        f"Branch: {effective_voltage:.2f}V effective, {current * 1000:.2f}mA,"
        f" {params.total_resistance:.1f}Ω",
        components=[c.id for c in branch],
    )

    states = _walk(branch, source_voltage, current, groups, trace)
    if groups:
        trace.record("branch", f"Parallel groups in this branch: {len(groups)}")
    states.update(_parallel_states(groups, effective_voltage, trace))
    return states
