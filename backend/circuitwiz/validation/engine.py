"""Electrical Validation Engine — Deterministic Rule-Based Board Checker.

Runs after an electrical pass, over a board whose wires already carry live
voltage / current. Validates against these rules:
  1. LED current-limiting resistor presence
  2. LED overcurrent
  3. LED overvoltage
  4. Resistor power rating
  5. Battery / power supply current draw
  6. Wire overcurrent and overpower (gauge limits)
  7. Direct supply shorts (positive and negative on one wire network)
  8. Microcontroller GPIO overcurrent

Input:  Board (Pydantic model) + Settings thresholds
Output: ValidationResult with status VALID|INVALID, errors[], warnings[]
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from circuitwiz.config import Settings, get_settings
from circuitwiz.schemas.board import Board
from circuitwiz.schemas.grid import POWER_MODULES, GridCell, Position
from circuitwiz.schemas.validation import (
    ValidationError,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)
from circuitwiz.schemas.wire import WireConnection
from circuitwiz.wiring.gauges import merge_connected_wires


# ─── Internal Helpers ───


@dataclass
class _Component:
    id: str
    type: str
    cell: GridCell
    cells: list[Position] = field(default_factory=list)


def _components(board: Board) -> list[_Component]:
    """Group occupied cells by component id, in row-major order."""
    found: dict[str, _Component] = {}
    for y, row in enumerate(board.grid):
        for x, cell in enumerate(row):
            if not (cell.occupied and cell.component_id):
                continue
            comp = found.get(cell.component_id)
            if comp is None:
                comp = found[cell.component_id] = _Component(
                    id=cell.component_id,
                    type=cell.component_type or "",
                    cell=cell,
                )
            comp.cells.append(Position(x=x, y=y))
    return list(found.values())


def _wires_for(board: Board, component: _Component) -> list[WireConnection]:
    """Return all wires touching any cell of a component."""
    return [w for w in board.wires if any(w.touches(p) for p in component.cells)]


def _component_voltage(board: Board, component: _Component) -> float:
    return max((w.voltage for w in _wires_for(board, component)), default=0.0)


def _component_current(board: Board, component: _Component) -> float:
    return max((w.current for w in _wires_for(board, component)), default=0.0)


def _component_resistance(component: _Component) -> float:
    definition = component.cell.module_definition
    if component.cell.resistance and component.cell.resistance > 0:
        return component.cell.resistance
    if definition is not None:
        body = next((c for c in definition.grid if c.resistance), None)
        if body is not None and body.resistance:
            return body.resistance
        return getattr(definition, "resistance", None) or 1000.0
    return 1000.0


def _cell_type_at(board: Board, pos: Position) -> str | None:
    if 0 <= pos.y < len(board.grid) and 0 <= pos.x < len(board.grid[pos.y]):
        return board.grid[pos.y][pos.x].component_type
    return None


CheckFn = Callable[[Board, Settings], list[ValidationError]]


# ═══════════════════════════════════════════════════════════
# Check 1: LED Current-Limiting Resistor
# ═══════════════════════════════════════════════════════════


def check_led_current_limiting(board: Board, limits: Settings) -> list[ValidationError]:
    """A powered LED must share a wire with a resistor."""
    errors: list[ValidationError] = []

    for comp in _components(board):
        if comp.type != "LED":
            continue
        voltage = _component_voltage(board, comp)
        has_resistor = any(
            _cell_type_at(board, p) == "Resistor"
            for wire in _wires_for(board, comp)
            for seg in wire.segments
            for p in (seg.from_, seg.to)
        )
        if not has_resistor and voltage > 0:
            errors.append(
                ValidationError(
                    code="E_LED_NO_RESISTOR",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"LED {comp.id} without current limiting resistor! "
                        f"Voltage: {voltage}V"
                    ),
                    component_ids=[comp.id],
                    component_type="LED",
                    suggestion="Add a resistor in series to prevent damage",
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 2 & 3: LED Current / Voltage
# ═══════════════════════════════════════════════════════════


def check_led_limits(board: Board, limits: Settings) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for comp in _components(board):
        if comp.type != "LED":
            continue
        voltage = _component_voltage(board, comp)
        current = _component_current(board, comp)

        if current > limits.led_max_current:
            errors.append(
                ValidationError(
                    code="W_LED_OVERCURRENT",
                    severity=ValidationSeverity.WARNING,
                    message=(
                        f"LED {comp.id} current too high: {current * 1000:.1f}mA. "
                        f"Recommended: <{limits.led_max_current * 1000:.0f}mA"
                    ),
                    component_ids=[comp.id],
                    component_type="LED",
                    suggestion="Increase the series resistance",
                )
            )

        if voltage > limits.led_max_voltage:
            errors.append(
                ValidationError(
                    code="E_LED_OVERVOLTAGE",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"LED {comp.id} voltage too high: {voltage}V. "
                        f"Most LEDs need 1.8-{limits.led_max_voltage}V"
                    ),
                    component_ids=[comp.id],
                    component_type="LED",
                    suggestion="Drop the excess voltage across a series resistor",
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 4: Resistor Power Rating
# ═══════════════════════════════════════════════════════════


def check_resistor_power(board: Board, limits: Settings) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for comp in _components(board):
        if comp.type != "Resistor":
            continue
        resistance = _component_resistance(comp)
        voltage = _component_voltage(board, comp)
        if resistance <= 0:
            continue
        dissipated = voltage * (voltage / resistance)

        if dissipated > limits.resistor_power_rating:
            errors.append(
                ValidationError(
                    code="W_RESISTOR_OVERPOWER",
                    severity=ValidationSeverity.WARNING,
                    message=(
                        f"Resistor {comp.id} power rating exceeded: "
                        f"{dissipated:.3f}W > {limits.resistor_power_rating}W"
                    ),
                    component_ids=[comp.id],
                    component_type="Resistor",
                    suggestion="Consider a higher wattage resistor",
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 5: Supply Current Draw
# ═══════════════════════════════════════════════════════════


def check_supply_current(board: Board, limits: Settings) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for comp in _components(board):
        if comp.type == "Battery":
            limit, code, hint = (
                limits.battery_max_current,
                "W_BATTERY_OVERCURRENT",
                "Check for short circuits",
            )
        elif comp.type == "PowerSupply":
            limit, code, hint = (
                limits.power_supply_max_current,
                "W_POWER_SUPPLY_OVERCURRENT",
                "Check circuit design",
            )
        else:
            continue

        current = _component_current(board, comp)
        if current > limit:
            errors.append(
                ValidationError(
                    code=code,
                    severity=ValidationSeverity.WARNING,
                    message=f"{comp.type} {comp.id} current high: {current:.2f}A",
                    component_ids=[comp.id],
                    component_type=comp.type,
                    suggestion=hint,
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 6: Wire Gauge Limits
# ═══════════════════════════════════════════════════════════


def check_wire_limits(board: Board, limits: Settings) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for wire in board.wires:
        if wire.current > wire.max_current:
            errors.append(
                ValidationError(
                    code="E_WIRE_OVERCURRENT",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"Wire {wire.id} overcurrent: {wire.current:.2f}A > "
                        f"{wire.max_current}A max ({wire.gauge} AWG)"
                    ),
                    component_ids=[wire.id],
                    suggestion="Use a thicker wire gauge",
                )
            )

        wire_power = wire.voltage * wire.current
        if wire_power > wire.max_power:
            errors.append(
                ValidationError(
                    code="E_WIRE_OVERPOWER",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"Wire {wire.id} overpower: {wire_power:.1f}W > "
                        f"{wire.max_power}W max"
                    ),
                    component_ids=[wire.id],
                    suggestion="Use a thicker wire gauge",
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 7: Direct Supply Shorts
# ═══════════════════════════════════════════════════════════


def check_supply_shorts(board: Board, limits: Settings) -> list[ValidationError]:
    """A single wire network joining a supply's positive and negative
    terminals bypasses every load."""
    errors: list[ValidationError] = []
    positive: dict[str, str] = {}
    negative: dict[str, str] = {}

    for y, row in enumerate(board.grid):
        for x, cell in enumerate(row):
            terminal = cell.terminal
            if terminal is None or cell.component_type not in POWER_MODULES:
                continue
            key = f"{x},{y}"
            if terminal.is_positive():
                positive[key] = cell.component_id or ""
            elif terminal.is_negative():
                negative[key] = cell.component_id or ""

    for network in merge_connected_wires(board.wires):
        points = {p.key for seg in network.segments for p in (seg.from_, seg.to)}
        hot = {positive[k] for k in points if k in positive}
        cold = {negative[k] for k in points if k in negative}
        if hot and cold:
            ids = sorted(hot | cold)
            errors.append(
                ValidationError(
                    code="E_SHORT_CIRCUIT",
                    severity=ValidationSeverity.ERROR,
                    message=(
                        f"Wire network {network.id} connects supply positive "
                        f"and negative directly ({', '.join(ids)})"
                    ),
                    component_ids=ids,
                    suggestion="Route the supply through a load",
                )
            )

    return errors


# ═══════════════════════════════════════════════════════════
# Check 8: GPIO Overcurrent
# ═══════════════════════════════════════════════════════════


def check_gpio_overcurrent(board: Board, limits: Settings) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for comp in _components(board):
        definition = comp.cell.module_definition
        if definition is None or definition.category != "microcontroller":
            continue
        max_current = definition.gpio_max_current

        for pos in comp.cells:
            cell = board.grid[pos.y][pos.x]
            terminal = cell.terminal
            if terminal is None or terminal.type != "GPIO":
                continue
            drawn = max(
                (w.current for w in board.wires if w.touches(pos)), default=0.0
            )
            if drawn > max_current:
                errors.append(
                    ValidationError(
                        code="E_GPIO_OVERCURRENT",
                        severity=ValidationSeverity.ERROR,
                        message=(
                            f"{comp.id} pin {terminal.pin} sources "
                            f"{drawn * 1000:.1f}mA but GPIO max is "
                            f"{max_current * 1000:.0f}mA"
                        ),
                        component_ids=[comp.id],
                        component_type=comp.type,
                        suggestion="Add a transistor driver between GPIO and load",
                    )
                )

    return errors


# ═══════════════════════════════════════════════════════════
# Main Validator
# ═══════════════════════════════════════════════════════════


# Registry of all checks
ALL_CHECKS: list[CheckFn] = [
    check_led_current_limiting,
    check_led_limits,
    check_resistor_power,
    check_supply_current,
    check_wire_limits,
    check_supply_shorts,
    check_gpio_overcurrent,
]


def validate_board(
    board: Board,
    checks: Sequence[CheckFn] | None = None,
    settings: Settings | None = None,
) -> ValidationResult:
    """Run all (or selected) validation checks on a board.

    Args:
        board: Grid and wires, wires carrying live values from a flow pass.
        checks: Optional subset of check functions to run.
                 Defaults to ALL_CHECKS.
        settings: Threshold source. Defaults to the cached app settings.

    Returns:
        ValidationResult with VALID/INVALID status, errors, warnings.
    """
    check_fns = checks if checks is not None else ALL_CHECKS
    limits = settings if settings is not None else get_settings()
    all_errors: list[ValidationError] = []
    all_warnings: list[ValidationError] = []
    checks_passed = 0

    for check_fn in check_fns:
        issues = check_fn(board, limits)
        errs = [e for e in issues if e.severity == ValidationSeverity.ERROR]
        warns = [e for e in issues if e.severity != ValidationSeverity.ERROR]
        all_errors.extend(errs)
        all_warnings.extend(warns)
        if not errs:
            checks_passed += 1

    status = (
        ValidationStatus.VALID if len(all_errors) == 0 else ValidationStatus.INVALID
    )

    return ValidationResult(
        status=status,
        errors=all_errors,
        warnings=all_warnings,
        checks_passed=checks_passed,
        checks_total=len(check_fns),
    )
