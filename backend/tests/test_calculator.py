"""Unit tests for circuit calculation and branch evaluation."""

import pytest

from boards import p

from circuitwiz.electrical.calculator import (
    COMPONENT_CALCULATORS,
    calculate_circuit,
    calculate_circuit_parameters,
    calculate_parallel_branch_currents,
    process_branch,
    process_circuit_pathway,
)
from circuitwiz.electrical.trace import AnalysisTrace
from circuitwiz.schemas.circuit import (
    CircuitNode,
    NodeType,
    ParallelBranch,
    PathwayComponent,
    PathwayProperties,
)


# ─── Fixtures ───


def _source(voltage: float = 5.0, **kwargs) -> CircuitNode:
    return CircuitNode(
        type=NodeType.VOLTAGE_SOURCE, id="bat_positive", position=p(0, 0),
        voltage=voltage, **kwargs,
    )


def _ground() -> CircuitNode:
    return CircuitNode(type=NodeType.GROUNDING_SOURCE, id="bat_negative", position=p(2, 0))


def _resistor(resistance: float, node_id: str = "r1", **kwargs) -> CircuitNode:
    return CircuitNode(
        type=NodeType.RESISTOR, id=node_id, position=p(0, 3), resistance=resistance, **kwargs
    )


def _led(forward_voltage: float = 2.0, node_id: str = "led1", **kwargs) -> CircuitNode:
    return CircuitNode(
        type=NodeType.LED, id=node_id, position=p(4, 3),
        forward_voltage=forward_voltage, **kwargs,
    )


def _element(element_id: str, element_type: str, **props) -> PathwayComponent:
    return PathwayComponent(
        id=element_id,
        type=element_type,
        position=p(0, 0),
        component_id=element_id.split("_")[0],
        properties=PathwayProperties(**props),
    )


def _battery_pos(voltage: float = 5.0) -> PathwayComponent:
    return _element("bat_positive", "Battery", terminal_type="POSITIVE", voltage=voltage)


def _battery_neg() -> PathwayComponent:
    return _element("bat_negative", "Battery", terminal_type="NEGATIVE", is_groundable=True)


# ═══════════════════════════════════════════════════════════
# calculate_circuit gates
# ═══════════════════════════════════════════════════════════


class TestCalculateCircuitGates:
    def test_no_voltage_source(self):
        result = calculate_circuit([_ground(), _resistor(1000)], [], True)
        assert not result.works
        assert result.reason == "No voltage source found in circuit"
        assert result.component_states == {}

    def test_no_voltage_source_regardless_of_others(self):
        result = calculate_circuit([_led(), _resistor(10)], [], False)
        assert result.reason == "No voltage source found in circuit"

    def test_no_ground(self):
        result = calculate_circuit([_source(), _resistor(1000)], [], True)
        assert result.reason == "No grounding source found in circuit"
        assert result.battery_voltage == 5.0

    def test_no_continuity(self):
        result = calculate_circuit([_source(), _ground(), _resistor(1000)], [], False)
        assert result.reason == "No continuity - circuit is not complete"
        assert result.component_states == {}

    def test_voltage_too_low_for_leds(self):
        result = calculate_circuit([_source(1.0), _ground(), _led(2.0)], [], True)
        assert not result.works
        assert result.reason == "Battery voltage too low to power LEDs"
        assert result.errors == ["Battery voltage (1.0V) too low to power LEDs (2.0V)"]


# ═══════════════════════════════════════════════════════════
# calculate_circuit values
# ═══════════════════════════════════════════════════════════


class TestCalculateCircuitValues:
    def test_single_resistor(self):
        result = calculate_circuit([_source(), _ground(), _resistor(1000)], [], True)
        assert result.works
        assert result.current == pytest.approx(0.005)
        r1 = result.component_states["r1"]
        assert r1.output_voltage == pytest.approx(0.0)
        assert r1.voltage_drop == pytest.approx(5.0)
        assert result.component_states["bat_negative"].status == "grounded"

    def test_resistor_and_led(self):
        result = calculate_circuit(
            [_source(), _ground(), _resistor(220), _led(2.0)], [], True
        )
        assert result.voltage_across_resistors == pytest.approx(3.0)
        assert result.current == pytest.approx(3 / 220)
        led = result.component_states["led1"]
        assert led.is_on is True
        assert led.status == "on"
        assert led.output_voltage == pytest.approx(0.0, abs=1e-9)

    def test_current_conserved_along_pathway(self):
        result = calculate_circuit(
            [_source(9.0), _resistor(100, "r1"), _led(2.0), _resistor(250, "r2"), _ground()],
            [],
            True,
        )
        currents = {s.output_current for s in result.component_states.values()}
        assert len(currents) == 1

    def test_voltage_never_rises_toward_ground(self):
        result = calculate_circuit(
            [_source(9.0), _resistor(100, "r1"), _led(2.0), _resistor(250, "r2"), _ground()],
            [],
            True,
        )
        states = result.component_states
        voltages = [states[k].output_voltage for k in ("bat_positive", "r1", "led1", "r2", "bat_negative")]
        assert voltages == sorted(voltages, reverse=True)

    def test_no_resistance_draws_no_current(self):
        result = calculate_circuit([_source(), _ground(), _led(2.0)], [], True)
        assert result.works
        assert result.current == 0
        assert result.component_states["led1"].is_on is False

    def test_power_aggregates(self):
        result = calculate_circuit(
            [_source(), _ground(), _resistor(220), _led(2.0)], [], True
        )
        current = 3 / 220
        assert result.power_battery == pytest.approx(5 * current)
        assert result.power_resistors == pytest.approx(current**2 * 220)
        assert result.power_leds == pytest.approx(current * 2.0)

    def test_overload_reported_not_fatal_to_values(self):
        result = calculate_circuit(
            [_source(), _ground(), _resistor(10, max_power=0.25)], [], True
        )
        assert not result.works
        assert result.errors == ["Resistor r1 exceeded power limit: 2.500W > 0.25W"]
        assert result.component_states["r1"].power == pytest.approx(2.5)

    def test_no_limit_no_error(self):
        result = calculate_circuit([_source(), _ground(), _resistor(10)], [], True)
        assert result.works

    def test_trace_is_recorded(self):
        trace = AnalysisTrace()
        calculate_circuit([_source(), _ground(), _resistor(1000)], [], True, trace)
        assert len(trace.stage("calculate")) >= 2


# ═══════════════════════════════════════════════════════════
# Calculators & branch evaluation
# ═══════════════════════════════════════════════════════════


class TestComponentCalculators:
    def test_registry_keys(self):
        assert set(COMPONENT_CALCULATORS) == {
            "battery", "powersupply", "ground", "resistor", "led", "motor",
        }

    def test_resistor_clamps_at_zero(self):
        result = COMPONENT_CALCULATORS["resistor"](
            PathwayProperties(resistance=1000), 1.0, 0.01
        )
        assert result["output_voltage"] == 0.0
        assert result["voltage_drop"] == pytest.approx(10.0)

    def test_led_off_below_forward_voltage(self):
        result = COMPONENT_CALCULATORS["led"](PathwayProperties(forward_voltage=2.0), 1.5, 0.01)
        assert result["is_on"] is False
        assert result["status"] == "off"

    def test_motor_runs_at_nominal(self):
        result = COMPONENT_CALCULATORS["motor"](
            PathwayProperties(nominal_voltage=3.0), 5.0, 0.1
        )
        assert result["status"] == "running"
        assert result["output_voltage"] == pytest.approx(2.0)


class TestCircuitParameters:
    def test_series_and_led(self):
        params = calculate_circuit_parameters(
            [_element("r1", "Resistor", resistance=220), _element("led1", "LED", forward_voltage=2.0)]
        )
        assert params.total_resistance == 220
        assert params.total_voltage_drop == 2.0
        assert params.led_current_requirement == 0.02

    def test_parallel_members_not_counted_twice(self):
        ra = _element("ra", "Resistor", resistance=100)
        rb = _element("rb", "Resistor", resistance=100)
        group = ParallelBranch(id="parallel-ra-rb", components=[ra, rb])
        params = calculate_circuit_parameters([ra, rb], [group])
        assert params.parallel_resistance == pytest.approx(50.0)
        assert params.total_resistance == pytest.approx(50.0)

    def test_branch_currents(self):
        group = ParallelBranch(
            id="g",
            components=[
                _element("ra", "Resistor", resistance=100),
                _element("rb", "Resistor", resistance=300),
            ],
        )
        [updated] = calculate_parallel_branch_currents([group], 6.0)
        assert updated.total_resistance == pytest.approx(75.0)
        assert updated.current == pytest.approx(0.08)
        assert updated.voltage == 6.0
        assert group.current == 0.0


class TestProcessBranch:
    def test_no_ground_no_current(self):
        branch = [_battery_pos(), _element("r1", "Resistor", resistance=1000)]
        assert process_branch(branch, 5.0, 1.0) == {}

    def test_resistor_limited(self):
        branch = [_battery_pos(), _element("r1", "Resistor", resistance=1000), _battery_neg()]
        states = process_branch(branch, 5.0, 1.0)
        assert states["r1"].output_current == pytest.approx(0.005)
        assert states["r1"].output_voltage == pytest.approx(0.0)
        assert states["bat_positive"].output_voltage == 5.0
        assert states["bat_negative"].is_grounded

    def test_led_requirement_limits_current(self):
        branch = [
            _battery_pos(),
            _element("r1", "Resistor", resistance=10),
            _element("led1", "LED", forward_voltage=2.0, max_current=0.02),
            _battery_neg(),
        ]
        states = process_branch(branch, 5.0, 1.0)
        assert states["led1"].output_current == pytest.approx(0.02)
        assert states["led1"].is_on

    def test_source_limit(self):
        branch = [_battery_pos(), _element("r1", "Resistor", resistance=10), _battery_neg()]
        states = process_branch(branch, 5.0, 0.005)
        assert states["r1"].output_current == pytest.approx(0.005)

    def test_no_resistance_uses_source_ceiling(self):
        branch = [_battery_pos(), _element("m1", "Motor", nominal_voltage=3.0, running_current=0.1), _battery_neg()]
        states = process_branch(branch, 5.0, 1.0)
        assert states["m1"].output_current == pytest.approx(min(0.02 + 0.1, 1.0))

    def test_ground_evaluated_last(self):
        branch = [
            _battery_pos(),
            _element("r1", "Resistor", resistance=100),
            _battery_neg(),
            _element("led1", "LED", forward_voltage=2.0),
        ]
        states = process_branch(branch, 5.0, 1.0)
        assert states["led1"].is_on

    def test_parallel_group_at_effective_voltage(self):
        ra = _element("ra", "Resistor", resistance=100)
        rb = _element("rb", "Resistor", resistance=100)
        group = ParallelBranch(id="g", components=[ra, rb])
        branch = [_battery_pos(), ra, rb, _battery_neg()]
        states = process_branch(branch, 5.0, 1.0, [group])
        assert states["ra"].output_current == pytest.approx(0.05)
        assert states["rb"].output_current == pytest.approx(0.05)

    def test_unrelated_parallel_group_ignored(self):
        other = ParallelBranch(
            id="g",
            components=[_element("rx", "Resistor", resistance=10), _element("ry", "Resistor", resistance=10)],
        )
        branch = [_battery_pos(), _element("r1", "Resistor", resistance=1000), _battery_neg()]
        states = process_branch(branch, 5.0, 1.0, [other])
        assert "rx" not in states
        assert states["r1"].output_current == pytest.approx(0.005)


class TestProcessCircuitPathway:
    def test_empty(self):
        assert process_circuit_pathway([], 5.0, 1.0) == {}

    def test_no_ground_check(self):
        states = process_circuit_pathway(
            [_battery_pos(), _element("r1", "Resistor", resistance=1000)], 5.0, 1.0
        )
        assert states["r1"].output_current == pytest.approx(0.005)

    def test_led_drop_exceeds_source(self):
        states = process_circuit_pathway(
            [_battery_pos(1.0), _element("r1", "Resistor", resistance=100), _element("led1", "LED", forward_voltage=2.0)],
            1.0,
            1.0,
        )
        assert states["led1"].output_current == 0
        assert not states["led1"].is_on
