"""Circuit laws — pure DC relations used by every calculator.

None of these guard against division by zero: current through a
zero-resistance segment is undefined and callers must check first.
"""

from __future__ import annotations

from collections.abc import Iterable


def ohm_current(voltage: float, resistance: float) -> float:
    return voltage / resistance


def ohm_voltage(current: float, resistance: float) -> float:
    return current * resistance


def ohm_resistance(current: float, voltage: float) -> float:
    return voltage / current


def power(voltage: float, current: float) -> float:
    return voltage * current


def power_resistor(current: float, resistance: float) -> float:
    return current * current * resistance


def power_led(current: float, forward_voltage: float) -> float:
    return current * forward_voltage


def power_battery(current: float, voltage: float) -> float:
    return current * voltage


def series_resistance(resistances: Iterable[float]) -> float:
    return sum(resistances, 0.0)


def parallel_resistance(resistances: Iterable[float]) -> float:
    """1/R = Σ 1/Rn. Any zero-ohm branch shorts the whole group to 0."""
    values = list(resistances)
    if not values or 0 in values:
        return 0.0
    return 1 / sum(1 / r for r in values)


# ─── LED helpers ───

LED_SPECS: dict[str, dict[str, float]] = {
    "standard": {"voltage": 2.0, "current": 0.02},
    "red": {"voltage": 1.8, "current": 0.02},
    "green": {"voltage": 2.2, "current": 0.02},
    "blue": {"voltage": 3.3, "current": 0.02},
    "white": {"voltage": 3.3, "current": 0.02},
    "yellow": {"voltage": 2.1, "current": 0.02},
}


def get_led_specs(color: str = "standard") -> dict[str, float]:
    return LED_SPECS.get(color, LED_SPECS["standard"])


def led_series_resistor(
    supply_voltage: float, forward_voltage: float, led_current: float
) -> float:
    """Resistance that limits an LED to ``led_current`` on ``supply_voltage``."""
    return ohm_resistance(led_current, supply_voltage - forward_voltage)
