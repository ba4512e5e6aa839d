"""Tests for the component module registry."""

import pytest

from circuitwiz.modules.registry import (
    get_all_modules,
    get_categories,
    get_module,
    get_modules_by_category,
    parse_definition,
    require_module,
    validate_module,
)
from circuitwiz.schemas.grid import OutputDefinition, PowerDefinition


class TestRegistry:
    def test_every_definition_is_valid(self):
        modules = get_all_modules()
        assert len(modules) == 8
        for definition in modules:
            assert validate_module(definition), definition.module

    def test_categories(self):
        assert get_categories() == [
            "actuator",
            "microcontroller",
            "output",
            "passive",
            "power",
            "sensor",
            "switch",
        ]

    def test_by_category(self):
        names = {m.module for m in get_modules_by_category("power")}
        assert names == {"Battery", "PowerSupply"}

    def test_lookup_returns_typed_definition(self):
        battery = get_module("Battery")
        assert isinstance(battery, PowerDefinition)
        assert battery.voltage == 5.0
        assert isinstance(get_module("LED"), OutputDefinition)
        assert get_module("Flux Capacitor") is None

    def test_require_unknown_module(self):
        with pytest.raises(KeyError, match="Flux Capacitor"):
            require_module("Flux Capacitor")


class TestValidateModule:
    def test_footprint_must_be_filled(self):
        definition = parse_definition(
            {
                "module": "Half",
                "category": "passive",
                "grid_x": 2,
                "grid_y": 1,
                "grid": [{"x": 0, "y": 0, "is_connectable": True, "type": "LEAD"}],
            }
        )
        assert not validate_module(definition)

    def test_cells_inside_footprint(self):
        definition = parse_definition(
            {
                "module": "Offset",
                "category": "passive",
                "grid_x": 1,
                "grid_y": 1,
                "grid": [{"x": 1, "y": 0, "type": "LEAD"}],
            }
        )
        assert not validate_module(definition)
