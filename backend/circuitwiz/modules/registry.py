"""Module registry — component definitions shipped as JSON.

Each file in ``definitions/`` is one ``ComponentDefinition`` variant,
discriminated by its ``category``. Loaded once and cached.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter

from circuitwiz.schemas.grid import ComponentDefinition

DEFINITIONS_DIR = Path(__file__).parent / "definitions"

_definition_adapter: TypeAdapter[ComponentDefinition] = TypeAdapter(
    ComponentDefinition
)
_registry_cache: dict[str, ComponentDefinition] | None = None


def _load_registry() -> dict[str, ComponentDefinition]:
    """Parse every definition file (cached), keyed by module name."""
    global _registry_cache
    if _registry_cache is None:
        registry: dict[str, ComponentDefinition] = {}
        for path in sorted(DEFINITIONS_DIR.glob("*.json")):
            with open(path) as f:
                definition = _definition_adapter.validate_python(json.load(f))
            registry[definition.module] = definition
        _registry_cache = registry
    return _registry_cache


def parse_definition(data: dict) -> ComponentDefinition:
    return _definition_adapter.validate_python(data)


def get_module(name: str) -> ComponentDefinition | None:
    return _load_registry().get(name)


def require_module(name: str) -> ComponentDefinition:
    definition = get_module(name)
    if definition is None:
        raise KeyError(f"Unknown module '{name}'")
    return definition


def get_all_modules() -> list[ComponentDefinition]:
    return list(_load_registry().values())


def get_modules_by_category(category: str) -> list[ComponentDefinition]:
    return [m for m in _load_registry().values() if m.category == category]


def get_categories() -> list[str]:
    return sorted({m.category for m in _load_registry().values()})


def validate_module(definition: ComponentDefinition) -> bool:
    """A definition is usable when its cell list fills its footprint exactly
    and every cell sits inside that footprint."""
    if not definition.module or definition.grid_x <= 0 or definition.grid_y <= 0:
        return False
    if len(definition.grid) != definition.grid_x * definition.grid_y:
        return False
    return all(
        0 <= cell.x < definition.grid_x and 0 <= cell.y < definition.grid_y
        for cell in definition.grid
    )
