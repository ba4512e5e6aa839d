from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

# Terminal roles. A cell is a power terminal if its type OR its pin label matches.
POSITIVE_TYPES = frozenset({"POSITIVE", "VCC"})
POSITIVE_PINS = frozenset({"+", "5V"})
NEGATIVE_TYPES = frozenset({"NEGATIVE", "GND"})
NEGATIVE_PINS = frozenset({"-", "GND"})

POWER_MODULES = frozenset({"Battery", "PowerSupply"})


class Position(BaseModel):
    x: int
    y: int

    @property
    def key(self) -> str:
        return f"{self.x},{self.y}"

    def offset(self, dx: int, dy: int) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)


class TerminalCell(BaseModel):
    """One cell of a component footprint, relative to the component anchor."""

    x: int
    y: int
    is_connectable: bool = False
    type: str = "BODY"  # POSITIVE, NEGATIVE, VCC, GND, LEAD, LED_POSITIVE, GPIO ...
    pin: str | None = None
    is_powerable: bool = False
    is_groundable: bool = False
    voltage: float | None = None
    current: float | None = None
    resistance: float | None = None
    max_power: float | None = None

    def is_positive(self) -> bool:
        return self.type in POSITIVE_TYPES or self.pin in POSITIVE_PINS

    def is_negative(self) -> bool:
        return self.type in NEGATIVE_TYPES or self.pin in NEGATIVE_PINS

    def is_power_terminal(self) -> bool:
        return self.is_positive() or self.is_negative()


class _DefinitionBase(BaseModel):
    module: str
    grid_x: int
    grid_y: int
    grid: list[TerminalCell] = Field(default_factory=list)
    description: str | None = None
    manufacturer: str | None = None

    def cell(self, index: int | None) -> TerminalCell | None:
        idx = index or 0
        if 0 <= idx < len(self.grid):
            return self.grid[idx]
        return None

    def connectable_cells(self) -> list[tuple[int, TerminalCell]]:
        return [(i, c) for i, c in enumerate(self.grid) if c.is_connectable]


class PowerDefinition(_DefinitionBase):
    category: Literal["power"] = "power"
    voltage: float = 5.0
    max_current: float = 1.0
    max_power: float | None = None


class PassiveDefinition(_DefinitionBase):
    category: Literal["passive"] = "passive"
    resistance: float = 1000.0
    power_rating: float = 0.25


class OutputDefinition(_DefinitionBase):
    category: Literal["output"] = "output"
    forward_voltage: float = 2.0
    max_current: float = 0.02
    max_power: float = 0.1


class ActuatorDefinition(_DefinitionBase):
    category: Literal["actuator"] = "actuator"
    nominal_voltage: float = 3.0
    running_current: float = 0.1


class SwitchDefinition(_DefinitionBase):
    category: Literal["switch"] = "switch"
    is_closed: bool = True


class SensorDefinition(_DefinitionBase):
    category: Literal["sensor"] = "sensor"
    operating_voltage: float = 5.0


class MicrocontrollerDefinition(_DefinitionBase):
    category: Literal["microcontroller"] = "microcontroller"
    logic_voltage: float = 5.0
    gpio_max_current: float = 0.04


ComponentDefinition = Annotated[
    Union[
        PowerDefinition,
        PassiveDefinition,
        OutputDefinition,
        ActuatorDefinition,
        SwitchDefinition,
        SensorDefinition,
        MicrocontrollerDefinition,
    ],
    Field(discriminator="category"),
]


class GridCell(BaseModel):
    x: int = 0
    y: int = 0
    occupied: bool = False
    component_id: str | None = None
    component_type: str | None = None
    module_definition: ComponentDefinition | None = None
    cell_index: int | None = None
    resistance: float | None = None
    voltage: float | None = None
    current: float | None = None
    is_powered: bool = False
    is_on: bool | None = None

    @property
    def terminal(self) -> TerminalCell | None:
        if self.module_definition is None:
            return None
        return self.module_definition.cell(self.cell_index)


class PlacedComponent(BaseModel):
    """A component placed on the grid, anchored at the position of its cell 0."""

    component_id: str
    component_type: str
    x: int
    y: int
    module_definition: ComponentDefinition
    resistance: float | None = None

    @property
    def module(self) -> str:
        return self.module_definition.module

    def absolute(self, cell: TerminalCell) -> Position:
        return Position(x=self.x + cell.x, y=self.y + cell.y)

    def cell_at(self, position: Position) -> tuple[int, TerminalCell] | None:
        for index, cell in enumerate(self.module_definition.grid):
            if self.x + cell.x == position.x and self.y + cell.y == position.y:
                return index, cell
        return None

    def terminal_positions(self) -> list[Position]:
        return [
            self.absolute(cell)
            for _, cell in self.module_definition.connectable_cells()
        ]
