from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from circuitwiz.schemas.grid import GridCell, Position
from circuitwiz.schemas.wire import WireConnection


class NodeType(str, Enum):
    VOLTAGE_SOURCE = "VoltageSource"
    GROUNDING_SOURCE = "GroundingSource"
    RESISTOR = "Resistor"
    LED = "LED"
    POWER_SUPPLY = "PowerSupply"
    ARDUINO = "Arduino"
    SWITCH = "Switch"
    MOTOR = "Motor"
    SENSOR = "Sensor"


SOURCE_NODE_TYPES = frozenset({NodeType.VOLTAGE_SOURCE, NodeType.POWER_SUPPLY})


class CircuitNode(BaseModel):
    """One element of a traced pathway, fed to ``calculate_circuit``."""

    type: NodeType
    id: str
    position: Position
    voltage: float | None = None
    resistance: float | None = None
    forward_voltage: float | None = None
    max_current: float | None = None
    current: float | None = None
    power: float | None = None
    max_power: float | None = None
    is_powered: bool = False
    is_grounded: bool = False
    status: str | None = None
    component_id: str | None = None
    cell_index: int | None = None
    # Absolute positions of every connectable cell of the owning component.
    terminals: list[Position] = Field(default_factory=list)


class PathwayProperties(BaseModel):
    terminal_type: str | None = None
    is_groundable: bool = False
    resistance: float | None = None
    voltage: float | None = None
    current: float | None = None
    forward_voltage: float | None = None
    max_current: float | None = None
    nominal_voltage: float | None = None
    running_current: float | None = None


class PathwayComponent(BaseModel):
    """One element of a fan-out branch (``find_circuit_branches``)."""

    id: str
    type: str
    position: Position
    properties: PathwayProperties = Field(default_factory=PathwayProperties)
    component_id: str | None = None

    def is_ground(self) -> bool:
        return self.properties.is_groundable or self.properties.terminal_type in (
            "GND",
            "NEGATIVE",
        )


class ParallelBranch(BaseModel):
    id: str
    components: list[PathwayComponent] = Field(default_factory=list)
    total_resistance: float = 0.0
    current: float = 0.0
    voltage: float = 0.0


class ComponentState(BaseModel):
    component_id: str
    component_type: str
    position: Position
    output_voltage: float = 0.0
    output_current: float = 0.0
    power: float = 0.0
    status: str = "unpowered"
    is_powered: bool = False
    is_grounded: bool = False
    voltage_drop: float | None = None
    forward_voltage: float | None = None
    is_on: bool | None = None


class PowerSource(BaseModel):
    id: str
    voltage: float
    position: Position
    max_current: float


class JunctionNode(BaseModel):
    id: str
    position: Position
    connections: list[str] = Field(default_factory=list)
    is_junction: bool = True


class TraceEvent(BaseModel):
    stage: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class CircuitCalculation(BaseModel):
    works: bool
    reason: str | None = None
    battery_voltage: float = 0.0
    total_led_voltage: float = 0.0
    total_resistance: float = 0.0
    current: float = 0.0
    voltage_across_resistors: float = 0.0
    power_battery: float = 0.0
    power_resistors: float = 0.0
    power_leds: float = 0.0
    component_states: dict[str, ComponentState] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class PathwayReport(BaseModel):
    pathways: list[list[CircuitNode]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ElectricalFlowResult(BaseModel):
    component_states: dict[str, ComponentState] = Field(default_factory=dict)
    updated_wires: list[WireConnection] = Field(default_factory=list)
    updated_grid_data: list[list[GridCell]] = Field(default_factory=list)
    parallel_branches: list[ParallelBranch] = Field(default_factory=list)
    circuit_current: float = 0.0
    trace: list[TraceEvent] = Field(default_factory=list)
