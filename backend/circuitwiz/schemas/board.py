from __future__ import annotations

from pydantic import BaseModel, Field

from circuitwiz.schemas.circuit import (
    CircuitCalculation,
    CircuitNode,
    ElectricalFlowResult,
    PathwayReport,
)
from circuitwiz.schemas.grid import GridCell
from circuitwiz.schemas.validation import ValidationResult
from circuitwiz.schemas.wire import WireConnection


class Board(BaseModel):
    """Everything the UI holds for one circuit: the placement grid and its wires."""

    grid: list[list[GridCell]] = Field(default_factory=list)
    wires: list[WireConnection] = Field(default_factory=list)


class PathwayEvaluation(BaseModel):
    nodes: list[CircuitNode] = Field(default_factory=list)
    has_continuity: bool = False
    calculation: CircuitCalculation


class SimulationResult(BaseModel):
    flow: ElectricalFlowResult
    pathways: PathwayReport
    evaluations: list[PathwayEvaluation] = Field(default_factory=list)
    validation: ValidationResult
    simulation_status: str = "completed"
