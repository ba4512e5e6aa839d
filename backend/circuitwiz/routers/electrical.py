"""Electrical router — stateless engine entry points."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from circuitwiz.electrical.calculator import calculate_circuit, process_branch
from circuitwiz.electrical.continuity import check_continuity
from circuitwiz.schemas.board import Board
from circuitwiz.schemas.circuit import (
    CircuitCalculation,
    CircuitNode,
    ComponentState,
    ElectricalFlowResult,
    ParallelBranch,
    PathwayComponent,
    PathwayReport,
)
from circuitwiz.schemas.wire import WireConnection
from circuitwiz.services.simulation import input_errors_as_http, run_flow, run_pathways

router = APIRouter()


class CalculateRequest(BaseModel):
    nodes: list[CircuitNode]
    wires: list[WireConnection] = Field(default_factory=list)
    has_continuity: bool = False


class ContinuityRequest(BaseModel):
    nodes: list[CircuitNode]
    wires: list[WireConnection] = Field(default_factory=list)


class ContinuityResponse(BaseModel):
    has_continuity: bool


class BranchRequest(BaseModel):
    branch: list[PathwayComponent]
    source_voltage: float = Field(..., ge=0)
    max_current: float = Field(..., ge=0)
    parallel_branches: list[ParallelBranch] = Field(default_factory=list)


@router.post("/flow", response_model=ElectricalFlowResult)
async def electrical_flow(board: Board):
    """Full electrical pass: component states, live wires, updated grid."""
    with input_errors_as_http():
        return run_flow(board)


@router.post("/pathways", response_model=PathwayReport)
async def circuit_pathways(board: Board):
    """Trace source → ground pathways with errors and warnings."""
    with input_errors_as_http():
        return run_pathways(board)


@router.post("/calculate", response_model=CircuitCalculation)
async def calculate(request: CalculateRequest):
    """Evaluate one series pathway of circuit nodes."""
    return calculate_circuit(request.nodes, request.wires, request.has_continuity)


@router.post("/continuity", response_model=ContinuityResponse)
async def continuity(request: ContinuityRequest):
    return ContinuityResponse(
        has_continuity=check_continuity(request.nodes, request.wires)
    )


@router.post("/branch", response_model=dict[str, ComponentState])
async def branch(request: BranchRequest):
    """Evaluate one fan-out branch with optional parallel resistor groups."""
    return process_branch(
        request.branch,
        request.source_voltage,
        request.max_current,
        request.parallel_branches,
    )
