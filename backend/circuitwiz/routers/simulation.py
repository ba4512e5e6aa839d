from fastapi import APIRouter

from circuitwiz.schemas.board import Board, SimulationResult
from circuitwiz.schemas.validation import ValidationResult
from circuitwiz.services.simulation import (
    input_errors_as_http,
    run_flow,
    run_simulation,
    run_validation,
)

router = APIRouter()


@router.post("/run", response_model=SimulationResult)
async def run_full_simulation(board: Board):
    """Execute the full simulation: Flow → Pathways → Calculate → Validate"""
    with input_errors_as_http():
        return run_simulation(board)


@router.post("/validate", response_model=ValidationResult)
async def validate_only(board: Board):
    """Run a flow pass, then validate the board against its live values."""
    with input_errors_as_http():
        flow = run_flow(board)
    return run_validation(Board(grid=flow.updated_grid_data, wires=flow.updated_wires))
