"""Simulation Orchestrator

Runs the full electrical pipeline for one board:
  Flow → Pathways → Continuity + Calculate (per pathway) → Validate
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status

from circuitwiz.config import Settings, get_settings
from circuitwiz.electrical.calculator import calculate_circuit
from circuitwiz.electrical.continuity import check_continuity
from circuitwiz.electrical.flow import calculate_electrical_flow
from circuitwiz.electrical.nodes import CircuitInputError, extract_placed_components
from circuitwiz.electrical.topology import find_circuit_pathways
from circuitwiz.electrical.trace import AnalysisTrace
from circuitwiz.schemas.board import Board, PathwayEvaluation, SimulationResult
from circuitwiz.schemas.circuit import ElectricalFlowResult, PathwayReport
from circuitwiz.schemas.validation import ValidationResult, ValidationStatus
from circuitwiz.validation.engine import validate_board

logger = logging.getLogger(__name__)


@contextmanager
def input_errors_as_http() -> Iterator[None]:
    """Surface malformed boards as 422 instead of a server error."""
    try:
        yield
    except CircuitInputError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e


def _check_limits(board: Board, settings: Settings) -> None:
    if len(board.wires) > settings.max_wires:
        raise CircuitInputError(
            f"Board has {len(board.wires)} wires (limit {settings.max_wires})"
        )


def run_flow(board: Board, settings: Settings | None = None) -> ElectricalFlowResult:
    settings = settings or get_settings()
    _check_limits(board, settings)
    return calculate_electrical_flow(
        board.grid,
        board.wires,
        trace=AnalysisTrace(logger),
        max_width=settings.max_grid_width,
        max_height=settings.max_grid_height,
    )


def run_pathways(board: Board) -> PathwayReport:
    return find_circuit_pathways(
        extract_placed_components(board.grid),
        board.wires,
        trace=AnalysisTrace(logger),
    )


def run_simulation(board: Board, settings: Settings | None = None) -> SimulationResult:
    """Execute the full simulation of one board."""
    settings = settings or get_settings()
    logger.info(
        "Simulation START: %d rows, %d wires", len(board.grid), len(board.wires)
    )

    # Phase 1: electrical flow
    flow = run_flow(board, settings)
    logger.info(
        "Phase 1 complete — %d component states, %.4fA",
        len(flow.component_states),
        flow.circuit_current,
    )

    # Phase 2: pathway tracing
    report = run_pathways(board)
    logger.info(
        "Phase 2 complete — %d pathways, %d errors, %d warnings",
        len(report.pathways),
        len(report.errors),
        len(report.warnings),
    )

    # Phase 3: per-pathway evaluation
    evaluations: list[PathwayEvaluation] = []
    for nodes in report.pathways:
        trace = AnalysisTrace(logger)
        has_continuity = check_continuity(nodes, board.wires, trace)
        evaluations.append(
            PathwayEvaluation(
                nodes=nodes,
                has_continuity=has_continuity,
                calculation=calculate_circuit(nodes, board.wires, has_continuity, trace),
            )
        )
    logger.info(
        "Phase 3 complete — %d/%d pathways work",
        sum(1 for e in evaluations if e.calculation.works),
        len(evaluations),
    )

    # Phase 4: validation over the live wires
    validation = run_validation(
        Board(grid=flow.updated_grid_data, wires=flow.updated_wires), settings
    )
    logger.info(
        "Phase 4 complete — %s, %d errors, %d warnings",
        validation.status.value,
        len(validation.errors),
        len(validation.warnings),
    )

    simulation_status = (
        "completed"
        if validation.status == ValidationStatus.VALID
        and not report.errors
        and all(e.calculation.works for e in evaluations)
        else "completed_with_errors"
    )

    return SimulationResult(
        flow=flow,
        pathways=report,
        evaluations=evaluations,
        validation=validation,
        simulation_status=simulation_status,
    )


def run_validation(board: Board, settings: Settings | None = None) -> ValidationResult:
    return validate_board(board, settings=settings or get_settings())
