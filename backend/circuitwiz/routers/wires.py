"""Wire router — gauge table and wire edits. Stateless: the caller sends
the full wire list and receives the edited list back."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from circuitwiz.schemas.wire import WireConnection, WireGaugeSpec
from circuitwiz.services.simulation import input_errors_as_http
from circuitwiz.wiring.gauges import (
    WIRE_GAUGES,
    merge_connected_wires,
    update_wire_color,
    update_wire_gauge,
)

router = APIRouter()


class GaugeEditRequest(BaseModel):
    wires: list[WireConnection]
    wire_id: str
    gauge: int


class ColorEditRequest(BaseModel):
    wires: list[WireConnection]
    wire_id: str
    color: str = Field(..., pattern=r"^#[0-9a-fA-F]{6}$")


class MergeRequest(BaseModel):
    wires: list[WireConnection]


@router.get("/gauges", response_model=list[WireGaugeSpec])
async def list_gauges():
    return WIRE_GAUGES


@router.post("/gauge", response_model=list[WireConnection])
async def set_gauge(request: GaugeEditRequest):
    """Change the gauge of a wire and every wire in its ownership group."""
    try:
        with input_errors_as_http():
            return update_wire_gauge(request.wires, request.wire_id, request.gauge)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Wire {request.wire_id} not found",
        ) from e


@router.post("/color", response_model=list[WireConnection])
async def set_color(request: ColorEditRequest):
    try:
        return update_wire_color(request.wires, request.wire_id, request.color)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Wire {request.wire_id} not found",
        ) from e


@router.post("/merge", response_model=list[WireConnection])
async def merge(request: MergeRequest):
    """Collapse wires that share endpoints into network wires."""
    return merge_connected_wires(request.wires)
