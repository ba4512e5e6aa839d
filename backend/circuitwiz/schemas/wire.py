from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from circuitwiz.schemas.grid import Position

DEFAULT_WIRE_COLOR = "#666666"


class WireSegment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_: Position = Field(alias="from")
    to: Position
    is_powered: bool = False
    is_grounded: bool = False
    is_powerable: bool = True
    is_groundable: bool = True
    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0
    color: str = DEFAULT_WIRE_COLOR
    thickness: int = 3
    gauge: int = 14
    max_current: float = 15.0
    max_power: float = 1800.0

    def touches(self, position: Position) -> bool:
        return (self.from_.x == position.x and self.from_.y == position.y) or (
            self.to.x == position.x and self.to.y == position.y
        )


class WireConnection(BaseModel):
    id: str
    segments: list[WireSegment] = Field(default_factory=list)
    is_powered: bool = False
    is_grounded: bool = False
    is_powerable: bool = True
    is_groundable: bool = True
    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0
    color: str = DEFAULT_WIRE_COLOR
    thickness: int = 3
    gauge: int = 14
    max_current: float = 15.0
    max_power: float = 1800.0
    parent_id: str | None = None  # set on a child split off at a junction
    child_ids: list[str] = Field(default_factory=list)

    def touches(self, position: Position) -> bool:
        return any(seg.touches(position) for seg in self.segments)

    def endpoints(self) -> tuple[Position, Position] | None:
        """First and last point of the wire's polyline."""
        if not self.segments:
            return None
        return self.segments[0].from_, self.segments[-1].to


class WireGroup(BaseModel):
    """Ownership group of a parent wire and the children split from it."""

    parent_id: str
    child_ids: list[str] = Field(default_factory=list)

    @property
    def members(self) -> list[str]:
        return [self.parent_id, *self.child_ids]


class WireGaugeSpec(BaseModel):
    gauge: int
    max_current: float  # A
    max_power: float  # W
    thickness: int
    description: str
