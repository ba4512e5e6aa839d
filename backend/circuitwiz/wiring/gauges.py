"""Wire construction and editing — AWG gauge table, colour / gauge edits,
network merging.

A wire split at a junction keeps an ownership link to its parent
(``parent_id`` / ``child_ids``). Edits apply to the whole ownership group,
resolved once through ``build_wire_groups``.
"""

from __future__ import annotations

from collections.abc import Sequence

from circuitwiz.electrical.nodes import CircuitInputError
from circuitwiz.schemas.grid import Position
from circuitwiz.schemas.wire import (
    DEFAULT_WIRE_COLOR,
    WireConnection,
    WireGaugeSpec,
    WireGroup,
    WireSegment,
)

DEFAULT_GAUGE = 14
POWERED_WIRE_COLOR = "#00ff00"
GROUNDED_WIRE_COLOR = "#ff0000"

WIRE_GAUGES: list[WireGaugeSpec] = [
    WireGaugeSpec(gauge=0, max_current=150, max_power=18000, thickness=12, description="0 AWG - Extra heavy duty"),
    WireGaugeSpec(gauge=1, max_current=130, max_power=15600, thickness=11, description="1 AWG - Heavy duty"),
    WireGaugeSpec(gauge=2, max_current=115, max_power=13800, thickness=10, description="2 AWG - Heavy duty"),
    WireGaugeSpec(gauge=3, max_current=100, max_power=12000, thickness=9, description="3 AWG - Heavy duty"),
    WireGaugeSpec(gauge=4, max_current=85, max_power=10200, thickness=8, description="4 AWG - Heavy duty"),
    WireGaugeSpec(gauge=6, max_current=65, max_power=7800, thickness=7, description="6 AWG - Heavy duty"),
    WireGaugeSpec(gauge=8, max_current=50, max_power=6000, thickness=6, description="8 AWG - Heavy duty"),
    WireGaugeSpec(gauge=10, max_current=30, max_power=3600, thickness=5, description="10 AWG - Heavy duty"),
    WireGaugeSpec(gauge=12, max_current=20, max_power=2400, thickness=4, description="12 AWG - Standard"),
    WireGaugeSpec(gauge=14, max_current=15, max_power=1800, thickness=3, description="14 AWG - Standard"),
    WireGaugeSpec(gauge=16, max_current=10, max_power=1200, thickness=3, description="16 AWG - Light duty"),
    WireGaugeSpec(gauge=18, max_current=7, max_power=840, thickness=3, description="18 AWG - Signal"),
    WireGaugeSpec(gauge=20, max_current=5, max_power=600, thickness=3, description="20 AWG - Low power"),
    WireGaugeSpec(gauge=22, max_current=3, max_power=360, thickness=3, description="22 AWG - Data"),
    WireGaugeSpec(gauge=24, max_current=2, max_power=240, thickness=3, description="24 AWG - Micro"),
]

_GAUGES_BY_NUMBER = {spec.gauge: spec for spec in WIRE_GAUGES}


def get_gauge_spec(gauge: int) -> WireGaugeSpec | None:
    return _GAUGES_BY_NUMBER.get(gauge)


def _require_gauge(gauge: int) -> WireGaugeSpec:
    spec = get_gauge_spec(gauge)
    if spec is None:
        raise CircuitInputError(f"Unknown wire gauge {gauge} AWG")
    return spec


# ─── Construction ───


def make_wire(
    wire_id: str,
    points: Sequence[Position],
    color: str | None = None,
    gauge: int = DEFAULT_GAUGE,
    is_powered: bool = False,
    is_grounded: bool = False,
) -> WireConnection:
    """Build a wire from a polyline of grid points (at least two)."""
    if len(points) < 2:
        raise CircuitInputError(f"Wire {wire_id} needs at least two points")
    spec = _require_gauge(gauge)

    if color is None:
        if is_powered:
            color = POWERED_WIRE_COLOR
        elif is_grounded:
            color = GROUNDED_WIRE_COLOR
        else:
            color = DEFAULT_WIRE_COLOR

    shared = {
        "is_powered": is_powered,
        "is_grounded": is_grounded,
        "color": color,
        "thickness": spec.thickness,
        "gauge": spec.gauge,
        "max_current": spec.max_current,
        "max_power": spec.max_power,
    }
    segments = [
        WireSegment(id=f"{wire_id}-seg-{i}", from_=start, to=end, **shared)
        for i, (start, end) in enumerate(zip(points, points[1:]))
    ]
    return WireConnection(id=wire_id, segments=segments, **shared)


# ─── Ownership groups ───


def build_wire_groups(wires: Sequence[WireConnection]) -> dict[str, WireGroup]:
    """Map every wire id to the ownership group it belongs to.

    Ownership comes from either side of the link: a child's ``parent_id``
    or a parent's ``child_ids``. The group root is the topmost ancestor.
    """
    parent_of: dict[str, str] = {}
    for wire in wires:
        if wire.parent_id is not None:
            parent_of[wire.id] = wire.parent_id
        for child_id in wire.child_ids:
            parent_of.setdefault(child_id, wire.id)

    def root_of(wire_id: str) -> str:
        seen: set[str] = set()
        current = wire_id
        while current in parent_of and current not in seen:
            seen.add(current)
            current = parent_of[current]
        return current

    ids = list(dict.fromkeys([w.id for w in wires] + list(parent_of)))
    children: dict[str, list[str]] = {}
    for wire_id in ids:
        root = root_of(wire_id)
        members = children.setdefault(root, [])
        if wire_id != root:
            members.append(wire_id)

    groups = [WireGroup(parent_id=root, child_ids=kids) for root, kids in children.items()]
    return {member: group for group in groups for member in group.members}


def _apply_to_group(
    wires: Sequence[WireConnection], wire_id: str, update: dict
) -> list[WireConnection]:
    groups = build_wire_groups(wires)
    group = groups.get(wire_id)
    if group is None:
        raise KeyError(f"Unknown wire '{wire_id}'")
    members = set(group.members)

    return [
        wire.model_copy(
            update={
                **update,
                "segments": [s.model_copy(update=update) for s in wire.segments],
            }
        )
        if wire.id in members
        else wire
        for wire in wires
    ]


def update_wire_color(
    wires: Sequence[WireConnection], wire_id: str, color: str
) -> list[WireConnection]:
    return _apply_to_group(wires, wire_id, {"color": color})


def update_wire_gauge(
    wires: Sequence[WireConnection], wire_id: str, gauge: int
) -> list[WireConnection]:
    spec = _require_gauge(gauge)
    return _apply_to_group(
        wires,
        wire_id,
        {
            "gauge": spec.gauge,
            "thickness": spec.thickness,
            "max_current": spec.max_current,
            "max_power": spec.max_power,
        },
    )


# ─── Networks ───


def _points(wire: WireConnection) -> set[str]:
    return {p.key for seg in wire.segments for p in (seg.from_, seg.to)}


def merge_connected_wires(wires: Sequence[WireConnection]) -> list[WireConnection]:
    """Collapse wires sharing any segment endpoint into ``network-<n>`` wires.

    A lone wire is returned unchanged. A merged network keeps the first
    wire's colour and gauge, the highest voltage and current, the summed
    power, and is powered / grounded if any member is.
    """
    networks: list[list[WireConnection]] = []
    processed: set[str] = set()

    for wire in wires:
        if wire.id in processed:
            continue
        network = [wire]
        points = _points(wire)
        processed.add(wire.id)

        found_new = True
        while found_new:
            found_new = False
            for other in wires:
                if other.id in processed:
                    continue
                other_points = _points(other)
                if points & other_points:
                    network.append(other)
                    points |= other_points
                    processed.add(other.id)
                    found_new = True

        networks.append(network)

    merged: list[WireConnection] = []
    for index, network in enumerate(networks):
        if len(network) == 1:
            merged.append(network[0])
            continue
        first = network[0]
        merged.append(
            WireConnection(
                id=f"network-{index}",
                segments=[seg for w in network for seg in w.segments],
                is_powered=any(w.is_powered for w in network),
                is_grounded=any(w.is_grounded for w in network),
                is_powerable=any(w.is_powerable for w in network),
                is_groundable=any(w.is_groundable for w in network),
                voltage=max(w.voltage for w in network),
                current=max(w.current for w in network),
                power=sum(w.power for w in network),
                color=first.color,
                thickness=first.thickness,
                gauge=first.gauge,
                max_current=first.max_current,
                max_power=first.max_power,
            )
        )

    return merged
