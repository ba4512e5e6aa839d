"""Unit tests for the continuity search."""

from boards import p, wire

from circuitwiz.electrical.continuity import check_continuity
from circuitwiz.schemas.circuit import CircuitNode, NodeType


def _node(node_type: NodeType, node_id: str, x: int, y: int, terminals=()) -> CircuitNode:
    return CircuitNode(
        type=node_type,
        id=node_id,
        position=p(x, y),
        terminals=[p(tx, ty) for tx, ty in terminals],
    )


def _source(x=0, y=0):
    return _node(NodeType.VOLTAGE_SOURCE, "bat_positive", x, y)


def _ground(x, y):
    return _node(NodeType.GROUNDING_SOURCE, "bat_negative", x, y)


class TestNoWires:
    def test_distance_two_is_adjacent(self):
        assert check_continuity([_source(), _ground(2, 0)], []) is True

    def test_distance_three_is_not(self):
        assert check_continuity([_source(), _ground(3, 0)], []) is False

    def test_diagonal_counts_manhattan(self):
        assert check_continuity([_source(), _ground(1, 1)], []) is True


class TestWirePaths:
    def test_direct_wire(self):
        nodes = [_source(), _ground(5, 5)]
        assert check_continuity(nodes, [wire("w1", (0, 0), (5, 0), (5, 5))])

    def test_missing_source_or_ground(self):
        assert not check_continuity([_ground(1, 0)], [wire("w1", (0, 0), (1, 0))])
        assert not check_continuity([_source()], [wire("w1", (0, 0), (1, 0))])

    def test_through_resistor_terminals(self):
        resistor = _node(NodeType.RESISTOR, "r1", 0, 3, terminals=[(0, 3), (2, 3)])
        nodes = [_source(), _ground(2, 0), resistor]
        wires = [wire("w1", (0, 0), (0, 3)), wire("w2", (2, 3), (2, 0))]
        assert check_continuity(nodes, wires)

    def test_open_circuit(self):
        resistor = _node(NodeType.RESISTOR, "r1", 0, 3, terminals=[(0, 3), (2, 3)])
        nodes = [_source(), _ground(6, 0), resistor]
        assert not check_continuity(nodes, [wire("w1", (0, 0), (0, 3))])

    def test_adjacent_components_conduct(self):
        # wire ends next to the ground node: adjacency closes the gap
        nodes = [_source(), _ground(4, 1)]
        assert check_continuity(nodes, [wire("w1", (0, 0), (4, 0))])

    def test_cycle_terminates(self):
        nodes = [_source(), _ground(9, 9)]
        ring = wire("w1", (0, 0), (3, 0), (3, 3), (0, 3), (0, 0))
        assert check_continuity(nodes, [ring]) is False

    def test_source_terminals_do_not_short(self):
        # a battery's own terminals never conduct into each other
        source = _node(NodeType.VOLTAGE_SOURCE, "bat_positive", 0, 0, terminals=[(0, 0), (2, 0)])
        ground = _node(NodeType.GROUNDING_SOURCE, "bat_negative", 2, 0, terminals=[(0, 0), (2, 0)])
        assert not check_continuity([source, ground], [wire("w1", (0, 0), (0, 4))])
