"""Unit tests for the wire graph and grid ⇄ component conversions."""

import pytest

from boards import battery_resistor_board, p, place, wire

from circuitwiz.electrical.graph import (
    build_connection_map,
    cell_at,
    find_circuit_nodes,
    parse_position_key,
    position_key,
)
from circuitwiz.electrical.nodes import (
    CircuitInputError,
    convert_grid_to_nodes,
    empty_grid,
    extract_placed_components,
    get_grid_size,
    reconstruct_grid_data,
    validate_grid,
)
from circuitwiz.schemas.circuit import NodeType


class TestPositionKeys:
    def test_round_trip(self):
        assert parse_position_key(position_key(3, 7)) == p(3, 7)

    def test_cell_at_out_of_range(self):
        grid = empty_grid(2, 2)
        assert cell_at(grid, 5, 0) is None
        assert cell_at(grid, 0, -1) is None
        assert cell_at(grid, 1, 1) is grid[1][1]


class TestConnectionMap:
    def test_undirected(self):
        connections = build_connection_map([wire("w1", (0, 0), (0, 3))])
        assert connections == {"0,0": {"0,3"}, "0,3": {"0,0"}}

    def test_polyline_chains(self):
        connections = build_connection_map([wire("w1", (0, 0), (2, 0), (2, 2))])
        assert connections["2,0"] == {"0,0", "2,2"}

    def test_empty(self):
        assert build_connection_map([]) == {}


class TestJunctions:
    def test_three_way_point_is_junction(self):
        wires = [
            wire("w1", (1, 1), (0, 1)),
            wire("w2", (1, 1), (2, 1)),
            wire("w3", (1, 1), (1, 2)),
        ]
        nodes = find_circuit_nodes(empty_grid(4, 4), build_connection_map(wires))
        assert list(nodes) == ["1,1"]
        assert nodes["1,1"].connections == ["0,1", "1,2", "2,1"]

    def test_component_cell_with_two_wires(self):
        grid = place(empty_grid(6, 6), "Resistor", 0, 3, "r1")
        wires = [wire("w1", (0, 0), (0, 3)), wire("w2", (0, 3), (0, 5))]
        nodes = find_circuit_nodes(grid, build_connection_map(wires))
        assert "0,3" in nodes

    def test_plain_bend_is_not_junction(self):
        wires = [wire("w1", (0, 0), (2, 0), (2, 2))]
        assert find_circuit_nodes(empty_grid(4, 4), build_connection_map(wires)) == {}


class TestGridConversions:
    def test_place_is_copy_on_write(self):
        grid = empty_grid(4, 2)
        placed = place(grid, "Resistor", 0, 1, "r1")
        assert not grid[1][0].occupied
        assert placed[1][2].component_id == "r1"
        assert placed[0] is grid[0]

    def test_place_overlap_rejected(self):
        grid = place(empty_grid(4, 2), "Resistor", 0, 0, "r1")
        with pytest.raises(CircuitInputError):
            place(grid, "LED", 1, 0, "led1")

    def test_place_out_of_bounds_rejected(self):
        with pytest.raises(CircuitInputError):
            place(empty_grid(2, 2), "Resistor", 0, 0, "r1")

    def test_extract_one_per_component(self):
        board = battery_resistor_board()
        components = extract_placed_components(board.grid)
        assert [(c.component_id, c.x, c.y) for c in components] == [
            ("bat", 0, 0),
            ("r1", 0, 3),
        ]

    def test_reconstruct_matches_original(self):
        board = battery_resistor_board()
        rebuilt = reconstruct_grid_data(
            extract_placed_components(board.grid), get_grid_size(board.grid)
        )
        assert rebuilt == board.grid

    def test_grid_size_default(self):
        assert get_grid_size([]) == (50, 50)

    def test_ragged_grid_rejected(self):
        grid = empty_grid(3, 3)
        grid[1] = grid[1][:2]
        with pytest.raises(CircuitInputError):
            validate_grid(grid)

    def test_oversize_grid_rejected(self):
        with pytest.raises(CircuitInputError):
            validate_grid(empty_grid(10, 3), max_width=5)


class TestConvertGridToNodes:
    def test_battery_terminals_and_resistor(self):
        nodes = convert_grid_to_nodes(battery_resistor_board().grid)
        assert [(n.type, n.id) for n in nodes] == [
            (NodeType.VOLTAGE_SOURCE, "bat_positive"),
            (NodeType.GROUNDING_SOURCE, "bat_negative"),
            (NodeType.RESISTOR, "r1"),
        ]
        assert nodes[0].voltage == 5.0
        assert nodes[2].resistance == 1000.0

    def test_arduino_gpio_is_source(self):
        grid = place(empty_grid(6, 3), "Arduino Uno", 0, 0, "uno")
        nodes = convert_grid_to_nodes(grid)
        ids = {n.id: n.type for n in nodes}
        assert ids["uno_5V"] == NodeType.VOLTAGE_SOURCE
        assert ids["uno_D2"] == NodeType.VOLTAGE_SOURCE
        assert ids["uno_negative"] == NodeType.GROUNDING_SOURCE
