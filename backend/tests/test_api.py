"""HTTP-level tests for the CircuitWiz API."""

import pytest
from fastapi.testclient import TestClient

from boards import battery_resistor_board, battery_resistor_led_board, wire

from circuitwiz.main import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _json(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _wires_json(*wires) -> list[dict]:
    return [_json(w) for w in wires]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "circuitwiz", "version": "0.1.0"}


class TestElectricalRoutes:
    def test_flow(self, client):
        response = client.post("/api/electrical/flow", json=_json(battery_resistor_board()))
        assert response.status_code == 200
        body = response.json()
        assert body["circuit_current"] == pytest.approx(0.005)
        assert set(body["component_states"]) == {"bat_positive", "r1", "bat_negative"}
        assert body["updated_wires"][0]["is_powered"] is True
        assert "from" in body["updated_wires"][0]["segments"][0]

    def test_flow_rejects_ragged_grid(self, client):
        board = _json(battery_resistor_board())
        board["grid"][0] = board["grid"][0][:-1]
        response = client.post("/api/electrical/flow", json=board)
        assert response.status_code == 422
        assert "same length" in response.json()["detail"]

    def test_pathways_then_calculate(self, client):
        board = _json(battery_resistor_board())
        report = client.post("/api/electrical/pathways", json=board).json()
        assert report["errors"] == []
        assert len(report["pathways"]) == 1
        nodes = report["pathways"][0]

        continuity = client.post(
            "/api/electrical/continuity", json={"nodes": nodes, "wires": board["wires"]}
        )
        assert continuity.json() == {"has_continuity": True}

        calculation = client.post(
            "/api/electrical/calculate",
            json={"nodes": nodes, "wires": board["wires"], "has_continuity": True},
        ).json()
        assert calculation["works"] is True
        assert calculation["current"] == pytest.approx(0.005)

    def test_calculate_without_continuity(self, client):
        board = _json(battery_resistor_board())
        nodes = client.post("/api/electrical/pathways", json=board).json()["pathways"][0]
        calculation = client.post("/api/electrical/calculate", json={"nodes": nodes}).json()
        assert calculation["works"] is False
        assert calculation["reason"] == "No continuity - circuit is not complete"

    def test_branch(self, client):
        branch = [
            {"id": "bat_positive", "type": "Battery", "position": {"x": 0, "y": 0},
             "component_id": "bat",
             "properties": {"terminal_type": "POSITIVE", "voltage": 5.0}},
            {"id": "r1", "type": "Resistor", "position": {"x": 0, "y": 3},
             "component_id": "r1", "properties": {"resistance": 1000}},
            {"id": "bat_negative", "type": "Battery", "position": {"x": 2, "y": 0},
             "component_id": "bat",
             "properties": {"terminal_type": "NEGATIVE", "is_groundable": True}},
        ]
        response = client.post(
            "/api/electrical/branch",
            json={"branch": branch, "source_voltage": 5.0, "max_current": 1.0},
        )
        assert response.status_code == 200
        states = response.json()
        assert states["r1"]["output_current"] == pytest.approx(0.005)
        assert states["bat_negative"]["is_grounded"] is True

    def test_branch_rejects_negative_voltage(self, client):
        response = client.post(
            "/api/electrical/branch",
            json={"branch": [], "source_voltage": -1, "max_current": 1.0},
        )
        assert response.status_code == 422


class TestSimulationRoutes:
    def test_run(self, client):
        response = client.post(
            "/api/simulation/run", json=_json(battery_resistor_led_board())
        )
        assert response.status_code == 200
        body = response.json()
        assert body["simulation_status"] == "completed"
        assert body["flow"]["component_states"]["led1"]["is_on"] is True
        assert body["evaluations"][0]["has_continuity"] is True
        assert body["evaluations"][0]["calculation"]["works"] is True
        assert body["validation"]["status"] == "VALID"

    def test_validate(self, client):
        response = client.post(
            "/api/simulation/validate", json=_json(battery_resistor_board())
        )
        assert response.status_code == 200
        assert response.json()["status"] == "VALID"


class TestComponentRoutes:
    def test_list(self, client):
        response = client.get("/api/components/")
        assert response.status_code == 200
        assert {m["module"] for m in response.json()} >= {"Battery", "LED", "Resistor"}

    def test_filter_by_category(self, client):
        modules = client.get("/api/components/", params={"category": "output"}).json()
        assert [m["module"] for m in modules] == ["LED"]

    def test_categories(self, client):
        assert "power" in client.get("/api/components/categories").json()

    def test_get_module(self, client):
        response = client.get("/api/components/Arduino Uno")
        assert response.status_code == 200
        assert response.json()["gpio_max_current"] == 0.04

    def test_unknown_module(self, client):
        assert client.get("/api/components/Nope").status_code == 404


class TestWireRoutes:
    def test_gauges(self, client):
        gauges = client.get("/api/wires/gauges").json()
        assert len(gauges) == 15
        assert gauges[0]["gauge"] == 0

    def test_set_gauge(self, client):
        wires = _wires_json(wire("w1", (0, 0), (0, 3)), wire("w2", (5, 0), (5, 3)))
        response = client.post(
            "/api/wires/gauge", json={"wires": wires, "wire_id": "w1", "gauge": 22}
        )
        assert response.status_code == 200
        updated = response.json()
        assert updated[0]["gauge"] == 22
        assert updated[0]["segments"][0]["max_current"] == 3
        assert updated[1]["gauge"] == 14

    def test_unknown_gauge(self, client):
        wires = _wires_json(wire("w1", (0, 0), (0, 3)))
        response = client.post(
            "/api/wires/gauge", json={"wires": wires, "wire_id": "w1", "gauge": 13}
        )
        assert response.status_code == 422

    def test_unknown_wire(self, client):
        wires = _wires_json(wire("w1", (0, 0), (0, 3)))
        response = client.post(
            "/api/wires/color", json={"wires": wires, "wire_id": "zz", "color": "#112233"}
        )
        assert response.status_code == 404

    def test_bad_colour(self, client):
        wires = _wires_json(wire("w1", (0, 0), (0, 3)))
        response = client.post(
            "/api/wires/color", json={"wires": wires, "wire_id": "w1", "color": "red"}
        )
        assert response.status_code == 422

    def test_merge(self, client):
        wires = _wires_json(wire("a", (0, 0), (0, 3)), wire("b", (0, 3), (4, 3)))
        merged = client.post("/api/wires/merge", json={"wires": wires}).json()
        assert [w["id"] for w in merged] == ["network-0"]
