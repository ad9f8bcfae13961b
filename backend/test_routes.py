"""HTTP surface: /validate, /autofix, /drc/*"""

import json

import pytest
from fastapi.testclient import TestClient

from socdrc.main import app
from socdrc.storage.results_store import ResultsStore, get_results_store

CLEAN = {
    "nodes": [
        {"id": "cpu", "category": "CPU", "properties": {"label": "CPU"},
         "interfaces": [{"id": "m0", "direction": "master", "busType": "AXI4", "dataWidth": 64}]},
        {"id": "mem", "category": "Memory", "properties": {"label": "DDR"},
         "interfaces": [{"id": "s0", "direction": "slave", "busType": "AXI4", "dataWidth": 32}]},
    ],
    "edges": [{"id": "e1", "source": "cpu", "sourceHandle": "m0", "target": "mem", "targetHandle": "s0"}],
}

BROKEN = {
    "nodes": [
        {"id": "cpu", "position": {"x": 0, "y": 0}, "interfaces": [{"id": "m0", "direction": "master"}]},
        {"id": "cpu", "position": {"x": 300, "y": 0}, "interfaces": [{"id": "m1", "direction": "master"}]},
        {"id": "mem", "interfaces": [{"id": "s0", "direction": "slave"}]},
    ],
    "edges": [
        {"source": "cpu", "sourceHandle": "m1", "target": "mem", "targetHandle": "s0"},
        {"source": "cpu", "sourceHandle": "m0", "target": "ghost", "targetHandle": "s0"},
    ],
}


@pytest.fixture
def store(tmp_path):
    return ResultsStore(str(tmp_path))


@pytest.fixture
def client(store):
    app.dependency_overrides[get_results_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_validate_clean_diagram(client):
    body = client.post("/validate", json={"diagram": CLEAN}).json()
    assert body["status"] == "success"
    assert body["isValid"] is True
    assert body["summary"] == "Valid | Errors: 0, Warnings: 0"


def test_validate_reports_issues(client):
    body = client.post("/validate", json={"diagram": BROKEN}).json()
    assert body["status"] == "invalid"
    assert body["errorCount"] == 2
    assert [i["type"] for i in body["issues"]] == ["duplicate_node_id", "missing_node"]


def test_validate_rejects_malformed_diagram(client):
    body = client.post("/validate", json={"diagram": {"nodes": "cpu"}}).json()
    assert body["status"] == "error"


def test_autofix_returns_repaired_diagram(client):
    body = client.post("/autofix", json={"diagram": BROKEN}).json()
    assert body["status"] == "success"
    assert [n["id"] for n in body["diagram"]["nodes"]] == ["cpu", "cpu-1", "mem"]
    assert [e["source"] for e in body["diagram"]["edges"]] == ["cpu-1"]
    assert body["validation"]["isValid"] is True
    assert body["autoFix"]["fixType"] == "auto"


def test_autofix_with_issues_from_validate(client):
    issues = client.post("/validate", json={"diagram": BROKEN}).json()["issues"]
    body = client.post("/autofix", json={"diagram": BROKEN, "issues": issues}).json()
    assert body["status"] == "success"
    assert len(body["diagram"]["nodes"]) == 3


def test_autofix_rejects_issues_for_another_diagram(client):
    issues = client.post("/validate", json={"diagram": BROKEN}).json()["issues"]
    body = client.post("/autofix", json={"diagram": CLEAN, "issues": issues}).json()
    assert body["status"] == "error"


def test_drc_check_refuses_structural_errors(client):
    body = client.post("/drc/check", json={"diagram": BROKEN}).json()
    assert body["status"] == "invalid"
    assert {i["type"] for i in body["issues"]} == {"duplicate_node_id", "missing_node"}


def test_drc_check_returns_result(client):
    body = client.post("/drc/check", json={"diagram": CLEAN}).json()
    assert body["status"] == "success"
    data = body["data"]
    assert data["passed"] is False
    assert [v["ruleId"] for v in data["violations"]] == ["AXI-001"]
    assert data["summary"] == {"critical": 1, "warning": 0, "info": 0}


def test_drc_check_with_options(client):
    body = client.post("/drc/check", json={"diagram": CLEAN, "options": {"namePattern": "[a-z]+"}}).json()
    rule_ids = [v["ruleId"] for v in body["data"]["violations"]]
    assert rule_ids == ["AXI-001", "NAME-001", "NAME-001"]


def test_drc_check_rejects_unknown_option(client):
    body = client.post("/drc/check", json={"diagram": CLEAN, "options": {"strict": True}}).json()
    assert body["status"] == "error"


def test_drc_check_needs_diagram_or_project(client):
    assert client.post("/drc/check", json={}).json()["status"] == "error"


def test_result_is_saved_per_project(client, tmp_path):
    checked = client.post("/drc/check", json={"diagram": CLEAN, "projectId": "soc-1"}).json()
    saved = json.loads((tmp_path / "soc-1" / "drc_results.json").read_text())
    assert saved == checked["data"]

    response = client.get("/drc/results/soc-1")
    assert response.status_code == 200
    assert response.json()["data"] == checked["data"]


def test_drc_check_uses_saved_project_diagram(client, tmp_path):
    project = tmp_path / "soc-2"
    project.mkdir()
    (project / "arch_diagram.json").write_text(json.dumps(CLEAN))

    body = client.post("/drc/check", json={"projectId": "soc-2"}).json()
    assert body["status"] == "success"
    assert (project / "drc_results.json").exists()


def test_drc_check_unknown_project_is_404(client):
    assert client.post("/drc/check", json={"projectId": "nobody"}).status_code == 404


def test_results_for_unknown_project(client):
    assert client.get("/drc/results/never-run").status_code == 404
    assert client.get("/drc/results/.hidden").status_code == 400


def test_rule_listing(client):
    body = client.get("/drc/rules").json()
    assert body["count"] == 18
    assert list(body["categories"]) == [
        "Connectivity", "AXI4 Parameters", "Address Space", "Topology", "Performance", "Naming",
    ]


def test_drc_check_rejects_bad_project_id_without_saving(client, tmp_path):
    response = client.post("/drc/check", json={"diagram": CLEAN, "projectId": "../evil"})
    assert response.status_code == 200
    assert response.json()["status"] == "error"
    assert "Invalid project id" in response.json()["message"]
    assert not (tmp_path.parent / "evil").exists()


def test_drc_check_option_strings_are_parsed(client):
    diagram = json.loads(json.dumps(CLEAN))
    diagram["nodes"][0]["interfaces"].append({"id": "irq", "direction": "output", "optional": True})

    def rule_ids(flag):
        body = client.post("/drc/check", json={"diagram": diagram, "options": {"checkOptionalPorts": flag}}).json()
        assert body["status"] == "success"
        return [v["ruleId"] for v in body["data"]["violations"]]

    assert rule_ids("false") == ["AXI-001"]
    assert rule_ids("true") == ["CONN-001", "AXI-001"]
