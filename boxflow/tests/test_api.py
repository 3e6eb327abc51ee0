from __future__ import annotations

from fastapi.testclient import TestClient

from boxflow.app.core.config import get_settings
from boxflow.app.main import create_app

CLOSED_GRAPH = {
    "nodes": [
        {"id": "one", "kind": "int", "payload": [1], "inputs": 0, "outputs": 1},
        {"id": "two", "kind": "int", "payload": [2], "inputs": 0, "outputs": 1},
        {"id": "pair", "kind": "par", "operands": ["one", "two"], "inputs": 0, "outputs": 2},
        {"id": "mul", "kind": "binary_op", "payload": ["mul"], "inputs": 2, "outputs": 1},
        {"id": "product", "kind": "seq", "operands": ["pair", "mul"], "inputs": 0, "outputs": 1},
    ],
    "root": "product",
}

OPEN_GRAPH = {
    "nodes": [{"id": "mul", "kind": "binary_op", "payload": ["mul"], "inputs": 2, "outputs": 1}],
    "root": "mul",
}


def _client(monkeypatch, **env: str) -> TestClient:
    for name, value in env.items():
        monkeypatch.setenv(f"BOXFLOW_{name.upper()}", value)
    get_settings.cache_clear()
    return TestClient(create_app())


def test_health_endpoint(monkeypatch) -> None:
    with _client(monkeypatch, feedback_group_prefix="fb") as client:
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["feedback_group_prefix"] == "fb"
    get_settings.cache_clear()


def test_compile_endpoint_returns_signals(monkeypatch) -> None:
    with _client(monkeypatch) as client:
        response = client.post("/api/graphs/compile", json=CLOSED_GRAPH)
        assert response.status_code == 200
        body = response.json()
        assert body["inputs"] == 0
        assert body["outputs"] == 1
        assert body["diagnostics"] == []

        nodes = {node["id"]: node for node in body["signals"]["nodes"]}
        (output,) = body["signals"]["outputs"]
        assert nodes[output]["kind"] == "binary_op"
        assert nodes[output]["payload"] == ["mul"]
        assert [nodes[child]["payload"] for child in nodes[output]["children"]] == [[1], [2]]


def test_compile_endpoint_reports_diagnostics(monkeypatch) -> None:
    with _client(monkeypatch) as client:
        response = client.post("/api/graphs/compile", json=OPEN_GRAPH)
        assert response.status_code == 422
        diagnostics = response.json()["detail"]["diagnostics"]
        assert len(diagnostics) == 1
        assert diagnostics[0].startswith("OpenInputError")


def test_compile_endpoint_validates_documents(monkeypatch) -> None:
    with _client(monkeypatch) as client:
        response = client.post("/api/graphs/compile", json={"nodes": [], "root": "x"})
        assert response.status_code == 422
        assert "detail" in response.json()


def test_arity_endpoint(monkeypatch) -> None:
    with _client(monkeypatch) as client:
        response = client.post("/api/graphs/arity", json=OPEN_GRAPH)
        assert response.status_code == 200
        assert response.json() == {"inputs": 2, "outputs": 1}

        cyclic = {
            "nodes": [
                {"id": "loop", "kind": "seq", "operands": ["loop", "loop"], "inputs": 1, "outputs": 1},
            ],
            "root": "loop",
        }
        response = client.post("/api/graphs/arity", json=cyclic)
        assert response.status_code == 422
        assert response.json()["detail"]["diagnostics"][0].startswith("UnresolvableRecursion")
