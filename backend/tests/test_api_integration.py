"""End-to-end tests for the /run and /evaluate endpoints."""

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app


@pytest.fixture(scope="module")
def client():
    client = TestClient(app)
    yield client
    client.close()


def test_run_with_skip(client):
    blocks = [
        {"kind": "var_decl", "names": "a"},
        {"kind": "if", "left_expr": "a", "op": "==", "right_expr": "1"},
        {"kind": "assignment", "var_name": "a", "expression": "99"},
        {"kind": "assignment", "var_name": "a", "expression": "5"},
    ]
    r = client.post("/run", json={"blocks": blocks})
    assert r.status_code == 200
    body = r.json()
    assert body["variables"] == {"a": 5.0}
    assert body["errors"] is None
    assert body["skipped"] == [2]
    assert body["steps"] == 3
    assert [b["has_error"] for b in body["blocks"]] == [False] * 4
    assert body["blocks"][1] == {
        "kind": "if",
        "left_expr": "a",
        "op": "==",
        "right_expr": "1",
        "has_error": False,
    }


def test_run_reports_failing_block(client):
    blocks = [
        {"kind": "var_decl", "names": "x, y"},
        {"kind": "assignment", "var_name": "x", "expression": "y + 1"},
        {"kind": "assignment", "var_name": "x", "expression": "q * 2"},
        {"kind": "assignment", "var_name": "y", "expression": "3"},
    ]
    r = client.post("/run", json={"blocks": blocks})
    body = r.json()
    assert body["variables"] == {"x": 1.0, "y": 0.0}
    assert body["errors"]["code"] == "UNDEFINED_VARIABLE"
    assert body["errors"]["block"] == 2
    assert [b["has_error"] for b in body["blocks"]] == [False, False, True, False]


def test_run_ignores_client_error_flags(client):
    blocks = [{"kind": "var_decl", "names": "a", "has_error": True}]
    body = client.post("/run", json={"blocks": blocks}).json()
    assert body["blocks"][0]["has_error"] is False


def test_run_infinite_values_are_strings(client):
    blocks = [
        {"kind": "var_decl", "names": "a, b"},
        {"kind": "assignment", "var_name": "a", "expression": "1/0"},
        {"kind": "assignment", "var_name": "b", "expression": "0/0"},
    ]
    body = client.post("/run", json={"blocks": blocks}).json()
    assert body["variables"] == {"a": "inf", "b": "nan"}


def test_run_rejects_unknown_kind(client):
    r = client.post("/run", json={"blocks": [{"kind": "loop"}]})
    assert r.status_code == 422


def test_evaluate_endpoint(client):
    r = client.post("/evaluate", json={"expression": "x * (2 + 3)", "variables": {"x": 2}})
    assert r.json() == {"value": 10.0, "errors": None}

    r = client.post("/evaluate", json={"expression": "2 +", "variables": {}})
    body = r.json()
    assert body["value"] is None
    assert body["errors"]["code"] == "EMPTY_FACTOR"


def test_errors_carry_offending_name(client):
    blocks = [
        {"kind": "var_decl", "names": "a"},
        {"kind": "assignment", "var_name": "a", "expression": "missing + 1"},
    ]
    body = client.post("/run", json={"blocks": blocks}).json()
    assert body["errors"]["code"] == "UNDEFINED_VARIABLE"
    assert body["errors"]["detail"] == "missing"

    body = client.post("/evaluate", json={"expression": "1 2 )"}).json()
    assert body["errors"]["detail"] == ")"
