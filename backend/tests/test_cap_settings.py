"""Tests for server-side caps on client supplied run settings."""

from fastapi.testclient import TestClient

from backend.app import main
from backend.app.main import _cap_settings, app

client = TestClient(app)


def test_cap_settings_clamps():
    """Overly large client values are clamped to the server ceiling."""
    capped = _cap_settings({"max_blocks": 10_000_000})
    assert capped["max_blocks"] == main.MAX_BLOCKS

    assert _cap_settings({"max_blocks": 2}) == {"max_blocks": 2}
    assert _cap_settings(None) == {"max_blocks": main.MAX_BLOCKS}


def test_api_block_limit_through_run(monkeypatch):
    # lower the server ceiling; the client cannot raise it back
    monkeypatch.setattr(main, "MAX_BLOCKS", 3)
    blocks = [{"kind": "var_decl", "names": "a"}] * 5
    r = client.post("/run", json={"blocks": blocks, "settings": {"max_blocks": 1000}})
    assert r.status_code == 200
    body = r.json()
    assert body["errors"]["code"] == "BLOCK_LIMIT"
    assert body["variables"] == {}
    assert not any(b["has_error"] for b in body["blocks"])


def test_bad_setting_value_is_server_error():
    r = client.post("/run", json={"blocks": [], "settings": {"max_blocks": "lots"}})
    body = r.json()
    assert body["errors"]["code"] == "SERVER_ERROR"


def test_cap_settings_clamps_negative_to_zero():
    assert _cap_settings({"max_blocks": -5}) == {"max_blocks": 0}
    r = client.post("/run", json={"blocks": [], "settings": {"max_blocks": -5}})
    body = r.json()
    assert body["errors"] is None
    assert body["variables"] == {}
