"""Tests for the Flask JSON API."""

from __future__ import annotations

import pytest

import classifier_tree.app as app_module
from classifier_tree.editor import Editor
from classifier_tree.tree import Node


def _n(node_id: str, *children: Node) -> Node:
    return Node(id=node_id, name=node_id, children=tuple(children))


@pytest.fixture
def editor(monkeypatch: pytest.MonkeyPatch) -> Editor:
    fresh = Editor(forest=[_n("A", _n("B"), _n("C")), _n("D")], dimensions=["Region", "City"])
    monkeypatch.setattr(app_module, "EDITOR", fresh)
    return fresh


@pytest.fixture
def client(editor: Editor):
    app_module.app.config.update(TESTING=True)
    return app_module.app.test_client()


def test_health_and_meta(client) -> None:
    """It should answer liveness and configuration requests."""

    assert client.get("/health").get_json() == {"status": "ok"}
    meta = client.get("/api/meta").get_json()
    assert "dimensions" in meta and "history_limit" in meta


def test_state_lists_visible_nodes(client) -> None:
    """It should return positions, edges and canvas for the renderer."""

    state = client.get("/api/state?q=b").get_json()
    by_id = {n["id"]: n for n in state["nodes"]}

    assert by_id["B"]["y"] == 0 and by_id["C"]["y"] == 1
    assert by_id["A"]["y"] == 0.5 and by_id["A"]["level"] == 0
    assert by_id["B"]["match"] is True
    assert state["edges"] == [["A", "B"], ["A", "C"]]
    assert state["canvas"]["width"] == 2 * 220 + 240
    assert state["sizes"]["node_w"] == 190


def test_add_root_and_child(client, editor: Editor) -> None:
    """It should create nodes and record them in the history."""

    root = client.post("/api/roots", json={}).get_json()["node"]
    assert root["name"] == "New region"
    child = client.post(f"/api/nodes/{root['id']}/children", json={"name": "Town"}).get_json()["node"]
    assert child["name"] == "Town"

    changes = client.get("/api/changes").get_json()
    assert changes["dirty"] is True
    assert len(changes["changes"]) == 2


def test_unknown_node_is_404(client, editor: Editor) -> None:
    """It should map stale ids to 404 without mutating."""

    resp = client.post("/api/nodes/nope/children", json={})
    assert resp.status_code == 404
    assert resp.get_json()["node_id"] == "nope"
    assert not editor.is_dirty()


def test_blank_name_is_ignored(client, editor: Editor) -> None:
    """It should ignore blank names instead of failing."""

    resp = client.post("/api/roots", json={"name": "  "})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ignored"
    assert len(editor.store.roots) == 2


def test_edit_flow(client, editor: Editor) -> None:
    """It should keep a blank draft open and commit a real one."""

    client.post("/api/nodes/B/edit")
    blank = client.post("/api/edit/commit", json={"draft": " "}).get_json()
    assert blank["status"] == "ignored"
    assert blank["edit"]["target"] == "B"

    client.post("/api/edit/draft", json={"draft": "Bravo"})
    assert client.post("/api/edit/commit", json={}).get_json()["status"] == "ok"
    assert editor.store.get("B").name == "Bravo"

    resp = client.post("/api/edit/commit", json={})
    assert resp.status_code == 400


def test_drag_flow(client, editor: Editor) -> None:
    """It should move on a valid drop and refuse cycles."""

    assert client.post("/api/drag/start", json={"node_id": "C", "pointer": [1, 2]}).get_json()["status"] == "ok"
    assert client.post("/api/drag/move", json={"target_id": "B"}).get_json()["drop_target_id"] == "B"
    done = client.post("/api/drag/end").get_json()
    assert done == {"status": "ok", "moved_id": "C"}

    client.post("/api/drag/start", json={"node_id": "A"})
    assert client.post("/api/drag/move", json={"target_id": "C"}).get_json()["drop_target_id"] is None
    assert client.post("/api/drag/end").get_json()["status"] == "cancelled"
    assert [c.id for c in editor.store.get("B").children] == ["C"]


def test_drag_rejected_while_editing(client) -> None:
    """It should refuse to start a drag during a rename."""

    client.post("/api/nodes/B/edit")
    assert client.post("/api/drag/start", json={"node_id": "C"}).get_json()["status"] == "rejected"
    assert client.post("/api/drag/start", json={}).status_code == 400


def test_delete_with_reassign(client, editor: Editor) -> None:
    """It should plan, reject cycles with 409 and then reassign."""

    plan = client.post("/api/nodes/A/delete").get_json()["plan"]
    assert plan["has_children"] is True
    assert [o["id"] for o in plan["options"]] == ["D"]
    assert plan["options"][0]["label"] == "Region: D — D"

    bad = client.post("/api/delete/confirm", json={"mode": "reassign", "target_id": "B"})
    assert bad.status_code == 409

    ok = client.post("/api/delete/confirm", json={"mode": "reassign", "target_id": "D"}).get_json()
    assert ok["removed"] == ["A"]
    assert [c.id for c in editor.store.get("D").children] == ["B", "C"]


def test_delete_cascade_and_apply(client, editor: Editor) -> None:
    """It should cascade by default and clear the draft on apply."""

    client.post("/api/nodes/A/delete")
    assert client.post("/api/delete/confirm", json={}).get_json()["removed"] == ["A", "B", "C"]

    applied = client.post("/api/apply").get_json()
    assert applied["dirty"] is False
    assert applied["changes"] == []
    assert applied["applied_label"] == editor.group_name


def test_dimensions_and_collapse(client, editor: Editor) -> None:
    """It should insert levels and collapse by level."""

    inserted = client.post("/api/dimensions/0/insert", json={"side": "left"}).get_json()
    assert inserted["dimensions"] == ["New level", "Region", "City"]

    collapsed = client.post("/api/dimensions/1/toggle").get_json()["collapsed"]
    assert collapsed == ["B", "C"]
    assert client.post("/api/nodes/A/toggle").get_json()["collapsed"] is True
    assert client.post("/api/dimensions/7/edit").status_code == 400


def test_search_and_selection(client) -> None:
    """It should report literal matches and selection details."""

    assert client.get("/api/search?q=.").get_json()["matches"] == []
    assert client.get("/api/search?q=c").get_json()["matches"] == ["C"]
    selection = client.post("/api/nodes/C/select").get_json()["selection"]
    assert selection["path"] == ["A", "C"]
    assert selection["dimension"] == "City"


def test_non_object_payload(client) -> None:
    """It should reject payloads that are not JSON objects."""

    resp = client.post("/api/roots", json=["x"])
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_deep_chain_state_and_add_child(client, monkeypatch: pytest.MonkeyPatch) -> None:
    """It should keep serving state and edits for a chain deeper than the recursion limit."""

    chain = Node(id="n1999", name="n1999")
    for i in range(1998, -1, -1):
        chain = Node(id=f"n{i}", name=f"n{i}", children=(chain,))
    monkeypatch.setattr(app_module, "EDITOR", Editor(forest=[chain], dimensions=["Region"]))

    resp = client.post("/api/nodes/n1999/children", json={"name": "tail"})
    assert resp.status_code == 200
    tail_id = resp.get_json()["node"]["id"]

    state = client.get("/api/state").get_json()
    assert len(state["nodes"]) == 2001
    assert state["forest"][-1] == {"id": tail_id, "name": "tail", "parent_id": "n1999", "level": 2000}
    assert state["selection"]["level"] == 2000
