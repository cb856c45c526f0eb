# Run locally with: pip install -e . && python -m classifier_tree.app
from __future__ import annotations

import threading
from typing import Any

from flask import Flask, jsonify, request

from .config import load_settings
from .deletion import CASCADE
from .drag import Point
from .editor import Editor
from .errors import EmptyName, InvalidCycle, NotFound, TreeError
from .log import configure_logging, get_logger

SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)
logger = get_logger(__name__)

app = Flask(__name__)

# Every request is one UI event; the lock keeps them strictly serialized.
EDITOR_LOCK = threading.RLock()
EDITOR = Editor.from_settings(SETTINGS)


def _json_error(message: str, status: int = 400, **extra: Any):
    payload: dict[str, Any] = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def _payload() -> dict[str, Any]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise TreeError("Expected a JSON object.")
    return payload


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise TreeError(f"`{key}` must be a string.")
    return value


def _pointer(payload: dict[str, Any]) -> Point | None:
    raw = payload.get("pointer")
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise TreeError("`pointer` must be an [x, y] pair.")
    try:
        return float(raw[0]), float(raw[1])
    except (TypeError, ValueError) as exc:
        raise TreeError("`pointer` must be an [x, y] pair.") from exc


@app.errorhandler(NotFound)
def _handle_not_found(exc: NotFound):
    logger.warning("%s", exc)
    return _json_error(str(exc), 404, node_id=exc.node_id)


@app.errorhandler(InvalidCycle)
def _handle_cycle(exc: InvalidCycle):
    logger.warning("%s", exc)
    return _json_error(str(exc), 409, node_id=exc.node_id, target_id=exc.target_id)


@app.errorhandler(EmptyName)
def _handle_empty_name(exc: EmptyName):
    return jsonify({"status": "ignored", "reason": str(exc)})


@app.errorhandler(TreeError)
def _handle_tree_error(exc: TreeError):
    logger.warning("Rejected request: %s", exc)
    return _json_error(str(exc), 400)


@app.route("/health", methods=["GET"])
def healthcheck():
    return jsonify({"status": "ok"})


@app.route("/api/meta", methods=["GET"])
def api_meta():
    return jsonify(SETTINGS.to_dict())


@app.route("/api/state", methods=["GET"])
def api_get_state():
    with EDITOR_LOCK:
        return jsonify(EDITOR.view(request.args.get("q")))


@app.route("/api/changes", methods=["GET"])
def api_changes():
    with EDITOR_LOCK:
        return jsonify(EDITOR.ledger.to_dict())


@app.route("/api/search", methods=["GET"])
def api_search():
    with EDITOR_LOCK:
        return jsonify({"matches": EDITOR.search(request.args.get("q"))})


@app.route("/api/roots", methods=["POST"])
def api_add_root():
    payload = _payload()
    with EDITOR_LOCK:
        node = EDITOR.add_root(_optional_str(payload, "name"))
    return jsonify({"status": "ok", "node": node.to_dict()})


@app.route("/api/nodes/<node_id>/children", methods=["POST"])
def api_add_child(node_id: str):
    payload = _payload()
    with EDITOR_LOCK:
        node = EDITOR.add_child(node_id, _optional_str(payload, "name"))
    return jsonify({"status": "ok", "node": node.to_dict()})


@app.route("/api/nodes/<node_id>/select", methods=["POST"])
def api_select(node_id: str):
    with EDITOR_LOCK:
        EDITOR.select(node_id)
        return jsonify({"status": "ok", "selection": EDITOR.selection_details()})


@app.route("/api/selection/clear", methods=["POST"])
def api_clear_selection():
    with EDITOR_LOCK:
        EDITOR.clear_selection()
    return jsonify({"status": "ok"})


@app.route("/api/nodes/<node_id>/toggle", methods=["POST"])
def api_toggle(node_id: str):
    with EDITOR_LOCK:
        collapsed = EDITOR.toggle_collapsed(node_id)
    return jsonify({"status": "ok", "collapsed": collapsed})


@app.route("/api/hover", methods=["POST"])
def api_hover():
    payload = _payload()
    with EDITOR_LOCK:
        EDITOR.hover(_optional_str(payload, "node_id"))
    return jsonify({"status": "ok"})


@app.route("/api/nodes/<node_id>/edit", methods=["POST"])
def api_edit_node(node_id: str):
    with EDITOR_LOCK:
        session = EDITOR.start_edit_node(node_id)
        return jsonify({"status": "ok", "edit": session.to_dict()})


@app.route("/api/dimensions/<int:index>/edit", methods=["POST"])
def api_edit_dimension(index: int):
    with EDITOR_LOCK:
        session = EDITOR.start_edit_dimension(index)
        return jsonify({"status": "ok", "edit": session.to_dict()})


@app.route("/api/group/edit", methods=["POST"])
def api_edit_group():
    with EDITOR_LOCK:
        session = EDITOR.start_edit_group()
        return jsonify({"status": "ok", "edit": session.to_dict()})


@app.route("/api/edit/draft", methods=["POST"])
def api_edit_draft():
    payload = _payload()
    draft = _optional_str(payload, "draft") or ""
    with EDITOR_LOCK:
        EDITOR.update_draft(draft)
    return jsonify({"status": "ok"})


@app.route("/api/edit/commit", methods=["POST"])
def api_edit_commit():
    payload = _payload()
    with EDITOR_LOCK:
        if EDITOR.edit is None:
            return _json_error("Nothing is being edited.", 400)
        committed = EDITOR.commit_edit(_optional_str(payload, "draft"))
        if not committed:
            return jsonify({"status": "ignored", "edit": EDITOR.edit.to_dict() if EDITOR.edit else None})
    return jsonify({"status": "ok"})


@app.route("/api/edit/cancel", methods=["POST"])
def api_edit_cancel():
    with EDITOR_LOCK:
        EDITOR.cancel_edit()
    return jsonify({"status": "ok"})


@app.route("/api/dimensions/<int:index>/insert", methods=["POST"])
def api_insert_dimension(index: int):
    payload = _payload()
    side = _optional_str(payload, "side") or "right"
    with EDITOR_LOCK:
        label = EDITOR.insert_dimension(index, side)
        return jsonify({"status": "ok", "label": label, "dimensions": list(EDITOR.dimensions)})


@app.route("/api/dimensions/<int:index>/toggle", methods=["POST"])
def api_toggle_level(index: int):
    with EDITOR_LOCK:
        EDITOR.toggle_level(index)
        return jsonify({"status": "ok", "collapsed": sorted(EDITOR.collapsed)})


@app.route("/api/drag/start", methods=["POST"])
def api_drag_start():
    payload = _payload()
    node_id = _optional_str(payload, "node_id")
    if not node_id:
        return _json_error("`node_id` is required.", 400)
    with EDITOR_LOCK:
        started = EDITOR.start_drag(node_id, _pointer(payload) or (0.0, 0.0))
        return jsonify({"status": "ok" if started else "rejected", "drag": EDITOR.drag.state.to_dict()})


@app.route("/api/drag/move", methods=["POST"])
def api_drag_move():
    payload = _payload()
    with EDITOR_LOCK:
        target = EDITOR.drag_over(_optional_str(payload, "target_id"), _pointer(payload))
        return jsonify({"status": "ok", "drop_target_id": target})


@app.route("/api/drag/end", methods=["POST"])
def api_drag_end():
    with EDITOR_LOCK:
        moved = EDITOR.end_drag()
    if moved is None:
        return jsonify({"status": "cancelled"})
    return jsonify({"status": "ok", "moved_id": moved.id})


@app.route("/api/nodes/<node_id>/delete", methods=["POST"])
def api_request_delete(node_id: str):
    with EDITOR_LOCK:
        plan = EDITOR.request_delete(node_id)
    return jsonify({"status": "ok", "plan": plan.to_dict()})


@app.route("/api/delete/confirm", methods=["POST"])
def api_confirm_delete():
    payload = _payload()
    mode = _optional_str(payload, "mode") or CASCADE
    with EDITOR_LOCK:
        outcome = EDITOR.confirm_delete(mode, _optional_str(payload, "target_id"))
    return jsonify({"status": "ok", "mode": outcome.mode, "removed": sorted(outcome.removed_ids)})


@app.route("/api/delete/cancel", methods=["POST"])
def api_cancel_delete():
    with EDITOR_LOCK:
        EDITOR.cancel_delete()
    return jsonify({"status": "ok"})


@app.route("/api/apply", methods=["POST"])
def api_apply():
    with EDITOR_LOCK:
        EDITOR.apply()
        return jsonify({"status": "ok", **EDITOR.ledger.to_dict()})


if __name__ == "__main__":
    app.run(debug=True)
