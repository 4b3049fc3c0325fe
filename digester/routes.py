from flask import Blueprint, jsonify, Response, stream_with_context, request
from system import services
from system.log_utils import verbose, debug, info, warn, error
from digester.errors import ConnectivityError, RunStateError, TransportError, ValidationError
from digester.live_status_service import get_live_snapshots
from digester.params import PARAM_BOUNDS
from digester.sse_utils import SseDeltaTracker

import time, json

digester_bp = Blueprint("digester", __name__)

SSE_INTERVAL = 0.5
SSE_KEEPALIVE = 10


def _engine():
    return services.engine_service


def _actions():
    return services.run_actions


# ----------------------------------------------------------------------
# Run control
# ----------------------------------------------------------------------
@digester_bp.route("/api/run/start", methods=["POST"])
def start_run() -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    try:
        params = _actions().start_run(data)
    except ValidationError as e:
        warn(f"[RUN] start rejected: {e}")
        return jsonify({"ok": False, "error": str(e)}), 400
    except (RunStateError, ConnectivityError) as e:
        warn(f"[RUN] start rejected: {e}")
        return jsonify({"ok": False, "error": str(e)}), 409
    except Exception as e:
        error(f"[RUN] start failed: {e}")
        return jsonify({"ok": False, "error": str(e)}), 500

    # remember the last accepted parameters as operator defaults
    if services.preferences_service is not None:
        services.preferences_service.update_from_dict(params.to_dict(), write_disk=True)

    return jsonify({"ok": True, "message": "Run started", "params": params.to_dict()}), 200


@digester_bp.route("/api/run/abort", methods=["POST"])
def abort_run() -> tuple[Response, int]:
    ok, msg = _actions().abort()
    if not ok:
        debug(f"[RUN] abort ignored {msg}")
        return jsonify({"ok": False, "message": msg}), 200

    return jsonify({"ok": True, "message": msg}), 200


@digester_bp.route("/api/run/reset", methods=["POST"])
def reset_run() -> tuple[Response, int]:
    ok, msg = _actions().reset()
    if not ok:
        return jsonify({"ok": False, "error": msg}), 409

    return jsonify({"ok": True, "message": msg}), 200


@digester_bp.route("/api/run/status")
def run_status() -> tuple[Response, int]:
    engine = _engine()
    progress, snapshot = get_live_snapshots()
    outcome = engine.last_outcome
    return jsonify({
        "ok": True,
        "state": engine.current_state(),
        "phase": engine.active_phase(),
        "progress": progress,
        "outcome": outcome.to_dict() if outcome else None,
        "snapshot": snapshot or None,
    }), 200


# ----------------------------------------------------------------------
# Process data
# ----------------------------------------------------------------------
@digester_bp.route("/api/process/snapshot")
def process_snapshot() -> tuple[Response, int]:
    transport = services.transport
    if transport is None:
        return jsonify({"ok": False, "error": "No plant transport"}), 503
    try:
        snap = transport.current_snapshot()
    except TransportError as e:
        warn(f"[RUN] snapshot read failed: {e}")
        return jsonify({"ok": False, "error": str(e)}), 503

    return jsonify({"ok": True, "connected": transport.is_connected(), "snapshot": snap.to_dict()}), 200


# ----------------------------------------------------------------------
# Preferences
# ----------------------------------------------------------------------
@digester_bp.route("/api/preferences", methods=["GET"])
def get_preferences() -> tuple[Response, int]:
    prefs = services.preferences_service
    bounds = {k: {"min": lo, "max": hi, "unit": unit, "label": label} for k, (lo, hi, unit, label) in PARAM_BOUNDS.items()}
    return jsonify({"ok": True, "preferences": prefs.as_dict() if prefs else {}, "bounds": bounds}), 200


@digester_bp.route("/api/preferences", methods=["POST"])
def update_preferences() -> tuple[Response, int]:
    prefs = services.preferences_service
    if prefs is None:
        return jsonify({"ok": False, "error": "Preferences unavailable"}), 503

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "Expected a JSON object"}), 400

    updated = prefs.update_from_dict(data, write_disk=True)
    info(f"[PREFS] updated via API: {updated}")
    return jsonify({"ok": True, "updated": updated}), 200


# ----------------------------------------------------------------------
# Server-Sent Events
# ----------------------------------------------------------------------
@digester_bp.route("/api/run/events")
def sse_events() -> Response:
    """SSE stream of run progress (always) and the process snapshot (when changed)."""
    max_events = request.args.get("max_events", type=int)

    def event_stream():
        last_payload = None
        last_beat = time.monotonic()
        tracker = SseDeltaTracker()
        sent = 0

        while max_events is None or sent < max_events:
            try:
                _progress, _snapshot = get_live_snapshots()

                state = tracker.build(_progress, _snapshot)
                payload = json.dumps(state, sort_keys=True)
                if payload != last_payload:
                    yield f"data: {payload}\n\n"
                    last_payload = payload
                    last_beat = time.monotonic()
                    sent += 1
                    verbose(f"[SSE] sent update: {state}")
                elif time.monotonic() - last_beat > SSE_KEEPALIVE:
                    yield ": keep-alive\n\n"
                    last_beat = time.monotonic()
                    verbose("[SSE] sent keep-alive")

                time.sleep(SSE_INTERVAL)

            except GeneratorExit:
                debug("[SSE] client disconnected")
                break
            except Exception as e:
                warn(f"[SSE] stream error: {e}")
                time.sleep(1)

    return Response(stream_with_context(event_stream()), mimetype="text/event-stream")
