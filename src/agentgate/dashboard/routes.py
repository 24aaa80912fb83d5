"""Dashboard routes: JSON API for agents, approvals, tool servers and sessions."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..errors import AgentGateError, NotPendingError, StorageError
from ..orchestrator import Orchestrator

bp = Blueprint("dashboard", __name__)


def _orch() -> Orchestrator:
    return current_app.config["orchestrator"]


@bp.errorhandler(AgentGateError)
def _handle_engine_error(error: AgentGateError):
    if isinstance(error, NotPendingError):
        status = 409
    elif isinstance(error, StorageError):
        status = 503
    elif "not found" in str(error):
        status = 404
    else:
        status = 400
    return jsonify({"error": str(error)}), status


# --- Agents ---

@bp.route("/api/agents")
def api_list_agents():
    return jsonify([s.model_dump(mode="json") for s in _orch().get_agent_summaries()])


@bp.route("/api/agents/<agent_id>")
def api_get_agent(agent_id: str):
    agent = _orch().get_agent(agent_id)
    if agent is None:
        return jsonify({"error": "not found"}), 404
    return jsonify(agent.model_dump(mode="json"))


@bp.route("/api/agents", methods=["POST"])
def api_create_agent():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "JSON body required"}), 400
    template_id = data.pop("template_id", None)
    if template_id:
        agent = _orch().create_agent_from_template(
            template_id, working_directory=data.pop("working_directory", ""), **data
        )
    else:
        agent = _orch().create_agent(data)
    return jsonify({"id": agent.id, "name": agent.config.name, "status": agent.status.value}), 201


@bp.route("/api/agents/<agent_id>", methods=["DELETE"])
def api_remove_agent(agent_id: str):
    if _orch().remove_agent(agent_id):
        return jsonify({"removed": True})
    return jsonify({"error": "not found"}), 404


@bp.route("/api/agents", methods=["DELETE"])
def api_clear_agents():
    return jsonify({"removed": _orch().clear_all_agents()})


@bp.route("/api/agents/<agent_id>/start", methods=["POST"])
def api_start_agent(agent_id: str):
    data = request.get_json(silent=True) or {}
    agent = _orch().start_agent(agent_id, data.get("prompt"))
    return jsonify({"id": agent.id, "status": agent.status.value})


@bp.route("/api/agents/<agent_id>/messages", methods=["POST"])
def api_send_message(agent_id: str):
    data = request.get_json(silent=True) or {}
    if not data.get("text"):
        return jsonify({"error": "'text' required"}), 400
    agent = _orch().send_message(agent_id, data["text"])
    return jsonify({"id": agent.id, "status": agent.status.value})


@bp.route("/api/agents/<agent_id>/trim", methods=["POST"])
def api_trim_agent(agent_id: str):
    data = request.get_json(silent=True) or {}
    steps, messages = _orch().trim_history(
        agent_id, data.get("max_steps"), data.get("max_messages")
    )
    return jsonify({"removed_steps": steps, "removed_messages": messages})


@bp.route("/api/agents/<agent_id>/logs")
def api_agent_logs(agent_id: str):
    lines = request.args.get("lines", 100, type=int)
    return jsonify({"agent_id": agent_id, "logs": _orch().get_logs(agent_id, lines=lines)})


@bp.route("/api/agents/<agent_id>/suspend", methods=["POST"])
def api_suspend_agent(agent_id: str):
    session = _orch().suspend_agent(agent_id)
    return jsonify(session.model_dump(mode="json")), 201


@bp.route("/api/active-agent", methods=["GET", "PUT"])
def api_active_agent():
    if request.method == "PUT":
        data = request.get_json(silent=True) or {}
        _orch().set_active_agent(data.get("agent_id"))
    agent = _orch().get_active_agent()
    return jsonify({"agent_id": agent.id if agent else None})


# --- Approvals ---

@bp.route("/api/approvals")
def api_pending_approvals():
    return jsonify([c.model_dump(mode="json") for c in _orch().get_pending_approvals()])


@bp.route("/api/agents/<agent_id>/steps/<step_id>/approve", methods=["POST"])
def api_approve(agent_id: str, step_id: str):
    step = _orch().approve(agent_id, step_id)
    return jsonify({"step_id": step.id, "status": step.tool_call.status.value})


@bp.route("/api/agents/<agent_id>/steps/<step_id>/deny", methods=["POST"])
def api_deny(agent_id: str, step_id: str):
    data = request.get_json(silent=True) or {}
    step = _orch().deny(agent_id, step_id, data.get("reason"))
    return jsonify({"step_id": step.id, "status": step.tool_call.status.value})


# --- Tool servers ---

@bp.route("/api/servers")
def api_list_servers():
    return jsonify(_orch().list_servers())


@bp.route("/api/servers/<name>", methods=["PATCH"])
def api_update_server(name: str):
    data = request.get_json(silent=True) or {}
    if "enabled" not in data:
        return jsonify({"error": "'enabled' required"}), 400
    config = _orch().set_server_enabled(name, bool(data["enabled"]))
    return jsonify({"name": config.name, "enabled": config.enabled})


@bp.route("/api/servers/filesystem/directory", methods=["PUT"])
def api_set_directory():
    data = request.get_json(silent=True) or {}
    config = _orch().configure_directory(data.get("directory", ""))
    return jsonify({"name": config.name, "directory": _orch().filesystem_directory()})


@bp.route("/api/servers/ssh", methods=["PUT"])
def api_configure_ssh():
    data = request.get_json(silent=True) or {}
    orch = _orch()
    config = orch.run_sync(
        orch.configure_ssh(
            data.get("host", ""),
            data.get("username", ""),
            data.get("auth_type", "key"),
            data.get("port", 22),
            data.get("password"),
            data.get("key_path"),
        )
    )
    return jsonify({"name": config.name, "enabled": config.enabled})


@bp.route("/api/servers/<name>/secrets", methods=["PUT"])
def api_set_secrets(name: str):
    """Store ``{"secrets": {secret_name: value}}`` and relaunch the server."""
    data = request.get_json(silent=True) or {}
    secrets = data.get("secrets")
    if not isinstance(secrets, dict) or not secrets:
        return jsonify({"error": "'secrets' object required"}), 400
    orch = _orch()
    if orch.registry.get(name) is None:
        return jsonify({"error": f"Tool server {name} not found"}), 404
    orch.run_sync(orch.set_secrets({k: str(v) for k, v in secrets.items()}, server=name))
    return jsonify({"name": name, "saved": sorted(secrets)})


# --- Sessions ---

@bp.route("/api/sessions")
def api_list_sessions():
    sessions = _orch().list_sessions(request.args.get("conversation_id"))
    return jsonify([s.model_dump(mode="json") for s in sessions])


@bp.route("/api/sessions/<session_id>/resume", methods=["POST"])
def api_resume_session(session_id: str):
    agent = _orch().resume_session(session_id)
    return jsonify({"id": agent.id, "name": agent.config.name, "status": agent.status.value}), 201
