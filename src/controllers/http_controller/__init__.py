"""
HTTP Controller

Request/response signaling endpoints used by browser clients. Candidates are
delivered by polling; push delivery is only available over Socket.IO.
"""

from quart import Quart, jsonify, request

from tools.logger import log_info, log_debug
from tools.contract_validation import (
    ANSWER_BODY,
    CANDIDATE_BODY,
    CLOSE_BODY,
    OFFER_BODY,
    POLL_QUERY,
    ROLE,
    SESSION_QUERY,
    STATE_BODY,
    validate_contract_with_error_response,
)
from use_cases.signaling import InvalidMessage, Role, SignalingError


def _parse_role(role: str) -> Role:
    try:
        ROLE.validate(role)
    except TypeError as e:
        raise InvalidMessage(f"Invalid role '{role}': {e}")
    return Role(role)


def _validated(contract, data):
    is_valid, error_response = validate_contract_with_error_response(contract, data)
    if not is_valid:
        raise InvalidMessage(error_response["error"])
    return data


async def _json_body(contract):
    body = await request.get_json(force=True, silent=True)
    return _validated(contract, body)


def create_app(coordinator) -> Quart:
    """
    Build the HTTP signaling application around a coordinator.

    Args:
        coordinator: SignalingCoordinator instance
    """
    app = Quart(__name__)

    @app.errorhandler(SignalingError)
    async def handle_signaling_error(error):
        log_debug(f"{request.method} {request.path} -> {error.http_status} {error.error_type}")
        return jsonify(error.to_response()), error.http_status

    # ---------------- OFFER / ANSWER ----------------
    @app.route("/offer/<role>", methods=["POST"])
    async def post_offer(role):
        role = _parse_role(role)
        body = await _json_body(OFFER_BODY)
        session_id, answer = await coordinator.submit_offer(
            body.get("sessionId"), role, body["sdp"]
        )
        return jsonify({"sessionId": session_id, "sdp": answer})

    @app.route("/offer/<role>", methods=["GET"])
    async def get_offer(role):
        role = _parse_role(role)
        query = _validated(SESSION_QUERY, request.args.to_dict())
        offer = coordinator.get_offer(query["sessionId"], role)
        return jsonify({"sessionId": query["sessionId"], "sdp": offer})

    @app.route("/answer/<role>", methods=["POST"])
    async def post_answer(role):
        role = _parse_role(role)
        body = await _json_body(ANSWER_BODY)
        stored = await coordinator.submit_answer(body["sessionId"], role, body["sdp"])
        return jsonify({"status": "success", "sessionId": body["sessionId"], "stored": stored})

    # ---------------- CANDIDATES ----------------
    @app.route("/candidate/<role>", methods=["POST"])
    async def post_candidate(role):
        role = _parse_role(role)
        body = await _json_body(CANDIDATE_BODY)
        await coordinator.submit_candidate(
            body["sessionId"],
            role,
            body.get("candidate"),
            body.get("sdpMid"),
            body.get("sdpMLineIndex"),
        )
        return jsonify({"status": "success"})

    @app.route("/candidate/poll", methods=["GET"])
    async def poll_candidates():
        query = _validated(POLL_QUERY, request.args.to_dict())
        role = Role(query.get("role") or Role.SUBSCRIBER.value)
        records = coordinator.poll_candidates(query["sessionId"], role)
        return jsonify([record.to_payload() for record in records])

    # ---------------- LIFECYCLE ----------------
    @app.route("/state/<role>", methods=["POST"])
    async def post_state(role):
        role = _parse_role(role)
        body = await _json_body(STATE_BODY)
        await coordinator.report_state(body["sessionId"], role, body["state"])
        return jsonify({"status": "success"})

    @app.route("/close/<role>", methods=["POST"])
    async def post_close(role):
        role = _parse_role(role)
        body = await _json_body(CLOSE_BODY)
        closed = await coordinator.close(body["sessionId"], role, reason="client requested")
        if not closed:
            return jsonify({"status": "warning", "message": "Session not found (may already be closed)"})
        return jsonify({"status": "success"})

    @app.route("/sessions", methods=["GET"])
    async def list_sessions():
        return jsonify(coordinator.list_sessions())

    @app.route("/health", methods=["GET"])
    async def health():
        return jsonify({"status": "ok", "sessions": coordinator.get_session_count()})

    log_info("HTTP signaling routes registered")
    return app
