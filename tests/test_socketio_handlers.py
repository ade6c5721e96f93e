import dataclasses

import pytest

from controllers.webrtc_controller import init as init_webrtc_controller
from use_cases.signaling import SessionState, SignalingCoordinator


class FakeServer:
    """Collects handlers registered with on() and records emitted events."""

    def __init__(self):
        self.handlers = {}
        self.emitted = []

    def on(self, event, handler=None):
        def register(func):
            self.handlers[event] = func
            return func

        if handler is not None:
            return register(handler)
        return register

    async def emit(self, event, data=None, to=None, **kwargs):
        self.emitted.append((event, data, to))

    async def trigger(self, event, *args):
        return await self.handlers[event](*args)


@pytest.fixture
def server(coordinator):
    server = FakeServer()
    init_webrtc_controller(server, coordinator)
    return server


@pytest.fixture
def push_coordinator(store, coordinator_settings):
    settings = dataclasses.replace(coordinator_settings, delivery_mode="push")
    return SignalingCoordinator(settings=settings, store=store)


@pytest.fixture
def push_server(push_coordinator):
    server = FakeServer()
    init_webrtc_controller(server, push_coordinator)
    return server


def test_all_topics_are_registered(server):
    assert {
        "webrtc:offer",
        "webrtc:ice",
        "webrtc:state",
        "webrtc:subscribe",
        "webrtc:disconnect",
        "disconnect",
    } <= set(server.handlers)


async def test_offer_is_acknowledged_with_answer(server):
    ack = await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "publisher", "sdp": "O1"})

    assert ack == {
        "action": "webrtc:offer",
        "status": "success",
        "session_id": "abc",
        "sdp": "A1",
        "sdp_type": "answer",
    }


async def test_offer_without_session_id_is_accepted(server):
    ack = await server.trigger("webrtc:offer", "sid1", {"session_id": None, "role": "subscriber", "sdp": "O1"})

    assert ack["status"] == "success"
    assert ack["session_id"]


async def test_invalid_message_is_rejected(server):
    ack = await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "publisher"})

    assert ack["status"] == "error"
    assert ack["error_type"] == "InvalidMessage"
    assert ack["action"] == "webrtc:offer"


async def test_candidate_for_unknown_session_is_not_found(server):
    ack = await server.trigger(
        "webrtc:ice", "sid1", {"session_id": "missing", "role": "publisher", "candidate": "candidate:1"}
    )

    assert ack["status"] == "error"
    assert ack["error_type"] == "NotFound"


async def test_candidate_and_end_of_candidates(server, coordinator):
    await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "publisher", "sdp": "O1"})

    ack = await server.trigger(
        "webrtc:ice",
        "sid1",
        {"session_id": "abc", "role": "publisher", "candidate": "candidate:1", "sdp_mid": "0", "sdp_mline_index": 0},
    )
    assert ack["status"] == "success"

    ack = await server.trigger("webrtc:ice", "sid1", {"session_id": "abc", "role": "publisher", "candidate": None})
    assert ack["message"] == "End of candidates acknowledged"
    assert coordinator.is_gathering_complete("abc", "publisher")
    assert [r.candidate for r in coordinator.poll_candidates("abc", "subscriber")] == ["candidate:1"]


async def test_state_is_forwarded(server, coordinator):
    await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "publisher", "sdp": "O1"})

    ack = await server.trigger("webrtc:state", "sid1", {"session_id": "abc", "role": "publisher", "state": "connecting"})

    assert ack["status"] == "success"
    assert coordinator.get_session("abc", "publisher").state is SessionState.CONNECTING


async def test_disconnect_closes_session(server, coordinator):
    await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "publisher", "sdp": "O1"})

    ack = await server.trigger("webrtc:disconnect", "sid1", {"session_id": "abc", "role": "publisher"})
    assert ack["status"] == "success"
    assert coordinator.get_session_count() == 0

    ack = await server.trigger("webrtc:disconnect", "sid1", {"session_id": "abc", "role": "publisher"})
    assert ack["status"] == "warning"


async def test_subscribe_with_local_answerer_attaches_nothing(server, coordinator):
    await server.trigger("webrtc:offer", "sid1", {"session_id": "abc", "role": "subscriber", "sdp": "O1"})

    ack = await server.trigger("webrtc:subscribe", "sid1", {"session_id": "abc", "role": "subscriber"})

    assert ack["status"] == "success"
    assert "message" in ack


async def test_subscribe_rejected_when_push_disabled(store, coordinator_settings):
    coordinator = SignalingCoordinator(settings=coordinator_settings, store=store)
    server = FakeServer()
    init_webrtc_controller(server, coordinator)
    coordinator.store.create("abc", "subscriber")

    ack = await server.trigger("webrtc:subscribe", "sid1", {"session_id": "abc", "role": "subscriber"})

    assert ack["status"] == "error"
    assert ack["error_type"] == "InvalidMessage"


async def test_subscribed_client_receives_pushed_candidates(push_server, push_coordinator):
    push_coordinator.store.create("abc", "subscriber")
    push_coordinator.store.create("abc", "publisher")
    await push_coordinator.submit_candidate("abc", "publisher", "candidate:early", "0", 0)

    ack = await push_server.trigger("webrtc:subscribe", "sid-sub", {"session_id": "abc", "role": "subscriber"})
    assert ack["status"] == "success"

    await push_server.trigger(
        "webrtc:ice",
        "sid-pub",
        {"session_id": "abc", "role": "publisher", "candidate": "candidate:live", "sdp_mid": "0", "sdp_mline_index": 0},
    )

    assert [(event, data["candidate"], to) for event, data, to in push_server.emitted] == [
        ("webrtc:ice", "candidate:early", "sid-sub"),
        ("webrtc:ice", "candidate:live", "sid-sub"),
    ]
    assert push_server.emitted[0][1]["role"] == "publisher"


async def test_socket_disconnect_releases_subscription(push_server, push_coordinator):
    push_coordinator.store.create("abc", "subscriber")
    push_coordinator.store.create("abc", "publisher")
    await push_server.trigger("webrtc:subscribe", "sid-sub", {"session_id": "abc", "role": "subscriber"})

    await push_server.trigger("disconnect", "sid-sub")
    await push_coordinator.submit_candidate("abc", "publisher", "candidate:late")

    assert push_server.emitted == []
    assert push_coordinator.queue.pending("abc", "publisher") == 1


async def test_subscribe_to_unknown_session_is_not_found(push_server):
    ack = await push_server.trigger("webrtc:subscribe", "sid1", {"session_id": "missing", "role": "subscriber"})

    assert ack["error_type"] == "NotFound"


async def test_closed_session_is_pruned_from_subscriptions(push_coordinator):
    server = FakeServer()
    subscriptions = init_webrtc_controller(server, push_coordinator)
    push_coordinator.store.create("abc", "subscriber")
    push_coordinator.store.create("abc", "publisher")
    await server.trigger("webrtc:subscribe", "sid-sub", {"session_id": "abc", "role": "subscriber"})
    assert subscriptions.count("sid-sub") == 1

    ack = await server.trigger("webrtc:disconnect", "sid-sub", {"session_id": "abc", "role": "subscriber"})
    await push_coordinator.submit_candidate("abc", "publisher", "candidate:late")

    assert ack["status"] == "success"
    assert subscriptions.count("sid-sub") == 0
    assert server.emitted == []
    assert push_coordinator.queue.pending("abc", "publisher") == 1
