import inspect
from types import SimpleNamespace

import pytest
from aiortc import RTCSessionDescription

from tools.settings import ClientSettings, CoordinatorSettings
from use_cases.client_connection.transports import SignalingTransport
from use_cases.signaling import (
    AnswerProvider,
    SessionStore,
    SignalingCoordinator,
    TransportError,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePeerConnection:
    """
    Stand-in for RTCPeerConnection.

    Handlers registered with on() are awaited by fire(); candidates listed in
    gather are emitted from setLocalDescription, the way ICE gathering starts
    once the local description is applied.
    """

    def __init__(self, offer_sdp="O1", answer_sdp="A1", gather=(), **kwargs):
        self.offer_sdp = offer_sdp
        self.answer_sdp = answer_sdp
        self.gather = list(gather)
        self.configuration = kwargs.get("configuration")
        self.handlers = {}
        self.connectionState = "new"
        self.localDescription = None
        self.remoteDescription = None
        self.added_candidates = []
        self.tracks = []
        self.transceivers = []
        self.close_count = 0

    def on(self, event):
        def decorator(handler):
            self.handlers.setdefault(event, []).append(handler)
            return handler

        return decorator

    async def fire(self, event, *args):
        for handler in self.handlers.get(event, []):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    async def set_state(self, state):
        self.connectionState = state
        await self.fire("connectionstatechange")

    async def createOffer(self):
        return RTCSessionDescription(sdp=self.offer_sdp, type="offer")

    async def createAnswer(self):
        return RTCSessionDescription(sdp=self.answer_sdp, type="answer")

    async def setLocalDescription(self, description):
        self.localDescription = description
        for candidate in self.gather:
            await self.fire("icecandidate", candidate)

    async def setRemoteDescription(self, description):
        self.remoteDescription = description

    async def addIceCandidate(self, candidate):
        self.added_candidates.append(candidate)

    def addTrack(self, track):
        self.tracks.append(track)

    def addTransceiver(self, kind, direction=None):
        self.transceivers.append((kind, direction))

    async def close(self):
        self.close_count += 1
        self.connectionState = "closed"


class PeerFactory:
    """Records every peer connection it creates."""

    def __init__(self, **defaults):
        self.defaults = defaults
        self.created = []

    def __call__(self, **kwargs):
        pc = FakePeerConnection(**{**self.defaults, **kwargs})
        self.created.append(pc)
        return pc

    @property
    def last(self):
        return self.created[-1]


class FakeAnswerer(AnswerProvider):
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []
        self.released = []

    async def create_answer(self, session_id, role, offer_sdp):
        self.calls.append((session_id, role, offer_sdp))
        return self.answers.get(offer_sdp, f"answer-to-{offer_sdp}")

    async def release(self, session_id, role):
        self.released.append((session_id, role))


class FakeTransport(SignalingTransport):
    """Records every call; poll results and candidate failures are scripted."""

    def __init__(self, answer="A1", supports_push=True, candidate_failures=0, **kwargs):
        super().__init__(**kwargs)
        self.supports_push = supports_push
        self.answer = answer
        self.candidate_failures = candidate_failures
        self.offer_error = None
        self.poll_results = []
        self.offers = []
        self.candidates = []
        self.candidate_attempts = 0
        self.polls = 0
        self.states = []
        self.closed = []
        self.subscriptions = {}
        self.unsubscribed = []

    async def send_offer(self, session_id, role, sdp):
        self.offers.append((session_id, role, sdp))
        if self.offer_error is not None:
            raise self.offer_error
        return session_id or "generated", self.answer

    async def send_candidate(self, session_id, role, payload):
        self.candidate_attempts += 1
        if self.candidate_failures > 0:
            self.candidate_failures -= 1
            raise TransportError("connection reset", session_id=session_id)
        self.candidates.append(payload)

    async def poll_candidates(self, session_id, role):
        self.polls += 1
        if self.poll_results:
            return self.poll_results.pop(0)
        return []

    async def report_state(self, session_id, role, state):
        self.states.append(state)

    async def close_session(self, session_id, role):
        self.closed.append((session_id, role))

    async def subscribe_candidates(self, session_id, role, callback):
        self.subscriptions[(session_id, role)] = callback

    async def unsubscribe_candidates(self, session_id, role):
        self.unsubscribed.append((session_id, role))


def make_candidate(value="candidate:1 1 udp 2122260223 192.168.1.10 50000 typ host", mid="0", index=0):
    return SimpleNamespace(candidate=value, sdpMid=mid, sdpMLineIndex=index)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def answerer():
    return FakeAnswerer(answers={"O1": "A1"})


@pytest.fixture
def coordinator_settings():
    return CoordinatorSettings(
        idle_timeout=300, failed_grace=30, cleanup_interval=60, answer_timeout=0.5
    )


@pytest.fixture
def coordinator(answerer, store, coordinator_settings):
    return SignalingCoordinator(answer_provider=answerer, settings=coordinator_settings, store=store)


@pytest.fixture
def relay_coordinator(store, coordinator_settings):
    """Coordinator without an answer provider: answers are posted by a remote peer."""
    return SignalingCoordinator(settings=coordinator_settings, store=store)


@pytest.fixture
def client_settings():
    return ClientSettings(
        poll_interval=0,
        max_empty_polls=5,
        request_timeout=1.0,
        candidate_retries=3,
        retry_backoff=0,
    )


@pytest.fixture
def push_settings():
    return ClientSettings(
        delivery_mode="push",
        poll_interval=0,
        request_timeout=1.0,
        retry_backoff=0,
    )


@pytest.fixture
def peer_factory():
    return PeerFactory()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def candidate():
    return make_candidate


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_peer_factory():
    return PeerFactory
