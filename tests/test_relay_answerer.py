import pytest
from aiortc import MediaStreamTrack

from use_cases.media_relay import RelayAnswerer
from use_cases.signaling import Role, SignalingCoordinator


class FakeVideoTrack(MediaStreamTrack):
    kind = "video"

    async def recv(self):
        raise NotImplementedError


@pytest.fixture
def relay_peers(make_peer_factory):
    return make_peer_factory(answer_sdp="A1")


@pytest.fixture
def relay(relay_peers):
    return RelayAnswerer(ice_servers=("stun:stun.example.org:3478",), peer_factory=relay_peers)


@pytest.fixture
def relay_coordinator_with_media(relay, coordinator_settings, store):
    return SignalingCoordinator(answer_provider=relay, settings=coordinator_settings, store=store)


async def test_publisher_offer_is_answered_by_server_peer(relay, relay_peers, relay_coordinator_with_media):
    _, answer = await relay_coordinator_with_media.submit_offer("abc", "publisher", "O1")

    pc = relay_peers.last
    assert answer == "A1"
    assert pc.remoteDescription.sdp == "O1"
    assert pc.configuration.iceServers[0].urls == ["stun:stun.example.org:3478"]
    assert relay.get_peer_connection("abc", Role.PUBLISHER) is pc


async def test_client_candidates_are_added_to_server_peer(relay_peers, relay_coordinator_with_media):
    await relay_coordinator_with_media.submit_offer("abc", "publisher", "O1")

    await relay_coordinator_with_media.submit_candidate(
        "abc", "publisher", "candidate:1 1 udp 2122260223 192.168.1.10 50000 typ host", "0", 0
    )

    added = relay_peers.last.added_candidates
    assert len(added) == 1
    assert added[0].ip == "192.168.1.10"
    assert added[0].port == 50000
    assert added[0].sdpMid == "0"


async def test_subscriber_receives_relayed_publisher_tracks(relay, relay_peers, relay_coordinator_with_media):
    await relay_coordinator_with_media.submit_offer("abc", "publisher", "O1")
    track = FakeVideoTrack()
    await relay_peers.last.fire("track", track)
    assert relay.published_tracks("abc") == [track]

    await relay_coordinator_with_media.submit_offer("abc", "subscriber", "O2")

    subscriber_pc = relay_peers.last
    assert len(subscriber_pc.tracks) == 1
    assert subscriber_pc.tracks[0].kind == "video"


async def test_subscriber_without_publisher_gets_answer(relay, relay_peers, relay_coordinator_with_media):
    _, answer = await relay_coordinator_with_media.submit_offer("abc", "subscriber", "O2")

    assert answer == "A1"
    assert relay_peers.last.tracks == []


async def test_closing_session_closes_server_peer(relay, relay_peers, relay_coordinator_with_media):
    await relay_coordinator_with_media.submit_offer("abc", "publisher", "O1")
    pc = relay_peers.last
    await pc.fire("track", FakeVideoTrack())

    await relay_coordinator_with_media.close("abc", "publisher")

    assert pc.close_count == 1
    assert relay.get_peer_connection("abc", "publisher") is None
    assert relay.published_tracks("abc") == []


async def test_close_all_closes_every_peer(relay, relay_peers, relay_coordinator_with_media):
    await relay_coordinator_with_media.submit_offer("abc", "publisher", "O1")
    await relay_coordinator_with_media.submit_offer("abc", "subscriber", "O2")

    await relay.close_all()

    assert [pc.close_count for pc in relay_peers.created] == [1, 1]
