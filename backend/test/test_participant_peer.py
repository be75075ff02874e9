"""응시자 측 ParticipantPeerManager 테스트."""

import pytest

from modules.signaling import MessageType
from modules.webrtc import CaptureStream, CaptureTrack, ParticipantPeerManager, candidate_from_payload

from conftest import FakeSourceTrack, wait_for

OFFER = {"sdp": "v=0 offer", "type": "offer"}
CANDIDATE = "candidate:842163049 1 udp 1677729535 192.0.2.1 54400 typ host"


@pytest.fixture
def stream() -> CaptureStream:
    return CaptureStream([
        CaptureTrack(FakeSourceTrack("video"), display_surface="monitor"),
        CaptureTrack(FakeSourceTrack("audio")),
    ])


@pytest.fixture
async def answerer(signaling, peer_factory):
    answerer = ParticipantPeerManager(signaling, peer_factory=peer_factory)
    yield answerer
    await answerer.close_all()


async def test_offer_is_answered_with_all_tracks(answerer, signaling, peer_factory, stream):
    assert await answerer.handle_offer("admin", OFFER, stream)

    pc = peer_factory.created[0]
    assert pc.remoteDescription.sdp == "v=0 offer"
    assert sorted(track.kind for track in pc.tracks) == ["audio", "video"]
    assert signaling.sent_of(MessageType.ANSWER) == [
        {"target": "admin", "payload": {"sdp": "v=0 fake-answer", "type": "answer"}}
    ]
    await wait_for(lambda: answerer.connection_states.get("admin") == "connected")


async def test_one_connection_per_supervisor(answerer, peer_factory, stream):
    await answerer.handle_offer("admin-1", OFFER, stream)
    await answerer.handle_offer("admin-2", OFFER, stream)

    assert set(answerer.peers) == {"admin-1", "admin-2"}


async def test_repeated_offer_replaces_connection(answerer, peer_factory, stream):
    await answerer.handle_offer("admin", OFFER, stream)
    await answerer.handle_offer("admin", OFFER, stream)

    first, second = peer_factory.created
    assert first.connectionState == "closed"
    assert answerer.peers["admin"] is second


async def test_invalid_offer_is_ignored(answerer, signaling, peer_factory, stream):
    assert await answerer.handle_offer("admin", {"type": "offer"}, stream) is False
    assert await answerer.handle_offer(None, OFFER, stream) is False

    assert peer_factory.created == []
    assert signaling.sent_of(MessageType.ANSWER) == []


async def test_ice_candidate_from_known_supervisor(answerer, peer_factory, stream):
    await answerer.handle_offer("admin", OFFER, stream)

    assert await answerer.handle_ice_candidate("admin", {"candidate": CANDIDATE})
    assert await answerer.handle_ice_candidate("stranger", {"candidate": CANDIDATE}) is False

    assert len(peer_factory.created[0].candidates) == 1


async def test_local_candidates_go_to_supervisor(answerer, signaling, peer_factory, stream):
    await answerer.handle_offer("admin", OFFER, stream)
    candidate = candidate_from_payload({"candidate": CANDIDATE, "sdpMid": "0", "sdpMLineIndex": 0})

    peer_factory.created[0].emit("icecandidate", candidate)
    await wait_for(lambda: signaling.sent_of(MessageType.ICE_CANDIDATE))

    sent = signaling.sent_of(MessageType.ICE_CANDIDATE)[0]
    assert sent["target"] == "admin"
    assert sent["payload"]["candidate"].startswith("candidate:842163049")


async def test_close_all(answerer, peer_factory, stream):
    await answerer.handle_offer("admin-1", OFFER, stream)
    await answerer.handle_offer("admin-2", OFFER, stream)

    await answerer.close_all()

    assert answerer.peers == {}
    assert all(pc.connectionState == "closed" for pc in peer_factory.created)
