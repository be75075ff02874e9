"""감독관 측 PeerConnectionManager 테스트."""

from unittest.mock import AsyncMock

import pytest

from modules.signaling import MessageType
from modules.webrtc import PeerConnectionManager

from conftest import FakeSourceTrack, wait_for

CANDIDATE = "candidate:842163049 1 udp 1677729535 192.0.2.1 54400 typ host"
ANSWER = {"sdp": "v=0 answer", "type": "answer"}


@pytest.fixture
async def manager(signaling, peer_factory):
    manager = PeerConnectionManager(signaling, peer_factory=peer_factory)
    manager.on_status = AsyncMock()
    manager.on_track = AsyncMock()
    yield manager
    await manager.release_all()


async def test_observe_sends_offer(manager, signaling, peer_factory):
    assert await manager.observe("alice") is True

    pc = peer_factory.created[0]
    assert pc.transceivers == [("video", "recvonly"), ("audio", "recvonly")]
    assert signaling.sent_of(MessageType.OFFER) == [
        {"target": "alice", "payload": {"sdp": "v=0 fake-offer", "type": "offer"}}
    ]
    assert manager.get_context("alice").pc is pc


async def test_observe_is_idempotent(manager, signaling, peer_factory):
    await manager.observe("alice")
    assert await manager.observe("alice") is False

    assert len(peer_factory.created) == 1
    assert len(signaling.sent_of(MessageType.OFFER)) == 1


async def test_contexts_are_independent(manager, peer_factory):
    await manager.observe("alice")
    await manager.observe("bob")

    await manager.handle_answer("alice", ANSWER)

    assert manager.get_context("alice").answered
    assert not manager.get_context("bob").answered
    assert peer_factory.created[1].remoteDescription is None


async def test_answer_connects(manager):
    await manager.observe("alice")

    assert await manager.handle_answer("alice", ANSWER) is True
    await wait_for(lambda: manager.on_status.await_count > 0)

    manager.on_status.assert_awaited_with("alice", "connected")
    assert manager.get_context("alice").status == "connected"


async def test_unknown_identity_messages_are_ignored(manager, peer_factory):
    assert await manager.handle_answer("ghost", ANSWER) is False
    assert await manager.handle_ice_candidate("ghost", {"candidate": CANDIDATE}) is False

    assert peer_factory.created == []


async def test_ice_candidate_applied(manager, peer_factory):
    await manager.observe("alice")

    assert await manager.handle_ice_candidate("alice", {"candidate": CANDIDATE, "sdpMid": "0", "sdpMLineIndex": 0})

    assert peer_factory.created[0].candidates[0].ip == "192.0.2.1"


async def test_malformed_ice_candidate_is_ignored(manager, peer_factory):
    await manager.observe("alice")

    assert await manager.handle_ice_candidate("alice", {"candidate": "candidate:bad"}) is False
    assert await manager.handle_ice_candidate("alice", "nonsense") is False
    assert await manager.handle_ice_candidate("alice", {"candidate": 5}) is False

    assert peer_factory.created[0].candidates == []
    assert manager.get_context("alice") is not None


async def test_offer_failure_reports_failed(manager, peer_factory, signaling):
    def failing_factory():
        pc = peer_factory()
        pc.fail_offer = True
        return pc

    manager.peer_factory = failing_factory

    assert await manager.observe("alice") is False

    assert manager.get_context("alice") is None
    assert signaling.sent_of(MessageType.OFFER) == []
    manager.on_status.assert_awaited_with("alice", "failed")


async def test_terminal_state_is_reported_not_retried(manager, peer_factory, signaling):
    await manager.observe("alice")
    pc = peer_factory.created[0]

    pc.set_state("failed")
    await wait_for(lambda: manager.on_status.await_count > 0)

    manager.on_status.assert_awaited_with("alice", "failed")
    assert len(peer_factory.created) == 1
    assert len(signaling.sent_of(MessageType.OFFER)) == 1


async def test_observe_after_failure_renegotiates(manager, peer_factory, signaling):
    await manager.observe("alice")
    first = peer_factory.created[0]
    first.set_state("failed")
    await wait_for(lambda: manager.get_context("alice").status == "failed")

    assert await manager.observe("alice") is True

    assert first.connectionState == "closed"
    assert manager.get_context("alice").pc is peer_factory.created[1]
    assert len(signaling.sent_of(MessageType.OFFER)) == 2


async def test_sync_roster_releases_departed(manager, peer_factory):
    await manager.observe("alice")
    await manager.observe("bob")

    await manager.sync_roster({"bob": "Bob"})

    assert manager.get_context("alice") is None
    assert manager.get_context("bob") is not None
    assert peer_factory.created[0].connectionState == "closed"


async def test_release_is_safe_for_unknown(manager):
    await manager.release("nobody")
    await manager.observe("alice")
    await manager.release("alice")
    await manager.release("alice")

    assert manager.contexts == {}


async def test_received_tracks_are_handed_over(manager, peer_factory):
    await manager.observe("alice")
    track = FakeSourceTrack("video")

    peer_factory.created[0].emit("track", track)
    await wait_for(lambda: manager.on_track.await_count > 0)

    manager.on_track.assert_awaited_once_with("alice", track)
    assert manager.get_context("alice").tracks == {"video": track}
