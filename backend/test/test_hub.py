"""SignalingHub 이벤트 처리 테스트."""

import pytest

from modules.signaling import MessageType, SessionRegistry, SignalingHub

from conftest import ADMIN_PASSWORD, RecordingChannel


@pytest.fixture
def hub() -> SignalingHub:
    return SignalingHub(SessionRegistry(admin_password=ADMIN_PASSWORD))


async def connect(hub):
    channel = RecordingChannel()
    identity = await hub.connect(channel)
    return identity, channel


async def supervisor(hub):
    identity, channel = await connect(hub)
    await hub.handle_message(identity, {"type": "admin-auth", "data": {"password": ADMIN_PASSWORD}})
    return identity, channel


async def participant(hub, name):
    identity, channel = await connect(hub)
    await hub.handle_message(identity, {"type": "join-exam", "data": {"name": name}})
    return identity, channel


async def test_connect_announces_identity(hub):
    identity, channel = await connect(hub)

    assert channel.frames == [{"type": "connected", "data": {"identity": identity}}]
    assert identity in hub.registry


async def test_admin_auth_success_sends_roster(hub):
    alice, _ = await participant(hub, "Alice")

    identity, channel = await supervisor(hub)

    assert [frame["type"] for frame in channel.frames] == ["connected", "auth-success", "user-list"]
    assert channel.of_type(MessageType.USER_LIST) == [{"users": {alice: "Alice"}}]


@pytest.mark.parametrize("data", [{"password": "nope"}, "nope", {}, None])
async def test_admin_auth_failure(hub, data):
    identity, channel = await connect(hub)

    await hub.handle_message(identity, {"type": "admin-auth", "data": data})

    assert channel.of_type(MessageType.AUTH_FAILED) == [{"message": "Invalid password"}]
    assert not hub.registry.get(identity).authenticated


async def test_join_broadcasts_roster_to_supervisors(hub):
    _, admin = await supervisor(hub)

    alice, _ = await participant(hub, "Alice")
    bob, _ = await participant(hub, "Bob")

    assert admin.of_type(MessageType.USER_LIST)[-2:] == [
        {"users": {alice: "Alice"}},
        {"users": {alice: "Alice", bob: "Bob"}},
    ]


async def test_join_accepts_plain_string_name(hub):
    identity, _ = await connect(hub)

    await hub.handle_message(identity, {"type": "join-exam", "data": " Alice "})

    assert hub.registry.get_roster() == {identity: "Alice"}


async def test_join_with_empty_name_reports_error(hub):
    _, admin = await supervisor(hub)
    identity, channel = await participant(hub, "   ")

    assert channel.of_type(MessageType.ERROR) == [{"message": "Name is required"}]
    assert len(admin.of_type(MessageType.USER_LIST)) == 1


async def test_disconnect_of_participant_broadcasts(hub):
    _, admin = await supervisor(hub)
    alice, _ = await participant(hub, "Alice")

    await hub.disconnect(alice)

    assert admin.of_type(MessageType.USER_LIST)[-1] == {"users": {}}
    assert alice not in hub.registry


async def test_disconnect_of_unassigned_does_not_broadcast(hub):
    _, admin = await supervisor(hub)
    identity, _ = await connect(hub)
    before = len(admin.frames)

    await hub.disconnect(identity)

    assert len(admin.frames) == before


async def test_get_user_list_is_supervisor_only(hub):
    alice, alice_channel = await participant(hub, "Alice")
    admin, admin_channel = await supervisor(hub)

    await hub.handle_message(alice, {"type": "get-user-list"})
    await hub.handle_message(admin, {"type": "get-user-list"})

    assert alice_channel.of_type(MessageType.USER_LIST) == []
    assert admin_channel.of_type(MessageType.USER_LIST)[-1] == {"users": {alice: "Alice"}}


async def test_negotiation_source_is_stamped_by_relay(hub):
    admin, _ = await supervisor(hub)
    alice, alice_channel = await participant(hub, "Alice")

    await hub.handle_message(admin, {
        "type": "offer",
        "data": {"target": alice, "source": "forged", "payload": {"sdp": "v=0", "type": "offer"}},
    })

    assert alice_channel.of_type(MessageType.OFFER) == [
        {"source": admin, "target": alice, "payload": {"sdp": "v=0", "type": "offer"}}
    ]


async def test_negotiation_to_absent_target_has_no_effect(hub):
    admin, admin_channel = await supervisor(hub)
    before = list(admin_channel.frames)

    await hub.handle_message(admin, {"type": "answer", "data": {"target": "gone", "payload": {}}})

    assert admin_channel.frames == before


async def test_negotiation_without_target_is_invalid(hub):
    admin, admin_channel = await supervisor(hub)

    await hub.handle_message(admin, {"type": "ice-candidate", "data": {"payload": {}}})

    assert admin_channel.of_type(MessageType.ERROR) == [{"message": "Invalid ice-candidate payload"}]


@pytest.mark.parametrize("raw", [["not", "a", "dict"], {"data": {}}, "text"])
async def test_malformed_frame_reports_error(hub, raw):
    identity, channel = await connect(hub)

    await hub.handle_message(identity, raw)

    assert channel.of_type(MessageType.ERROR) == [{"message": "Malformed message"}]


async def test_unknown_type_is_ignored(hub):
    identity, channel = await connect(hub)

    await hub.handle_message(identity, {"type": "dance", "data": {}})
    await hub.handle_message(identity, {"type": "user-list", "data": {}})

    assert len(channel.frames) == 1


async def test_participant_end_exam_ends_session(hub):
    _, admin = await supervisor(hub)
    alice, _ = await participant(hub, "Alice")

    await hub.handle_message(alice, {"type": "end-exam"})

    assert hub.registry.get_roster() == {}
    assert alice in hub.registry
    assert admin.of_type(MessageType.USER_LIST)[-1] == {"users": {}}


async def test_supervisor_end_exam_notifies_participant(hub):
    admin, _ = await supervisor(hub)
    alice, alice_channel = await participant(hub, "Alice")

    await hub.handle_message(admin, {"type": "end-exam", "data": {"target": alice}})

    assert alice_channel.of_type(MessageType.END_EXAM) == [{"source": admin, "target": alice, "payload": None}]
    assert hub.registry.get_roster() == {alice: "Alice"}


async def test_supervisor_end_exam_for_non_participant_is_ignored(hub):
    admin, _ = await supervisor(hub)
    other, other_channel = await connect(hub)

    await hub.handle_message(admin, {"type": "end-exam", "data": {"target": other}})
    await hub.handle_message(admin, {"type": "end-exam", "data": {}})

    assert other_channel.of_type(MessageType.END_EXAM) == []
