"""테스트 공용 fixture와 가짜 협력자.

실제 SignalingHub와 SignalingClient를 메모리 채널로 연결하고,
캡처 장치와 RTCPeerConnection은 가짜 구현으로 대체합니다.
"""

import asyncio
import json
from typing import Callable, Dict, List, Optional

import pytest
from aiortc import MediaStreamTrack, RTCSessionDescription
from aiortc.mediastreams import MediaStreamError
from pyee.asyncio import AsyncIOEventEmitter

from modules.compliance import CaptureProvider, ComplianceConfig, Notifier
from modules.signaling import MessageType, SessionRegistry, SignalingClient, SignalingHub
from modules.webrtc import CaptureTrack

ADMIN_PASSWORD = "secret"


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """조건이 참이 될 때까지 이벤트 루프를 돌립니다."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("timed out waiting for condition")
        await asyncio.sleep(0.01)


# ============================================================
# 캡처 / 알림
# ============================================================

class FakeSourceTrack(MediaStreamTrack):
    """프레임을 만들지 않는 원본 캡처 트랙."""

    def __init__(self, kind: str):
        super().__init__()
        self.kind = kind

    async def recv(self):
        raise MediaStreamError


class FakeCaptureProvider(CaptureProvider):
    def __init__(self, display_surface: Optional[str] = "monitor", screen_error=None, microphone_error=None):
        self.display_surface = display_surface
        self.screen_error = screen_error
        self.microphone_error = microphone_error
        self.tracks: List[CaptureTrack] = []

    async def request_screen(self) -> CaptureTrack:
        if self.screen_error:
            raise self.screen_error
        track = CaptureTrack(FakeSourceTrack("video"), display_surface=self.display_surface)
        self.tracks.append(track)
        return track

    async def request_microphone(self) -> CaptureTrack:
        if self.microphone_error:
            raise self.microphone_error
        track = CaptureTrack(FakeSourceTrack("audio"))
        self.tracks.append(track)
        return track

    @property
    def screen(self) -> CaptureTrack:
        return self.tracks[0]

    @property
    def microphone(self) -> CaptureTrack:
        return self.tracks[1]


class RecordingNotifier(Notifier):
    def __init__(self):
        self.alerts: List[tuple] = []

    async def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))

    @property
    def titles(self) -> List[str]:
        return [title for title, _ in self.alerts]


class FakeEnvironment:
    def __init__(self):
        self.is_fullscreen = False
        self.requests = 0

    async def request_fullscreen(self) -> None:
        self.requests += 1
        self.is_fullscreen = True

    async def exit_fullscreen(self) -> None:
        self.is_fullscreen = False


# ============================================================
# 피어 연결
# ============================================================

class FakePeerConnection(AsyncIOEventEmitter):
    """RTCPeerConnection 대역.

    local/remote description이 모두 설정되면 connected 상태가 됩니다.
    """

    def __init__(self):
        super().__init__()
        self.connectionState = "new"
        self.localDescription: Optional[RTCSessionDescription] = None
        self.remoteDescription: Optional[RTCSessionDescription] = None
        self.transceivers: List[tuple] = []
        self.tracks: List[MediaStreamTrack] = []
        self.candidates: List = []
        self.fail_offer = False

    def addTransceiver(self, kind, direction="sendrecv"):
        self.transceivers.append((kind, direction))

    def addTrack(self, track):
        self.tracks.append(track)

    async def createOffer(self):
        if self.fail_offer:
            raise RuntimeError("offer failed")
        return RTCSessionDescription(sdp="v=0 fake-offer", type="offer")

    async def createAnswer(self):
        return RTCSessionDescription(sdp="v=0 fake-answer", type="answer")

    async def setLocalDescription(self, description):
        self.localDescription = description
        self._maybe_connect()

    async def setRemoteDescription(self, description):
        self.remoteDescription = description
        self._maybe_connect()

    async def addIceCandidate(self, candidate):
        self.candidates.append(candidate)

    async def close(self):
        self.set_state("closed")

    def set_state(self, state: str):
        if self.connectionState == state:
            return
        self.connectionState = state
        self.emit("connectionstatechange")

    def _maybe_connect(self):
        if self.localDescription and self.remoteDescription and self.connectionState == "new":
            self.set_state("connected")


class PeerFactory:
    def __init__(self):
        self.created: List[FakePeerConnection] = []

    def __call__(self) -> FakePeerConnection:
        pc = FakePeerConnection()
        self.created.append(pc)
        return pc


# ============================================================
# 시그널링
# ============================================================

class FakeSignaling:
    """서버 없이 상태 머신을 시험하기 위한 시그널링 클라이언트 대역."""

    def __init__(self):
        self.is_connected = True
        self.sent: List[tuple] = []
        self.handlers: Dict[str, List] = {}
        self.disconnect_handlers: List = []

    def on(self, message_type, handler):
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        self.handlers.setdefault(key, []).append(handler)

    def on_disconnect(self, handler):
        self.disconnect_handlers.append(handler)

    async def send(self, message_type, data=None) -> bool:
        if not self.is_connected:
            return False
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        self.sent.append((key, data or {}))
        return True

    async def deliver(self, message_type, data=None):
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        for handler in self.handlers.get(key, []):
            await handler(data)

    async def drop(self):
        self.is_connected = False
        for handler in self.disconnect_handlers:
            await handler()

    def sent_of(self, message_type) -> List[dict]:
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        return [data for kind, data in self.sent if kind == key]


class RecordingChannel:
    """허브가 보낸 프레임을 기록하는 서버 측 채널."""

    def __init__(self, fail: bool = False):
        self.frames: List[dict] = []
        self.fail = fail

    async def send_json(self, data: dict) -> None:
        if self.fail:
            raise ConnectionError("channel closed")
        self.frames.append(json.loads(json.dumps(data)))

    def of_type(self, message_type) -> List[dict]:
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        return [frame["data"] for frame in self.frames if frame["type"] == key]


class MemoryChannel:
    """허브 → 클라이언트 방향 큐."""

    def __init__(self):
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send_json(self, data: dict) -> None:
        if self.closed:
            raise ConnectionError("channel closed")
        await self.inbox.put(json.loads(json.dumps(data)))


class MemoryConnection:
    """클라이언트 → 허브 방향 연결. SignalingClient의 ClientConnection 구현."""

    def __init__(self, hub: SignalingHub, channel: MemoryChannel, identity: str):
        self.hub = hub
        self.channel = channel
        self.identity = identity
        self.closed = False

    async def send_json(self, data: dict) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        await self.hub.handle_message(self.identity, json.loads(json.dumps(data)))

    async def receive_json(self) -> dict:
        frame = await self.channel.inbox.get()
        if frame is None:
            raise ConnectionError("connection closed")
        return frame

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel.closed = True
        await self.hub.disconnect(self.identity)
        self.channel.inbox.put_nowait(None)


class Relay:
    """실제 허브와 메모리 연결로 붙은 클라이언트들."""

    def __init__(self):
        self.registry = SessionRegistry(admin_password=ADMIN_PASSWORD)
        self.hub = SignalingHub(self.registry)
        self.tasks: List[asyncio.Task] = []

    async def connect(self) -> SignalingClient:
        channel = MemoryChannel()
        identity = await self.hub.connect(channel)
        client = SignalingClient(MemoryConnection(self.hub, channel, identity))
        await client.handshake()
        return client

    def run(self, client: SignalingClient) -> None:
        self.tasks.append(asyncio.create_task(client.run()))

    async def close(self) -> None:
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def fast_config() -> ComplianceConfig:
    return ComplianceConfig(MAX_WARNINGS=3, CHECK_INTERVAL=0.05, RESET_DELAY=0.05)


@pytest.fixture
def peer_factory() -> PeerFactory:
    return PeerFactory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def environment() -> FakeEnvironment:
    return FakeEnvironment()


@pytest.fixture
def signaling() -> FakeSignaling:
    return FakeSignaling()


@pytest.fixture
async def relay():
    relay = Relay()
    yield relay
    await relay.close()
