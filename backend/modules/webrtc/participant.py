"""응시자 측 WebRTC 응답 모듈.

감독관이 보낸 offer에 응답하여 응시자의 화면/마이크 트랙을 전송합니다.
감독관마다 독립적인 RTCPeerConnection을 하나씩 유지하며, 같은 캡처 트랙을
여러 감독관에게 보내기 위해 MediaRelay로 구독 트랙을 만듭니다.

WebRTC Flow:
    1. 감독관이 offer 전송 (시그널링 서버가 source를 채워서 전달)
    2. 기존 연결이 있으면 닫고 새 RTCPeerConnection 생성
    3. 캡처 트랙 추가 → remote description 설정 → answer 생성
    4. answer와 로컬 ICE candidate를 감독관에게 전송
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiortc import RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaRelay

from ..signaling.messages import MessageType
from .candidates import candidate_from_payload, candidate_to_payload
from .config import create_peer_connection
from .tracks import CaptureStream

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, str], Awaitable[None]]


class ParticipantPeerManager:
    """감독관별 피어 연결을 관리하는 응시자 측 응답기.

    캡처 스트림은 소유하지 않습니다. 트랙 종료는 응시 상태 머신이 담당합니다.

    Attributes:
        signaling: 시그널링 클라이언트 (``send(type, data)`` 제공)
        peers (Dict[str, RTCPeerConnection]): 감독관 identity → 피어 연결
        connection_states (Dict[str, str]): 감독관 identity → 마지막 연결 상태
        on_status (Optional[StatusCallback]): 연결 상태 변경 콜백
    """

    def __init__(self, signaling, peer_factory: Callable[[], RTCPeerConnection] = create_peer_connection):
        self.signaling = signaling
        self.peer_factory = peer_factory
        self.relay = MediaRelay()

        # supervisor identity -> RTCPeerConnection
        self.peers: Dict[str, RTCPeerConnection] = {}

        # supervisor identity -> connectionState
        self.connection_states: Dict[str, str] = {}

        self.on_status: Optional[StatusCallback] = None

    async def handle_offer(self, source: str, payload: Any, stream: CaptureStream) -> bool:
        """감독관의 offer에 answer로 응답합니다.

        Args:
            source: offer를 보낸 감독관 identity
            payload: ``{"sdp": str, "type": "offer"}``
            stream: 전송할 캡처 스트림

        Returns:
            bool: answer 전송 여부

        Note:
            - 같은 감독관의 기존 연결은 닫고 새로 만듦 (재관찰)
            - 협상 도중 연결이 닫히면 answer를 보내지 않음
        """
        if not source or not isinstance(payload, dict) or "sdp" not in payload:
            logger.warning(f"[WebRTC] 잘못된 offer 무시: source={source}")
            return False

        await self.close_peer(source)

        pc = self.peer_factory()
        self.peers[source] = pc
        self._register_handlers(source, pc)

        for track in stream.get_tracks():
            pc.addTrack(self.relay.subscribe(track))
            logger.info(f"[WebRTC] {track.kind} 트랙 추가 -> 감독관 {source[:8]}")

        try:
            await pc.setRemoteDescription(
                RTCSessionDescription(sdp=payload["sdp"], type=payload.get("type", "offer"))
            )
            answer = await pc.createAnswer()
            await pc.setLocalDescription(answer)
        except Exception as e:
            logger.error(f"[WebRTC] 감독관 {source[:8]} offer 처리 실패: {e}")
            await self.close_peer(source)
            return False

        if self.peers.get(source) is not pc:
            logger.info(f"[WebRTC] 협상 중 연결 종료됨, answer 생략: {source[:8]}")
            return False

        return await self.signaling.send(MessageType.ANSWER, {
            "target": source,
            "payload": {"sdp": pc.localDescription.sdp, "type": pc.localDescription.type},
        })

    async def handle_ice_candidate(self, source: str, payload: Any) -> bool:
        """감독관이 보낸 ICE candidate를 적용합니다. 모르는 감독관이면 무시."""
        pc = self.peers.get(source)
        if pc is None:
            logger.debug(f"[WebRTC] 알 수 없는 감독관의 ICE candidate 무시: {source}")
            return False

        try:
            candidate = candidate_from_payload(payload)
        except ValueError as e:
            logger.warning(f"[WebRTC] ICE candidate 형식 오류: {e}")
            return False

        if candidate is None:
            return False
        await pc.addIceCandidate(candidate)
        logger.debug(f"[WebRTC] 감독관 {source[:8]} ICE candidate 추가")
        return True

    def _register_handlers(self, source: str, pc: RTCPeerConnection) -> None:
        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate and self.peers.get(source) is pc:
                await self.signaling.send(MessageType.ICE_CANDIDATE, {
                    "target": source,
                    "payload": candidate_to_payload(candidate),
                })

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            state = pc.connectionState
            logger.info(f"[WebRTC] 감독관 {source[:8]} 연결 상태: {state}")
            if self.peers.get(source) is not pc:
                return
            self.connection_states[source] = state
            if self.on_status:
                await self.on_status(source, state)

    async def close_peer(self, source: str) -> None:
        """감독관 한 명과의 연결을 닫습니다. 없는 identity여도 안전."""
        pc = self.peers.pop(source, None)
        self.connection_states.pop(source, None)
        if pc is not None:
            await pc.close()
            logger.info(f"[WebRTC] 감독관 {source[:8]} 연결 종료")

    async def close_all(self) -> None:
        """모든 감독관 연결을 닫습니다 (시험 종료 시)."""
        for source in list(self.peers.keys()):
            await self.close_peer(source)
