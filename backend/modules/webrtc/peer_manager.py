"""감독관 측 다중 피어 연결 관리 모듈.

이 모듈은 감독관 한 명이 여러 응시자를 동시에 관찰할 수 있도록 응시자별
독립적인 협상 컨텍스트(RTCPeerConnection)를 관리합니다.

주요 기능:
    - 응시자별 피어 연결 생성 및 offer 전송 (recvonly 비디오/오디오)
    - answer / ICE candidate 적용
    - 연결 상태 변경 보고 (자동 재시도 없음)
    - 명단에서 빠진 응시자의 연결 정리

Architecture:
    - contexts: Dict[str, NegotiationContext] - 응시자 identity → 협상 컨텍스트
    - 응시자 identity당 컨텍스트는 최대 하나
    - 캡처 리소스는 소유하지 않음 (수신 트랙만 on_track으로 전달)

WebRTC Flow:
    1. observe(identity): 피어 연결 생성 → offer 생성 → 시그널링으로 전송
    2. 응시자가 answer 전송 → handle_answer()
    3. ICE candidate 교환 → handle_ice_candidate()
    4. 미디어 트랙 수신 → on_track(identity, track)
    5. 명단에서 제거되면 release(identity)

Examples:
    기본 사용법:
        >>> manager = PeerConnectionManager(client)
        >>> manager.on_track = show_track
        >>> client.on("user-list", lambda data: manager.sync_roster(data["users"]))
        >>> await manager.observe("3f1c...")
        >>> # 모든 연결 종료
        >>> await manager.release_all()

See Also:
    participant.py: 응시자 측 응답기
    aiortc Documentation: https://aiortc.readthedocs.io/
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from aiortc import MediaStreamTrack, RTCPeerConnection, RTCSessionDescription

from ..signaling.messages import MessageType
from .candidates import candidate_from_payload, candidate_to_payload
from .config import create_peer_connection

logger = logging.getLogger(__name__)

# 재시도하지 않는 종료 상태
TERMINAL_STATES = frozenset({"failed", "disconnected", "closed"})

StatusCallback = Callable[[str, str], Awaitable[None]]
TrackCallback = Callable[[str, MediaStreamTrack], Awaitable[None]]


@dataclass
class NegotiationContext:
    """응시자 한 명에 대한 협상 컨텍스트.

    Attributes:
        identity (str): 응시자 identity
        pc (RTCPeerConnection): 피어 연결
        status (str): 마지막 연결 상태
        answered (bool): answer 적용 완료 여부
        tracks (Dict[str, MediaStreamTrack]): kind → 수신 트랙
    """
    identity: str
    pc: RTCPeerConnection
    status: str = "new"
    answered: bool = False
    tracks: Dict[str, MediaStreamTrack] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


class PeerConnectionManager:
    """감독관 측에서 응시자별 WebRTC 연결을 관리하는 클래스.

    Attributes:
        signaling: 시그널링 클라이언트 (``send(type, data)`` 제공)
        contexts (Dict[str, NegotiationContext]): 응시자 identity → 협상 컨텍스트
        on_status (Optional[StatusCallback]): 연결 상태 변경 콜백 (identity, state)
        on_track (Optional[TrackCallback]): 수신 트랙 콜백 (identity, track)

    WebRTC Connection Lifecycle:
        1. observe(): 컨텍스트 생성 및 offer 전송
        2. handle_answer(): 협상 완료
        3. on("track"): 수신 트랙 전달
        4. release(): 연결 종료 및 정리

    Note:
        - failed/disconnected/closed 상태는 보고만 하고 재시도하지 않음
        - 종료 상태의 컨텍스트에 observe()를 다시 호출하면 새로 협상함 (수동 재시도)
    """

    def __init__(self, signaling, peer_factory: Callable[[], RTCPeerConnection] = create_peer_connection):
        """PeerConnectionManager 초기화.

        Args:
            signaling: 시그널링 클라이언트
            peer_factory: 새 RTCPeerConnection 생성 함수
        """
        self.signaling = signaling
        self.peer_factory = peer_factory

        # participant identity -> NegotiationContext
        self.contexts: Dict[str, NegotiationContext] = {}

        self.on_status: Optional[StatusCallback] = None
        self.on_track: Optional[TrackCallback] = None

    def get_context(self, identity: str) -> Optional[NegotiationContext]:
        """응시자의 협상 컨텍스트를 반환합니다."""
        return self.contexts.get(identity)

    async def observe(self, identity: str) -> bool:
        """응시자 관찰을 시작합니다.

        컨텍스트가 없으면 피어 연결을 만들고 offer를 보냅니다.
        이미 진행 중인 컨텍스트가 있으면 아무 작업도 하지 않습니다.

        Args:
            identity (str): 관찰할 응시자 identity

        Returns:
            bool: 새 offer를 보냈으면 True

        Note:
            - offer 생성/전송 실패 시 컨텍스트를 정리하고 "failed" 상태 보고
        """
        existing = self.contexts.get(identity)
        if existing is not None:
            if not existing.is_terminal:
                logger.debug(f"[WebRTC] 응시자 {identity[:8]} 이미 관찰 중")
                return False
            logger.info(f"[WebRTC] 응시자 {identity[:8]} 연결 재시도 ({existing.status})")
            await self.release(identity)

        pc = self.peer_factory()
        context = NegotiationContext(identity=identity, pc=pc)
        self.contexts[identity] = context
        self._register_handlers(context)

        pc.addTransceiver("video", direction="recvonly")
        pc.addTransceiver("audio", direction="recvonly")

        try:
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
        except Exception as e:
            logger.error(f"[WebRTC] 응시자 {identity[:8]} offer 생성 실패: {e}")
            await self._fail(context)
            return False

        # offer 생성 중 release된 경우
        if self.contexts.get(identity) is not context:
            return False

        sent = await self.signaling.send(MessageType.OFFER, {
            "target": identity,
            "payload": {"sdp": pc.localDescription.sdp, "type": pc.localDescription.type},
        })
        if not sent:
            logger.error(f"[WebRTC] 응시자 {identity[:8]} offer 전송 실패")
            await self._fail(context)
            return False

        logger.info(f"[WebRTC] 응시자 {identity[:8]}에게 offer 전송")
        return True

    async def handle_answer(self, source: str, payload: Any) -> bool:
        """응시자의 answer를 적용합니다. 모르는 identity는 무시합니다.

        Args:
            source (str): answer를 보낸 응시자 identity
            payload: ``{"sdp": str, "type": "answer"}``

        Returns:
            bool: 적용 여부
        """
        context = self.contexts.get(source)
        if context is None:
            logger.debug(f"[WebRTC] 알 수 없는 응시자의 answer 무시: {source}")
            return False
        if not isinstance(payload, dict) or "sdp" not in payload:
            logger.warning(f"[WebRTC] 잘못된 answer 무시: {source}")
            return False

        try:
            await context.pc.setRemoteDescription(
                RTCSessionDescription(sdp=payload["sdp"], type=payload.get("type", "answer"))
            )
        except Exception as e:
            logger.error(f"[WebRTC] 응시자 {source[:8]} answer 적용 실패: {e}")
            if self.contexts.get(source) is context:
                await self._fail(context)
            return False

        context.answered = True
        logger.info(f"[WebRTC] 응시자 {source[:8]} 협상 완료")
        return True

    async def handle_ice_candidate(self, source: str, payload: Any) -> bool:
        """응시자의 ICE candidate를 적용합니다.

        모르는 identity의 candidate(늦게 도착한 메시지 등)는 무시하고,
        형식이 잘못된 candidate는 로그만 남깁니다.
        """
        context = self.contexts.get(source)
        if context is None:
            logger.debug(f"[WebRTC] 알 수 없는 응시자의 ICE candidate 무시: {source}")
            return False

        try:
            candidate = candidate_from_payload(payload)
        except ValueError as e:
            logger.warning(f"[WebRTC] 응시자 {source[:8]} ICE candidate 형식 오류: {e}")
            return False

        if candidate is None:
            return False
        await context.pc.addIceCandidate(candidate)
        logger.debug(f"[WebRTC] 응시자 {source[:8]} ICE candidate 추가")
        return True

    async def sync_roster(self, roster: Mapping[str, str]) -> None:
        """명단에서 빠진 응시자의 컨텍스트를 정리합니다.

        Args:
            roster: 현재 명단 (identity → 표시 이름)
        """
        for identity in list(self.contexts.keys()):
            if identity not in roster:
                logger.info(f"[WebRTC] 응시자 {identity[:8]} 명단에서 제거됨")
                await self.release(identity)

    async def release(self, identity: str) -> None:
        """응시자의 컨텍스트를 닫고 제거합니다. 없는 identity여도 안전."""
        context = self.contexts.pop(identity, None)
        if context is None:
            return
        await context.pc.close()
        logger.info(f"[WebRTC] 응시자 {identity[:8]} 연결 종료")

    async def release_all(self) -> None:
        """모든 컨텍스트를 닫습니다 (종료 시)."""
        for identity in list(self.contexts.keys()):
            await self.release(identity)

    def _register_handlers(self, context: NegotiationContext) -> None:
        identity = context.identity
        pc = context.pc

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate and self.contexts.get(identity) is context:
                await self.signaling.send(MessageType.ICE_CANDIDATE, {
                    "target": identity,
                    "payload": candidate_to_payload(candidate),
                })

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if self.contexts.get(identity) is not context:
                return
            await self._report_status(context, pc.connectionState)

        @pc.on("track")
        async def on_track(track: MediaStreamTrack):
            logger.info(f"[WebRTC] 응시자 {identity[:8]} {track.kind} 트랙 수신")
            context.tracks[track.kind] = track
            if self.on_track:
                await self.on_track(identity, track)

    async def _report_status(self, context: NegotiationContext, state: str) -> None:
        context.status = state
        if state in TERMINAL_STATES:
            logger.warning(f"[WebRTC] 응시자 {context.identity[:8]} 연결 상태: {state} (재시도 없음)")
        else:
            logger.info(f"[WebRTC] 응시자 {context.identity[:8]} 연결 상태: {state}")
        if self.on_status:
            await self.on_status(context.identity, state)

    async def _fail(self, context: NegotiationContext) -> None:
        await self.release(context.identity)
        await self._report_status(context, "failed")
