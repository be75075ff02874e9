"""시그널링 허브 모듈.

WebSocket 연결의 수명 주기(연결, 메시지 처리, 연결 종료)를 레지스트리와
라우터에 연결합니다. FastAPI 라우트는 프레임을 읽어 이 허브에 넘기기만 합니다.

처리하는 메시지 타입:
    - admin-auth: 감독관 인증 (password)
    - join-exam: 응시자 시험 참가 (name)
    - get-user-list: 응시자 명단 요청 (감독관 전용)
    - offer / answer / ice-candidate: 대상 identity로 전달
    - end-exam: 응시자 시험 종료 / 감독관의 시험 종료 요청
"""

import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError

from .messages import (
    MessageType,
    NEGOTIATION_TYPES,
    AuthRequest,
    ClientMessage,
    EndExamRequest,
    JoinRequest,
    RelayRequest,
    build_message,
)
from .registry import Channel, Role, SessionRegistry
from .router import SignalingRouter

logger = logging.getLogger(__name__)


class SignalingHub:
    """연결 identity 발급과 시그널링 이벤트 처리를 담당하는 클래스.

    Attributes:
        registry (SessionRegistry): 세션 레지스트리
        router (SignalingRouter): 메시지 라우터
    """

    def __init__(self, registry: SessionRegistry, router: Optional[SignalingRouter] = None):
        self.registry = registry
        self.router = router or SignalingRouter(registry)
        self._handlers = {
            MessageType.ADMIN_AUTH: self._handle_admin_auth,
            MessageType.JOIN_EXAM: self._handle_join_exam,
            MessageType.GET_USER_LIST: self._handle_get_user_list,
            MessageType.END_EXAM: self._handle_end_exam,
        }

    async def connect(self, channel: Channel) -> str:
        """새 연결에 identity를 발급하고 클라이언트에 알립니다.

        Args:
            channel: 연결의 출력 채널

        Returns:
            str: 발급된 identity
        """
        identity = str(uuid.uuid4())
        self.registry.register(identity, channel)
        await self.router.send(identity, build_message(MessageType.CONNECTED, identity=identity))
        logger.info(f"피어 {identity} 연결됨")
        return identity

    async def disconnect(self, identity: str) -> None:
        """연결 종료 처리. 응시자였다면 명단을 브로드캐스트합니다."""
        if self.registry.deregister(identity):
            await self.router.broadcast_roster()
        logger.info(f"피어 {identity} 정리 완료")

    async def handle_message(self, identity: str, raw: Any) -> None:
        """클라이언트 프레임 하나를 처리합니다.

        Args:
            identity: 보낸 연결의 identity
            raw: 디코딩된 JSON 프레임
        """
        try:
            message = ClientMessage.model_validate(raw)
        except ValidationError:
            await self._send_error(identity, "Malformed message")
            return

        try:
            message_type = MessageType(message.type)
        except ValueError:
            logger.warning(f"알 수 없는 메시지 타입: {message.type}")
            return

        if message_type in NEGOTIATION_TYPES:
            await self._handle_negotiation(identity, message_type, message.data)
            return

        handler = self._handlers.get(message_type)
        if handler is None:
            logger.warning(f"클라이언트가 보낼 수 없는 메시지 타입: {message.type}")
            return

        try:
            await handler(identity, message.data)
        except ValidationError as e:
            logger.warning(f"피어 {identity}의 {message.type} 데이터 오류: {e.error_count()}건")
            await self._send_error(identity, f"Invalid {message.type} payload")

    async def _handle_admin_auth(self, identity: str, data: Any) -> None:
        """감독관 인증 처리."""
        logger.info(f"감독관 인증 시도: {identity}")
        if isinstance(data, str):
            data = {"password": data}
        request = AuthRequest.model_validate(data or {})

        result = self.registry.authenticate(identity, request.password, Role.SUPERVISOR)
        if not result.success:
            await self.router.send(identity, build_message(MessageType.AUTH_FAILED, message=result.message))
            return

        await self.router.send(identity, build_message(MessageType.AUTH_SUCCESS))
        await self.router.send_roster(identity)
        if result.roster_changed:
            await self.router.broadcast_roster()

    async def _handle_join_exam(self, identity: str, data: Any) -> None:
        """응시자 시험 참가 처리."""
        if isinstance(data, str):
            data = {"name": data}
        request = JoinRequest.model_validate(data or {})

        result = self.registry.authenticate(identity, request.name, Role.PARTICIPANT)
        if not result.success:
            await self._send_error(identity, result.message)
            return

        if result.roster_changed:
            await self.router.broadcast_roster()

    async def _handle_get_user_list(self, identity: str, data: Any) -> None:
        """명단 요청 처리 (감독관 전용)."""
        record = self.registry.get(identity)
        if record is None or not record.is_supervisor:
            logger.debug(f"감독관이 아닌 세션 {identity}의 명단 요청 무시")
            return
        await self.router.send_roster(identity)

    async def _handle_negotiation(self, identity: str, kind: MessageType, data: Any) -> None:
        """offer / answer / ice-candidate 전달."""
        try:
            request = RelayRequest.model_validate(data or {})
        except ValidationError:
            await self._send_error(identity, f"Invalid {kind.value} payload")
            return
        await self.router.forward(kind, identity, request.target, request.payload)

    async def _handle_end_exam(self, identity: str, data: Any) -> None:
        """시험 종료 처리.

        응시자가 보내면 시험 세션을 종료하고 명단을 브로드캐스트합니다.
        감독관이 target과 함께 보내면 해당 응시자에게 종료 알림을 전달합니다.
        """
        record = self.registry.get(identity)
        if record is None:
            return

        if record.role is Role.PARTICIPANT:
            if self.registry.end_session(identity):
                await self.router.broadcast_roster()
            return

        if record.is_supervisor:
            request = EndExamRequest.model_validate(data or {})
            target = self.registry.get(request.target) if request.target else None
            if target is None or not target.is_participant:
                logger.debug(f"종료 요청 대상 응시자 없음: {request.target}")
                return
            logger.info(f"감독관 {identity}가 응시자 '{target.display_name}' 시험 종료 요청")
            await self.router.forward(MessageType.END_EXAM, identity, target.identity, None)

    async def _send_error(self, identity: str, message: str) -> None:
        await self.router.send(identity, build_message(MessageType.ERROR, message=message))
