"""시그널링 라우터 모듈.

협상 메시지(offer/answer/ICE candidate)를 대상 identity에게 전달하고,
응시자 명단 변경을 인증된 모든 감독관에게 브로드캐스트합니다.
"""

import logging
from typing import Any

from .messages import MessageType, build_message
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class SignalingRouter:
    """레지스트리 기반 메시지 라우터.

    payload는 검사하거나 변경하지 않고 그대로 전달합니다. 대상이 없으면
    (협상 도중 연결이 끊긴 경우 등) 오류 없이 버립니다. 재시도와 확인 응답은 없습니다.

    Attributes:
        registry (SessionRegistry): 세션 레지스트리
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def forward(self, kind: MessageType, source: str, target: str, payload: Any) -> bool:
        """협상 메시지를 대상 세션에게 전달합니다.

        Args:
            kind: 메시지 종류 (offer, answer, ice-candidate, end-exam)
            source: 보낸 세션 identity (서버가 연결에서 확인한 값)
            target: 받을 세션 identity
            payload: 전달할 내용 (불투명)

        Returns:
            bool: 전달 성공 여부. 인증되지 않은 송신자나 없는 대상은 False
        """
        source_record = self.registry.get(source)
        if source_record is None or not source_record.authenticated:
            logger.debug(f"미인증 세션 {source}의 {kind.value} 무시")
            return False

        target_record = self.registry.get(target)
        if target_record is None:
            logger.debug(f"{kind.value} 대상 {target} 없음, 메시지 버림")
            return False

        try:
            await target_record.channel.send_json(
                build_message(kind, source=source, target=target, payload=payload)
            )
        except Exception as e:
            logger.error(f"{source} -> {target} {kind.value} 전달 중 오류: {e}")
            return False

        logger.debug(f"{kind.value} 전달: {source} -> {target}")
        return True

    async def send(self, identity: str, message: dict) -> bool:
        """특정 세션에게 서버 메시지를 보냅니다."""
        record = self.registry.get(identity)
        if record is None:
            return False
        try:
            await record.channel.send_json(message)
            return True
        except Exception as e:
            logger.error(f"세션 {identity}에 메시지 전송 중 오류: {e}")
            return False

    async def send_roster(self, identity: str) -> bool:
        """현재 명단을 특정 세션에게 보냅니다."""
        return await self.send(
            identity, build_message(MessageType.USER_LIST, users=self.registry.get_roster())
        )

    async def broadcast_roster(self) -> int:
        """전체 명단 스냅샷을 인증된 모든 감독관에게 보냅니다.

        증분 diff 없이 매번 전체 명단을 보냅니다 (교실 규모).
        전송에 실패한 감독관 세션은 브로드캐스트 후 정리합니다.

        Returns:
            int: 전송에 성공한 감독관 수
        """
        message = build_message(MessageType.USER_LIST, users=self.registry.get_roster())
        delivered = 0
        disconnected = []

        for record in self.registry.supervisors():
            try:
                await record.channel.send_json(message)
                delivered += 1
            except Exception as e:
                logger.error(f"감독관 {record.identity}에 명단 브로드캐스트 중 오류: {e}")
                disconnected.append(record.identity)

        # 연결 끊긴 감독관 정리
        for identity in disconnected:
            self.registry.deregister(identity)

        logger.info(f"명단 브로드캐스트: 응시자 {len(message['data']['users'])}명 -> 감독관 {delivered}명")
        return delivered
