"""세션 레지스트리 모듈.

이 모듈은 시그널링 서버에 연결된 모든 클라이언트의 세션 정보를 관리합니다.
연결 identity를 키로 역할(감독관/응시자), 표시 이름, 인증 여부를 추적하며,
감독관에게 보여줄 응시자 명단(roster)을 필요할 때마다 계산합니다.

주요 기능:
    - 연결 시 미지정(unassigned) 세션 생성
    - 감독관 공유 비밀번호 인증 / 응시자 이름 기반 등록
    - 연결 종료 및 시험 종료 시 세션 정리
    - 인증된 응시자 명단 조회

Architecture:
    - sessions: Dict[str, SessionRecord] - identity → 세션 레코드
    - 명단은 별도로 저장하지 않고 sessions에서 매번 계산 (stale 방지)

Classes:
    Role: 세션 역할
    SessionRecord: 세션 정보를 담는 데이터 클래스
    AuthResult: 인증 결과
    SessionRegistry: 세션 관리 클래스

Examples:
    기본 사용법:
        >>> registry = SessionRegistry(admin_password="secret")
        >>> registry.register("id-1", websocket)
        >>> registry.authenticate("id-1", "Alice", Role.PARTICIPANT).success
        True
        >>> registry.get_roster()
        {'id-1': 'Alice'}
"""
import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """세션 역할."""

    SUPERVISOR = "supervisor"
    PARTICIPANT = "participant"
    UNASSIGNED = "unassigned"


class Channel(Protocol):
    """세션으로 메시지를 보내는 출력 채널 (FastAPI WebSocket 등)."""

    async def send_json(self, data: dict) -> None:
        ...


@dataclass
class SessionRecord:
    """연결 하나에 대응하는 세션 레코드.

    전송 계층의 연결 객체에 속성을 붙이지 않고, 레지스트리가 identity로 관리합니다.

    Attributes:
        identity (str): 연결 identity (라우팅 주소)
        channel (Channel): 세션으로 메시지를 보내는 채널
        role (Role): 세션 역할
        display_name (Optional[str]): 표시 이름
        authenticated (bool): 인증 여부
    """
    identity: str
    channel: Channel
    role: Role = Role.UNASSIGNED
    display_name: Optional[str] = None
    authenticated: bool = False

    @property
    def is_participant(self) -> bool:
        """명단에 포함되는 인증된 응시자인지 여부."""
        return self.role is Role.PARTICIPANT and self.authenticated

    @property
    def is_supervisor(self) -> bool:
        """명단 브로드캐스트를 받는 인증된 감독관인지 여부."""
        return self.role is Role.SUPERVISOR and self.authenticated


@dataclass(frozen=True)
class AuthResult:
    """인증 결과.

    Attributes:
        success (bool): 인증 성공 여부
        message (str): 실패 사유 (클라이언트에 그대로 전달)
        roster_changed (bool): 응시자 명단이 바뀌었는지 여부
    """
    success: bool
    message: str = ""
    roster_changed: bool = False


class SessionRegistry:
    """연결 identity별 세션을 관리하는 핵심 클래스.

    서버 프로세스당 한 번 생성되어 라우터와 인증 로직에 전달됩니다.
    asyncio 단일 스레드에서 connect/authenticate/deregister 이벤트로만 변경되므로
    별도의 잠금은 필요 없습니다.

    Attributes:
        sessions (Dict[str, SessionRecord]): identity → 세션 레코드

    Examples:
        >>> registry = SessionRegistry(admin_password="secret")
        >>> registry.register("admin-1", ws1)
        >>> registry.authenticate("admin-1", "wrong", Role.SUPERVISOR).success
        False
        >>> registry.authenticate("admin-1", "secret", Role.SUPERVISOR).success
        True
    """

    def __init__(self, admin_password: str):
        """SessionRegistry 초기화.

        Args:
            admin_password (str): 감독관 인증용 공유 비밀번호
        """
        self._admin_password = admin_password

        # identity -> SessionRecord
        self.sessions: Dict[str, SessionRecord] = {}

    def register(self, identity: str, channel: Channel) -> SessionRecord:
        """새 연결의 미지정 세션을 생성합니다.

        Args:
            identity (str): 연결 identity
            channel (Channel): 세션의 출력 채널

        Returns:
            SessionRecord: 생성된 세션 레코드
        """
        record = SessionRecord(identity=identity, channel=channel)
        self.sessions[identity] = record
        logger.info(f"세션 등록: {identity} (총 {len(self.sessions)}개)")
        return record

    def get(self, identity: str) -> Optional[SessionRecord]:
        """identity로 세션 레코드를 조회합니다."""
        return self.sessions.get(identity)

    def authenticate(self, identity: str, credential: str, claimed_role: Role) -> AuthResult:
        """세션을 인증합니다.

        감독관은 공유 비밀번호와 비교하고, 응시자는 공백을 제거한 이름이
        비어있지 않으면 즉시 등록됩니다. 실패 시 세션 상태는 바뀌지 않습니다.

        Args:
            identity (str): 인증할 세션의 identity
            credential (str): 감독관은 비밀번호, 응시자는 표시 이름
            claimed_role (Role): 요청한 역할

        Returns:
            AuthResult: 인증 결과

        Note:
            - 비밀번호 비교는 hmac.compare_digest 사용
            - 실패 메시지는 "Invalid password" 하나로 고정 (추가 정보 없음)
            - 응시자가 다시 join하면 이름만 갱신됨
        """
        record = self.sessions.get(identity)
        if record is None:
            logger.warning(f"알 수 없는 세션의 인증 시도: {identity}")
            return AuthResult(success=False, message="Unknown session")

        was_participant = record.is_participant

        if claimed_role is Role.SUPERVISOR:
            if not hmac.compare_digest((credential or "").encode(), self._admin_password.encode()):
                logger.info(f"감독관 인증 실패: {identity}")
                return AuthResult(success=False, message="Invalid password")

            record.role = Role.SUPERVISOR
            record.display_name = "Admin"
            record.authenticated = True
            logger.info(f"감독관 인증 완료: {identity}")
            return AuthResult(success=True, roster_changed=was_participant)

        if claimed_role is Role.PARTICIPANT:
            name = (credential or "").strip()
            if not name:
                return AuthResult(success=False, message="Name is required")

            previous_name = record.display_name
            record.role = Role.PARTICIPANT
            record.display_name = name
            record.authenticated = True
            logger.info(f"응시자 '{name}' ({identity}) 시험 참가. 현재 응시자 {len(self.get_roster())}명")
            return AuthResult(
                success=True,
                roster_changed=not was_participant or previous_name != name,
            )

        return AuthResult(success=False, message="Invalid role")

    def deregister(self, identity: str) -> bool:
        """세션 레코드를 제거합니다.

        Args:
            identity (str): 제거할 세션의 identity

        Returns:
            bool: 제거된 세션이 인증된 응시자였으면 True (명단 변경)

        Note:
            - 존재하지 않는 identity로 호출해도 안전함
        """
        record = self.sessions.pop(identity, None)
        if record is None:
            return False

        logger.info(f"세션 제거: {identity} ({record.role.value}, {record.display_name})")
        return record.is_participant

    def end_session(self, identity: str) -> bool:
        """응시자의 시험 세션을 종료합니다.

        연결은 살아있으므로 레코드는 미지정 상태로 되돌립니다.
        응시자가 아닌 세션에는 아무 작업도 하지 않습니다.

        Returns:
            bool: 명단이 바뀌었으면 True
        """
        record = self.sessions.get(identity)
        if record is None or record.role is not Role.PARTICIPANT:
            return False

        was_participant = record.is_participant
        logger.info(f"응시자 '{record.display_name}' ({identity}) 시험 종료")
        self.sessions[identity] = SessionRecord(identity=identity, channel=record.channel)
        return was_participant

    def get_roster(self) -> Dict[str, str]:
        """인증된 응시자 명단을 반환합니다.

        Returns:
            Dict[str, str]: identity → 표시 이름

        Examples:
            >>> registry.get_roster()
            {'3f1c...': 'Alice', '9a2e...': 'Bob'}
        """
        return {
            identity: record.display_name
            for identity, record in self.sessions.items()
            if record.is_participant
        }

    def supervisors(self) -> List[SessionRecord]:
        """인증된 감독관 세션 목록을 반환합니다."""
        return [record for record in self.sessions.values() if record.is_supervisor]

    def counts(self) -> Dict[str, int]:
        """역할별 세션 수를 반환합니다 (헬스체크용)."""
        return {
            "connections": len(self.sessions),
            "supervisors": len(self.supervisors()),
            "participants": len(self.get_roster()),
        }

    def __contains__(self, identity: str) -> bool:
        return identity in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)
