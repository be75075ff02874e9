"""시그널링 메시지 모델.

WebSocket으로 주고받는 JSON 프레임은 ``{"type": str, "data": object}`` 형식입니다.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """시그널링 이벤트 이름."""

    # 클라이언트 -> 서버
    ADMIN_AUTH = "admin-auth"
    JOIN_EXAM = "join-exam"
    GET_USER_LIST = "get-user-list"
    END_EXAM = "end-exam"

    # 양방향 (대상 identity로 라우팅)
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"

    # 서버 -> 클라이언트
    CONNECTED = "connected"
    AUTH_SUCCESS = "auth-success"
    AUTH_FAILED = "auth-failed"
    USER_LIST = "user-list"
    ERROR = "error"


# 라우터가 내용을 보지 않고 대상에게 그대로 전달하는 협상 메시지
NEGOTIATION_TYPES = frozenset({MessageType.OFFER, MessageType.ANSWER, MessageType.ICE_CANDIDATE})


class ClientMessage(BaseModel):
    """클라이언트가 보낸 프레임."""

    type: str
    data: Any = None


class AuthRequest(BaseModel):
    password: str = ""


class JoinRequest(BaseModel):
    name: str = ""


class RelayRequest(BaseModel):
    """대상 identity로 전달할 협상 메시지."""

    target: str = Field(min_length=1)
    payload: Any = None


class EndExamRequest(BaseModel):
    """시험 종료 알림. 감독관이 보낼 때만 target이 필요합니다."""

    target: Optional[str] = None


def build_message(message_type: MessageType, **data) -> dict:
    """서버가 보낼 프레임을 생성합니다.

    Examples:
        >>> build_message(MessageType.ERROR, message="Name is required")
        {'type': 'error', 'data': {'message': 'Name is required'}}
    """
    return {"type": message_type.value, "data": data}
