"""시그널링 모듈.

세션 레지스트리, 협상 메시지 라우터, 연결 허브, 클라이언트를 제공합니다.

Classes:
    SessionRegistry: 연결 identity별 세션 관리
    SignalingRouter: 협상 메시지 전달 및 명단 브로드캐스트
    SignalingHub: 연결 수명 주기와 메시지 처리
    SignalingClient: 응시자/감독관용 시그널링 클라이언트
"""

from .messages import MessageType, build_message
from .registry import AuthResult, Role, SessionRecord, SessionRegistry
from .router import SignalingRouter
from .hub import SignalingHub
from .client import SignalingClient, WebSocketConnection
from .config import RelayConfig, ClientConfig, relay_config, client_config

__all__ = [
    # Classes
    "SessionRegistry",
    "SessionRecord",
    "AuthResult",
    "Role",
    "SignalingRouter",
    "SignalingHub",
    "SignalingClient",
    "WebSocketConnection",
    "MessageType",
    "build_message",
    # Config
    "RelayConfig",
    "ClientConfig",
    "relay_config",
    "client_config",
]
