"""Backend modules package.

이 패키지는 시험 감독 시그널링 릴레이와 응시자/감독관 클라이언트의 핵심 모듈을 포함합니다.

Modules:
    signaling: 세션 레지스트리, 메시지 라우터, 시그널링 허브와 클라이언트
    compliance: 응시자 측 규정 감시 상태 머신
    webrtc: 감독관 측 다중 피어 연결 관리, 응시자 측 응답기
"""

from .signaling import SessionRegistry, SignalingRouter, SignalingHub, SignalingClient
from .compliance import ComplianceStateMachine, ExamState
from .webrtc import PeerConnectionManager, ParticipantPeerManager

__all__ = [
    # Signaling
    "SessionRegistry",
    "SignalingRouter",
    "SignalingHub",
    "SignalingClient",
    # Compliance
    "ComplianceStateMachine",
    "ExamState",
    # WebRTC
    "PeerConnectionManager",
    "ParticipantPeerManager",
]
