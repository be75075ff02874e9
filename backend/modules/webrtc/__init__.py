"""WebRTC 모듈.

감독관 측 다중 피어 연결 관리, 응시자 측 응답기, 캡처 트랙 릴레이 기능을 제공합니다.

Classes:
    PeerConnectionManager: 감독관 측 응시자별 협상 컨텍스트 관리
    NegotiationContext: 응시자 한 명의 협상 컨텍스트
    ParticipantPeerManager: 응시자 측 감독관별 응답기
    CaptureTrack: 준수 상태를 추적하는 캡처 릴레이 트랙
    CaptureStream: 화면 + 마이크 트랙 묶음

Config:
    ice_config: ICE 서버 설정
    create_peer_connection: ICE 설정이 적용된 RTCPeerConnection 팩토리
"""

from .tracks import CaptureTrack, CaptureStream, SURFACE_MONITOR
from .peer_manager import PeerConnectionManager, NegotiationContext
from .participant import ParticipantPeerManager
from .candidates import candidate_from_payload, candidate_to_payload
from .config import ice_config, ICEServerConfig, create_peer_connection

__all__ = [
    # Classes
    "CaptureTrack",
    "CaptureStream",
    "SURFACE_MONITOR",
    "PeerConnectionManager",
    "NegotiationContext",
    "ParticipantPeerManager",
    # Utilities
    "candidate_from_payload",
    "candidate_to_payload",
    # Config
    "ice_config",
    "ICEServerConfig",
    "create_peer_connection",
]
