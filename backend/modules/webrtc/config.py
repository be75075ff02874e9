"""WebRTC 모듈 설정.

STUN/TURN 서버 등 ICE 설정과 피어 연결 생성 팩토리.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional

# 환경변수 로드 (상위에서 이미 로드됨)
from dotenv import load_dotenv
from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


# ============================================================
# ICE Server 설정
# ============================================================

@dataclass(frozen=True)
class ICEServerConfig:
    """ICE 서버 설정."""

    # TURN 서버
    TURN_SERVER_URL: Optional[str] = os.getenv("TURN_SERVER_URL")
    TURN_USERNAME: Optional[str] = os.getenv("TURN_USERNAME")
    TURN_CREDENTIAL: Optional[str] = os.getenv("TURN_CREDENTIAL")

    # STUN 서버
    STUN_SERVER_URL: Optional[str] = os.getenv("STUN_SERVER_URL")

    # 기본 공개 STUN 서버 (fallback)
    DEFAULT_STUN_SERVERS: tuple = (
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    )

    @property
    def has_turn_server(self) -> bool:
        """TURN 서버 설정 완료 여부."""
        return all([self.TURN_SERVER_URL, self.TURN_USERNAME, self.TURN_CREDENTIAL])

    def as_client_list(self) -> List[dict]:
        """클라이언트(브라우저)에 전달할 ICE 서버 목록을 반환합니다.

        Returns:
            List[dict]: ``{"urls": ..., "username": ..., "credential": ...}`` 형태의 목록
        """
        ice_servers = []
        if self.STUN_SERVER_URL:
            ice_servers.append({"urls": self.STUN_SERVER_URL})
        for stun_url in self.DEFAULT_STUN_SERVERS:
            ice_servers.append({"urls": stun_url})
        if self.has_turn_server:
            ice_servers.append({
                "urls": self.TURN_SERVER_URL,
                "username": self.TURN_USERNAME,
                "credential": self.TURN_CREDENTIAL,
            })
        return ice_servers


# ============================================================
# 싱글톤 인스턴스
# ============================================================

ice_config = ICEServerConfig()


def create_peer_connection(config: ICEServerConfig = ice_config) -> RTCPeerConnection:
    """ICE 설정이 적용된 새 RTCPeerConnection을 생성합니다.

    감독관 측 연결 매니저와 응시자 측 응답기가 공통으로 사용하는 기본 팩토리입니다.

    Args:
        config: 사용할 ICE 서버 설정

    Returns:
        RTCPeerConnection: 생성된 피어 연결
    """
    ice_servers = []

    # STUN 서버 추가 (커스텀 + Google 백업)
    if config.STUN_SERVER_URL:
        ice_servers.append(RTCIceServer(urls=[config.STUN_SERVER_URL]))
    for stun_url in config.DEFAULT_STUN_SERVERS:
        ice_servers.append(RTCIceServer(urls=[stun_url]))

    # TURN 서버 추가
    if config.has_turn_server:
        ice_servers.append(RTCIceServer(
            urls=[config.TURN_SERVER_URL],
            username=config.TURN_USERNAME,
            credential=config.TURN_CREDENTIAL
        ))
    else:
        logger.debug("[WebRTC] TURN 서버 설정 없음 - STUN만 사용")

    return RTCPeerConnection(configuration=RTCConfiguration(iceServers=ice_servers))


logger.info(f"[WebRTC Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.info(f"[WebRTC Config] TURN 서버 설정 완료: {ice_config.has_turn_server}")
