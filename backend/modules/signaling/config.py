"""시그널링 릴레이 설정.

감독관 공유 비밀번호, 서버 주소, 클라이언트 접속 URL 등 환경변수 기반 설정.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


@dataclass(frozen=True)
class RelayConfig:
    """시그널링 서버 설정."""

    # 감독관 인증용 공유 비밀번호
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "admin123")

    # 서버 바인딩 주소
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))


@dataclass(frozen=True)
class ClientConfig:
    """응시자/감독관 클라이언트 설정."""

    # 시그널링 서버 WebSocket URL
    SIGNALING_URL: str = os.getenv("SIGNALING_URL", "ws://localhost:3000/ws")

    # 감독관 명단 재요청 주기 (초), 브로드캐스트 누락 대비
    ROSTER_REFRESH_INTERVAL: float = float(os.getenv("ROSTER_REFRESH_INTERVAL", "10.0"))


relay_config = RelayConfig()
client_config = ClientConfig()
