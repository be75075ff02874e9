"""응시 규정 감시 설정.

경고 한도, 주기 검사 간격, 종료 후 초기화 지연 시간.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


@dataclass
class ComplianceConfig:
    """응시자 측 규정 감시 설정."""

    # 종료 전까지 허용되는 경고 수
    MAX_WARNINGS: int = field(
        default_factory=lambda: int(os.getenv("MAX_WARNINGS", "3"))
    )

    # 화면/마이크 트랙 주기 검사 간격 (초)
    CHECK_INTERVAL: float = field(
        default_factory=lambda: float(os.getenv("CHECK_INTERVAL", "3.0"))
    )

    # 시험 종료 후 대기 상태로 되돌리기까지의 지연 (초)
    RESET_DELAY: float = field(
        default_factory=lambda: float(os.getenv("RESET_DELAY", "2.0"))
    )


compliance_config = ComplianceConfig()
