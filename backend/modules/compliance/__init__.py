"""응시 규정 감시 모듈.

응시자 측 시험 세션 상태 머신과 캡처/환경 협력자 인터페이스를 제공합니다.

Classes:
    ComplianceStateMachine: IDLE → ACQUIRING_PERMISSIONS → ACTIVE → TERMINATED 상태 머신
    CaptureProvider: 화면/마이크 캡처 인터페이스
    MediaCaptureProvider: aiortc MediaPlayer 기반 캡처 구현
    ExamEnvironment / Notifier: 전체 화면 제어 / 사용자 알림 인터페이스

Config:
    compliance_config: 경고 한도, 검사 간격, 초기화 지연
"""

from .state import ExamState, CompulsoryViolation, WarningViolation
from .capture import (
    CaptureError,
    PermissionDeniedError,
    DeviceNotFoundError,
    CaptureProvider,
    MediaCaptureProvider,
)
from .environment import ExamEnvironment, HeadlessEnvironment, Notifier, LogNotifier
from .config import ComplianceConfig, compliance_config
from .machine import ComplianceStateMachine

__all__ = [
    # State
    "ExamState",
    "CompulsoryViolation",
    "WarningViolation",
    # Capture
    "CaptureError",
    "PermissionDeniedError",
    "DeviceNotFoundError",
    "CaptureProvider",
    "MediaCaptureProvider",
    # Environment
    "ExamEnvironment",
    "HeadlessEnvironment",
    "Notifier",
    "LogNotifier",
    # Config
    "ComplianceConfig",
    "compliance_config",
    # State machine
    "ComplianceStateMachine",
]
