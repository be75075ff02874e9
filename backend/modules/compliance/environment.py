"""응시 환경 협력자.

전체 화면 제어와 사용자 알림(확인이 필요한 경고창)을 추상화합니다.
실제 구현은 응시 클라이언트의 UI 계층이 제공합니다.
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ExamEnvironment(ABC):
    """응시 화면의 전체 화면 제어 인터페이스."""

    @abstractmethod
    async def request_fullscreen(self) -> None:
        """전체 화면 진입을 요청합니다. 실패 시 예외."""

    @abstractmethod
    async def exit_fullscreen(self) -> None:
        """전체 화면을 해제합니다. 실패 시 예외."""


class Notifier(ABC):
    """사용자 알림 인터페이스.

    ``alert`` 는 사용자가 확인할 때까지 반환하지 않아야 합니다.
    """

    @abstractmethod
    async def alert(self, title: str, message: str) -> None:
        ...


class HeadlessEnvironment(ExamEnvironment):
    """화면이 없는 실행 환경. 전체 화면 상태만 기록합니다."""

    def __init__(self):
        self.is_fullscreen = False

    async def request_fullscreen(self) -> None:
        self.is_fullscreen = True

    async def exit_fullscreen(self) -> None:
        self.is_fullscreen = False


class LogNotifier(Notifier):
    """알림을 로그로 남기는 기본 구현."""

    async def alert(self, title: str, message: str) -> None:
        logger.warning(f"[알림] {title}: {message}")
