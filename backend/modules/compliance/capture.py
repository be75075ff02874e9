"""캡처 제공자 모듈.

응시자의 화면(전체 화면)과 마이크를 캡처하는 외부 기능의 인터페이스와,
aiortc MediaPlayer(ffmpeg) 기반 기본 구현을 제공합니다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from aiortc.contrib.media import MediaPlayer

from ..webrtc.tracks import CaptureTrack, SURFACE_MONITOR

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """캡처 요청 실패의 기본 예외."""


class PermissionDeniedError(CaptureError):
    """사용자 또는 OS가 캡처 권한을 거부함."""


class DeviceNotFoundError(CaptureError):
    """캡처할 장치(화면, 마이크)가 없음."""


class CaptureProvider(ABC):
    """화면/마이크 캡처 제공자 인터페이스."""

    @abstractmethod
    async def request_screen(self) -> CaptureTrack:
        """전체 화면 비디오 캡처를 요청합니다.

        Returns:
            CaptureTrack: display_surface가 설정된 비디오 트랙

        Raises:
            PermissionDeniedError: 권한 거부
            DeviceNotFoundError: 화면 없음
        """

    @abstractmethod
    async def request_microphone(self) -> CaptureTrack:
        """마이크 오디오 캡처를 요청합니다.

        Raises:
            PermissionDeniedError: 권한 거부
            DeviceNotFoundError: 마이크 없음
        """


class MediaCaptureProvider(CaptureProvider):
    """ffmpeg 입력 장치를 aiortc MediaPlayer로 여는 캡처 제공자.

    기본값은 X11 전체 화면(x11grab)과 PulseAudio 기본 마이크입니다.
    ``screen_options`` 에 ``window_id`` 가 있으면 창 단위 공유로 간주합니다.

    Attributes:
        screen_device (str): 화면 입력 (예: ":0.0")
        screen_format (str): 화면 입력 포맷 (예: "x11grab", "avfoundation")
        microphone_device (str): 마이크 입력 (예: "default")
        microphone_format (str): 마이크 입력 포맷 (예: "pulse", "alsa")
    """

    def __init__(
        self,
        screen_device: str = ":0.0",
        screen_format: str = "x11grab",
        microphone_device: str = "default",
        microphone_format: str = "pulse",
        screen_options: Optional[Dict[str, str]] = None,
    ):
        self.screen_device = screen_device
        self.screen_format = screen_format
        self.microphone_device = microphone_device
        self.microphone_format = microphone_format
        self.screen_options = screen_options or {"framerate": "15"}

    @property
    def display_surface(self) -> str:
        return "window" if "window_id" in self.screen_options else SURFACE_MONITOR

    def _open(self, device: str, fmt: str, options: Optional[Dict[str, str]] = None) -> MediaPlayer:
        try:
            return MediaPlayer(device, format=fmt, options=options or {})
        except PermissionError as e:
            raise PermissionDeniedError(f"{device} 접근 권한 없음: {e}") from e
        except OSError as e:
            raise DeviceNotFoundError(f"{device} 장치를 열 수 없음: {e}") from e

    async def request_screen(self) -> CaptureTrack:
        logger.info(f"[Capture] 화면 캡처 요청: {self.screen_format} {self.screen_device}")
        player = self._open(self.screen_device, self.screen_format, self.screen_options)
        if player.video is None:
            raise DeviceNotFoundError("화면 비디오 트랙 없음")
        return CaptureTrack(player.video, display_surface=self.display_surface)

    async def request_microphone(self) -> CaptureTrack:
        logger.info(f"[Capture] 마이크 캡처 요청: {self.microphone_format} {self.microphone_device}")
        player = self._open(self.microphone_device, self.microphone_format)
        if player.audio is None:
            raise DeviceNotFoundError("마이크 트랙 없음")
        return CaptureTrack(player.audio)
