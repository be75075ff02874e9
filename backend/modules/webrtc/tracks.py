"""캡처 트랙 릴레이 모듈.

화면/마이크 캡처 원본 트랙을 감싸 감독관에게 릴레이하면서,
시험 무결성 검사에 필요한 상태(활성 여부, 공유 화면 종류)를 노출합니다.
"""

import logging
from typing import List, Optional
from aiortc import MediaStreamTrack

logger = logging.getLogger(__name__)

# 전체 화면 공유를 나타내는 display surface 값
SURFACE_MONITOR = "monitor"


class CaptureTrack(MediaStreamTrack):
    """원본 캡처 트랙을 릴레이하고 준수 상태를 추적하는 트랙.

    aiortc의 MediaStreamTrack은 ``readyState`` 와 ``ended`` 이벤트만 제공하므로,
    브라우저 트랙의 ``enabled`` 속성과 ``displaySurface`` 설정을 이 클래스가 보완합니다.

    Attributes:
        kind (str): 트랙 종류 ("video" 또는 "audio")
        source (MediaStreamTrack): 원본 캡처 트랙
        display_surface (Optional[str]): 화면 공유 종류 (video 전용, 예: "monitor", "window")

    Events:
        - ended: 트랙이 종료되었을 때 (원본 트랙 종료 포함)
        - disabled: ``enabled`` 가 False로 바뀌었을 때

    Examples:
        >>> screen = CaptureTrack(player.video, display_surface="monitor")
        >>> screen.on("ended", on_screen_ended)
        >>> screen.enabled = False  # "disabled" 이벤트 발생
    """

    def __init__(self, source: MediaStreamTrack, display_surface: Optional[str] = None):
        super().__init__()
        self.kind = source.kind
        self.source = source
        self.display_surface = display_surface
        self._enabled = True

        # 원본 트랙이 끝나면 릴레이 트랙도 종료
        source.on("ended", self.stop)

    @property
    def enabled(self) -> bool:
        """트랙 활성 여부."""
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool):
        was_enabled = self._enabled
        self._enabled = bool(value)
        if was_enabled and not self._enabled:
            logger.info(f"[Capture] {self.kind} 트랙 비활성화됨")
            self.emit("disabled")

    @property
    def is_entire_screen(self) -> bool:
        """전체 화면 공유 여부. surface 정보가 없으면 판단할 수 없으므로 True."""
        return self.display_surface is None or self.display_surface == SURFACE_MONITOR

    async def recv(self):
        """원본 트랙에서 프레임을 받아 그대로 전달합니다."""
        return await self.source.recv()

    def stop(self) -> None:
        if self.readyState == "live":
            logger.info(f"[Capture] {self.kind} 트랙 종료")
        super().stop()
        if self.source.readyState == "live":
            self.source.stop()


class CaptureStream:
    """화면 트랙과 마이크 트랙을 하나로 묶은 캡처 스트림."""

    def __init__(self, tracks: Optional[List[CaptureTrack]] = None):
        self._tracks: List[CaptureTrack] = list(tracks or [])

    def add_track(self, track: CaptureTrack) -> None:
        self._tracks.append(track)

    def get_tracks(self) -> List[CaptureTrack]:
        return list(self._tracks)

    def get_video_tracks(self) -> List[CaptureTrack]:
        return [t for t in self._tracks if t.kind == "video"]

    def get_audio_tracks(self) -> List[CaptureTrack]:
        return [t for t in self._tracks if t.kind == "audio"]

    def stop(self) -> None:
        """모든 트랙을 강제로 종료합니다."""
        for track in self._tracks:
            track.stop()

    @property
    def has_live_tracks(self) -> bool:
        return any(t.readyState == "live" for t in self._tracks)
