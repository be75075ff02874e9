"""응시 규정 상태 머신 모듈.

응시자 한 명의 시험 세션을 관리합니다. 권한 획득(전체 화면 + 마이크)부터
시험 진행 중 위반 감시, 종료와 초기화까지를 명시적인 상태 전환으로 처리합니다.

States:
    IDLE -> ACQUIRING_PERMISSIONS -> ACTIVE -> TERMINATED -> IDLE

위반 분류:
    - 필수 위반 (CompulsoryViolation): 경고 없이 즉시 종료
        트랙 종료/비활성화, 주기 검사에서 트랙 손실 또는 화면 종류 변경,
        시그널링 연결 끊김, 감독관의 종료 요청
    - 경고 위반 (WarningViolation): 경고 누적, 한도 도달 시 종료
        탭 숨김, 창 포커스 이탈, 전체 화면 해제, 우클릭, 개발자 도구 단축키, 화면 캡처 키

Note:
    - 모든 경고 처리기는 먼저 필수 위반 조건을 확인합니다. 필수 위반이 있으면
      경고를 세지 않고 필수 위반으로 종료합니다.
    - 종료(terminate)는 여러 번 호출해도 한 번만 실행됩니다.
    - 주기 검사 태스크는 상태 머신이 핸들을 보관하고 종료 시 한 번만 취소합니다.

Examples:
    >>> client = await SignalingClient.connect("ws://localhost:3000/ws")
    >>> machine = ComplianceStateMachine(client, MediaCaptureProvider())
    >>> asyncio.create_task(client.run())
    >>> await machine.start("Alice")
    True
    >>> await machine.handle_blur()
    >>> machine.warning_count
    1
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from aiortc import RTCPeerConnection

from ..signaling.messages import MessageType
from ..webrtc.config import create_peer_connection
from ..webrtc.participant import ParticipantPeerManager
from ..webrtc.tracks import CaptureStream, CaptureTrack
from .capture import CaptureError, CaptureProvider, DeviceNotFoundError, PermissionDeniedError
from .config import ComplianceConfig, compliance_config
from .environment import ExamEnvironment, HeadlessEnvironment, LogNotifier, Notifier
from .state import CompulsoryViolation, ExamState, WarningViolation

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[ExamState, ExamState], None]

DEVTOOLS_KEYS = frozenset({"I", "J", "C"})

TERMINATED_TITLE = "EXAM TERMINATED"


class ComplianceStateMachine:
    """응시자 한 명의 시험 세션 상태 머신.

    캡처 스트림은 이 상태 머신이 단독으로 소유합니다. 감독관과의 피어 연결은
    ParticipantPeerManager에 위임하고, 종료 시 함께 닫습니다.

    Attributes:
        signaling: 시그널링 클라이언트
        capture_provider (CaptureProvider): 화면/마이크 캡처 제공자
        environment (ExamEnvironment): 전체 화면 제어
        notifier (Notifier): 사용자 알림 (확인될 때까지 대기)
        peers (ParticipantPeerManager): 감독관별 피어 연결
        state (ExamState): 현재 상태
        stream (Optional[CaptureStream]): 진행 중인 시험의 캡처 스트림
        warning_count (int): 누적 경고 수
        max_warnings (int): 종료 전까지 허용되는 경고 수
        termination_reason (Optional[str]): 마지막 종료 사유
    """

    def __init__(
        self,
        signaling,
        capture_provider: CaptureProvider,
        environment: Optional[ExamEnvironment] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[ComplianceConfig] = None,
        peer_factory: Callable[[], RTCPeerConnection] = create_peer_connection,
        on_state_change: Optional[StateChangeCallback] = None,
    ):
        self.signaling = signaling
        self.capture_provider = capture_provider
        self.environment = environment or HeadlessEnvironment()
        self.notifier = notifier or LogNotifier()
        self.config = config or compliance_config
        self.peers = ParticipantPeerManager(signaling, peer_factory)
        self.on_state_change = on_state_change

        self.state = ExamState.IDLE
        self.name: Optional[str] = None
        self.stream: Optional[CaptureStream] = None
        self.warning_count = 0
        self.max_warnings = self.config.MAX_WARNINGS
        self.termination_reason: Optional[str] = None

        self._terminating = False
        self._check_task: Optional[asyncio.Task] = None
        self._reset_task: Optional[asyncio.Task] = None

        signaling.on(MessageType.OFFER, self._on_offer)
        signaling.on(MessageType.ICE_CANDIDATE, self._on_ice_candidate)
        signaling.on(MessageType.END_EXAM, self._on_end_exam)
        signaling.on_disconnect(self._on_signaling_lost)

    @property
    def is_active(self) -> bool:
        """ACTIVE 상태이고 종료 처리 중이 아닌지 여부."""
        return self.state is ExamState.ACTIVE and not self._terminating

    def _set_state(self, new_state: ExamState) -> None:
        old_state = self.state
        if old_state is new_state:
            return
        self.state = new_state
        logger.info(f"[Exam] 상태 전환: {old_state.value} -> {new_state.value}")
        if self.on_state_change:
            self.on_state_change(old_state, new_state)

    # ============================================================
    # 시험 시작
    # ============================================================

    async def start(self, name: str) -> bool:
        """시험을 시작합니다.

        Args:
            name: 응시자 표시 이름 (앞뒤 공백 제거)

        Returns:
            bool: ACTIVE 상태에 도달했으면 True

        Note:
            - IDLE 상태에서만 시작 가능
            - 이름이 비어있으면 알림 후 IDLE 유지
            - 권한 획득 실패 시 알림, 트랙 해제 후 IDLE
        """
        if self.state is not ExamState.IDLE:
            logger.warning(f"[Exam] {self.state.value} 상태에서는 시작할 수 없음")
            return False

        name = (name or "").strip()
        if not name:
            await self.notifier.alert("NAME REQUIRED", "Please enter your name.")
            return False

        self.name = name
        self.warning_count = 0
        self.termination_reason = None
        self._set_state(ExamState.ACQUIRING_PERMISSIONS)

        stream = await self._acquire_permissions()
        if self.state is not ExamState.ACQUIRING_PERMISSIONS:
            # 권한 요청 중 shutdown
            if stream is not None:
                stream.stop()
            return False
        if stream is None:
            self._set_state(ExamState.IDLE)
            return False

        return await self._activate(stream)

    async def _acquire_permissions(self) -> Optional[CaptureStream]:
        """화면 → 마이크 → 스트림 병합 순서로 권한을 획득합니다.

        각 단계의 실패는 알림과 트랙 해제 후 None 반환으로 처리합니다.
        """
        acquired: List[CaptureTrack] = []

        # 1. 전체 화면 캡처
        try:
            screen = await self.capture_provider.request_screen()
        except CaptureError as e:
            return await self._abort_acquisition(acquired, *self._describe_capture_error(e, "screen"))
        acquired.append(screen)

        if not screen.is_entire_screen:
            logger.warning(f"[Exam] 전체 화면이 아닌 공유 선택: {screen.display_surface}")
            return await self._abort_acquisition(
                acquired,
                "ENTIRE SCREEN REQUIRED",
                f"You MUST share your ENTIRE SCREEN. You selected: {screen.display_surface}. "
                "Please start again and select \"Entire Screen\" when prompted.",
            )

        # 2. 마이크 캡처
        try:
            microphone = await self.capture_provider.request_microphone()
        except CaptureError as e:
            return await self._abort_acquisition(acquired, *self._describe_capture_error(e, "microphone"))
        acquired.append(microphone)

        # 3. 하나의 스트림으로 병합
        stream = CaptureStream(acquired)
        if not stream.get_video_tracks() or not stream.get_audio_tracks():
            return await self._abort_acquisition(
                acquired, "EXAM CANNOT START", "Both a screen video track and a microphone audio track are required."
            )

        logger.info("[Exam] 권한 획득 완료: 전체 화면 + 마이크")
        return stream

    async def _abort_acquisition(self, acquired: List[CaptureTrack], title: str, message: str) -> None:
        for track in acquired:
            track.stop()
        logger.warning(f"[Exam] 권한 획득 실패: {title}")
        await self.notifier.alert(title, message)
        return None

    @staticmethod
    def _describe_capture_error(error: CaptureError, stage: str):
        if isinstance(error, PermissionDeniedError):
            if stage == "microphone":
                return (
                    "EXAM CANNOT START",
                    "Microphone access is COMPULSORY and was not granted. "
                    "You must allow microphone access to start the exam.",
                )
            return (
                "PERMISSION DENIED",
                "You MUST allow ENTIRE SCREEN sharing and microphone access to take the exam.",
            )
        if isinstance(error, DeviceNotFoundError):
            return (
                "DEVICE NOT FOUND",
                "A screen to share and a working microphone are both required to take the exam.",
            )
        return ("ERROR", str(error))

    async def _activate(self, stream: CaptureStream) -> bool:
        self.stream = stream
        self.warning_count = 0
        self._set_state(ExamState.ACTIVE)

        for track in stream.get_tracks():
            self._watch_track(track, stream)

        if not await self.signaling.send(MessageType.JOIN_EXAM, {"name": self.name}):
            await self._on_compulsory(CompulsoryViolation.SIGNALING_LOST)
            return False

        # join-exam 전송 중 종료된 경우
        if not self.is_active:
            return False

        self._check_task = asyncio.create_task(self._poll_compliance(stream))
        await self._request_fullscreen()

        logger.info(f"[Exam] '{self.name}' 시험 시작 (경고 한도 {self.max_warnings})")
        return self.is_active

    # ============================================================
    # 필수 위반 감시
    # ============================================================

    def _watch_track(self, track: CaptureTrack, stream: CaptureStream) -> None:
        """트랙 종료/비활성화 이벤트를 구독합니다."""

        async def on_ended():
            if self.stream is stream:
                await self._on_compulsory(CompulsoryViolation.ended(track.kind))

        async def on_disabled():
            if self.stream is stream:
                await self._on_compulsory(CompulsoryViolation.disabled(track.kind))

        track.on("ended", on_ended)
        track.on("disabled", on_disabled)

    async def _poll_compliance(self, stream: CaptureStream) -> None:
        """CHECK_INTERVAL마다 필수 조건을 검사합니다."""
        try:
            while self.is_active and self.stream is stream:
                await asyncio.sleep(self.config.CHECK_INTERVAL)
                if not self.is_active or self.stream is not stream:
                    break
                violation = self._find_compulsory_violation()
                if violation is not None:
                    await self._on_compulsory(violation)
                    break
        except asyncio.CancelledError:
            logger.debug("[Exam] 주기 검사 취소됨")
            raise

    def _find_compulsory_violation(self) -> Optional[CompulsoryViolation]:
        """현재 필수 조건 위반을 찾습니다. 없으면 None."""
        if self.stream is None:
            return CompulsoryViolation.SCREEN_LOST

        video_tracks = self.stream.get_video_tracks()
        if not video_tracks or not _is_track_live(video_tracks[0]):
            return CompulsoryViolation.SCREEN_LOST

        audio_tracks = self.stream.get_audio_tracks()
        if not audio_tracks or not _is_track_live(audio_tracks[0]):
            return CompulsoryViolation.MICROPHONE_LOST

        if not video_tracks[0].is_entire_screen:
            return CompulsoryViolation.SURFACE_CHANGED

        if not self.signaling.is_connected:
            return CompulsoryViolation.SIGNALING_LOST

        return None

    async def _on_compulsory(self, violation: CompulsoryViolation) -> None:
        if not self.is_active:
            return
        logger.warning(f"[Exam] 필수 위반 ({violation.name}): {violation.message}")
        await self.terminate(violation.message)

    # ============================================================
    # 경고 위반
    # ============================================================

    async def report_warning(self, violation: WarningViolation) -> None:
        """경고 위반을 처리합니다.

        필수 위반이 함께 있으면 경고를 세지 않고 필수 위반으로 종료합니다.
        경고가 한도에 도달하면 시험을 종료합니다.
        """
        if not self.is_active:
            return

        compulsory = self._find_compulsory_violation()
        if compulsory is not None:
            await self._on_compulsory(compulsory)
            return

        self.warning_count += 1
        count = self.warning_count
        limit_reached = count >= self.max_warnings
        logger.warning(f"[Exam] 경고 {count}/{self.max_warnings}: {violation.name}")

        await self.notifier.alert(violation.title, f"Warning {count}/{self.max_warnings}\n{violation.message}")

        if limit_reached:
            await self.terminate(f"Maximum warnings reached ({count}/{self.max_warnings}): {violation.title}")
        elif violation is WarningViolation.FULLSCREEN_EXIT and self.is_active:
            await self._request_fullscreen()

    async def handle_visibility_change(self, hidden: bool) -> None:
        if hidden:
            await self.report_warning(WarningViolation.TAB_HIDDEN)

    async def handle_blur(self, hidden: bool = False) -> None:
        # 탭이 숨겨진 경우는 visibility 경고로 이미 처리
        if not hidden:
            await self.report_warning(WarningViolation.WINDOW_BLUR)

    async def handle_fullscreen_change(self, is_fullscreen: bool) -> None:
        if not is_fullscreen:
            await self.report_warning(WarningViolation.FULLSCREEN_EXIT)

    async def handle_context_menu(self) -> None:
        await self.report_warning(WarningViolation.CONTEXT_MENU)

    async def handle_key(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """키 입력을 분류합니다.

        Returns:
            bool: 차단 대상 단축키였으면 True (기본 동작을 막아야 함)
        """
        if not self.is_active:
            return False

        if key == "F12" or (ctrl and shift and key.upper() in DEVTOOLS_KEYS):
            violation = WarningViolation.DEVTOOLS_SHORTCUT
        elif key == "PrintScreen":
            violation = WarningViolation.PRINT_SCREEN
        else:
            return False

        await self.report_warning(violation)
        return True

    # ============================================================
    # 종료 및 초기화
    # ============================================================

    async def terminate(self, reason: str) -> bool:
        """시험을 종료합니다. ACTIVE 상태가 아니면 아무 작업도 하지 않습니다.

        Workflow:
            1. 종료 처리 시작 표시, 주기 검사 취소
            2. 종료 알림 (확인될 때까지 대기, 상태는 아직 ACTIVE)
            3. TERMINATED 전환
            4. 캡처 트랙 전부 종료
            5. 감독관 피어 연결 전부 종료
            6. end-exam 전송
            7. 전체 화면 해제 (실패 무시)
            8. RESET_DELAY 후 IDLE 전환 예약

        Returns:
            bool: 이번 호출로 종료되었으면 True

        Note:
            - 알림 대기 중 들어온 위반/offer는 ``_terminating`` 으로 무시됨
        """
        if not self.is_active:
            return False

        self._terminating = True
        self.termination_reason = reason
        logger.warning(f"[Exam] '{self.name}' 시험 종료: {reason}")

        self._cancel_checks()

        try:
            await self.notifier.alert(TERMINATED_TITLE, reason)
        finally:
            self._terminating = False

        # 알림 대기 중 shutdown된 경우
        if self.state is not ExamState.ACTIVE:
            return False

        self._set_state(ExamState.TERMINATED)

        stream, self.stream = self.stream, None
        if stream is not None:
            stream.stop()

        await self.peers.close_all()
        await self.signaling.send(MessageType.END_EXAM)
        await self._exit_fullscreen()

        self._reset_task = asyncio.create_task(self._reset_after_delay())
        return True

    async def _reset_after_delay(self) -> None:
        await asyncio.sleep(self.config.RESET_DELAY)
        if self.state is ExamState.TERMINATED:
            self.name = None
            self._set_state(ExamState.IDLE)

    def _cancel_checks(self) -> None:
        task, self._check_task = self._check_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def shutdown(self) -> None:
        """프로세스 종료 시 모든 태스크와 리소스를 정리합니다."""
        self._cancel_checks()

        task, self._reset_task = self._reset_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        stream, self.stream = self.stream, None
        if stream is not None:
            stream.stop()

        await self.peers.close_all()
        self._set_state(ExamState.IDLE)
        logger.info("[Exam] 상태 머신 종료")

    async def _request_fullscreen(self) -> None:
        try:
            await self.environment.request_fullscreen()
        except Exception as e:
            logger.warning(f"[Exam] 전체 화면 요청 실패: {e}")

    async def _exit_fullscreen(self) -> None:
        try:
            await self.environment.exit_fullscreen()
        except Exception as e:
            logger.debug(f"[Exam] 전체 화면 해제 실패 (무시): {e}")

    # ============================================================
    # 시그널링 이벤트
    # ============================================================

    async def _on_offer(self, data: Any) -> None:
        data = data or {}
        source = data.get("source")
        stream = self.stream
        if not self.is_active or stream is None:
            logger.debug(f"[Exam] 시험 진행 중이 아니므로 offer 무시: {source}")
            return

        await self.peers.handle_offer(source, data.get("payload"), stream)

        # 협상 중 종료된 경우 새로 만든 연결 정리
        if self.stream is not stream:
            await self.peers.close_peer(source)

    async def _on_ice_candidate(self, data: Any) -> None:
        data = data or {}
        await self.peers.handle_ice_candidate(data.get("source"), data.get("payload"))

    async def _on_end_exam(self, data: Any) -> None:
        logger.info("[Exam] 감독관 종료 요청 수신")
        await self._on_compulsory(CompulsoryViolation.SUPERVISOR_ENDED)

    async def _on_signaling_lost(self) -> None:
        await self._on_compulsory(CompulsoryViolation.SIGNALING_LOST)


def _is_track_live(track: CaptureTrack) -> bool:
    return track.enabled and track.readyState == "live"
