"""응시 상태와 위반 종류 정의."""

from enum import Enum


class ExamState(str, Enum):
    """응시자 측 상태 머신의 상태.

    IDLE -> ACQUIRING_PERMISSIONS -> ACTIVE -> TERMINATED -> IDLE
    """

    IDLE = "idle"
    ACQUIRING_PERMISSIONS = "acquiring_permissions"
    ACTIVE = "active"
    TERMINATED = "terminated"


class CompulsoryViolation(Enum):
    """즉시 시험 종료 사유 (경고 없음)."""

    SCREEN_ENDED = ("Screen Sharing", "Your Screen Sharing was stopped.")
    MICROPHONE_ENDED = ("Microphone", "Your Microphone was stopped.")
    SCREEN_DISABLED = ("Screen Sharing", "Your Screen Sharing was disabled.")
    MICROPHONE_DISABLED = ("Microphone", "Your Microphone was disabled.")
    SCREEN_LOST = ("Screen Sharing", "Screen sharing was interrupted.")
    MICROPHONE_LOST = ("Microphone", "Microphone access was interrupted.")
    SURFACE_CHANGED = ("Screen Sharing", "You switched from Entire Screen sharing.")
    SIGNALING_LOST = ("Connection", "Lost connection to server.")
    SUPERVISOR_ENDED = ("Supervisor", "The supervisor ended your exam.")

    def __init__(self, resource: str, message: str):
        self.resource = resource
        self.message = message

    @classmethod
    def ended(cls, kind: str) -> "CompulsoryViolation":
        return cls.SCREEN_ENDED if kind == "video" else cls.MICROPHONE_ENDED

    @classmethod
    def disabled(cls, kind: str) -> "CompulsoryViolation":
        return cls.SCREEN_DISABLED if kind == "video" else cls.MICROPHONE_DISABLED


class WarningViolation(Enum):
    """경고가 누적되는 위반. 한도에 도달하면 시험 종료."""

    TAB_HIDDEN = ("TAB SWITCH DETECTED", "Do not switch tabs during the exam.")
    WINDOW_BLUR = ("WINDOW SWITCH DETECTED", "Stay focused on the exam window.")
    FULLSCREEN_EXIT = ("FULLSCREEN EXITED", "Returning to fullscreen mode...")
    CONTEXT_MENU = ("ACTION BLOCKED", "Right-click is disabled during exam.")
    DEVTOOLS_SHORTCUT = ("ACTION BLOCKED", "Developer tools are disabled during exam.")
    PRINT_SCREEN = ("ACTION BLOCKED", "Screenshots are disabled during exam.")

    def __init__(self, title: str, message: str):
        self.title = title
        self.message = message
