"""ICE candidate 변환 유틸리티.

시그널링으로 주고받는 candidate는 브라우저 RTCIceCandidateInit 형식
(``{"candidate": "candidate:...", "sdpMid": ..., "sdpMLineIndex": ...}``)을 따릅니다.
"""

from typing import Any, Optional

from aiortc import RTCIceCandidate
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

_PREFIX = "candidate:"


def candidate_to_payload(candidate: RTCIceCandidate) -> dict:
    """aiortc candidate를 시그널링 payload로 변환합니다."""
    return {
        "candidate": _PREFIX + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidate_from_payload(payload: Any) -> Optional[RTCIceCandidate]:
    """시그널링 payload를 aiortc candidate로 변환합니다.

    ``{"candidate": {...}}`` 처럼 한 번 더 감싼 형식도 허용합니다.

    Returns:
        Optional[RTCIceCandidate]: 빈 candidate(수집 완료 표시)이면 None

    Raises:
        ValueError: candidate 문자열을 해석할 수 없는 경우
    """
    if not isinstance(payload, dict):
        raise ValueError(f"candidate payload 형식 오류: {type(payload).__name__}")

    inner = payload.get("candidate")
    if isinstance(inner, dict):
        payload = inner
        inner = payload.get("candidate")

    candidate_str = inner or ""
    if not isinstance(candidate_str, str):
        raise ValueError(f"candidate 형식 오류: {type(candidate_str).__name__}")
    if candidate_str.startswith(_PREFIX):
        candidate_str = candidate_str[len(_PREFIX):]
    if not candidate_str:
        return None

    try:
        candidate = candidate_from_sdp(candidate_str)
    except (AssertionError, IndexError, KeyError, ValueError) as e:
        raise ValueError(f"candidate 해석 실패: {candidate_str!r}") from e

    candidate.sdpMid = payload.get("sdpMid")
    candidate.sdpMLineIndex = payload.get("sdpMLineIndex")
    return candidate
