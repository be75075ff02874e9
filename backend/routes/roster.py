"""감독관용 조회 API 라우터.

응시자 명단과 ICE 서버 목록을 제공합니다. 감독관 비밀번호(Bearer)가 필요합니다.
"""

import logging

from fastapi import APIRouter, Depends, Request

from modules.webrtc import ice_config
from .deps import verify_auth_header

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["supervisor"])


@router.get("/roster")
async def get_roster(request: Request, _: bool = Depends(verify_auth_header)):
    """현재 응시자 명단을 조회합니다.

    WebSocket ``user-list`` 와 같은 형식의 스냅샷입니다.

    Returns:
        dict: {"users": {identity: 표시 이름}}
    """
    return {"users": request.app.state.hub.registry.get_roster()}


@router.get("/ice-servers")
async def get_ice_servers(_: bool = Depends(verify_auth_header)):
    """STUN/TURN 서버 목록을 제공합니다.

    TURN credentials는 서버 환경 변수에서만 관리하고 인증된 감독관에게만 전달합니다.

    Returns:
        list: ``{"urls": ..., "username": ..., "credential": ...}`` 목록

    Examples:
        >>> [{"urls": "stun:stun.l.google.com:19302"}, ...]
    """
    if ice_config.has_turn_server:
        logger.info("ICE 서버 제공: STUN + TURN")
    else:
        logger.info("ICE 서버 제공: STUN만 (TURN 미설정)")
    return ice_config.as_client_list()
