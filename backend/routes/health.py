"""Health Check API 라우터.

서비스 상태 확인을 위한 엔드포인트를 제공합니다.
"""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check(request: Request):
    """시그널링 서버 상태를 확인합니다.

    Returns:
        dict: 서버 상태와 역할별 세션 수
            - status (str): "ok"
            - sessions (dict): connections, supervisors, participants
    """
    registry = request.app.state.hub.registry
    return {"status": "ok", "sessions": registry.counts()}
