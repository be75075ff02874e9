"""인증 API 라우터.

감독관 비밀번호 검증 엔드포인트를 제공합니다.
"""

import logging

from fastapi import APIRouter, Form, HTTPException, Request

from .deps import check_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/verify")
async def verify_password(request: Request, password: str = Form("")):
    """감독관 비밀번호를 검증합니다.

    감독관 화면에서 WebSocket 접속 전에 비밀번호를 확인할 때 사용됩니다.

    Args:
        password: 검증할 비밀번호

    Returns:
        dict: 인증 결과 {"success": bool, "message": str}
    """
    if check_password(request, password):
        return {"success": True, "message": "Authenticated"}
    logger.info("HTTP 감독관 비밀번호 검증 실패")
    raise HTTPException(status_code=401, detail="Invalid password")
