"""공유 의존성 모듈.

라우터들이 공통으로 사용하는 의존성을 정의합니다.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request


def check_password(request: Request, password: Optional[str]) -> bool:
    """감독관 공유 비밀번호와 비교합니다."""
    expected = request.app.state.config.ADMIN_PASSWORD
    return hmac.compare_digest((password or "").encode(), expected.encode())


async def verify_auth_header(request: Request, authorization: Optional[str] = Header(None)) -> bool:
    """Authorization 헤더를 검증합니다.

    감독관 공유 비밀번호를 Bearer 토큰으로 받습니다.

    Args:
        request: 현재 요청 (앱 설정 조회용)
        authorization: Authorization 헤더 값

    Returns:
        bool: 검증 성공 시 True

    Raises:
        HTTPException: 인증 실패 시
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization format")
    if not check_password(request, parts[1]):
        raise HTTPException(status_code=401, detail="Invalid password")
    return True
