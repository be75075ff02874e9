"""시그널링 WebSocket 라우터.

``/ws`` 엔드포인트에서 프레임을 읽어 시그널링 허브에 전달합니다.
세션 관리와 메시지 라우팅은 modules.signaling이 담당합니다.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from modules.signaling import MessageType, SignalingHub, build_message

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """시그널링 WebSocket 엔드포인트.

    연결을 수락하면 identity를 발급해 ``connected`` 메시지로 알리고,
    이후 들어오는 ``{"type", "data"}`` 프레임을 순서대로 처리합니다.

    처리하는 메시지 타입:
        - admin-auth: 감독관 인증
        - join-exam: 응시자 시험 참가
        - get-user-list: 응시자 명단 요청
        - offer / answer / ice-candidate: 대상 identity로 전달
        - end-exam: 시험 종료

    Args:
        websocket: FastAPI WebSocket 연결 객체
    """
    hub: SignalingHub = websocket.app.state.hub

    await websocket.accept()
    identity = await hub.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"피어 {identity}의 JSON 해석 실패")
                await websocket.send_json(build_message(MessageType.ERROR, message="Malformed message"))
                continue
            await hub.handle_message(identity, message)

    except WebSocketDisconnect:
        logger.info(f"피어 {identity} 연결 해제")
    except Exception as e:
        logger.error(f"피어 {identity} WebSocket 처리 중 오류: {e}", exc_info=True)
    finally:
        await hub.disconnect(identity)
