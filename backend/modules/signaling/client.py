"""시그널링 클라이언트 모듈.

응시자와 감독관 프로세스가 시그널링 서버에 접속할 때 사용하는 클라이언트입니다.
하나의 WebSocket 연결 위에서 메시지 타입별 핸들러를 호출하며,
연결이 끊기면 등록된 종료 콜백을 호출합니다.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed

from .messages import MessageType

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], Awaitable[None]]
DisconnectHandler = Callable[[], Awaitable[None]]


class ClientConnection(Protocol):
    """클라이언트 측 전송 연결."""

    async def send_json(self, data: dict) -> None:
        ...

    async def receive_json(self) -> dict:
        """다음 프레임. 연결이 끊기면 ConnectionError 계열 예외."""
        ...

    async def close(self) -> None:
        ...


class WebSocketConnection:
    """websockets 라이브러리 연결을 ClientConnection으로 감쌉니다."""

    def __init__(self, websocket):
        self.websocket = websocket

    async def send_json(self, data: dict) -> None:
        await self.websocket.send(json.dumps(data))

    async def receive_json(self) -> dict:
        try:
            message = await self.websocket.recv()
        except ConnectionClosed as e:
            raise ConnectionError(f"시그널링 연결 종료: {e}") from e
        return json.loads(message)

    async def close(self) -> None:
        await self.websocket.close()


class SignalingClient:
    """시그널링 서버 클라이언트.

    Attributes:
        connection (ClientConnection): 전송 연결
        identity (Optional[str]): 서버가 발급한 연결 identity
        is_connected (bool): 연결 유지 여부

    Examples:
        >>> client = await SignalingClient.connect("ws://localhost:3000/ws")
        >>> client.on("user-list", on_user_list)
        >>> task = asyncio.create_task(client.run())
        >>> await client.send("admin-auth", {"password": "admin123"})
    """

    def __init__(self, connection: ClientConnection):
        self.connection = connection
        self.identity: Optional[str] = None
        self.is_connected = True
        self._handlers: Dict[str, List[MessageHandler]] = {}
        self._disconnect_handlers: List[DisconnectHandler] = []

    @classmethod
    async def connect(cls, url: str) -> "SignalingClient":
        """서버에 접속하고 identity를 받을 때까지 기다립니다."""
        websocket = await websockets.connect(url)
        client = cls(WebSocketConnection(websocket))
        await client.handshake()
        return client

    async def handshake(self) -> str:
        """서버의 첫 ``connected`` 프레임에서 identity를 읽습니다."""
        frame = await self.connection.receive_json()
        if frame.get("type") != MessageType.CONNECTED.value:
            raise ConnectionError(f"예상하지 못한 첫 메시지: {frame.get('type')}")
        self.identity = frame["data"]["identity"]
        logger.info(f"시그널링 서버 접속 완료: identity={self.identity}")
        return self.identity

    def on(self, message_type: str, handler: MessageHandler) -> None:
        """메시지 타입별 핸들러를 등록합니다. 한 타입에 여러 핸들러 가능."""
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        self._handlers.setdefault(key, []).append(handler)

    def on_disconnect(self, handler: DisconnectHandler) -> None:
        """연결 종료 콜백을 등록합니다."""
        self._disconnect_handlers.append(handler)

    async def send(self, message_type: str, data: Optional[dict] = None) -> bool:
        """서버로 메시지를 보냅니다.

        Returns:
            bool: 전송 성공 여부. 연결이 끊겼으면 False
        """
        if not self.is_connected:
            return False
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        try:
            await self.connection.send_json({"type": key, "data": data or {}})
            return True
        except (ConnectionError, ConnectionClosed) as e:
            logger.error(f"시그널링 메시지 전송 실패 ({key}): {e}")
            return False

    async def run(self) -> None:
        """연결이 끊길 때까지 수신 프레임을 핸들러에 전달합니다.

        같은 연결의 메시지는 받은 순서대로 하나씩 처리됩니다.
        """
        try:
            while True:
                frame = await self.connection.receive_json()
                await self._dispatch(frame)
        except (ConnectionError, ConnectionClosed) as e:
            logger.warning(f"시그널링 연결 끊김: {e}")
        except asyncio.CancelledError:
            logger.info("시그널링 수신 루프 취소됨")
            raise
        finally:
            await self._handle_disconnect()

    async def close(self) -> None:
        """연결을 닫습니다. 수신 루프는 종료 콜백을 호출하며 끝납니다."""
        await self.connection.close()

    async def _dispatch(self, frame: dict) -> None:
        message_type = frame.get("type")
        handlers = self._handlers.get(message_type)
        if not handlers:
            if message_type == MessageType.ERROR.value:
                logger.error(f"서버 오류: {(frame.get('data') or {}).get('message')}")
            else:
                logger.debug(f"처리하지 않는 메시지 타입: {message_type}")
            return

        for handler in handlers:
            try:
                await handler(frame.get("data"))
            except Exception as e:
                logger.error(f"{message_type} 핸들러 실행 중 오류: {e}", exc_info=True)

    async def _handle_disconnect(self) -> None:
        if not self.is_connected:
            return
        self.is_connected = False
        for handler in self._disconnect_handlers:
            try:
                await handler()
            except Exception as e:
                logger.error(f"연결 종료 콜백 실행 중 오류: {e}", exc_info=True)
