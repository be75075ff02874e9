"""감독관 클라이언트.

감독관 비밀번호로 인증한 뒤, 명단에 나타나는 모든 응시자를 자동으로 관찰합니다.
``--record-dir`` 를 지정하면 응시자별 화면/마이크 트랙을 파일로 저장합니다.

Usage:
    cd backend
    python scripts/observe.py --password admin123 --record-dir recordings
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaBlackhole, MediaRecorder

from modules.signaling import MessageType, SignalingClient, client_config
from modules.webrtc import PeerConnectionManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
)
logger = logging.getLogger(__name__)


class Supervisor:
    """명단 변경에 따라 관찰 대상을 자동으로 맞추는 감독관 세션."""

    def __init__(
        self,
        client: SignalingClient,
        record_dir: Optional[Path] = None,
        refresh_interval: float = client_config.ROSTER_REFRESH_INTERVAL,
    ):
        self.client = client
        self.record_dir = record_dir
        self.refresh_interval = refresh_interval
        self._refresh_task: Optional[asyncio.Task] = None
        self.manager = PeerConnectionManager(client)
        self.roster: Dict[str, str] = {}
        self.sinks: Dict[str, List] = {}
        self.auth_result: asyncio.Future = asyncio.get_running_loop().create_future()

        self.manager.on_track = self.on_track
        self.manager.on_status = self.on_status

        client.on(MessageType.AUTH_SUCCESS, self.on_auth_success)
        client.on(MessageType.AUTH_FAILED, self.on_auth_failed)
        client.on(MessageType.USER_LIST, self.on_user_list)
        client.on(MessageType.ANSWER, self.on_answer)
        client.on(MessageType.ICE_CANDIDATE, self.on_ice_candidate)
        client.on_disconnect(self.on_disconnect)

    async def on_auth_success(self, data):
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_roster())
        if not self.auth_result.done():
            self.auth_result.set_result(True)

    async def _refresh_roster(self):
        """브로드캐스트가 누락되어도 명단이 맞도록 주기적으로 다시 요청합니다."""
        while self.client.is_connected:
            await asyncio.sleep(self.refresh_interval)
            if not await self.client.send(MessageType.GET_USER_LIST):
                break

    async def on_auth_failed(self, data):
        logger.error(f"감독관 인증 실패: {(data or {}).get('message')}")
        if not self.auth_result.done():
            self.auth_result.set_result(False)

    async def on_disconnect(self):
        if not self.auth_result.done():
            self.auth_result.set_result(False)

    async def on_user_list(self, data):
        self.roster = dict((data or {}).get("users") or {})
        logger.info(f"응시자 명단: {', '.join(self.roster.values()) or '(없음)'}")

        for identity in list(self.sinks.keys()):
            if identity not in self.roster:
                await self.stop_sinks(identity)
        await self.manager.sync_roster(self.roster)

        for identity in self.roster:
            await self.manager.observe(identity)

    async def on_answer(self, data):
        data = data or {}
        await self.manager.handle_answer(data.get("source"), data.get("payload"))

    async def on_ice_candidate(self, data):
        data = data or {}
        await self.manager.handle_ice_candidate(data.get("source"), data.get("payload"))

    async def on_status(self, identity: str, state: str):
        logger.info(f"'{self.roster.get(identity, identity[:8])}' 연결 상태: {state}")
        if state in ("failed", "closed"):
            await self.stop_sinks(identity)

    async def on_track(self, identity: str, track: MediaStreamTrack):
        if self.record_dir is None:
            sink = MediaBlackhole()
        else:
            name = self.roster.get(identity, identity[:8])
            suffix = "mp4" if track.kind == "video" else "wav"
            sink = MediaRecorder(str(self.record_dir / f"{name}_{identity[:8]}_{track.kind}.{suffix}"))
        sink.addTrack(track)
        await sink.start()
        self.sinks.setdefault(identity, []).append(sink)

    async def stop_sinks(self, identity: str):
        for sink in self.sinks.pop(identity, []):
            await sink.stop()

    async def close(self):
        task, self._refresh_task = self._refresh_task, None
        if task is not None:
            task.cancel()
        for identity in list(self.sinks.keys()):
            await self.stop_sinks(identity)
        await self.manager.release_all()


async def main(args: argparse.Namespace) -> int:
    record_dir = Path(args.record_dir) if args.record_dir else None
    if record_dir is not None:
        record_dir.mkdir(parents=True, exist_ok=True)

    client = await SignalingClient.connect(args.url)
    supervisor = Supervisor(client, record_dir)
    receiver = asyncio.create_task(client.run())

    try:
        await client.send(MessageType.ADMIN_AUTH, {"password": args.password})
        if not await supervisor.auth_result:
            return 1
        logger.info("감독관 인증 완료, 응시자 관찰 중 (Ctrl+C로 종료)")
        await receiver
        return 0
    finally:
        await supervisor.close()
        await client.close()
        receiver.cancel()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Proctored exam supervisor client")
    parser.add_argument("--password", required=True, help="Supervisor shared secret")
    parser.add_argument("--url", default=client_config.SIGNALING_URL, help="Signaling WebSocket URL")
    parser.add_argument("--record-dir", default=None, help="Directory to record participant tracks into")
    return parser.parse_args()


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main(parse_args())))
    except KeyboardInterrupt:
        logger.info("사용자 중단")
