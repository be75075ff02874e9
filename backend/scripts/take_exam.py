"""응시자 클라이언트.

시그널링 서버에 접속해 전체 화면과 마이크를 캡처하고 시험을 시작합니다.
시험이 종료되어 대기 상태로 돌아오거나 Ctrl+C를 누르면 끝납니다.

Usage:
    cd backend
    python scripts/take_exam.py --name Alice
    python scripts/take_exam.py --name Alice --screen-format avfoundation --screen-device "1:none"
"""

import argparse
import asyncio
import logging

from modules.compliance import ComplianceStateMachine, ExamState, MediaCaptureProvider
from modules.signaling import SignalingClient, client_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main(args: argparse.Namespace) -> int:
    client = await SignalingClient.connect(args.url)
    provider = MediaCaptureProvider(
        screen_device=args.screen_device,
        screen_format=args.screen_format,
        microphone_device=args.mic_device,
        microphone_format=args.mic_format,
    )

    finished = asyncio.Event()

    def on_state_change(old: ExamState, new: ExamState):
        if new is ExamState.IDLE:
            finished.set()

    machine = ComplianceStateMachine(client, provider, on_state_change=on_state_change)
    receiver = asyncio.create_task(client.run())

    try:
        if not await machine.start(args.name):
            logger.error("시험을 시작하지 못했습니다")
            return 1
        await finished.wait()
        logger.info(f"시험 종료: {machine.termination_reason}")
        return 0
    finally:
        await machine.shutdown()
        await client.close()
        receiver.cancel()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Proctored exam participant client")
    parser.add_argument("--name", required=True, help="Display name shown to supervisors")
    parser.add_argument("--url", default=client_config.SIGNALING_URL, help="Signaling WebSocket URL")
    parser.add_argument("--screen-device", default=":0.0")
    parser.add_argument("--screen-format", default="x11grab")
    parser.add_argument("--mic-device", default="default")
    parser.add_argument("--mic-format", default="pulse")
    return parser.parse_args()


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main(parse_args())))
    except KeyboardInterrupt:
        logger.info("사용자 중단")
