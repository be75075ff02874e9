"""FastAPI 시험 감독 시그널링 서버.

이 모듈은 온라인 시험 감독 시스템을 위한 시그널링 릴레이 서버를 제공합니다.
응시자와 감독관은 WebSocket으로 접속하고, 서버는 세션 인증과 응시자 명단 관리,
WebRTC 협상 메시지(offer/answer/ICE candidate) 전달만 담당합니다.
미디어는 응시자와 감독관 사이에서 직접 연결됩니다.

주요 기능:
    - 감독관 공유 비밀번호 인증 / 응시자 이름 등록
    - 응시자 명단 변경 시 모든 감독관에게 브로드캐스트
    - 협상 메시지를 대상 identity로 전달
    - CORS 설정을 통한 크로스 오리진 요청 지원

Architecture:
    - SessionRegistry: 연결 identity별 세션 상태 (서버 프로세스당 1개)
    - SignalingRouter: 협상 메시지 전달, 명단 브로드캐스트
    - SignalingHub: WebSocket 연결 수명 주기와 이벤트 처리
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modules.signaling import RelayConfig, SessionRegistry, SignalingHub, relay_config
from routes import auth_router, health_router, roster_router, signaling_router

# config/.env 환경변수 로드
load_dotenv(Path(__file__).parent / "config" / ".env")

# 로그 설정
os.makedirs("logs", exist_ok=True)
log_filename = f"logs/server_{datetime.now().strftime('%Y%m%d')}.log"

# 환경별 로그 레벨 설정 (환경변수로 제어)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENV = os.getenv("ENV", "development")

# 로그 보관 기간 (일) - 기본 60일 (2개월)
LOG_RETENTION_DAYS = int(os.getenv("LOG_RETENTION_DAYS", "60"))


def cleanup_old_logs(log_dir: str = "logs", retention_days: int = LOG_RETENTION_DAYS) -> int:
    """오래된 로그 파일을 삭제합니다.

    Args:
        log_dir: 로그 디렉토리 경로
        retention_days: 보관 기간 (일)

    Returns:
        삭제된 파일 수
    """
    log_path = Path(log_dir)
    if not log_path.exists():
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for log_file in log_path.glob("server_*.log"):
        try:
            date_str = log_file.stem.replace("server_", "")
            file_date = datetime.strptime(date_str, "%Y%m%d")
            if file_date < cutoff_date:
                log_file.unlink()
                deleted_count += 1
        except (ValueError, OSError):
            continue

    return deleted_count


logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),  # 콘솔 출력
        logging.FileHandler(log_filename, encoding="utf-8"),  # 파일 저장
    ]
)

logger = logging.getLogger(__name__)
logger.info(f"로깅 초기화 완료: level={LOG_LEVEL}, env={ENV}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI 앱의 생명주기를 관리하는 컨텍스트 매니저.

    Args:
        app (FastAPI): FastAPI 애플리케이션 인스턴스

    Yields:
        None: 앱이 실행되는 동안 제어를 반환

    Note:
        - 시작: 오래된 로그 정리
        - 종료: 남은 세션 수 기록 (WebSocket 연결은 uvicorn이 닫음)
    """
    logger.info("시험 감독 시그널링 서버 시작 중...")

    # 오래된 로그 파일 정리 (2개월 이상)
    deleted_logs = cleanup_old_logs()
    if deleted_logs > 0:
        logger.info(f"오래된 로그 파일 {deleted_logs}개 정리 완료 ({LOG_RETENTION_DAYS}일 이상)")

    yield

    logger.info(f"서버 종료 중... 남은 세션: {app.state.hub.registry.counts()}")


def create_app(config: RelayConfig = relay_config) -> FastAPI:
    """시그널링 서버 앱을 생성합니다.

    세션 레지스트리는 앱마다 하나씩 만들어 ``app.state.hub`` 로 라우터에 전달합니다.

    Args:
        config: 서버 설정 (감독관 비밀번호 등)

    Returns:
        FastAPI: 구성된 앱
    """
    app = FastAPI(title="Proctoring Signaling Relay", lifespan=lifespan)

    app.state.config = config
    app.state.hub = SignalingHub(SessionRegistry(admin_password=config.ADMIN_PASSWORD))

    # CORS - 개발 환경에서는 로컬 네트워크 허용
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^http://(localhost|127\.0\.0\.1|192\.168\.\d{1,3}\.\d{1,3}|172\.\d{1,3}\.\d{1,3}\.\d{1,3}):\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(roster_router)
    app.include_router(signaling_router)

    @app.get("/")
    async def root():
        """서버 상태 확인 엔드포인트.

        Returns:
            dict: 서버 상태 정보
                - status (str): "ok"
                - service (str): 서비스 이름

        Examples:
            >>> {"status": "ok", "service": "Proctoring Signaling Relay"}
        """
        return {"status": "ok", "service": "Proctoring Signaling Relay"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=relay_config.HOST, port=relay_config.PORT, log_level="info")
