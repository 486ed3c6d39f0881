from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from contextlib import asynccontextmanager
import logging
from datetime import datetime

from core.config import settings
from core.container import container
from core.factory import ServiceFactory
from core.middleware import setup_exception_handlers
from core.responses import success_response

from routers import admin_router, billing_router, paddle_router

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """애플리케이션 라이프사이클 관리"""
    ServiceFactory.configure_dependencies()
    logger.info("의존성 주입 컨테이너 설정 완료 (paddle env=%s)", settings.PADDLE_ENVIRONMENT)

    yield

    container.clear()
    logger.info("의존성 주입 컨테이너 정리 완료")


app = FastAPI(
    title="Paddle Billing Webhook Server",
    description="Reconciles Paddle Billing webhooks into the Supabase subscription ledger",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG
)

# 예외 처리 미들웨어 설정
setup_exception_handlers(app)

# CORS 미들웨어 추가
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 프로덕션에서는 특정 도메인만 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 기본 엔드포인트
@app.get("/")
async def root():
    return success_response(
        data={"message": "Paddle Billing Webhook Server"},
        message="서버가 정상적으로 실행 중입니다"
    )


@app.get("/health")
async def health_check():
    # DB 헬스체크를 수행하지 않고 정적 상태만 반환
    return success_response(
        data={
            "database": {"checked": False},
            "paddle_environment": settings.PADDLE_ENVIRONMENT,
            "webhook_secret_configured": bool(settings.PADDLE_WEBHOOK_SECRET),
            "timestamp": datetime.now().isoformat(),
            "version": APP_VERSION,
        },
        message="헬스 체크(DB 미검사)"
    )


# 라우터 등록
app.include_router(paddle_router.router)  # Paddle 웹훅 라우터
app.include_router(billing_router.router)  # 결제 관리 라우터
app.include_router(admin_router.router)  # 운영자 재처리 라우터

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
