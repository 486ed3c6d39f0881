"""
애플리케이션 설정 관리
"""
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import validator
from pydantic_settings import BaseSettings


_FILE_PATH = Path(__file__).resolve()

PADDLE_API_URLS = {
    "production": "https://api.paddle.com",
    "sandbox": "https://sandbox-api.paddle.com",
}


def _collect_env_files(file_path: Path) -> tuple[Path, ...]:
    """환경 파일 후보를 가까운 디렉터리부터 수집"""

    collected: list[Path] = []
    seen: set[Path] = set()

    for directory in file_path.parents:
        for name in (".env", ".env.local"):
            candidate = directory / name
            if candidate.exists() and candidate not in seen:
                collected.append(candidate)
                seen.add(candidate)

    return tuple(collected)


_ENV_FILES = _collect_env_files(_FILE_PATH)


def _load_dotenv_files() -> None:
    """프로젝트 전체에서 활용할 .env 파일들을 순차적으로 로드"""

    for dotenv_path in _ENV_FILES:
        load_dotenv(dotenv_path, override=False)


_load_dotenv_files()


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False

    # Supabase 설정 (웹훅은 서비스 롤 키로만 기록)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # 로깅 설정
    LOG_LEVEL: str = "INFO"

    # Paddle Billing 설정
    PADDLE_API_KEY: Optional[str] = None
    PADDLE_ENVIRONMENT: str = "sandbox"
    PADDLE_API_BASE_URL: Optional[str] = None
    PADDLE_WEBHOOK_SECRET: Optional[str] = None
    # 0 이하이면 타임스탬프 허용 오차 검사를 하지 않음
    PADDLE_WEBHOOK_MAX_SKEW_SECONDS: int = 0

    # 미처리 웹훅 재처리용 운영자 토큰
    ADMIN_API_TOKEN: Optional[str] = None

    @validator("PADDLE_ENVIRONMENT")
    def validate_paddle_environment(cls, v):
        normalized = (v or "").strip().lower()
        if normalized not in PADDLE_API_URLS:
            raise ValueError("PADDLE_ENVIRONMENT는 sandbox 또는 production이어야 합니다")
        return normalized

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        return (v or "INFO").strip().upper()

    @property
    def paddle_api_base_url(self) -> str:
        """환경에 맞는 Paddle API 기본 URL"""
        if self.PADDLE_API_BASE_URL:
            return self.PADDLE_API_BASE_URL.rstrip("/")
        return PADDLE_API_URLS[self.PADDLE_ENVIRONMENT]

    class Config:
        env_file = tuple(str(path) for path in _ENV_FILES) if _ENV_FILES else None
        case_sensitive = True
        extra = "allow"  # 추가 환경변수 허용


# 전역 설정 인스턴스
settings = Settings()
