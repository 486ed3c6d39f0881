from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from supabase import Client
import logging

from core.responses import AuthenticationException

logger = logging.getLogger(__name__)


class AuthService:
    """Supabase 세션 토큰 검증 (결제 API 사용자 식별용)"""

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client
        self.logger = logging.getLogger(self.__class__.__name__)

    async def verify_auth(self, credentials: HTTPAuthorizationCredentials):
        """JWT 토큰 검증"""
        try:
            return await self._verify_token_internal(credentials)
        except AuthenticationException:
            raise HTTPException(status_code=401, detail="유효하지 않은 토큰입니다.")
        except Exception as e:
            self.logger.error(f"인증 실패: {e}")
            raise HTTPException(status_code=401, detail="인증에 실패했습니다.")

    async def _verify_token_internal(self, credentials: HTTPAuthorizationCredentials):
        """내부 토큰 검증 로직"""
        try:
            response = self.supabase.auth.get_user(credentials.credentials)

            if response is None or response.user is None:
                raise AuthenticationException("유효하지 않은 토큰입니다")

            return response.user

        except AuthenticationException:
            raise
        except Exception as e:
            self.logger.error(f"토큰 검증 중 오류: {e}")
            raise AuthenticationException("인증 처리 중 오류가 발생했습니다")
