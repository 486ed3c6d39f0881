"""
전역 예외 처리 미들웨어
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

from core.responses import error_response, BusinessException

logger = logging.getLogger(__name__)

async def business_exception_handler(request: Request, exc: BusinessException):
    """비즈니스 예외 처리기"""
    if exc.status_code >= 500:
        logger.error(f"Business exception ({exc.error_code}) on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"Business exception ({exc.error_code}) on {request.url.path}: {exc.message}")

    body = error_response(
        message=exc.message,
        error_code=exc.error_code
    ).model_dump()
    # 웹훅 공급자는 {error} 필드로 실패를 판단
    body["error"] = exc.message

    return JSONResponse(status_code=exc.status_code, content=body)

async def http_exception_handler_custom(request: Request, exc: HTTPException):
    """HTTP 예외 처리기"""
    logger.warning(f"HTTP exception: {exc.detail}")

    body = error_response(
        message=str(exc.detail),
        error_code="HTTP_ERROR"
    ).model_dump()
    body["error"] = str(exc.detail)

    return JSONResponse(status_code=exc.status_code, content=body)

async def general_exception_handler(request: Request, exc: Exception):
    """일반 예외 처리기"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    body = error_response(
        message="내부 서버 오류가 발생했습니다",
        error_code="INTERNAL_SERVER_ERROR"
    ).model_dump()
    body["error"] = "Internal server error"

    return JSONResponse(status_code=500, content=body)

def setup_exception_handlers(app):
    """예외 처리기 설정"""
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler_custom)
    app.add_exception_handler(Exception, general_exception_handler)
