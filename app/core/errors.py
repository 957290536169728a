"""
errors.py

서비스 계층에서 사용하는 도메인 예외 정의 및 FastAPI 예외 핸들러.

예외 종류:
- ValidationError   : 필드 단위 비즈니스 규칙 위반 (422)
                      (중복 이메일, 잘못된 자격 증명, 미인증 이메일, 비활성 계정, 무효 토큰)
- NotFoundError     : 참조한 엔티티 없음 (404)
- UnauthorizedError : 권한 정보 조회 거부 / 인증 실패 (401)
- ForbiddenError    : 필요한 permission 없음 (403)

설계 원칙:
- 서비스 / 저장소 함수는 HTTPException 대신 이 예외들을 발생시킨다
- 호출 측은 예외 클래스(=에러 종류)로 분기한다
- 응답 형태는 {"detail": message, "errors": {field: [message]}} 로 통일

"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "AppError":
        return cls(message, {field: [message]})


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.errors},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
