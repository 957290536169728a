"""
auth.py

인증(Authentication) API 모음.

이 파일은 회원 가입, 이메일 인증, 로그인, 토큰 재발급,
비밀번호 재설정과 같은 인증 흐름의 HTTP 진입점을 담당한다.
실제 규칙과 트랜잭션 처리는 app.services.auth.AuthService 에 위임한다.

주요 기능:
- 회원 가입 / 인증 메일 재발송 / 이메일 인증
- 로그인 (Access + Refresh Token 발급, 권한 정보 반환)
- Refresh Token 기반 Access Token 재발급
- 비밀번호 재설정 요청 / 토큰 확인 / 재설정
- 현재 사용자 권한 정보 조회

설계 원칙:
- Access / Refresh Token 모두 응답 바디로 반환 (클라이언트가 보관)
- 존재하지 않는 이메일에 대한 재발송 / 재설정 요청은 항상 성공 응답
  (계정 존재 여부를 노출하지 않음)
- 에러는 AppError 핸들러가 {"detail", "errors"} 형태로 변환

관련 파일:
- app.services.auth        : 인증 흐름 비즈니스 로직
- app.core.deps            : DB 세션 / AuthService / 현재 사용자 의존성
- app.schemas.auth         : 인증 관련 요청/응답

"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_auth_service, get_current_user, get_db
from app.schemas.auth import (
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRequest,
    TokenResponse,
    UserInformation,
)
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


"""
회원 가입 API

- 이미 인증까지 마친 이메일 / 인증 대기 중인 이메일은 서로 다른 메시지로 거부
- 사용자 + 이메일 인증 토큰을 함께 생성하고 인증 메일 발송 요청

"""

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    user_id = auth.register(db, data)
    return {
        "message": "Registration successful, please check your email to verify your account",
        "data": {
            "id": str(user_id),
            "email": data.email,
        },
    }


# 인증 메일 재발송
@router.post("/resend-verification")
def resend_verification(
    data: EmailRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.resend_verification(db, data.email)
    return {"message": "If the email is registered, a verification email has been sent"}


# 이메일 인증
@router.post("/verify-email")
def verify_email(
    data: TokenRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.verify_email(db, data.token)
    return {"message": "Email verified"}


"""
로그인 API

- 이메일 / 비밀번호 인증
- 이메일 미인증, 비활성 계정은 로그인 불가
- 권한 정보(user) + Access Token + Refresh Token 반환

"""

@router.post("/login")
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.login(db, data)
    return {"data": result.model_dump(mode="json")}


"""
Access Token 재발급 API

- Refresh Token 서명 / 만료 / 타입 검증
- 사용자가 삭제 / 비활성화됐으면 재발급 거부

"""

@router.post("/refresh")
def refresh(
    data: RefreshRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    access = auth.refresh(db, data.refresh_token)
    return {"data": TokenResponse(access_token=access).model_dump()}


# 비밀번호 재설정 메일 요청
@router.post("/forgot-password")
def forgot_password(
    data: EmailRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.forgot_password(db, data.email)
    return {"message": "If the email is registered, a password reset email has been sent"}


# 재설정 토큰 유효성 확인 (프론트에서 폼을 보여주기 전에 호출)
@router.post("/reset-password/validate")
def validate_reset_token(
    data: TokenRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    return {"data": {"valid": auth.is_reset_token_valid(db, data.token)}}


@router.post("/reset-password")
def reset_password(
    data: ResetPasswordRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.reset_password(db, data.token, data.password)
    return {"message": "Password has been reset"}


# 현재 로그인한 사용자의 권한 정보
@router.get("/me")
def me(current_user: UserInformation = Depends(get_current_user)):
    return {"data": current_user.model_dump(mode="json")}
