import uuid
from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=64)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class EmailRequest(BaseModel):
    email: EmailStr

class TokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)

class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=64)

class RefreshRequest(BaseModel):
    refresh_token: str


# 역할 하나에 대한 권한 묶음 (역할별로 그룹핑, 역할 간 합치지 않음)
class RolePermissions(BaseModel):
    name: str
    permissions: list[str]

# 캐시에 저장되는 권한 정보이자 로그인 응답의 user 필드
class UserInformation(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    roles: list[str]
    permissions: list[RolePermissions]

    def has_permission(self, permission: str) -> bool:
        return any(permission in group.permissions for group in self.permissions)

class LoginResult(BaseModel):
    user: UserInformation
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
