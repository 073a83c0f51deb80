"""
FastAPI 依赖注入模块

提供可复用的依赖项，用于路由处理函数中。

关键概念：
- Depends: FastAPI 的依赖注入装饰器
- Generator: 用于创建需要清理的资源（如数据库会话）
- HTTPBearer: 从 Authorization: Bearer <token> 中提取 token
"""
import uuid
from collections.abc import Generator
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from app.api.errors import AuthError
from app.api.schemas import TokenPayload
from app.core import security
from app.core.config import settings
from app.core.db import engine
from app.services.eligibility import EligibilityGate, ProfileEligibilityGate
from app.services.iap_service import SubscriptionVerifier, get_subscription_verifier

# auto_error=False：缺少 token 时由 get_current_user_id 统一返回 401
reusable_oauth2 = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    获取数据库会话（依赖注入）

    使用 yield 确保会话在请求结束后自动关闭。

    Yields:
        Session: 数据库会话对象
    """
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
TokenDep = Annotated[HTTPAuthorizationCredentials | None, Depends(reusable_oauth2)]


def get_current_user_id(token: TokenDep) -> uuid.UUID:
    """
    获取当前用户 ID（依赖注入）

    token 由外部认证服务签发（HS256，aud 为 AUTH_JWT_AUDIENCE），
    这里只校验签名并取出 sub，不查询用户表。

    Raises:
        AuthError: token 缺失、无效或 sub 不是 UUID
    """
    if token is None:
        raise AuthError("Missing bearer token")
    try:
        payload = jwt.decode(
            token.credentials,
            settings.SECRET_KEY,
            algorithms=[security.ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
        token_data = TokenPayload(**payload)
    except (InvalidTokenError, ValidationError):
        raise AuthError("Could not validate credentials")
    if not token_data.sub:
        raise AuthError("Could not validate credentials")
    try:
        return uuid.UUID(token_data.sub)
    except ValueError:
        raise AuthError("Could not validate credentials")


CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]


def get_eligibility_gate(session: SessionDep) -> EligibilityGate:
    return ProfileEligibilityGate(session)


EligibilityDep = Annotated[EligibilityGate, Depends(get_eligibility_gate)]
VerifierDep = Annotated[SubscriptionVerifier, Depends(get_subscription_verifier)]
