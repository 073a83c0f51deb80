"""
用户 JWT 工具

线上的 token 由外部认证服务签发，这里只负责验签参数；
create_access_token 用于本地调试和测试时签发同格式的 token。
"""
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from app.core.config import settings

ALGORITHM = "HS256"


def create_access_token(subject: str | Any, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"exp": expire, "sub": str(subject), "aud": settings.AUTH_JWT_AUDIENCE}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt
