"""
用户资料模型模块

用户认证由外部服务负责，这里只保存订阅资格检查需要的字段。
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from .base import utc_now


class UserProfile(SQLModel, table=True):
    """
    用户资料模型

    id 与认证服务签发的 JWT 中的 sub 一致。

    字段说明：
    - id: 用户 ID（UUID）
    - maternal_verified: 是否已通过认证徽章审核（订阅资格）
    - created_at: 创建时间
    - updated_at: 更新时间
    """
    __tablename__ = "user_profiles"
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    maternal_verified: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
