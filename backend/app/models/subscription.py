"""
订阅模型模块

定义用户订阅记录的数据库模型。
"""
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlmodel import Field, SQLModel

from app.enums import SubscriptionStatus

from .base import utc_now


class UserSubscription(SQLModel, table=True):
    """
    用户订阅记录模型

    每个 (user_id, plan_id) 只有一条记录：首次校验成功时创建，
    之后每次校验整行覆盖（last write wins）。本模块从不删除记录，
    取消订阅体现为状态随时间变为 in_grace / expired。

    字段说明：
    - id: 主键
    - user_id: 用户 ID（外键）
    - plan_id: 套餐 ID（外键）
    - status: 订阅状态（in_trial / active / in_grace / expired）
    - current_period_start: 当前周期开始时间
    - current_period_end: 当前周期结束时间（Apple 告知的最远边界）
    - canceled_at: 取消时间（预留）
    - provider_original_transaction_id: Apple originalTransactionId
    - last_receipt_snapshot: 最近一次校验的数据快照
    - created_at: 创建时间
    - updated_at: 更新时间
    """
    __tablename__ = "user_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "plan_id", name="uq_user_subscriptions_user_plan"),
    )
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid, ForeignKey("user_profiles.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    plan_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid, ForeignKey("subscription_plans.id", ondelete="RESTRICT"), index=True, nullable=False
        )
    )

    status: SubscriptionStatus = Field(sa_column=Column(String(16), nullable=False))

    current_period_start: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    current_period_end: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    canceled_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    provider_original_transaction_id: str | None = Field(default=None, max_length=64)
    last_receipt_snapshot: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
