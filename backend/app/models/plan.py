"""
套餐模型模块

定义订阅套餐和套餐解锁的功能（entitlement）。
套餐表对校验流程是只读的，由 initial_data 或运营后台维护。
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlmodel import Field, SQLModel

from app.enums import PlanPeriod, PlanStore

from .base import utc_now


class SubscriptionPlan(SQLModel, table=True):
    """
    订阅套餐模型

    字段说明：
    - id: 主键
    - code: 套餐代码（唯一，如 "premium_monthly"）
    - display_name: 展示名称
    - store: 适用商店（apple / google / shared）
    - product_id: 商店中的商品 ID（未上架前可以为空）
    - price_cents: 价格（最小货币单位，JPY 为 1 日元）
    - currency: 币种
    - period: 计费周期（month / year）
    - trial_days: 试用天数（0 表示无试用）
    - active: 是否在售
    """
    __tablename__ = "subscription_plans"
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    code: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    display_name: str = Field(max_length=128)
    store: PlanStore = Field(
        default=PlanStore.shared, sa_column=Column(String(16), nullable=False)
    )
    product_id: str | None = Field(default=None, max_length=128, index=True)
    price_cents: int = Field(ge=0)
    currency: str = Field(default="JPY", max_length=8)
    period: PlanPeriod = Field(
        default=PlanPeriod.month, sa_column=Column(String(16), nullable=False)
    )
    trial_days: int = Field(default=0)
    active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class Entitlement(SQLModel, table=True):
    """
    功能权益模型

    - key: 功能标识（如 "ai_chat_unlimited"）
    - description: 说明
    """
    __tablename__ = "entitlements"
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    key: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    description: str | None = Field(default=None, max_length=255)


class PlanEntitlement(SQLModel, table=True):
    """套餐与功能权益的多对多关联"""
    __tablename__ = "plan_entitlements"
    plan_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid, ForeignKey("subscription_plans.id", ondelete="CASCADE"), primary_key=True
        )
    )
    entitlement_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid, ForeignKey("entitlements.id", ondelete="CASCADE"), primary_key=True
        )
    )
