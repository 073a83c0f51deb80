"""
API 请求/响应数据模型（Schema）

定义所有 API 接口的请求和响应数据结构。
使用 Pydantic 进行数据验证和序列化。

关键概念：
- BaseModel: Pydantic 的模型基类，用于数据验证
- Field: 字段验证器，定义字段的约束（长度、范围等）
- 这些模型不是数据库表，只用于 API 数据交换
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.enums import Platform, PlanPeriod, PlanStore, StoreEnvironment, SubscriptionStatus

# ============================================================
# 通用响应模型
# ============================================================


class TokenPayload(BaseModel):
    """
    JWT Token 载荷模型

    sub 为认证服务中的用户 ID（UUID 字符串）。
    """
    sub: str | None = None


class ApiEnvelope(BaseModel):
    """
    API 统一响应格式

    - code: 状态码（0 表示成功，非 0 表示错误）
    - message: 消息（成功时为 "success"，错误时为错误描述）
    - data: 数据（成功时返回业务数据，错误时为 None）

    示例响应：
        {"code": 0, "message": "success", "data": {...}}
    """
    code: int = 0
    message: str = "success"
    data: Any | None = None


# ============================================================
# 订阅校验
# ============================================================


class VerifyRequest(BaseModel):
    """
    订阅校验请求模型

    - platform: 购买平台
    - productId: 客户端购买的商品 ID
    - receipt: Apple 为 originalTransactionId
    """
    model_config = ConfigDict(populate_by_name=True)

    platform: Literal["apple", "google"]
    product_id: str = Field(alias="productId", min_length=1, max_length=128)
    receipt: str = Field(min_length=1, max_length=4096)

    @property
    def platform_enum(self) -> Platform:
        return Platform(self.platform)


class VerifyResponse(BaseModel):
    """
    订阅校验响应模型

    示例：{"ok": true, "status": "active", "environment": "production"}
    """
    ok: bool = True
    status: SubscriptionStatus
    environment: StoreEnvironment


# ============================================================
# 套餐与我的订阅
# ============================================================


class PlanOut(BaseModel):
    """在售套餐"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    display_name: str
    store: PlanStore
    product_id: str | None = None
    price_cents: int
    currency: str
    period: PlanPeriod
    trial_days: int


class PlansData(BaseModel):
    data: list[PlanOut]
    count: int


class MySubscriptionOut(BaseModel):
    """用户的一条订阅记录"""
    model_config = ConfigDict(from_attributes=True)

    plan_id: uuid.UUID
    status: SubscriptionStatus
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    provider_original_transaction_id: str | None = None
    updated_at: datetime


class MySubscriptionsData(BaseModel):
    """
    我的订阅响应模型

    entitlements 只包含未过期订阅所解锁的功能标识。
    """
    subscriptions: list[MySubscriptionOut]
    entitlements: list[str]
