"""
数据库模型定义模块

本模块使用 SQLModel 定义所有数据库表结构。

模型按功能拆分：
- user.py: 用户资料（订阅资格）
- plan.py: 订阅套餐与功能权益
- subscription.py: 用户订阅记录
"""
from sqlmodel import SQLModel

from .base import utc_now
from .plan import Entitlement, PlanEntitlement, SubscriptionPlan
from .subscription import UserSubscription
from .user import UserProfile

__all__ = [
    "SQLModel",
    "utc_now",
    "UserProfile",
    "SubscriptionPlan",
    "Entitlement",
    "PlanEntitlement",
    "UserSubscription",
]
