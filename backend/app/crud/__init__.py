"""CRUD 操作模块"""
from .plan import entitlement_keys, list_active as list_active_plans, resolve_plan
from .subscription import (
    get_user_subscription,
    list_user_subscriptions,
    upsert_user_subscription,
)

__all__ = [
    "entitlement_keys",
    "list_active_plans",
    "resolve_plan",
    "get_user_subscription",
    "list_user_subscriptions",
    "upsert_user_subscription",
]
