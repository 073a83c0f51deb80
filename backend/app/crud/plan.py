"""套餐 CRUD 操作"""
import uuid

from sqlmodel import Session, col, select

from app.models import Entitlement, PlanEntitlement, SubscriptionPlan


def get_active_by_product_id(*, session: Session, product_id: str) -> SubscriptionPlan | None:
    """根据商店商品 ID 查询在售套餐"""
    statement = select(SubscriptionPlan).where(
        SubscriptionPlan.product_id == product_id, SubscriptionPlan.active == True  # noqa: E712
    )
    return session.exec(statement).first()


def get_active_by_code(*, session: Session, code: str) -> SubscriptionPlan | None:
    """根据套餐代码查询在售套餐"""
    statement = select(SubscriptionPlan).where(
        SubscriptionPlan.code == code, SubscriptionPlan.active == True  # noqa: E712
    )
    return session.exec(statement).first()


def resolve_plan(
    *, session: Session, product_id: str, fallback_code: str | None = None
) -> SubscriptionPlan | None:
    """
    解析客户端提交的商品对应的套餐

    先按 product_id 精确匹配；套餐的 product_id 还没配置时按 fallback_code 匹配。
    """
    plan = get_active_by_product_id(session=session, product_id=product_id)
    if plan is None and fallback_code:
        plan = get_active_by_code(session=session, code=fallback_code)
    return plan


def list_active(*, session: Session) -> list[SubscriptionPlan]:
    """在售套餐列表"""
    statement = (
        select(SubscriptionPlan)
        .where(SubscriptionPlan.active == True)  # noqa: E712
        .order_by(col(SubscriptionPlan.price_cents))
    )
    return list(session.exec(statement).all())


def entitlement_keys(*, session: Session, plan_ids: list[uuid.UUID]) -> list[str]:
    """套餐解锁的功能标识（去重、排序）"""
    if not plan_ids:
        return []
    statement = (
        select(Entitlement.key)
        .join(PlanEntitlement, col(PlanEntitlement.entitlement_id) == col(Entitlement.id))
        .where(col(PlanEntitlement.plan_id).in_(plan_ids))
    )
    return sorted(set(session.exec(statement).all()))
