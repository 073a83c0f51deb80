"""
数据库连接模块

管理数据库引擎和会话的创建。
使用 SQLModel 的 create_engine 创建数据库连接池。

重要提示：
- 数据库表结构通过 Alembic 迁移管理，不要在这里创建表
- 确保在使用前导入所有模型（app.models），否则关系可能无法正确初始化
"""
import logging

from sqlmodel import Session, create_engine, select

from app.core.config import settings
from app.enums import PlanPeriod, PlanStore
from app.models import Entitlement, PlanEntitlement, SubscriptionPlan

logger = logging.getLogger(__name__)

engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True)


# 默认套餐与权益
DEFAULT_PLAN = {
    "code": "premium_monthly",
    "display_name": "Premium Monthly",
    "store": PlanStore.shared,
    "product_id": None,
    "price_cents": 500,
    "currency": "JPY",
    "period": PlanPeriod.month,
    "trial_days": 7,
}
DEFAULT_ENTITLEMENTS = {
    "ai_chat_unlimited": "Unlimited AI chat",
    "ai_comment_unlimited": "Unlimited AI comments",
    "private_room_create": "Create private rooms",
}


def init_db(session: Session, *, product_id: str | None = None) -> SubscriptionPlan:
    """
    写入种子数据（幂等）

    创建默认套餐和它解锁的权益；已存在的记录不会被覆盖，
    只有 product_id 为空时才会用参数补上。

    Args:
        session: 数据库会话
        product_id: App Store 中的商品 ID（可选）

    Returns:
        默认套餐
    """
    plan = session.exec(
        select(SubscriptionPlan).where(SubscriptionPlan.code == DEFAULT_PLAN["code"])
    ).first()
    if plan is None:
        plan = SubscriptionPlan(**DEFAULT_PLAN)
        session.add(plan)
        logger.info(f"Created plan {plan.code}")
    if product_id and not plan.product_id:
        plan.product_id = product_id
        session.add(plan)

    for key, description in DEFAULT_ENTITLEMENTS.items():
        ent = session.exec(select(Entitlement).where(Entitlement.key == key)).first()
        if ent is None:
            ent = Entitlement(key=key, description=description)
            session.add(ent)
        session.flush()
        link = session.get(PlanEntitlement, (plan.id, ent.id))
        if link is None:
            session.add(PlanEntitlement(plan_id=plan.id, entitlement_id=ent.id))

    session.commit()
    session.refresh(plan)
    return plan
