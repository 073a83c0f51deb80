"""用户订阅 CRUD 操作"""
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, col, select

from app.enums import SubscriptionStatus
from app.models import UserSubscription, utc_now

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_user_subscription(
    *,
    session: Session,
    user_id: uuid.UUID,
    plan_id: uuid.UUID,
    status: SubscriptionStatus,
    period_start: datetime,
    period_end: datetime,
    snapshot: dict[str, Any],
    original_transaction_id: str | None = None,
) -> None:
    """
    写入订阅记录（按 (user_id, plan_id) upsert）

    单条 INSERT ... ON CONFLICT DO UPDATE，整行覆盖，后写入的生效。
    并发写入由数据库保证原子性，这里不加锁。
    """
    dialect = session.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Upsert is not supported for dialect {dialect!r}")

    now = utc_now()
    values = {
        "status": status.value,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "provider_original_transaction_id": original_transaction_id,
        "last_receipt_snapshot": snapshot,
        "updated_at": now,
    }
    table = UserSubscription.__table__  # type: ignore[attr-defined]
    statement = insert(table).values(
        id=uuid.uuid4(), user_id=user_id, plan_id=plan_id, created_at=now, **values
    )
    statement = statement.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.plan_id],
        set_=values,
    )
    session.exec(statement)  # type: ignore[call-overload]
    session.commit()


def get_user_subscription(
    *, session: Session, user_id: uuid.UUID, plan_id: uuid.UUID
) -> UserSubscription | None:
    statement = select(UserSubscription).where(
        UserSubscription.user_id == user_id, UserSubscription.plan_id == plan_id
    )
    return session.exec(statement).first()


def list_user_subscriptions(*, session: Session, user_id: uuid.UUID) -> list[UserSubscription]:
    statement = (
        select(UserSubscription)
        .where(UserSubscription.user_id == user_id)
        .order_by(col(UserSubscription.current_period_end).desc())
    )
    return list(session.exec(statement).all())
