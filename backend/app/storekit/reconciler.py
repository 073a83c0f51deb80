"""
订阅状态计算

纯函数：相同的输入永远得到相同的输出，不读取当前时间。
所有时间都是毫秒时间戳，0 或 None 视为缺失。

    is_active = expires > now
    in_grace  = not is_active and grace > now
    in_trial  = is_active and trial_days > 0 and purchase + trial_days 天 > now
    status    = in_trial ? in_trial : is_active ? active : in_grace ? in_grace : expired
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from app.enums import SubscriptionStatus

DAY_MS = 86_400_000


@dataclass(frozen=True)
class Reconciliation:
    status: SubscriptionStatus
    period_start: datetime
    period_end: datetime


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def reconcile(
    *,
    now_ms: int,
    purchase_date_ms: int | None,
    expires_date_ms: int | None,
    grace_expires_date_ms: int | None,
    trial_days: int | None,
) -> Reconciliation:
    is_active = bool(expires_date_ms) and expires_date_ms > now_ms  # type: ignore[operator]
    in_grace = (
        not is_active
        and bool(grace_expires_date_ms)
        and grace_expires_date_ms > now_ms  # type: ignore[operator]
    )
    in_trial = (
        is_active
        and (trial_days or 0) > 0
        and bool(purchase_date_ms)
        and purchase_date_ms + (trial_days or 0) * DAY_MS > now_ms  # type: ignore[operator]
    )

    if in_trial:
        status = SubscriptionStatus.in_trial
    elif is_active:
        status = SubscriptionStatus.active
    elif in_grace:
        status = SubscriptionStatus.in_grace
    else:
        status = SubscriptionStatus.expired

    start_ms = purchase_date_ms or now_ms
    if is_active:
        end_ms = expires_date_ms
    else:
        end_ms = grace_expires_date_ms or expires_date_ms or now_ms

    return Reconciliation(
        status=status,
        period_start=ms_to_datetime(start_ms),
        period_end=ms_to_datetime(end_ms),  # type: ignore[arg-type]
    )
