"""
应用内购买路由模块

- POST /iap/verify: 校验购买并写入订阅记录
- GET /iap/plans: 在售套餐
- GET /iap/me: 我的订阅与已解锁功能
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUserId, EligibilityDep, SessionDep, VerifierDep
from app.api.schemas import (
    ApiEnvelope,
    MySubscriptionOut,
    MySubscriptionsData,
    PlanOut,
    PlansData,
    VerifyRequest,
    VerifyResponse,
)
from app.enums import SubscriptionStatus
from app.models import UserSubscription, utc_now

router = APIRouter(prefix="/iap", tags=["iap"])


def _unlocks(sub: UserSubscription, now: datetime) -> bool:
    """
    订阅在 now 时刻是否仍解锁功能

    已过期状态，或周期结束时间已过（客户端未重新校验）的记录都不算。
    """
    if sub.status == SubscriptionStatus.expired or sub.current_period_end is None:
        return False
    end = sub.current_period_end
    if end.tzinfo is None:
        # SQLite 读回的时间不带时区，存储时均为 UTC
        end = end.replace(tzinfo=timezone.utc)
    return end > now


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    body: VerifyRequest,
    user_id: CurrentUserId,
    session: SessionDep,
    verifier: VerifierDep,
    eligibility: EligibilityDep,
) -> VerifyResponse:
    result = await verifier.verify(
        session=session,
        eligibility=eligibility,
        user_id=user_id,
        platform=body.platform_enum,
        product_id=body.product_id,
        receipt=body.receipt,
    )
    return VerifyResponse(status=result.status, environment=result.environment)


@router.get("/plans", response_model=ApiEnvelope)
def plans(session: SessionDep) -> ApiEnvelope:
    rows = crud.list_active_plans(session=session)
    return ApiEnvelope(
        data=PlansData(data=[PlanOut.model_validate(r) for r in rows], count=len(rows))
    )


@router.get("/me", response_model=ApiEnvelope)
def me(user_id: CurrentUserId, session: SessionDep) -> ApiEnvelope:
    subs = crud.list_user_subscriptions(session=session, user_id=user_id)
    now = utc_now()
    live = [s.plan_id for s in subs if _unlocks(s, now)]
    return ApiEnvelope(
        data=MySubscriptionsData(
            subscriptions=[MySubscriptionOut.model_validate(s) for s in subs],
            entitlements=crud.entitlement_keys(session=session, plan_ids=live),
        )
    )
