from __future__ import annotations

import json
import uuid
from datetime import timedelta
from typing import Any

from sqlmodel import Session

from app.core.security import create_access_token
from app.models import Entitlement, PlanEntitlement, SubscriptionPlan, UserProfile
from app.storekit.jose import b64url_encode

DAY_MS = 86_400_000

PROD_URL = "https://prod.storekit.test"
SANDBOX_URL = "https://sandbox.storekit.test"


def make_jws(payload: dict[str, Any]) -> str:
    header = b64url_encode(json.dumps({"alg": "ES256", "x5c": []}).encode())
    body = b64url_encode(json.dumps(payload).encode())
    return f"{header}.{body}.c2lnbmF0dXJl"


def status_body(
    *transactions: tuple[dict[str, Any], dict[str, Any] | None],
    environment: str = "Production",
) -> dict[str, Any]:
    """Get All Subscription Statuses body with one group per transaction."""
    data = []
    for i, (tx, renewal) in enumerate(transactions):
        item: dict[str, Any] = {
            "originalTransactionId": tx.get("originalTransactionId", "1000"),
            "status": 1,
            "signedTransactionInfo": make_jws(tx),
        }
        if renewal is not None:
            item["signedRenewalInfo"] = make_jws(renewal)
        data.append({"subscriptionGroupIdentifier": f"group-{i}", "lastTransactions": [item]})
    return {"environment": environment, "bundleId": "com.example.app", "data": data}


def auth_headers(user_id: uuid.UUID | str) -> dict[str, str]:
    token = create_access_token(user_id, timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


def create_profile(db: Session, *, verified: bool = True) -> UserProfile:
    profile = UserProfile(maternal_verified=verified)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def create_plan(
    db: Session,
    *,
    code: str = "premium_monthly",
    product_id: str | None = "com.example.premium.monthly",
    trial_days: int = 0,
    active: bool = True,
    entitlements: tuple[str, ...] = (),
) -> SubscriptionPlan:
    plan = SubscriptionPlan(
        code=code,
        display_name="Premium Monthly",
        product_id=product_id,
        price_cents=500,
        currency="JPY",
        trial_days=trial_days,
        active=active,
    )
    db.add(plan)
    db.flush()
    for key in entitlements:
        ent = Entitlement(key=key)
        db.add(ent)
        db.flush()
        db.add(PlanEntitlement(plan_id=plan.id, entitlement_id=ent.id))
    db.commit()
    db.refresh(plan)
    return plan
