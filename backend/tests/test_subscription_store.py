from __future__ import annotations

import threading
import uuid

from sqlmodel import Session, SQLModel, create_engine, select

from app import crud
from app.core.db import init_db
from app.enums import SubscriptionStatus
from app.models import Entitlement, PlanEntitlement, SubscriptionPlan, UserSubscription
from app.storekit.reconciler import ms_to_datetime
from tests.utils import create_plan, create_profile

NOW = 1_700_000_000_000


def _upsert(session: Session, user_id, plan_id, status, snapshot, end_ms=NOW):
    crud.upsert_user_subscription(
        session=session,
        user_id=user_id,
        plan_id=plan_id,
        status=status,
        period_start=ms_to_datetime(NOW - 1000),
        period_end=ms_to_datetime(end_ms),
        snapshot=snapshot,
        original_transaction_id="1000",
    )


def test_upsert_creates_then_overwrites(db):
    user = create_profile(db)
    plan = create_plan(db)

    _upsert(db, user.id, plan.id, SubscriptionStatus.in_trial, {"n": 1}, NOW + 10)
    first = crud.get_user_subscription(session=db, user_id=user.id, plan_id=plan.id)
    assert first is not None
    row_id = first.id

    _upsert(db, user.id, plan.id, SubscriptionStatus.expired, {"n": 2}, NOW - 10)
    db.expire_all()

    rows = db.exec(select(UserSubscription)).all()
    assert len(rows) == 1
    assert rows[0].id == row_id
    assert rows[0].status == SubscriptionStatus.expired
    assert rows[0].last_receipt_snapshot == {"n": 2}
    assert rows[0].provider_original_transaction_id == "1000"


def test_upsert_is_per_user_and_plan(db):
    user = create_profile(db)
    other = create_profile(db)
    plan = create_plan(db)
    yearly = create_plan(db, code="premium_yearly", product_id="yearly")

    _upsert(db, user.id, plan.id, SubscriptionStatus.active, {})
    _upsert(db, user.id, yearly.id, SubscriptionStatus.active, {})
    _upsert(db, other.id, plan.id, SubscriptionStatus.active, {})

    assert len(crud.list_user_subscriptions(session=db, user_id=user.id)) == 2
    assert len(crud.list_user_subscriptions(session=db, user_id=other.id)) == 1


def test_concurrent_upserts_leave_one_consistent_row(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'store.db'}", connect_args={"timeout": 30})
    SQLModel.metadata.create_all(engine)
    user_id, plan_id = uuid.uuid4(), uuid.uuid4()
    writes = {
        "a": (SubscriptionStatus.active, {"writer": "a"}),
        "b": (SubscriptionStatus.expired, {"writer": "b"}),
    }

    for _ in range(5):
        barrier = threading.Barrier(len(writes))
        errors: list[BaseException] = []

        def _write(name: str) -> None:
            status, snapshot = writes[name]
            try:
                with Session(engine) as session:
                    barrier.wait()
                    _upsert(session, user_id, plan_id, status, snapshot)
            except BaseException as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=_write, args=(name,)) for name in writes]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with Session(engine) as session:
            rows = session.exec(select(UserSubscription)).all()
        assert len(rows) == 1
        writer = rows[0].last_receipt_snapshot["writer"]
        assert rows[0].status == writes[writer][0]

    engine.dispose()


def test_resolve_plan_prefers_exact_product(db):
    create_plan(db, code="premium_monthly", product_id=None)
    exact = create_plan(db, code="premium_special", product_id="special")

    plan = crud.resolve_plan(session=db, product_id="special", fallback_code="premium_monthly")

    assert plan is not None
    assert plan.id == exact.id


def test_resolve_plan_falls_back_to_code(db):
    fallback = create_plan(db, code="premium_monthly", product_id=None)

    plan = crud.resolve_plan(session=db, product_id="unknown", fallback_code="premium_monthly")

    assert plan is not None
    assert plan.id == fallback.id
    assert crud.resolve_plan(session=db, product_id="unknown", fallback_code=None) is None


def test_resolve_plan_ignores_inactive(db):
    create_plan(db, code="premium_monthly", product_id="monthly", active=False)

    assert crud.resolve_plan(session=db, product_id="monthly", fallback_code="premium_monthly") is None


def test_entitlement_keys(db):
    plan = create_plan(db, entitlements=("b_feature", "a_feature"))

    assert crud.entitlement_keys(session=db, plan_ids=[plan.id]) == ["a_feature", "b_feature"]
    assert crud.entitlement_keys(session=db, plan_ids=[]) == []


def test_seed_data_is_idempotent(db):
    first = init_db(db, product_id="com.example.premium.monthly")
    second = init_db(db, product_id="ignored.once.set")

    assert first.id == second.id
    assert second.product_id == "com.example.premium.monthly"
    assert second.trial_days == 7
    assert second.price_cents == 500
    assert len(db.exec(select(SubscriptionPlan)).all()) == 1
    assert len(db.exec(select(Entitlement)).all()) == 3
    assert len(db.exec(select(PlanEntitlement)).all()) == 3
    assert crud.entitlement_keys(session=db, plan_ids=[first.id]) == [
        "ai_chat_unlimited",
        "ai_comment_unlimited",
        "private_room_create",
    ]
