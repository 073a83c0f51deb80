"""
应用内购买订阅校验服务

流程：资格检查 -> 套餐解析 -> 查询 Apple 订阅状态 -> 解码内层交易
     -> 选出目标交易 -> 计算状态 -> upsert 订阅记录

只有在选出交易并算出状态之后才会写库，失败时不会留下半条记录。

文档: https://developer.apple.com/documentation/appstoreserverapi
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app import crud
from app.api.errors import AppError, NotFoundError, ValidationError, subscription_not_eligible
from app.core.config import settings
from app.enums import Platform, StoreEnvironment, SubscriptionStatus
from app.models import SubscriptionPlan
from app.services.eligibility import EligibilityGate
from app.storekit.client import AppStoreClient
from app.storekit.config import AppStoreConfig
from app.storekit.reconciler import DAY_MS, reconcile
from app.storekit.selector import select_latest_transaction
from app.storekit.signer import AppStoreTokenSigner

logger = logging.getLogger(__name__)

DEV_MODE_PERIOD_DAYS = 30


@dataclass(frozen=True)
class VerificationResult:
    plan_id: uuid.UUID
    status: SubscriptionStatus
    environment: StoreEnvironment
    period_start: datetime
    period_end: datetime
    fallback_reason: str | None = None


def anonymize_user_id(user_id: uuid.UUID | str | None) -> str:
    """日志中用的用户标识：SHA-256 的前 6 个字节"""
    if not user_id:
        return "anon"
    return hashlib.sha256(str(user_id).encode("utf-8")).hexdigest()[:12]


def log_verification_event(stage: str, **fields: Any) -> None:
    event = {"stage": stage, **fields}
    logger.info(f"[iap.verify] {json.dumps(event, default=str)}", extra={"event": event})


class SubscriptionVerifier:
    """订阅校验服务"""

    def __init__(
        self,
        config: AppStoreConfig,
        *,
        client: AppStoreClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            config: Apple 配置
            client: App Store 客户端（默认按 config 创建）
            clock: 当前时间（秒），测试时可替换
        """
        self.config = config
        self.client = client or AppStoreClient(config, AppStoreTokenSigner(config))
        self._clock = clock

    async def verify(
        self,
        *,
        session: Session,
        eligibility: EligibilityGate,
        user_id: uuid.UUID,
        platform: Platform,
        product_id: str,
        receipt: str,
    ) -> VerificationResult:
        """
        校验客户端提交的购买并写入订阅记录

        Args:
            session: 数据库会话
            eligibility: 订阅资格检查
            user_id: 当前用户
            platform: 购买平台
            product_id: 客户端购买的商品 ID
            receipt: Apple 为 originalTransactionId

        Raises:
            ForbiddenError: 无订阅资格
            NotFoundError: 套餐或交易不存在
            ValidationError: 平台尚未支持
            其余见 AppStoreClient.get_all_subscription_statuses
        """
        user_ref = anonymize_user_id(user_id)
        log_verification_event("start", userRef=user_ref, platform=platform.value, productId=product_id)
        try:
            if not await run_in_threadpool(eligibility.is_eligible, user_id):
                log_verification_event("eligibility_blocked", userRef=user_ref)
                raise subscription_not_eligible()

            plan = await run_in_threadpool(
                crud.resolve_plan,
                session=session,
                product_id=product_id,
                fallback_code=self.config.fallback_plan_code,
            )
            if plan is None:
                log_verification_event("plan_not_found", userRef=user_ref, productId=product_id)
                raise NotFoundError("Plan not found", error="PLAN_NOT_FOUND")

            if platform != Platform.apple:
                raise ValidationError(
                    f"{platform.value} verification not implemented", error="PLATFORM_NOT_SUPPORTED"
                )
            return await self._verify_apple(
                session=session, user_id=user_id, user_ref=user_ref, plan=plan, original_transaction_id=receipt
            )
        except AppError as e:
            if e.status_code >= 500:
                log_verification_event("error", userRef=user_ref, error=e.error)
            raise

    async def _verify_apple(
        self,
        *,
        session: Session,
        user_id: uuid.UUID,
        user_ref: str,
        plan: SubscriptionPlan,
        original_transaction_id: str,
    ) -> VerificationResult:
        fallback_reason: str | None
        if self.config.dev_mode:
            now_ms = int(self._clock() * 1000)
            environment = StoreEnvironment.sandbox
            fallback_reason = "dev_mode"
            product_id = plan.product_id
            purchase_date: int | None = now_ms
            expires_date: int | None = now_ms + DEV_MODE_PERIOD_DAYS * DAY_MS
            grace_expires_date: int | None = None
            logger.warning("IAP dev mode: skipping App Store verification")
        else:
            fetched = await self.client.get_all_subscription_statuses(original_transaction_id)
            environment = fetched.environment
            fallback_reason = fetched.fallback_reason
            log_verification_event(
                "apple_fetch", userRef=user_ref, environment=environment.value, fallbackReason=fallback_reason
            )

            best = select_latest_transaction(fetched.payload, plan.product_id or None)
            if best is None:
                log_verification_event("apple_no_subscription", userRef=user_ref, environment=environment.value)
                raise NotFoundError("No subscription found for product", error="SUBSCRIPTION_NOT_FOUND")
            product_id = best.product_id
            purchase_date = best.purchase_date
            expires_date = best.expires_date or None
            grace_expires_date = best.grace_period_expires_date
            now_ms = int(self._clock() * 1000)

        result = reconcile(
            now_ms=now_ms,
            purchase_date_ms=purchase_date,
            expires_date_ms=expires_date,
            grace_expires_date_ms=grace_expires_date,
            trial_days=plan.trial_days,
        )
        snapshot = {
            "platform": Platform.apple.value,
            "originalTransactionId": original_transaction_id,
            "productId": product_id,
            "expiresDate": expires_date,
            "gracePeriodExpiresDate": grace_expires_date,
            "environment": environment.value,
        }
        await run_in_threadpool(
            crud.upsert_user_subscription,
            session=session,
            user_id=user_id,
            plan_id=plan.id,
            status=result.status,
            period_start=result.period_start,
            period_end=result.period_end,
            snapshot=snapshot,
            original_transaction_id=original_transaction_id,
        )
        log_verification_event(
            "apple_upsert", userRef=user_ref, environment=environment.value, status=result.status.value
        )
        return VerificationResult(
            plan_id=plan.id,
            status=result.status,
            environment=environment,
            period_start=result.period_start,
            period_end=result.period_end,
            fallback_reason=fallback_reason,
        )


# 全局校验服务实例（持有 token 缓存）
_subscription_verifier: SubscriptionVerifier | None = None


def init_subscription_verifier(config: AppStoreConfig) -> SubscriptionVerifier:
    """
    初始化全局校验服务

    Args:
        config: Apple 配置

    Returns:
        校验服务实例
    """
    global _subscription_verifier
    _subscription_verifier = SubscriptionVerifier(config)
    return _subscription_verifier


def get_subscription_verifier() -> SubscriptionVerifier:
    """
    获取全局校验服务（未初始化时按当前配置创建）
    """
    if _subscription_verifier is None:
        return init_subscription_verifier(AppStoreConfig.from_settings(settings))
    return _subscription_verifier
