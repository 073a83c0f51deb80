"""
App Store Server API 响应模型

Apple 的响应结构会独立演进，这里的解析尽量宽松：
- 未知字段忽略
- 缺失字段取默认值
- 类型不对的标量字段当作缺失（None），不抛异常

文档: https://developer.apple.com/documentation/appstoreserverapi/statusresponse
"""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def _to_int(v: Any) -> int | None:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v)
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            return None
    return None


def _to_str(v: Any) -> str | None:
    if isinstance(v, str):
        return v
    if isinstance(v, int | float) and not isinstance(v, bool):
        return str(v)
    return None


def _to_dict_list(v: Any) -> list[dict[str, Any]]:
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, dict)]


LenientInt = Annotated[int | None, BeforeValidator(_to_int)]
LenientStr = Annotated[str | None, BeforeValidator(_to_str)]


class AppleModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TransactionPayload(AppleModel):
    """signedTransactionInfo 解码后的内容（只保留用到的字段）"""

    product_id: LenientStr = None
    purchase_date: LenientInt = None  # 毫秒时间戳
    expires_date: LenientInt = None  # 毫秒时间戳
    original_transaction_id: LenientStr = None
    transaction_id: LenientStr = None
    environment: LenientStr = None
    type: LenientStr = None


class RenewalPayload(AppleModel):
    """signedRenewalInfo 解码后的内容"""

    grace_period_expires_date: LenientInt = None  # 毫秒时间戳
    auto_renew_status: LenientInt = None
    auto_renew_product_id: LenientStr = None
    product_id: LenientStr = None


class LastTransaction(AppleModel):
    original_transaction_id: LenientStr = None
    status: LenientInt = None
    signed_transaction_info: LenientStr = None
    signed_renewal_info: LenientStr = None


class SubscriptionGroup(AppleModel):
    subscription_group_identifier: LenientStr = None
    last_transactions: Annotated[list[LastTransaction], BeforeValidator(_to_dict_list)] = []


class StatusResponse(AppleModel):
    """GET /inApps/v1/subscriptions/{transactionId} 的响应"""

    environment: LenientStr = None
    bundle_id: LenientStr = None
    app_apple_id: LenientInt = None
    data: Annotated[list[SubscriptionGroup], BeforeValidator(_to_dict_list)] = []

    @classmethod
    def parse_lenient(cls, obj: Any) -> StatusResponse:
        if isinstance(obj, StatusResponse):
            return obj
        if not isinstance(obj, dict):
            return cls()
        return cls.model_validate(obj)
