from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.storekit.jws import decode_jws_payload
from app.storekit.models import RenewalPayload, StatusResponse, TransactionPayload


@dataclass(frozen=True)
class SelectedTransaction:
    transaction: TransactionPayload
    renewal: RenewalPayload | None
    expires_date: int  # 缺失时为 0

    @property
    def product_id(self) -> str | None:
        return self.transaction.product_id

    @property
    def purchase_date(self) -> int | None:
        return self.transaction.purchase_date

    @property
    def grace_period_expires_date(self) -> int | None:
        return self.renewal.grace_period_expires_date if self.renewal else None


def select_latest_transaction(
    statuses: StatusResponse | dict[str, Any] | None,
    product_id: str | None = None,
) -> SelectedTransaction | None:
    """
    从所有订阅组的 lastTransactions 中选出过期时间最晚的交易

    Args:
        statuses: 订阅状态响应（原始 dict 或已解析的模型）
        product_id: 只考虑该商品；None 表示不过滤

    Returns:
        选中的交易；没有匹配时返回 None

    Raises:
        MalformedResponseError: 某个签名数据无法解码
    """
    best: SelectedTransaction | None = None
    for group in StatusResponse.parse_lenient(statuses).data:
        for item in group.last_transactions:
            if not item.signed_transaction_info:
                continue
            tx = TransactionPayload.model_validate(decode_jws_payload(item.signed_transaction_info))
            if product_id and tx.product_id and tx.product_id != product_id:
                continue
            renewal = (
                RenewalPayload.model_validate(decode_jws_payload(item.signed_renewal_info))
                if item.signed_renewal_info
                else None
            )
            expires = tx.expires_date or 0
            # Strictly greater: the first candidate wins ties.
            if best is None or expires > best.expires_date:
                best = SelectedTransaction(transaction=tx, renewal=renewal, expires_date=expires)
    return best
