"""
App Store Server API 客户端

文档: https://developer.apple.com/documentation/appstoreserverapi/get-all-subscription-statuses

客户端提交的 originalTransactionId 可能来自 TestFlight / 沙盒购买，
而服务端事先并不知道该查哪个环境。做法是先请求 production，
根据响应判断是否应该改查 sandbox。Apple 没有为这种判断提供正式约定，
下面的信号是按经验整理的、有优先级的列表，响应格式变化时可能需要调整。
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import anyio
import httpx

from app.api.errors import AuthError, MalformedResponseError, UpstreamError
from app.enums import StoreEnvironment
from app.storekit.config import AppStoreConfig
from app.storekit.signer import AppStoreTokenSigner

logger = logging.getLogger(__name__)

STATUS_PATH = "/inApps/v1/subscriptions/{transaction_id}"

# 旧版 verifyReceipt 的 "沙盒收据发到了生产环境" 状态码
SANDBOX_RECEIPT_STATUS = 21007

_MAX_BODY_IN_ERROR = 500


@dataclass
class FetchAttempt:
    """一次 HTTP 请求的结果"""

    environment: StoreEnvironment
    status_code: int
    body: Any = None  # 解析后的 JSON，无法解析时为 None
    raw: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def summary(self) -> tuple[str, int | None, str]:
        return (self.environment.value, self.status_code, self.raw[:_MAX_BODY_IN_ERROR])


@dataclass(frozen=True)
class StatusFetchResult:
    payload: dict[str, Any]
    environment: StoreEnvironment
    fallback_reason: str | None = None
    attempts: list[FetchAttempt] = field(default_factory=list)


# ============================================================
# 沙盒回退信号
# ============================================================


def _mentions_sandbox(value: Any) -> bool:
    if value is None or isinstance(value, dict | list):
        return False
    return "sandbox" in str(value).lower()


def _body_field(attempt: FetchAttempt, *names: str) -> Any:
    if not isinstance(attempt.body, dict):
        return None
    for name in names:
        value = attempt.body.get(name)
        if value not in (None, ""):
            return value
    return None


def _error_code(attempt: FetchAttempt) -> Any:
    return _body_field(attempt, "errorCode", "errorCodeString", "errorReason")


def _error_message(attempt: FetchAttempt) -> Any:
    return _body_field(attempt, "errorMessage", "message", "statusMessage")


def _walk_environment_values(obj: Any, depth: int = 0) -> Iterator[Any]:
    if depth > 8:
        return
    if isinstance(obj, dict):
        for key, value in obj.items():
            if key == "environment":
                yield value
            yield from _walk_environment_values(value, depth + 1)
    elif isinstance(obj, list):
        for item in obj:
            yield from _walk_environment_values(item, depth + 1)


def signal_status_21007(attempt: FetchAttempt) -> str | None:
    status = _body_field(attempt, "status")
    try:
        if status is not None and int(status) == SANDBOX_RECEIPT_STATUS:
            return "status_21007"
    except (TypeError, ValueError):
        pass
    return None


def signal_environment_hint(attempt: FetchAttempt) -> str | None:
    if any(_mentions_sandbox(v) for v in _walk_environment_values(attempt.body)):
        return "env_hint"
    return None


def signal_not_found(attempt: FetchAttempt) -> str | None:
    if attempt.status_code == 404:
        return str(_error_code(attempt) or "not_found")
    return None


def signal_conflict_sandbox_code(attempt: FetchAttempt) -> str | None:
    code = _error_code(attempt)
    if attempt.status_code == 409 and _mentions_sandbox(code):
        return str(code)
    return None


def signal_bad_request_sandbox_message(attempt: FetchAttempt) -> str | None:
    if attempt.status_code == 400 and (
        _mentions_sandbox(_error_message(attempt)) or _mentions_sandbox(_error_code(attempt))
    ):
        return "bad_request_sandbox_hint"
    return None


SandboxSignal = Callable[[FetchAttempt], str | None]

# 按优先级排列，第一个命中的信号作为回退原因
SANDBOX_SIGNALS: tuple[SandboxSignal, ...] = (
    signal_status_21007,
    signal_environment_hint,
    signal_not_found,
    signal_conflict_sandbox_code,
    signal_bad_request_sandbox_message,
)


def sandbox_fallback_reason(attempt: FetchAttempt) -> str | None:
    """
    判断 production 的响应是否应该改查 sandbox

    401/403 是凭证问题，不是环境问题，永远不回退。

    Returns:
        回退原因，不需要回退时为 None
    """
    if attempt.status_code in (401, 403):
        return None
    for signal in SANDBOX_SIGNALS:
        reason = signal(attempt)
        if reason:
            return reason
    return None


# ============================================================
# 客户端
# ============================================================


class AppStoreClient:
    """App Store Server API 客户端"""

    def __init__(
        self,
        config: AppStoreConfig,
        signer: AppStoreTokenSigner,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Apple 配置
            signer: token 签发器
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self.config = config
        self.signer = signer
        self._transport = transport

    def _url(self, environment: StoreEnvironment, original_transaction_id: str) -> str:
        base = (
            self.config.sandbox_base_url
            if environment == StoreEnvironment.sandbox
            else self.config.production_base_url
        )
        path = STATUS_PATH.format(transaction_id=quote(original_transaction_id, safe=""))
        return f"{base.rstrip('/')}{path}"

    async def get_all_subscription_statuses(self, original_transaction_id: str) -> StatusFetchResult:
        """
        获取订阅状态（production 优先，必要时回退 sandbox）

        两次请求合计受 deadline_seconds 限制；请求被取消时正在进行的
        HTTP 调用会一起取消。

        Raises:
            ConfigurationError / CryptoError: 签发 token 失败（不会发出请求）
            AuthError: Apple 拒绝我们的凭证（401/403）
            UpstreamError: 请求失败或超时
            MalformedResponseError: 成功响应无法解析
        """
        headers = {"Authorization": f"Bearer {self.signer.token()}"}
        try:
            with anyio.fail_after(self.config.deadline_seconds):
                async with httpx.AsyncClient(
                    timeout=self.config.timeout_seconds, transport=self._transport
                ) as client:
                    return await self._resolve(client, original_transaction_id, headers)
        except TimeoutError as e:
            logger.warning("App Store status lookup exceeded deadline")
            raise UpstreamError("App Store request timed out", error="UPSTREAM_TIMEOUT") from e

    async def _resolve(
        self,
        client: httpx.AsyncClient,
        original_transaction_id: str,
        headers: dict[str, str],
    ) -> StatusFetchResult:
        if self.config.sandbox_only:
            attempt = await self._fetch(client, StoreEnvironment.sandbox, original_transaction_id, headers)
            self._raise_for_status(attempt)
            return StatusFetchResult(
                payload=_require_json_object(attempt),
                environment=StoreEnvironment.sandbox,
                fallback_reason="configured",
                attempts=[attempt],
            )

        prod = await self._fetch(client, StoreEnvironment.production, original_transaction_id, headers)

        reason = sandbox_fallback_reason(prod)
        if reason:
            logger.info(f"Retrying App Store lookup against sandbox: {reason} (production HTTP {prod.status_code})")
            sbx = await self._fetch(client, StoreEnvironment.sandbox, original_transaction_id, headers)
            if sbx.status_code in (401, 403):
                self._raise_for_status(sbx)
            if not sbx.ok:
                logger.error(
                    f"App Store lookup failed in both environments: production={prod.status_code} sandbox={sbx.status_code}"
                )
                raise UpstreamError(
                    f"App Store API failed: production {prod.status_code}, sandbox {sbx.status_code}",
                    attempts=[prod.summary(), sbx.summary()],
                )
            return StatusFetchResult(
                payload=_require_json_object(sbx),
                environment=StoreEnvironment.sandbox,
                fallback_reason=reason,
                attempts=[prod, sbx],
            )

        self._raise_for_status(prod)
        return StatusFetchResult(
            payload=_require_json_object(prod),
            environment=StoreEnvironment.production,
            attempts=[prod],
        )

    def _raise_for_status(self, attempt: FetchAttempt) -> None:
        if attempt.ok:
            return
        if attempt.status_code in (401, 403):
            # 缓存的 token 可能已失效，下次重新签发
            self.signer.invalidate()
            logger.error(f"App Store API rejected credentials: HTTP {attempt.status_code}")
            raise AuthError(
                "App Store API rejected credentials",
                error="APPLE_AUTH_FAILED",
                status_code=500,
            )
        logger.error(f"App Store API error: {attempt.environment.value} HTTP {attempt.status_code}")
        raise UpstreamError(
            f"App Store API failed: {attempt.environment.value} {attempt.status_code}",
            attempts=[attempt.summary()],
        )

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        environment: StoreEnvironment,
        original_transaction_id: str,
        headers: dict[str, str],
    ) -> FetchAttempt:
        url = self._url(environment, original_transaction_id)
        try:
            response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"App Store request timed out: {environment.value}")
            raise UpstreamError("App Store request timed out", error="UPSTREAM_TIMEOUT") from e
        except httpx.HTTPError as e:
            logger.warning(f"App Store request failed: {environment.value} {type(e).__name__}")
            raise UpstreamError("App Store request failed") from e

        raw = response.text
        body: Any = None
        if raw:
            try:
                body = response.json()
            except ValueError:
                body = None
        return FetchAttempt(environment=environment, status_code=response.status_code, body=body, raw=raw)


def _require_json_object(attempt: FetchAttempt) -> dict[str, Any]:
    if not isinstance(attempt.body, dict):
        raise MalformedResponseError(
            f"App Store API returned a non-JSON body ({attempt.environment.value} HTTP {attempt.status_code})"
        )
    return attempt.body
