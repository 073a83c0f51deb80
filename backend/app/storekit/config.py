"""
Apple 配置对象

启动时从 Settings 构造一次，之后作为参数传给签名器、客户端和校验服务。
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, SecretStr

from app.core.config import Settings

PRODUCTION_BASE_URL = "https://api.storekit.itunes.apple.com"
SANDBOX_BASE_URL = "https://api.storekit-sandbox.itunes.apple.com"
APP_STORE_AUDIENCE = "appstoreconnect-v1"


class AppStoreConfig(BaseModel):
    """
    App Store Server API 配置

    字段说明：
    - issuer_id / key_id / private_key: App Store Connect 的 API 凭证
    - bundle_id: 写入 JWT 的 bid（可选）
    - sandbox_only: 只请求 sandbox
    - dev_mode: 跳过 Apple 校验（只允许本地环境，见 Settings）
    - timeout_seconds: 单次 HTTP 请求超时
    - deadline_seconds: production + sandbox 两次请求合计的截止时间
    - token_ttl_seconds: JWT 有效期（Apple 上限 60 分钟）
    """

    model_config = ConfigDict(frozen=True)

    issuer_id: str | None = None
    key_id: str | None = None
    private_key: SecretStr | None = None
    bundle_id: str | None = None
    sandbox_only: bool = False
    dev_mode: bool = False
    timeout_seconds: float = 10.0
    deadline_seconds: float = 25.0
    token_ttl_seconds: int = 1800
    production_base_url: str = PRODUCTION_BASE_URL
    sandbox_base_url: str = SANDBOX_BASE_URL
    fallback_plan_code: str | None = "premium_monthly"

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.issuer_id
            and self.key_id
            and self.private_key is not None
            and self.private_key.get_secret_value().strip()
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AppStoreConfig:
        return cls(
            issuer_id=settings.APPLE_ISSUER_ID,
            key_id=settings.APPLE_KEY_ID,
            private_key=settings.APPLE_PRIVATE_KEY,
            bundle_id=settings.APPLE_BUNDLE_ID,
            sandbox_only=settings.APPLE_SANDBOX,
            dev_mode=settings.IAP_DEV_MODE,
            timeout_seconds=settings.APPLE_API_TIMEOUT_SECONDS,
            deadline_seconds=settings.IAP_VERIFY_DEADLINE_SECONDS,
            fallback_plan_code=settings.IAP_FALLBACK_PLAN_CODE or None,
        )
