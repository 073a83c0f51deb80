"""
App Store Server API 鉴权 JWT 签发

文档: https://developer.apple.com/documentation/appstoreserverapi/generating-json-web-tokens-for-api-requests

生成的 token 会缓存，在过期前 60 秒内重新签发。
"""
from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.api.errors import ConfigurationError, CryptoError
from app.storekit.config import APP_STORE_AUDIENCE, AppStoreConfig
from app.storekit.jose import P256_WIDTH, b64url_encode, der_to_jose

logger = logging.getLogger(__name__)

# 剩余有效期小于该值时重新签发
REFRESH_MARGIN_SECONDS = 60


def load_private_key(pem: str) -> ec.EllipticCurvePrivateKey:
    """
    加载 PEM 格式的 P-256 私钥

    环境变量里的私钥经常把换行写成字面量 "\\n"，这里先还原。

    Raises:
        CryptoError: 私钥无法解析或不是 P-256
    """
    text = pem.strip().replace("\\n", "\n")
    try:
        key = serialization.load_pem_private_key(text.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError("Apple private key could not be loaded") from e
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise CryptoError("Apple private key must be an EC P-256 key")
    return key


class AppStoreTokenSigner:
    """App Store Server API 的 ES256 token 签发器"""

    def __init__(self, config: AppStoreConfig, *, clock: Callable[[], float] = time.time) -> None:
        self.config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._key: ec.EllipticCurvePrivateKey | None = None
        self._token: str | None = None
        self._expires_at = 0

    def token(self) -> str:
        """
        获取有效的 token（优先使用缓存）

        Raises:
            ConfigurationError: 缺少 issuer id / key id / 私钥
            CryptoError: 私钥格式错误
        """
        with self._lock:
            now = int(self._clock())
            if self._token is not None and self._expires_at - REFRESH_MARGIN_SECONDS > now:
                return self._token
            self._token = self._sign(now)
            self._expires_at = now + self.config.token_ttl_seconds
            logger.debug(f"Issued App Store API token valid for {self.config.token_ttl_seconds}s")
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0

    def _signing_key(self) -> ec.EllipticCurvePrivateKey:
        if self._key is None:
            if self.config.private_key is None:
                raise ConfigurationError("Apple private key not configured", error="APPLE_NOT_CONFIGURED")
            self._key = load_private_key(self.config.private_key.get_secret_value())
        return self._key

    def _sign(self, now: int) -> str:
        cfg = self.config
        if not cfg.has_credentials:
            raise ConfigurationError("Apple credentials not configured", error="APPLE_NOT_CONFIGURED")

        header = {"alg": "ES256", "kid": cfg.key_id, "typ": "JWT"}
        claims: dict[str, Any] = {
            "iss": cfg.issuer_id,
            "iat": now,
            "exp": now + cfg.token_ttl_seconds,
            "aud": APP_STORE_AUDIENCE,
        }
        if cfg.bundle_id:
            claims["bid"] = cfg.bundle_id

        signing_input = f"{_b64url_json(header)}.{_b64url_json(claims)}"
        der = self._signing_key().sign(signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))
        signature = der_to_jose(der, P256_WIDTH)
        return f"{signing_input}.{b64url_encode(signature)}"


def _b64url_json(obj: dict[str, Any]) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))
