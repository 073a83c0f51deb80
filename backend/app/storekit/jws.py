"""
内层 JWS 解码

signedTransactionInfo / signedRenewalInfo 是 Apple 签名的 JWS。
这里只解出中间的 payload，不校验签名和证书链。
"""
from __future__ import annotations

import json
from typing import Any

from app.api.errors import MalformedResponseError
from app.storekit.jose import b64url_decode


def decode_jws_payload(jws: str) -> dict[str, Any]:
    """
    解出 JWS 的 payload（不验签）

    Args:
        jws: header.payload.signature 格式的字符串

    Returns:
        payload 解析后的 dict

    Raises:
        MalformedResponseError: 段数不足、base64 / UTF-8 / JSON 非法，或 payload 不是对象
    """
    if not isinstance(jws, str):
        raise MalformedResponseError("Signed payload is not a string")
    parts = jws.split(".")
    if len(parts) < 2:
        raise MalformedResponseError("Invalid JWS: expected at least two segments")
    try:
        payload = json.loads(b64url_decode(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedResponseError("Invalid JWS payload encoding") from e
    if not isinstance(payload, dict):
        raise MalformedResponseError("Invalid JWS payload: expected a JSON object")
    return payload
