"""
JOSE 编码工具

- base64url 编解码（无填充）
- ECDSA 签名从 DER 格式转为 JWS 使用的定长 r||s 格式

签名库输出的是 ASN.1 DER：
    SEQUENCE { INTEGER r, INTEGER s }
DER 整数是有符号的：最高位为 1 时前面会补一个 0x00（33 字节），
数值较小时会更短（如 31 字节）。JWS (RFC 7518 3.4) 要求 r、s 各自
左补零到曲线宽度（P-256 为 32 字节）后直接拼接。
"""
from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from app.api.errors import CryptoError

P256_WIDTH = 32


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """
    解码 base64url 字符串（允许缺省填充）

    Raises:
        ValueError: 字符串不是合法的 base64url
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64url data: {e}") from e


def der_to_jose(der: bytes, width: int = P256_WIDTH) -> bytes:
    """
    DER ECDSA 签名 -> 定长 r||s

    Args:
        der: DER 编码的签名
        width: 每个整数的字节宽度（P-256 为 32）

    Returns:
        长度为 2 * width 的字节串

    Raises:
        CryptoError: DER 格式错误，或整数超出宽度
    """
    try:
        r, s = decode_dss_signature(der)
    except ValueError as e:
        raise CryptoError("Invalid DER signature") from e
    try:
        # to_bytes 会丢掉 DER 的符号填充字节，并在左侧补零
        return r.to_bytes(width, "big") + s.to_bytes(width, "big")
    except OverflowError as e:
        raise CryptoError(f"Signature integer does not fit in {width} bytes") from e
