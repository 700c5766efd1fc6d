"""入站 webhook 签名校验。

平台对 ``timestamp + body``（直接拼接，不做哈希）做 Ed25519 签名，
并把十六进制签名与时间戳放在请求头中。这里的所有函数都是纯函数：
没有共享可变状态，可以并发、重复调用；任何异常输入都返回 False，
绝不因为输入畸形而放行。
"""

import string
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from sakura_core.domain.exceptions import AuthenticationError
from sakura_core.domain.models import SignedRequest


SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"

PUBLIC_KEY_SIZE = 32
SIGNATURE_SIZE = 64

_HEX_DIGITS = frozenset(string.hexdigits)


def hex_to_bytes(value: str) -> bytes:
    """把十六进制字符串按两位一组解码为字节，永不抛异常。

    - 空串得到空字节串；"01ff" 得到 b"\\x01\\xff"。
    - 长度为奇数时，最后一个单独的十六进制位按一位数解码。
    - 遇到非十六进制字符即停止，返回已解码的前缀。

    截断或多出来的字节会让后续的长度检查/验签失败，从而保证 fail closed。
    """

    out = bytearray()
    for i in range(0, len(value), 2):
        group = value[i:i + 2]
        if not all(ch in _HEX_DIGITS for ch in group):
            break
        out.append(int(group, 16))
    return bytes(out)


def verify(
    public_key_hex: Optional[str],
    signature_hex: Optional[str],
    timestamp: Optional[str],
    body: bytes,
) -> bool:
    """校验一次请求的签名，签名有效时返回 True。"""

    if not public_key_hex or not signature_hex or not timestamp:
        return False

    key_bytes = hex_to_bytes(public_key_hex)
    signature = hex_to_bytes(signature_hex)
    if len(key_bytes) != PUBLIC_KEY_SIZE or len(signature) != SIGNATURE_SIZE:
        return False

    try:
        key = Ed25519PublicKey.from_public_bytes(key_bytes)
        key.verify(signature, timestamp.encode("utf-8") + bytes(body))
    except (InvalidSignature, ValueError):
        return False
    return True


def verify_request(req: SignedRequest) -> bool:
    return verify(req.public_key_hex, req.signature_hex, req.timestamp, req.raw_body)


def require_valid_signature(req: SignedRequest) -> None:
    """签名无效时抛出 AuthenticationError，调用方不得再解析请求体。"""

    if not verify_request(req):
        raise AuthenticationError()
