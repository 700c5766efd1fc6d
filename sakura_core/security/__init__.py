"""入站请求安全校验（Ed25519 签名）。"""

from sakura_core.security.verify import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    hex_to_bytes,
    require_valid_signature,
    verify,
    verify_request,
)

__all__ = [
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "hex_to_bytes",
    "require_valid_signature",
    "verify",
    "verify_request",
]
