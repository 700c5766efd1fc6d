from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
import pytest

from sakura_core.domain.exceptions import AuthenticationError
from sakura_core.domain.models import SignedRequest
from sakura_core.security.verify import hex_to_bytes, require_valid_signature, verify, verify_request


# 平台文档示例中生成的一组真实签名：空请求体
REFERENCE_PUBLIC_KEY = "cab6f2a127d35f663090a241582b13accee49c0ba46d6b35e6634ee05cc4e5d6"
REFERENCE_SIGNATURE = (
    "013dfed0ed000925c29071d5f83fc046ec029f97758c45fe972f525052f1ce34"
    "2ae7da1f1344f15c223be98bce0e0911af7f779a605f6cb7b8cee19594b70809"
)
REFERENCE_TIMESTAMP = "1716632144"


def _keypair():
    private_key = Ed25519PrivateKey.generate()
    public_hex = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()
    return private_key, public_hex


def test_hex_to_bytes():
    assert hex_to_bytes("") == b""
    assert hex_to_bytes("01ff") == bytes([1, 255])
    assert hex_to_bytes("01FF") == bytes([1, 255])


def test_hex_to_bytes_malformed_never_raises():
    assert hex_to_bytes("abc") == bytes([0xAB, 0x0C])
    assert hex_to_bytes("01zz02") == bytes([1])
    assert hex_to_bytes("invalid") == b""


def test_verify_reference_vector():
    assert verify(REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE, REFERENCE_TIMESTAMP, b"")
    assert not verify(REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE, REFERENCE_TIMESTAMP, b"{}")
    assert not verify(REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE, "1716632145", b"")


def test_verify_generated_signature():
    private_key, public_hex = _keypair()
    body = b'{"type": 1, "id": "1"}'
    timestamp = "1700000000"
    signature = private_key.sign(timestamp.encode() + body).hex()

    assert verify(public_hex, signature, timestamp, body)
    # 改动任意一个字节都必须失败
    assert not verify(public_hex, signature, timestamp, body + b" ")
    assert not verify(public_hex, signature, "1700000001", body)

    _, other_public_hex = _keypair()
    assert not verify(other_public_hex, signature, timestamp, body)


@pytest.mark.parametrize(
    "public_key, signature, timestamp",
    [
        (REFERENCE_PUBLIC_KEY, None, REFERENCE_TIMESTAMP),
        (REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE, None),
        (REFERENCE_PUBLIC_KEY, "", REFERENCE_TIMESTAMP),
        (REFERENCE_PUBLIC_KEY, "invalid", "invalid"),
        (REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE[:-1], REFERENCE_TIMESTAMP),
        (REFERENCE_PUBLIC_KEY, REFERENCE_SIGNATURE + "00", REFERENCE_TIMESTAMP),
        (REFERENCE_PUBLIC_KEY[:-2] + "zz", REFERENCE_SIGNATURE, REFERENCE_TIMESTAMP),
        ("", REFERENCE_SIGNATURE, REFERENCE_TIMESTAMP),
        (None, REFERENCE_SIGNATURE, REFERENCE_TIMESTAMP),
    ],
)
def test_verify_fails_closed(public_key, signature, timestamp):
    assert verify(public_key, signature, timestamp, b"") is False


def test_require_valid_signature():
    ok = SignedRequest(
        raw_body=b"",
        signature_hex=REFERENCE_SIGNATURE,
        timestamp=REFERENCE_TIMESTAMP,
        public_key_hex=REFERENCE_PUBLIC_KEY,
    )
    assert verify_request(ok)
    require_valid_signature(ok)

    bad = SignedRequest(raw_body=b"", signature_hex=None, timestamp=None, public_key_hex=REFERENCE_PUBLIC_KEY)
    with pytest.raises(AuthenticationError) as exc_info:
        require_valid_signature(bad)
    assert exc_info.value.http_status == 401
