import hashlib
import hmac
from typing import Optional, Union

SIGNATURE_PREFIX = "sha256="

def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")

def sign(secret: str, payload: Union[str, bytes]) -> str:
    """Return the X-Hub-Signature-256 header value GitHub would send for payload."""
    mac = hmac.new(_to_bytes(secret), msg=_to_bytes(payload), digestmod=hashlib.sha256)
    return SIGNATURE_PREFIX + mac.hexdigest()

def verify(secret: Optional[str], payload: Union[str, bytes], signature_header: Optional[str]) -> bool:
    """
    Validate a GitHub HMAC SHA256 signature header against the raw payload.

    Fails closed: a missing secret, a missing header or a header without the
    sha256= prefix never validates.
    """
    if not secret or not signature_header:
        return False
    if not signature_header.startswith(SIGNATURE_PREFIX):
        print("[signature] header without sha256= prefix")
        return False

    provided = signature_header[len(SIGNATURE_PREFIX):]
    try:
        mac = hmac.new(_to_bytes(secret), msg=_to_bytes(payload), digestmod=hashlib.sha256)
        expected = mac.hexdigest()
        return hmac.compare_digest(_to_bytes(expected), _to_bytes(provided))
    except Exception as e:
        print(f"[signature] validation error: {type(e).__name__}")
        return False
