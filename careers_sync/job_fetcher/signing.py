from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Union

SIGNATURE_PREFIX = "sha256="


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def generate_signature(payload: Union[str, bytes], secret: str) -> str:
    digest = hmac.new(_as_bytes(secret), _as_bytes(payload), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: Union[str, bytes], signature: Optional[str], secret: str) -> bool:
    """Constant-time check of a ``sha256=<hex>`` signature."""

    if not signature or not secret:
        return False
    return hmac.compare_digest(signature.strip(), generate_signature(payload, secret))
