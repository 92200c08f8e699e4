# checkout/utils/signing.py
import hashlib
import hmac
from typing import Mapping
from urllib.parse import urlencode


def canonical_query(params: Mapping[str, object]) -> str:
    """Key-sorted, form-encoded `k=v&k=v` string used as signing input."""
    return urlencode(sorted((key, str(value)) for key, value in params.items()))


def sign(params: Mapping[str, object], secret: str) -> str:
    data = canonical_query(params).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), data, hashlib.sha512).hexdigest()


def verify(params: Mapping[str, object], signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    expected = sign(params, secret)
    return hmac.compare_digest(expected, signature.lower())
