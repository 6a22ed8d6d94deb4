"""Request canonicalization and HMAC signing.

Every request carries a ``Signature`` header: the base64 HMAC-SHA256 of a
canonical JSON document ``{"content": body, "path": endpoint, "query": qs}``
keyed with the partner's consumer key. The server recomputes the same value,
so the byte layout produced here has to match the reference JavaScript SDK:

* object keys anywhere in the document are emitted in one global order, the
  sorted set of every key name that appears at any depth;
* the query string is form-encoded in assembly order and never re-sorted;
* the consumer key goes through ``encodeURI`` escaping before use.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import math
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, quote_plus

from pydantic import SecretStr

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.models import RequestDescriptor, SigningMaterial


# Characters JavaScript's encodeURI leaves alone on top of quote()'s unreserved set.
ENCODE_URI_SAFE = ";,/?:@&=+$!*'()#"


def _utf16_order(key: str) -> bytes:
    # Array.prototype.sort compares UTF-16 code units, not code points.
    return key.encode("utf-16-be", "surrogatepass")


def collect_keys(value: Any) -> set[str]:
    keys: set[str] = set()
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SnapTradeError(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"Object keys must be strings, got {type(key).__name__}: {key!r}",
                )
            keys.add(key)
            keys |= collect_keys(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            keys |= collect_keys(item)
    return keys


def _reorder(value: Any, rank: dict[str, int]) -> Any:
    if isinstance(value, Mapping):
        ordered = sorted(value.items(), key=lambda kv: rank[kv[0]])
        return {key: _reorder(item, rank) for key, item in ordered}
    if isinstance(value, (list, tuple)):
        return [_reorder(item, rank) for item in value]
    return value


def canonical_json(value: Any) -> str:
    order = sorted(collect_keys(value), key=_utf16_order)
    rank = {key: index for index, key in enumerate(order)}
    try:
        return json.dumps(_reorder(value, rank), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SnapTradeError(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"Request body is not JSON-serializable: {exc}",
        ) from exc


def _js_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_js_string(item) for item in value)
    return str(value)


def _form_encode(text: str) -> str:
    # URLSearchParams keeps only alphanumerics and *-._ unescaped.
    return quote_plus(text, safe="*").replace("~", "%7E")


def canonical_query(params: Mapping[str, Any]) -> str:
    pairs = [
        f"{_form_encode(str(key))}={_form_encode(_js_string(value))}"
        for key, value in params.items()
        if value is not None
    ]
    return "&".join(pairs)


def signing_content(body: Any, path: str, query: str) -> str:
    return canonical_json({"content": body, "path": path, "query": query})


def derive_signing_key(consumer_key: str | SecretStr) -> bytes:
    raw = consumer_key.get_secret_value() if isinstance(consumer_key, SecretStr) else consumer_key
    return quote(raw, safe=ENCODE_URI_SAFE).encode("utf-8")


def sign(content: str, consumer_key: str | SecretStr) -> str:
    digest = hmac.new(derive_signing_key(consumer_key), content.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def sign_request(descriptor: RequestDescriptor, query: str, consumer_key: str | SecretStr) -> str:
    """Sign ``descriptor`` given the exact query string that goes on the wire."""
    material = SigningMaterial.from_descriptor(descriptor, query)
    return sign(canonical_json(material.as_signing_object()), consumer_key)
