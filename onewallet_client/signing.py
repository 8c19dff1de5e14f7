"""
OneWallet Client - Request Signing

Every request carries an `Authorization: OW {accessId}:{signature}` header
where the signature is

    BASE64(HMAC-SHA1(METHOD \\n PATH \\n BASE64(SHA1(body)) \\n DATE, secretKey))

The body hash is empty for GET requests and requests without a body. DATE
is the exact string sent in the `Date` header, so it must be captured once
per attempt and used for both.
"""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any

from .utils import RequestSpec, SignedRequest

AUTH_SCHEME = "OW"


def serialize_body(method: str, body: dict[str, Any] | None) -> str | None:
    """
    Render a request body in its wire form.

    Returns:
        Compact JSON text, or None for GET requests and missing bodies.
    """
    if method.upper() == "GET" or body is None:
        return None
    return json.dumps(body, separators=(",", ":"))


def hash_body(content: str) -> str:
    """Base64 encoded SHA-1 digest of the serialized body."""
    return base64.b64encode(hashlib.sha1(content.encode("utf-8")).digest()).decode("ascii")


def hmac_sign(message: str, secret_key: str) -> str:
    """Base64 encoded HMAC-SHA1 of `message` keyed by `secret_key`."""
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha1)
    return base64.b64encode(digest.digest()).decode("ascii")


def string_to_sign(method: str, path: str, body_hash: str, date: str) -> str:
    """Canonical string covered by the signature."""
    return "\n".join([method.upper(), path, body_hash, date])


def sign_content(
    method: str,
    path: str,
    content: str | None,
    date: str,
    secret_key: str,
) -> str:
    """Signature over an already serialized body (None for no body)."""
    body_hash = hash_body(content) if content is not None else ""
    return hmac_sign(string_to_sign(method, path, body_hash, date), secret_key)


def sign(
    method: str,
    path: str,
    body: dict[str, Any] | None,
    date: str,
    secret_key: str,
) -> str:
    """
    Compute the request signature.

    Args:
        method: HTTP method, any case.
        path: URL path including the query string, verbatim.
        body: Request body. Ignored for GET.
        date: The HTTP-date string sent in the Date header.
        secret_key: Provider secret key.

    Returns:
        Base64 signature.
    """
    return sign_content(method, path, serialize_body(method, body), date, secret_key)


def http_date(when: datetime | None = None) -> str:
    """
    Render a timestamp as an RFC 7231 HTTP-date.

    Args:
        when: Timestamp to render. Defaults to now. Naive values are taken as UTC.
    """
    if when is None:
        when = datetime.now(timezone.utc)
    elif when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return format_datetime(when.astimezone(timezone.utc), usegmt=True)


def authorization_header(access_id: str, signature: str) -> str:
    return f"{AUTH_SCHEME} {access_id}:{signature}"


def sign_request(spec: RequestSpec, date: str) -> SignedRequest:
    """
    Build the signed, wire-ready form of a request for one attempt.

    The serialized body is produced once and used both for the body hash
    and as the request content.
    """
    content = serialize_body(spec.method, spec.body)
    signature = sign_content(spec.method, spec.path, content, date, spec.secret_key)

    headers = {
        "Date": date,
        "Authorization": authorization_header(spec.access_id, signature),
    }
    if content is not None:
        headers["Content-Type"] = "application/json"

    return SignedRequest(
        method=spec.method,
        path=spec.path,
        url=spec.url,
        content=content,
        headers=headers,
    )
