# storefront/api/utils/paystack.py
"""
Thin Paystack client.

Verification never raises for gateway-side problems: the caller gets either
`Verified` or `Failed` and decides what a failure means for the checkout.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

log = logging.getLogger(__name__)


class PaystackError(Exception):
    def __init__(self, message: str, status_code: int | None = None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class Verified:
    reference: str
    amount: int  # lowest denomination
    currency: str
    transaction_id: str
    payload: dict = field(default_factory=dict)

    ok = True


@dataclass(frozen=True)
class Failed:
    reason: str
    status_code: int | None = None
    details: dict | None = None

    ok = False


def _secret_key() -> str:
    secret = current_app.config.get("PAYSTACK_SECRET_KEY")
    if not secret:
        raise PaystackError("PAYSTACK_SECRET_KEY is not configured")
    return secret


def _request_json(method: str, path: str, body: dict | None = None) -> tuple[int, dict]:
    """Call the API and return (http_status, parsed_json). Raises PaystackError."""
    base = (current_app.config.get("PAYSTACK_BASE_URL") or "https://api.paystack.co").rstrip("/")
    url = f"{base}{path}"
    data = json.dumps(body).encode("utf-8") if body is not None else None
    req = urllib.request.Request(
        url,
        data=data,
        method=method,
        headers={
            "Authorization": f"Bearer {_secret_key()}",
            "Content-Type": "application/json",
        },
    )
    timeout = current_app.config.get("PAYSTACK_TIMEOUT", 20)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status, raw = resp.status, resp.read()
    except urllib.error.HTTPError as e:
        # 4xx/5xx still carry a JSON envelope with a message
        status, raw = e.code, e.read()
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise PaystackError(f"Paystack unreachable: {e}") from e

    text = raw.decode("utf-8", errors="replace") if raw else ""
    try:
        parsed = json.loads(text)
    except ValueError:
        log.error("Paystack non-JSON response url=%s status=%s body=%r", url, status, text[:500])
        raise PaystackError(
            "Paystack returned an unexpected response. Check PAYSTACK_SECRET_KEY, network, or Paystack status.",
            status,
            {"rawResponse": text[:500]},
        )
    if not isinstance(parsed, dict):
        raise PaystackError("Paystack response is not a JSON object", status)
    return status, parsed


def _lowest_unit_amount(raw) -> int | None:
    """Whole kobo/cents or None; fractional or non-numeric amounts are not truncated."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    if not value.is_finite() or value != value.to_integral_value():
        return None
    return int(value)


def parse_verification(http_status: int, envelope: dict, reference: str) -> Verified | Failed:
    """Turn the verify envelope into a tagged result."""
    if not (200 <= http_status < 300) or not envelope.get("status"):
        return Failed(
            f"Failed to verify transaction: {envelope.get('message') or 'unknown error'}",
            http_status,
            envelope,
        )

    data = envelope.get("data")
    if not isinstance(data, dict):
        return Failed("Verification response has no transaction data", http_status, envelope)

    tx_status = data.get("status")
    if tx_status != "success":
        return Failed(f"Transaction not successful (status={tx_status})", http_status, data)

    amount = _lowest_unit_amount(data.get("amount"))
    if amount is None:
        return Failed("Verification response has no valid amount", http_status, data)

    currency = str(data.get("currency") or "").upper()
    if not currency:
        return Failed("Verification response has no currency", http_status, data)

    return Verified(
        reference=str(data.get("reference") or reference),
        amount=amount,
        currency=currency,
        transaction_id=str(data.get("id")) if data.get("id") is not None else "",
        payload=data,
    )


def verify_transaction(reference: str) -> Verified | Failed:
    path = "/transaction/verify/" + urllib.parse.quote(reference, safe="")
    try:
        http_status, envelope = _request_json("GET", path)
    except PaystackError as e:
        return Failed(str(e), e.status_code, e.details)
    return parse_verification(http_status, envelope, reference)


def to_lowest_denomination(amount) -> int:
    """Major units -> kobo/cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_webhook_signature(raw_body: bytes, signature: str) -> bool:
    """Paystack signs webhooks with HMAC-SHA512 of the raw body using the secret key."""
    if not signature:
        return False
    digest = hmac.new(_secret_key().encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(digest, signature.strip())
