"""Thin client for the payment processor's REST API.

The processor speaks form-encoded requests authenticated with a bearer
secret key and signs its webhooks with ``t=<unix>,v1=<hmac>`` headers.
"""
import hashlib
import hmac
import time
from decimal import Decimal, ROUND_HALF_UP

import requests
from flask import current_app

from wikiclase.errors import BadRequest, PaymentGatewayError, Unauthorized


def to_minor_units(amount):
    """Convert a major-unit amount (e.g. 19.99) into cents (1999)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _headers():
    return {"Authorization": f"Bearer {current_app.config.get('PAYMENT_SECRET_KEY')}"}


def _post(path, payload):
    base_url = current_app.config.get("PAYMENT_API_BASE", "").rstrip("/")
    timeout = current_app.config.get("PAYMENT_TIMEOUT", 10)

    try:
        response = requests.post(f"{base_url}{path}", data=payload, headers=_headers(), timeout=timeout)
    except requests.exceptions.RequestException as e:
        current_app.logger.error(f"Payment processor unreachable on {path}: {e}")
        raise PaymentGatewayError("Could not reach the payment processor. Try again.") from e

    data = response.json() if response.content else {}
    if response.status_code >= 400:
        message = (data.get("error") or {}).get("message") or response.text
        current_app.logger.error(f"Payment processor rejected {path} ({response.status_code}): {message}")
        raise PaymentGatewayError(f"Payment processor error: {message}")

    return data


def create_checkout_session(course, user, success_url, cancel_url):
    payload = {
        "mode": "payment",
        "payment_method_types[0]": "card",
        "line_items[0][quantity]": 1,
        "line_items[0][price_data][currency]": course.currency.lower(),
        "line_items[0][price_data][unit_amount]": to_minor_units(course.price),
        "line_items[0][price_data][product_data][name]": course.title,
        "line_items[0][price_data][product_data][description]": (course.description or course.title)[:500],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": str(user.id),
        "customer_email": user.email,
        "metadata[course_id]": str(course.id),
        "metadata[user_id]": str(user.id),
    }
    if course.image_url:
        payload["line_items[0][price_data][product_data][images][0]"] = course.image_url

    return _post("/checkout/sessions", payload)


def create_refund(payment_intent_id, amount, reason=None):
    payload = {
        "payment_intent": payment_intent_id,
        "amount": to_minor_units(amount),
        "reason": reason or "requested_by_customer",
    }
    return _post("/refunds", payload)


def compute_signature(payload, timestamp, secret):
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_webhook_signature(payload, header, secret=None, tolerance=None, now=None):
    """Check a ``Stripe-Signature`` style header against the raw request body."""
    secret = secret or current_app.config.get("PAYMENT_WEBHOOK_SECRET")
    if tolerance is None:
        tolerance = current_app.config.get("PAYMENT_SIGNATURE_TOLERANCE", 300)

    if not secret:
        raise BadRequest("Payment webhook secret is not configured")
    if not header:
        raise Unauthorized("Payment signature is required")

    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        raise Unauthorized("Invalid payment signature")

    try:
        age = (now or time.time()) - int(timestamp)
    except ValueError:
        raise Unauthorized("Invalid payment signature")

    if tolerance and abs(age) > tolerance:
        raise Unauthorized("Payment signature expired")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise Unauthorized("Invalid payment signature")

    return True
