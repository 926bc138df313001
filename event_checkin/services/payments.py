"""
Razorpay order creation and payment-signature verification for paid tickets.

Razorpay signs a completed checkout with HMAC-SHA256 over
``"{order_id}|{payment_id}"`` keyed by the account's key secret; the hex digest
arrives as ``razorpay_signature``.
"""
from __future__ import annotations
import hashlib
import hmac
import logging
import math
import time
from typing import Any, Dict

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from ..core.config import Settings
from ..models import PaymentStatus, Registration

logger = logging.getLogger(__name__)

INVALID_AMOUNT_MESSAGE = "Invalid amount. Amount must be greater than 0."

class PaymentConfigError(RuntimeError):
    pass

class PaymentGatewayError(RuntimeError):
    def __init__(self, status_code: int, details: str):
        super().__init__(details)
        self.status_code = status_code
        self.details = details

def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()

def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = payment_signature(order_id, payment_id, secret)
    # bytes comparison; str compare_digest rejects non-ASCII input
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))

class RazorpayClient:
    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        if not settings.razorpay_configured:
            raise PaymentConfigError("Razorpay credentials are not configured")
        self._key_id = settings.razorpay_key_id
        self._secret = settings.razorpay_secret
        self._base_url = settings.razorpay_base_url.rstrip("/")
        self._transport = transport

    @property
    def secret(self) -> str:
        return self._secret

    async def create_order(self, *, amount: float, currency: str = "INR", receipt: str | None = None) -> Dict[str, Any]:
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValueError(INVALID_AMOUNT_MESSAGE)
        payload = {
            "amount": int(round(amount)),
            "currency": currency,
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
        }
        logger.info(f"Creating Razorpay order: amount={payload['amount']} currency={currency} receipt={payload['receipt']}")
        async with httpx.AsyncClient(transport=self._transport, auth=(self._key_id, self._secret)) as client:
            r = await client.post(f"{self._base_url}/orders", json=payload, timeout=10.0)
        try:
            data = r.json()
        except ValueError:
            data = {}
        if r.status_code >= 400:
            details = (data.get("error") or {}).get("description") or "Unknown error"
            logger.error(f"Razorpay order creation failed ({r.status_code}): {details}")
            raise PaymentGatewayError(r.status_code, details)
        logger.info(f"Razorpay order created: {data.get('id')}")
        return {
            "order_id": data["id"],
            "amount": data["amount"],
            "currency": data["currency"],
            "status": data["status"],
            "receipt": data.get("receipt"),
        }

async def mark_registration_paid(db: AsyncSession, *, order_id: str, payment_id: str, signature: str) -> int:
    """Record a verified payment on every registration carrying the order id."""
    try:
        result = await db.execute(
            update(Registration)
            .where(Registration.payment_order_id == order_id)
            .values(
                payment_status=PaymentStatus.SUCCESS.value,
                payment_provider="razorpay",
                payment_id=payment_id,
                payment_signature=signature,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    return result.rowcount or 0
