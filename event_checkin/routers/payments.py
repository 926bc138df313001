from __future__ import annotations
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db
from ..core.config import Settings, get_settings
from ..schemas import OrderCreate, OrderRead, PaymentVerify, PaymentVerifyResult
from ..services.payments import (
    INVALID_AMOUNT_MESSAGE,
    PaymentConfigError,
    PaymentGatewayError,
    RazorpayClient,
    mark_registration_paid,
    verify_payment_signature,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])

CONFIG_ERROR_MESSAGE = "Payment gateway configuration error. Please contact support."

def get_razorpay(settings: Settings = Depends(get_settings)) -> RazorpayClient | None:
    try:
        return RazorpayClient(settings)
    except PaymentConfigError as e:
        logger.error(f"Razorpay unavailable: {e}")
        return None

@router.post("/orders", response_model=OrderRead)
async def create_order(payload: OrderCreate, client: RazorpayClient | None = Depends(get_razorpay)):
    if client is None:
        return JSONResponse(status_code=500, content={"error": CONFIG_ERROR_MESSAGE})
    try:
        amount = float(payload.amount)
    except (TypeError, ValueError):
        return JSONResponse(status_code=400, content={"error": INVALID_AMOUNT_MESSAGE})
    try:
        order = await client.create_order(amount=amount, currency=payload.currency, receipt=payload.receipt)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except PaymentGatewayError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": "Failed to create payment order", "details": e.details},
        )
    return OrderRead(**order)

@router.post("/verify", response_model=PaymentVerifyResult, response_model_exclude_none=True)
async def verify_payment(
    payload: PaymentVerify,
    client: RazorpayClient | None = Depends(get_razorpay),
    db: AsyncSession = Depends(get_db),
):
    if not (payload.razorpay_order_id and payload.razorpay_payment_id and payload.razorpay_signature):
        return JSONResponse(status_code=400, content={"verified": False, "error": "Missing required payment verification fields"})
    if client is None:
        return JSONResponse(status_code=500, content={"verified": False, "error": CONFIG_ERROR_MESSAGE})

    if not verify_payment_signature(
        payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature, client.secret
    ):
        logger.warning(f"Payment signature mismatch for order {payload.razorpay_order_id}")
        return JSONResponse(status_code=400, content={"verified": False, "error": "Payment signature verification failed"})

    result = PaymentVerifyResult(
        verified=True,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        message="Payment verified successfully",
    )
    try:
        updated = await mark_registration_paid(
            db,
            order_id=payload.razorpay_order_id,
            payment_id=payload.razorpay_payment_id,
            signature=payload.razorpay_signature,
        )
        logger.info(f"Payment {payload.razorpay_payment_id} verified; {updated} registration(s) updated")
    except SQLAlchemyError as e:
        # the signature is already proven; the caller still gets verified=true
        logger.error(f"Failed to record payment for order {payload.razorpay_order_id}: {e}")
        result.warning = "Payment verified but registration update failed"
    return result
