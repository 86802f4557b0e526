"""
Payment endpoints and provider callbacks
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user, get_payment_transport
from app.core.database import get_db
from app.core.exceptions import NotFound, ValidationError, Unauthenticated
from app.models.user import User
from app.schemas.payment import PaymentInitiate, PaymentRetry
from app.services.payment_service import PaymentService, get_payment_methods
from app.services.payments import WEBHOOK_PROVIDERS, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initiate")
async def initiate_payment(
    body: PaymentInitiate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_payment_transport)
):
    result = await PaymentService(db, transport=transport).initiate(
        current_user,
        body.order_id,
        body.method,
        phone=body.phone,
        email=body.email,
    )
    return {"success": True, **result}


@router.get("/methods")
async def list_payment_methods():
    return {"success": True, "data": get_payment_methods()}


@router.get("/history")
async def get_payment_history(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = PaymentService(db).get_history(current_user, page, limit)
    return {"success": True, **result}


@router.get("/verify/{transaction_ref}")
async def verify_payment(
    transaction_ref: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_payment_transport)
):
    payment = await PaymentService(db, transport=transport).verify(current_user, transaction_ref)
    return {"success": True, "data": payment}


@router.post("/{provider}/callback")
async def payment_callback(
    provider: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Provider webhook.

    Answers 200 for every parsable body, including unknown references and
    replays; only malformed JSON (400) and internal errors (500) make the
    provider retry.
    """
    method = WEBHOOK_PROVIDERS.get(provider)
    if not method:
        raise NotFound("Unknown payment provider")

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON payload")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if provider == "card" and not verify_webhook_signature(request.headers.get("verif-hash")):
        logger.warning("[Webhook] Flutterwave callback with invalid verif-hash rejected")
        raise Unauthenticated("Invalid webhook signature")

    logger.info(f"[Webhook] {provider} callback received")
    PaymentService(db).handle_webhook(method, payload)

    return {"success": True}


@router.post("/{order_id}/retry")
async def retry_payment(
    order_id: int,
    body: Optional[PaymentRetry] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_payment_transport)
):
    body = body or PaymentRetry()
    result = await PaymentService(db, transport=transport).retry(
        current_user,
        order_id,
        method=body.method,
        phone=body.phone,
    )
    return {"success": True, **result}


@router.get("/{order_id}/status")
async def get_payment_status(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "data": PaymentService(db).get_status(current_user, order_id)}
