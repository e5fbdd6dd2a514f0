from typing import Optional
import json
import logging
import math
import os
import time

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from prolance.auth.models import User
from prolance.contracts.crud import get_contract
from prolance.contracts.models import ContractStatus
from prolance.database import get_db
from prolance.errors import http_error
from prolance.notifications.handlers import dispatch_events
from prolance.payments.crud import (
    create_payment, get_payment, get_payment_by_order, find_payment_for_webhook,
    get_latest_project_payment, get_payment_history
)
from prolance.payments.escrow import (
    EscrowGuardError, settle_payment, record_gateway_payment, mark_signature_failed,
    apply_webhook_event, release_escrow
)
from prolance.payments.gateway import BasePaymentProvider, GatewayError, get_payment_provider
from prolance.payments.models import PaymentStatus
from prolance.payments.schemas import (
    CreateOrderRequest, CreateOrderResponse, VerifyPaymentRequest, VerifyPaymentResponse,
    PaymentResponse, PaymentHistoryResponse, Pagination
)
from prolance.projects.crud import get_project
from prolance.projects.models import ProjectStatus
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")


def payment_provider() -> BasePaymentProvider:
    return get_payment_provider()


def make_receipt(project_id: int) -> str:
    return f"prj_{str(project_id)[-10:]}_{int(time.time() * 1000)}"


@router.post("/create-order", response_model=CreateOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: BasePaymentProvider = Depends(payment_provider),
):
    if not request.project_id or not request.amount:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project ID and amount are required")

    project = get_project(db, request.project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project client can make payments"
        )

    if request.contract_id:
        contract = get_contract(db, request.contract_id)
        if not contract or contract.project_id != project.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
        if contract.status != ContractStatus.PENDING:
            raise http_error(
                status.HTTP_400_BAD_REQUEST,
                "Contract is not awaiting payment",
                f"Contract status is {contract.status.value}",
            )
        freelancer_id = contract.freelancer_id
    else:
        if not project.assigned_freelancer_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create payment - project has no assigned freelancer"
            )
        if project.status != ProjectStatus.COMPLETED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Project must be completed before payment"
            )
        freelancer_id = project.assigned_freelancer_id

    receipt = make_receipt(project.id)
    notes = {
        "project_id": str(project.id),
        "project_title": project.title,
        "client_id": str(current_user.id),
        "freelancer_id": str(freelancer_id),
        "contract_id": str(request.contract_id or ""),
        "escrow": "true" if request.contract_id else "false",
    }
    try:
        order = provider.create_order(request.amount, PAYMENT_CURRENCY, receipt, notes)
    except GatewayError as exc:
        raise http_error(status.HTTP_502_BAD_GATEWAY, "Failed to create payment order", str(exc))

    payment = create_payment(
        db,
        order_id=order["id"],
        amount=request.amount,
        currency=PAYMENT_CURRENCY,
        project_id=project.id,
        client_id=current_user.id,
        freelancer_id=freelancer_id,
        contract_id=request.contract_id,
        receipt=receipt,
        notes=notes,
    )
    logger.info("Payment %s created for project %s (order %s)", payment.id, project.id, payment.gateway_order_id)
    return CreateOrderResponse(
        order=order,
        payment_id=payment.id,
        key_id=provider.key_id,
        escrow_status=payment.escrow_status,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    request: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: BasePaymentProvider = Depends(payment_provider),
):
    if not (request.razorpay_order_id and request.razorpay_payment_id and request.razorpay_signature):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing payment verification details")

    payment = get_payment_by_order(db, request.razorpay_order_id, for_update=True)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment record not found")
    if payment.client_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to verify this payment")

    if not provider.verify_payment_signature(
        request.razorpay_order_id, request.razorpay_payment_id, request.razorpay_signature
    ):
        if payment.verified:
            # a bad replay never downgrades a settled payment
            db.rollback()
        else:
            mark_signature_failed(payment)
            db.commit()
        logger.warning("Signature mismatch for payment %s", payment.id)
        raise http_error(status.HTTP_400_BAD_REQUEST, "Payment verification failed", "Invalid payment signature")

    try:
        gateway_payment = provider.fetch_payment(request.razorpay_payment_id)
    except GatewayError as exc:
        db.rollback()
        raise http_error(status.HTTP_502_BAD_GATEWAY, "Payment verification failed", str(exc))

    payment.gateway_payment_id = request.razorpay_payment_id
    payment.gateway_signature = request.razorpay_signature
    record_gateway_payment(payment, gateway_payment)
    try:
        events = settle_payment(db, payment)
    except EscrowGuardError as exc:
        # keep what the gateway reported even though nothing else moves
        db.commit()
        raise http_error(status.HTTP_400_BAD_REQUEST, exc.message, exc.error)
    db.commit()
    dispatch_events(db, events)

    db.refresh(payment)
    if payment.is_escrow:
        message = "Payment verified and held in escrow"
    else:
        message = "Payment verified successfully"
    return VerifyPaymentResponse(message=message, payment=payment, escrow=payment.is_escrow)


def process_webhook(db: Session, provider: BasePaymentProvider, body: bytes, signature: Optional[str]):
    if not provider.verify_webhook_signature(body, signature):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    event = payload.get("event")
    entities = payload.get("payload") or {}
    payment_entity = (entities.get("payment") or {}).get("entity") or {}
    refund_entity = (entities.get("refund") or {}).get("entity") or {}

    payment = find_payment_for_webhook(
        db,
        payment_entity.get("order_id"),
        payment_entity.get("id") or refund_entity.get("payment_id"),
    )
    if not payment:
        logger.info("Webhook %s for unknown payment, ignoring", event)
        return {"received": True}

    payment.webhook_data = payload
    events = apply_webhook_event(db, payment, event, payment_entity)
    db.commit()
    dispatch_events(db, events)
    logger.info("Webhook %s applied to payment %s", event, payment.id)
    return {"received": True}


@router.post("/webhook")
async def handle_webhook(
    request: Request,
    db: Session = Depends(get_db),
    provider: BasePaymentProvider = Depends(payment_provider),
):
    body = await request.body()
    signature = request.headers.get("x-razorpay-signature")
    return await run_in_threadpool(process_webhook, db, provider, body, signature)


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    role: Optional[str] = None,
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    payments, total = get_payment_history(db, current_user.id, role, status_filter, page, limit)
    return PaymentHistoryResponse(
        payments=payments,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/project/{project_id}", response_model=PaymentResponse)
def payment_by_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payment = get_latest_project_payment(db, project_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No payment found for this project")
    if current_user.id not in (payment.client_id, payment.freelancer_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to view this payment")
    return payment


@router.post("/release-escrow/{payment_id}")
def release_escrow_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payment = get_payment(db, payment_id, for_update=True)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    if payment.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the client can release escrow payment"
        )
    try:
        events = release_escrow(db, payment, current_user.id)
    except EscrowGuardError as exc:
        db.rollback()
        raise http_error(status.HTTP_400_BAD_REQUEST, exc.message, exc.error)
    db.commit()
    dispatch_events(db, events)

    db.refresh(payment)
    return {
        "success": True,
        "message": "Escrow payment released successfully",
        "payment": PaymentResponse.model_validate(payment).model_dump(mode="json"),
    }
