from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime

from prolance.payments.models import PaymentStatus, EscrowStatus


class CreateOrderRequest(BaseModel):
    project_id: Optional[int] = None
    amount: Optional[float] = Field(default=None, gt=0)
    contract_id: Optional[int] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    amount: float
    currency: str
    status: PaymentStatus
    escrow_status: EscrowStatus
    project_id: int
    client_id: int
    freelancer_id: int
    contract_id: Optional[int] = None
    payment_method: Optional[str] = None
    verified: bool
    verified_at: Optional[datetime] = None
    receipt: Optional[str] = None
    error_description: Optional[str] = None
    released_at: Optional[datetime] = None
    released_by: Optional[int] = None
    captured_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateOrderResponse(BaseModel):
    message: str = "Order created successfully"
    order: Any
    payment_id: int
    key_id: str
    escrow_status: EscrowStatus


class VerifyPaymentResponse(BaseModel):
    message: str
    payment: PaymentResponse
    escrow: bool


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentResponse]
    pagination: Pagination
