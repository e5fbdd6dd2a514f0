from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from prolance.payments.models import Payment, PaymentStatus, EscrowStatus


def create_payment(
    db: Session,
    order_id: str,
    amount: float,
    currency: str,
    project_id: int,
    client_id: int,
    freelancer_id: int,
    contract_id: Optional[int] = None,
    receipt: Optional[str] = None,
    notes: dict = None,
):
    payment = Payment(
        gateway_order_id=order_id,
        amount=amount,
        currency=currency,
        status=PaymentStatus.CREATED,
        # without a contract there is nothing to hold
        escrow_status=EscrowStatus.HELD if contract_id else EscrowStatus.RELEASED,
        project_id=project_id,
        client_id=client_id,
        freelancer_id=freelancer_id,
        contract_id=contract_id,
        receipt=receipt,
        notes=notes or {},
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def get_payment(db: Session, payment_id: int, for_update: bool = False):
    query = db.query(Payment).filter(Payment.id == payment_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_payment_by_order(db: Session, order_id: str, for_update: bool = False):
    query = db.query(Payment).filter(Payment.gateway_order_id == order_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def find_payment_for_webhook(db: Session, order_id: Optional[str], gateway_payment_id: Optional[str]):
    conditions = []
    if order_id:
        conditions.append(Payment.gateway_order_id == order_id)
    if gateway_payment_id:
        conditions.append(Payment.gateway_payment_id == gateway_payment_id)
    if not conditions:
        return None
    return db.query(Payment).filter(or_(*conditions)).with_for_update().first()


def get_latest_project_payment(db: Session, project_id: int):
    return (
        db.query(Payment)
        .filter(Payment.project_id == project_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )


def has_settled_payment(db: Session, project_id: int) -> bool:
    return db.query(Payment).filter(
        Payment.project_id == project_id,
        Payment.status == PaymentStatus.CAPTURED,
        Payment.verified == True
    ).first() is not None


def has_open_payment(db: Session, contract_id: int) -> bool:
    """An escrow order for the contract exists and has not failed."""
    return db.query(Payment).filter(
        Payment.contract_id == contract_id,
        Payment.status != PaymentStatus.FAILED
    ).first() is not None


def get_payment_history(
    db: Session,
    user_id: int,
    role: Optional[str] = None,
    status: Optional[PaymentStatus] = None,
    page: int = 1,
    limit: int = 20,
):
    query = db.query(Payment)
    if role == "client":
        query = query.filter(Payment.client_id == user_id)
    elif role == "freelancer":
        query = query.filter(Payment.freelancer_id == user_id)
    else:
        query = query.filter(or_(Payment.client_id == user_id, Payment.freelancer_id == user_id))
    if status:
        query = query.filter(Payment.status == status)
    total = query.count()
    payments = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return payments, total
