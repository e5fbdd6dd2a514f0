from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.sql import func
import enum

from prolance.database import Base, EnumValue


class PaymentStatus(str, enum.Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    FAILED = "failed"
    PENDING = "pending"


class EscrowStatus(str, enum.Enum):
    HELD = "held"
    RELEASED = "released"
    REFUNDED = "refunded"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    gateway_order_id = Column(String, unique=True, nullable=False, index=True)
    gateway_payment_id = Column(String, nullable=True, index=True)
    gateway_signature = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="INR")
    # status is reported by the gateway, escrow_status is tracked here
    status = Column(EnumValue(PaymentStatus, length=20), default=PaymentStatus.CREATED, index=True)
    escrow_status = Column(EnumValue(EscrowStatus, length=20), default=EscrowStatus.RELEASED)
    released_at = Column(DateTime(timezone=True), nullable=True)
    released_by = Column(Integer, nullable=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=True, index=True)  # null for non-escrow

    payment_method = Column(String, nullable=True)
    bank = Column(String, nullable=True)
    wallet = Column(String, nullable=True)
    vpa = Column(String, nullable=True)
    email = Column(String, nullable=True)
    contact = Column(String, nullable=True)

    verified = Column(Boolean, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    webhook_data = Column(JSON, nullable=True)
    receipt = Column(String, nullable=True)
    notes = Column(JSON, nullable=True)

    error_code = Column(String, nullable=True)
    error_description = Column(Text, nullable=True)
    error_source = Column(String, nullable=True)
    error_step = Column(String, nullable=True)
    error_reason = Column(String, nullable=True)

    captured_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_escrow(self) -> bool:
        return self.contract_id is not None
