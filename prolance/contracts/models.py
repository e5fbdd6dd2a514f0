from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.sql import func
import enum

from prolance.database import Base, EnumValue


class ContractStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AcceptanceMethod(str, enum.Enum):
    DIRECT = "direct"
    ESCROW_FUNDED = "escrow_funded"


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    application_id = Column(Integer, ForeignKey("applications.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    scope = Column(Text, nullable=False)
    deliverables = Column(JSON, default=list)
    final_amount = Column(Float, nullable=False)
    currency = Column(String(3), default="INR")
    duration = Column(String, nullable=False)
    payment_terms = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    milestones = Column(JSON, default=list)  # [{title, description, due_date, payment}]

    status = Column(EnumValue(ContractStatus, length=20), default=ContractStatus.PENDING, index=True)
    acceptance_method = Column(EnumValue(AcceptanceMethod, length=20), nullable=True)
    escrow_funded = Column(Boolean, default=False)
    escrow_payment_id = Column(Integer, nullable=True)
    escrow_funded_at = Column(DateTime(timezone=True), nullable=True)
    client_notes = Column(Text, nullable=True)
    proposed_at = Column(DateTime(timezone=True), server_default=func.now())
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def contract_details(self):
        return {
            "title": self.title,
            "scope": self.scope,
            "deliverables": self.deliverables or [],
            "final_amount": self.final_amount,
            "currency": self.currency,
            "duration": self.duration,
            "payment_terms": self.payment_terms,
            "start_date": self.start_date,
            "milestones": self.milestones or [],
        }
