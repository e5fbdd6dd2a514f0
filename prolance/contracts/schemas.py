from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from prolance.contracts.models import ContractStatus, AcceptanceMethod


class ContractMilestone(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    payment: Optional[float] = Field(default=None, ge=0)


class ContractDetails(BaseModel):
    title: str = Field(min_length=1)
    scope: str = Field(min_length=1)
    deliverables: List[str] = []
    final_amount: float = Field(gt=0)
    currency: str = "INR"
    duration: str = Field(min_length=1)
    payment_terms: Optional[str] = None
    start_date: Optional[datetime] = None
    milestones: List[ContractMilestone] = []


class ContractPropose(BaseModel):
    conversation_id: int
    project_id: int
    application_id: int
    contract_details: ContractDetails


class ContractStatusUpdate(BaseModel):
    status: ContractStatus
    client_notes: Optional[str] = None


class ContractResponse(BaseModel):
    id: int
    project_id: int
    application_id: int
    freelancer_id: int
    client_id: int
    conversation_id: int
    contract_details: ContractDetails
    status: ContractStatus
    acceptance_method: Optional[AcceptanceMethod] = None
    escrow_funded: bool = False
    escrow_payment_id: Optional[int] = None
    escrow_funded_at: Optional[datetime] = None
    client_notes: Optional[str] = None
    proposed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True
