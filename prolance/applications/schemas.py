from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Any
from datetime import datetime

from prolance.applications.models import ApplicationStatus


class ProposedBudget(BaseModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max < self.min:
            raise ValueError("Maximum budget must be greater than or equal to minimum budget")
        return self


class ApplicationCreate(BaseModel):
    project_id: int
    cover_letter: str = Field(min_length=50, max_length=2000)
    proposed_budget: ProposedBudget
    proposed_duration: str = Field(min_length=1)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    client_notes: Optional[str] = None


class ApplicationResponse(BaseModel):
    id: int
    project_id: int
    freelancer_id: int
    cover_letter: str
    proposed_budget: ProposedBudget
    proposed_duration: str
    status: ApplicationStatus
    client_notes: Optional[str] = None
    ai_score: Optional[int] = None
    ai_analysis: Optional[Any] = None
    scored_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplicationStatusResponse(BaseModel):
    message: str
    application: ApplicationResponse
    conversation_id: Optional[int] = None


class ApplicationCheckResponse(BaseModel):
    has_applied: bool
    status: Optional[ApplicationStatus] = None
    application_id: Optional[int] = None


class PendingApplicationsResponse(BaseModel):
    count: int
    applications: List[ApplicationResponse]
