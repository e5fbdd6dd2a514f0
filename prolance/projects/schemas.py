from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from prolance.projects.models import (
    ProjectCategory, ProjectStatus, BudgetType, Visibility, WorkStatus, MilestoneStatus
)


class Budget(BaseModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    type: BudgetType = BudgetType.FIXED

    @model_validator(mode="after")
    def check_range(self):
        if self.max < self.min:
            raise ValueError("Maximum budget must be greater than or equal to minimum budget")
        return self


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=5000)
    category: ProjectCategory
    budget: Budget
    duration: str = Field(min_length=1)
    skills_required: List[str] = []
    tags: List[str] = []
    deadline: Optional[datetime] = None
    visibility: Visibility = Visibility.PUBLIC


class ProjectUpdate(BaseModel):
    # client_id and proposal_count are not writable
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    category: Optional[ProjectCategory] = None
    budget: Optional[Budget] = None
    duration: Optional[str] = None
    skills_required: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    deadline: Optional[datetime] = None
    visibility: Optional[Visibility] = None
    status: Optional[ProjectStatus] = None


class PhaseEntry(BaseModel):
    phase: WorkStatus
    completed_at: Optional[datetime] = None


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None


class MilestoneUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[MilestoneStatus] = None
    due_date: Optional[datetime] = None


class MilestoneResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: MilestoneStatus
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeliverableCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class DeliverableResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkNoteCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class WorkNoteResponse(BaseModel):
    id: int
    project_id: int
    content: str
    created_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkStatusUpdate(BaseModel):
    work_status: WorkStatus
    is_rollback: bool = False


class ProgressUpdate(BaseModel):
    progress_percentage: int


class ReviewRequest(BaseModel):
    comments: Optional[str] = None


class ProjectResponse(BaseModel):
    id: int
    client_id: int
    title: str
    description: str
    category: ProjectCategory
    budget: Budget
    duration: str
    skills_required: List[str] = []
    tags: List[str] = []
    deadline: Optional[datetime] = None
    visibility: Visibility
    status: ProjectStatus
    proposal_count: int = 0
    accepted_proposal_id: Optional[int] = None
    assigned_freelancer_id: Optional[int] = None
    work_status: WorkStatus
    progress_percentage: int = 0
    view_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MyProjectResponse(ProjectResponse):
    pending_application_count: int = 0


class WorkspaceResponse(ProjectResponse):
    phase_history: List[PhaseEntry] = []
    milestones: List[MilestoneResponse] = []
    deliverables: List[DeliverableResponse] = []
    work_notes: List[WorkNoteResponse] = []
    user_role: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
    pagination: Pagination
