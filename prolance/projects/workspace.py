"""Workspace endpoints: the assigned freelancer's phases, milestones,
deliverables and notes, plus the client's submit/review/accept loop."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.database import get_db
from prolance.events import DomainEvent
from prolance.messaging.crud import get_project_conversation, add_system_message, message_event
from prolance.notifications.handlers import dispatch_events
from prolance.payments.crud import has_settled_payment
from prolance.projects.crud import (
    get_project, change_work_status, add_milestone, get_milestone, update_milestone,
    add_deliverable, get_deliverable, delete_deliverable, add_work_note, set_progress
)
from prolance.projects.models import Project, ProjectStatus, WorkStatus
from prolance.projects.schemas import (
    WorkspaceResponse, WorkStatusUpdate, MilestoneCreate, MilestoneUpdate, MilestoneResponse,
    DeliverableCreate, DeliverableResponse, WorkNoteCreate, WorkNoteResponse, ProgressUpdate,
    ReviewRequest, ProjectResponse
)
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["workspace"])

PHASE_LABELS = {
    WorkStatus.PLANNING: "Planning Phase",
    WorkStatus.DESIGNING: "Design Phase",
    WorkStatus.DEVELOPMENT: "Development Phase",
    WorkStatus.TESTING: "Testing Phase",
    WorkStatus.REVIEW: "Review Phase",
    WorkStatus.COMPLETED: "Completed",
}


def load_project(db: Session, project_id: int) -> Project:
    project = get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def get_freelancer_project(db: Session, project_id: int, user: User, action: str = "update this project") -> Project:
    project = load_project(db, project_id)
    if project.assigned_freelancer_id is None or project.assigned_freelancer_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the assigned freelancer can {action}"
        )
    return project


def get_client_project(db: Session, project_id: int, user: User, action: str) -> Project:
    project = load_project(db, project_id)
    if project.client_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Only the project client can {action}")
    return project


def project_event_data(project: Project) -> dict:
    return {
        "project_id": project.id,
        "project_title": project.title,
        "client_id": project.client_id,
        "freelancer_id": project.assigned_freelancer_id,
    }


@router.get("/{project_id}/workspace", response_model=WorkspaceResponse)
def get_workspace(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = load_project(db, project_id)
    if current_user.id == project.client_id:
        user_role = "client"
    elif current_user.id == project.assigned_freelancer_id:
        user_role = "freelancer"
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this workspace"
        )
    payload = WorkspaceResponse.model_validate(project)
    payload.user_role = user_role
    return payload


@router.put("/{project_id}/work-status")
def update_work_status(
    project_id: int,
    request: WorkStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "update work status")
    previous = change_work_status(project, request.work_status, request.is_rollback)

    events = []
    conversation = get_project_conversation(db, project.id, project.accepted_proposal_id)
    if conversation:
        label = PHASE_LABELS[request.work_status]
        if request.is_rollback:
            content = f"Status rolled back to: {label}"
        else:
            content = f"Project Status Update: Now in {label}"
        events.append(message_event(add_system_message(db, conversation, content)))
    db.commit()
    db.refresh(project)

    events.insert(0, DomainEvent("project.work_status_updated", {
        "project_id": project.id,
        "work_status": project.work_status.value,
        "previous_status": previous.value if previous else None,
        "is_rollback": request.is_rollback,
        "phase_history": project.phase_history,
    }))
    dispatch_events(db, events)
    return {
        "message": "Status rolled back successfully" if request.is_rollback else "Work status updated successfully",
        "work_status": project.work_status,
        "phase_history": project.phase_history,
    }


@router.post("/{project_id}/milestones", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
def create_milestone(
    project_id: int,
    request: MilestoneCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "add milestones")
    return add_milestone(db, project, **request.model_dump())


@router.put("/{project_id}/milestones/{milestone_id}", response_model=MilestoneResponse)
def edit_milestone(
    project_id: int,
    milestone_id: int,
    request: MilestoneUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    get_freelancer_project(db, project_id, current_user, "update milestones")
    milestone = get_milestone(db, project_id, milestone_id)
    if not milestone:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")
    return update_milestone(db, milestone, **request.model_dump(exclude_unset=True))


@router.post("/{project_id}/deliverables", response_model=DeliverableResponse, status_code=status.HTTP_201_CREATED)
def create_deliverable(
    project_id: int,
    request: DeliverableCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "add deliverables")
    return add_deliverable(db, project, **request.model_dump())


@router.delete("/{project_id}/deliverables/{deliverable_id}")
def remove_deliverable(
    project_id: int,
    deliverable_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    get_freelancer_project(db, project_id, current_user, "delete deliverables")
    deliverable = get_deliverable(db, project_id, deliverable_id)
    if not deliverable:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deliverable not found")
    delete_deliverable(db, deliverable)
    return {"message": "Deliverable deleted successfully"}


@router.post("/{project_id}/notes", response_model=WorkNoteResponse, status_code=status.HTTP_201_CREATED)
def create_work_note(
    project_id: int,
    request: WorkNoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "add work notes")
    return add_work_note(db, project, request.content, current_user.id)


@router.put("/{project_id}/progress")
def update_progress(
    project_id: int,
    request: ProgressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "update progress")
    project = set_progress(db, project, request.progress_percentage)
    return {"message": "Progress updated", "progress_percentage": project.progress_percentage}


@router.post("/{project_id}/submit", response_model=ProjectResponse)
def submit_work(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_freelancer_project(db, project_id, current_user, "submit work")
    if project.work_status != WorkStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Work status must be completed before submitting"
        )
    if not project.deliverables:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one deliverable is required before submitting"
        )
    project.status = ProjectStatus.COMPLETED
    db.commit()
    db.refresh(project)
    dispatch_events(db, [DomainEvent("project.work_submitted", project_event_data(project))])
    return project


@router.post("/{project_id}/request-review", response_model=ProjectResponse)
def request_review(
    project_id: int,
    request: ReviewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_client_project(db, project_id, current_user, "request a review")
    if project.status != ProjectStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only completed projects can be sent back for review"
        )
    project.status = ProjectStatus.IN_PROGRESS
    project.work_status = WorkStatus.REVIEW
    db.commit()
    db.refresh(project)
    data = project_event_data(project)
    data["comments"] = request.comments
    dispatch_events(db, [DomainEvent("project.review_requested", data)])
    return project


@router.post("/{project_id}/accept", response_model=ProjectResponse)
def accept_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_client_project(db, project_id, current_user, "accept the project")
    if project.status != ProjectStatus.COMPLETED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project must be completed first")
    if not project.deliverables:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project has no deliverables")
    if not has_settled_payment(db, project.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment must be completed before accepting the project"
        )
    project.status = ProjectStatus.CLOSED
    db.commit()
    db.refresh(project)
    dispatch_events(db, [DomainEvent("project.accepted", project_event_data(project))])
    return project
