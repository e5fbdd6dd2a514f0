from typing import Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from prolance.applications.crud import (
    create_application, get_application, find_application, get_project_applications,
    get_freelancer_applications, get_pending_for_client
)
from prolance.applications.models import ApplicationStatus
from prolance.applications.schemas import (
    ApplicationCreate, ApplicationResponse, ApplicationStatusUpdate, ApplicationStatusResponse,
    ApplicationCheckResponse, PendingApplicationsResponse
)
from prolance.applications.scoring import score_application_task
from prolance.auth.models import User, UserRole
from prolance.database import get_db
from prolance.events import DomainEvent
from prolance.messaging.crud import get_or_create_conversation
from prolance.notifications.handlers import dispatch_events
from prolance.projects.crud import get_project
from prolance.projects.models import ProjectStatus
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/applications", tags=["applications"])

ALREADY_APPLIED = "You have already applied to this project"


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def submit_application(
    request: ApplicationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_project(db, request.project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.status != ProjectStatus.OPEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This project is no longer accepting applications"
        )
    if project.client_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot apply to your own project")
    if not current_user.can_act_as(UserRole.FREELANCER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only freelancers can apply to projects")

    existing = find_application(db, project.id, current_user.id)
    if existing and existing.status == ApplicationStatus.REJECTED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot reapply to this project as your previous application was rejected"
        )
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_APPLIED)

    try:
        application = create_application(
            db,
            project,
            current_user.id,
            request.cover_letter,
            request.proposed_budget.model_dump(),
            request.proposed_duration,
        )
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_APPLIED)

    dispatch_events(db, [DomainEvent("application.submitted", {
        "application_id": application.id,
        "project_id": project.id,
        "project_title": project.title,
        "client_id": project.client_id,
        "freelancer_id": current_user.id,
        "freelancer_name": current_user.name,
    })])
    background_tasks.add_task(
        score_application_task,
        application.id,
        project.title,
        project.description,
        list(project.skills_required or []),
        application.cover_letter,
    )
    return application


@router.get("/project/{project_id}", response_model=list[ApplicationResponse])
def get_applications_by_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to view these applications"
        )
    return get_project_applications(db, project_id)


@router.get("/my-applications", response_model=list[ApplicationResponse])
def get_my_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_freelancer_applications(db, current_user.id, status_filter)


@router.get("/pending-count", response_model=PendingApplicationsResponse)
def get_pending_applications_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    count, recent = get_pending_for_client(db, current_user.id)
    return PendingApplicationsResponse(count=count, applications=recent)


@router.get("/check/{project_id}", response_model=ApplicationCheckResponse)
def check_application(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    application = find_application(db, project_id, current_user.id)
    if not application:
        return ApplicationCheckResponse(has_applied=False)
    return ApplicationCheckResponse(has_applied=True, status=application.status, application_id=application.id)


@router.get("/{application_id}", response_model=ApplicationResponse)
def get_application_endpoint(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    application = get_application(db, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    project = get_project(db, application.project_id)
    if current_user.id not in (application.freelancer_id, project.client_id if project else None):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to view this application"
        )
    return application


@router.patch("/{application_id}/status", response_model=ApplicationStatusResponse)
def update_application_status(
    application_id: int,
    request: ApplicationStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if request.status not in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid status. Must be either "accepted" or "rejected"'
        )
    application = get_application(db, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    project = get_project(db, application.project_id)
    if not project or project.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to update this application"
        )

    application.status = request.status
    if request.client_notes:
        application.client_notes = request.client_notes

    conversation = None
    event_data = {
        "application_id": application.id,
        "project_id": project.id,
        "project_title": project.title,
        "freelancer_id": application.freelancer_id,
    }
    if request.status == ApplicationStatus.ACCEPTED:
        conversation, created = get_or_create_conversation(
            db, application.id, project.id, application.freelancer_id, project.client_id
        )
        # project stays open and listed until a contract is accepted
        project.accepted_proposal_id = application.id
    try:
        db.commit()
    except IntegrityError:
        # a concurrent accept created the conversation first
        db.rollback()
        return update_application_status(application_id, request, db, current_user)
    db.refresh(application)

    if conversation is not None:
        event_data["conversation_id"] = conversation.id
        event = DomainEvent("application.accepted", event_data)
    else:
        event = DomainEvent("application.rejected", event_data)
    dispatch_events(db, [event])

    return ApplicationStatusResponse(
        message=f"Application {request.status.value} successfully",
        application=application,
        conversation_id=conversation.id if conversation else None,
    )
