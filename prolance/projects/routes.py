from typing import Optional
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from prolance.auth.models import User, UserRole
from prolance.database import get_db
from prolance.payments.models import Payment
from prolance.projects.crud import (
    create_project, get_project, search_projects, record_view, get_user_projects,
    count_pending_applications, update_project, delete_project
)
from prolance.projects.models import ProjectCategory, ProjectStatus
from prolance.projects.schemas import (
    ProjectCreate, ProjectUpdate, ProjectResponse, MyProjectResponse, ProjectListResponse, Pagination
)
from prolance.security import get_current_user, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def get_owned_project(db: Session, project_id: int, user: User):
    project = get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.client_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to modify this project"
        )
    return project


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project_endpoint(
    project: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not current_user.can_act_as(UserRole.CLIENT):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only clients can create projects")
    payload = project.model_dump()
    db_project = create_project(db, current_user.id, **payload)
    logger.info("Project %s created by user %s", db_project.id, current_user.id)
    return db_project


@router.get("", response_model=ProjectListResponse)
def get_all_projects(
    category: Optional[ProjectCategory] = None,
    min_budget: Optional[float] = Query(None, alias="minBudget"),
    max_budget: Optional[float] = Query(None, alias="maxBudget"),
    skills: Optional[str] = None,
    search: Optional[str] = None,
    status_filter: ProjectStatus = Query(ProjectStatus.OPEN, alias="status"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    skill_list = [skill.strip() for skill in skills.split(",") if skill.strip()] if skills else None
    projects, total = search_projects(
        db,
        category=category,
        min_budget=min_budget,
        max_budget=max_budget,
        skills=skill_list,
        search=search.strip() if search else None,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return ProjectListResponse(
        projects=projects,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/my-projects", response_model=list[MyProjectResponse])
def get_my_projects(
    role: Optional[str] = None,
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    responses = []
    for project in get_user_projects(db, current_user.id, role, status_filter):
        payload = MyProjectResponse.model_validate(project)
        payload.pending_application_count = count_pending_applications(db, project.id)
        responses.append(payload)
    return responses


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project_endpoint(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    project = get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return record_view(db, project, current_user.id if current_user else None)


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project_endpoint(
    project_id: int,
    project_update: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_owned_project(db, project_id, current_user)
    payload = project_update.model_dump(exclude_unset=True)
    return update_project(db, project, **payload)


@router.delete("/{project_id}")
def delete_project_endpoint(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_owned_project(db, project_id, current_user)
    if db.query(Payment).filter(Payment.project_id == project.id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a project that has payments"
        )
    delete_project(db, project)
    logger.info("Project %s deleted by user %s", project_id, current_user.id)
    return {"message": "Project deleted successfully", "project_id": project_id}
