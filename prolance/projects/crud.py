from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from prolance.applications.models import Application, ApplicationStatus
from prolance.contracts.models import Contract
from prolance.messaging.models import Conversation
from prolance.projects.models import (
    Project, ProjectStatus, Visibility, ProjectMilestone, MilestoneStatus, Deliverable, WorkNote,
    WorkStatus, WORK_PHASES
)


def create_project(db: Session, client_id: int, **kwargs):
    budget = kwargs.pop("budget")
    project = Project(
        client_id=client_id,
        budget_min=budget["min"],
        budget_max=budget["max"],
        budget_type=budget.get("type") or "fixed",
        status=ProjectStatus.OPEN,
        work_status=WorkStatus.PLANNING,
        phase_history=[],
        viewed_by=[],
        **kwargs
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def get_project(db: Session, project_id: int):
    return db.query(Project).filter(Project.id == project_id).first()


def search_projects(
    db: Session,
    category: Optional[str] = None,
    min_budget: Optional[float] = None,
    max_budget: Optional[float] = None,
    skills: Optional[List[str]] = None,
    search: Optional[str] = None,
    status: ProjectStatus = ProjectStatus.OPEN,
    page: int = 1,
    limit: int = 10,
):
    """Public listing. Every supplied filter must hold."""
    query = db.query(Project).filter(
        Project.status == status,
        Project.visibility == Visibility.PUBLIC
    )
    if category:
        query = query.filter(Project.category == category)
    if min_budget is not None:
        query = query.filter(Project.budget_min >= min_budget)
    if max_budget is not None:
        query = query.filter(Project.budget_max <= max_budget)
    if skills:
        # JSON list text keeps each skill quoted, so the quotes anchor a whole element
        skills_text = cast(Project.skills_required, String)
        query = query.filter(or_(*[skills_text.ilike(f'%"{skill}"%') for skill in skills]))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Project.title.ilike(pattern),
            Project.description.ilike(pattern),
            cast(Project.tags, String).ilike(pattern),
        ))
    total = query.count()
    projects = (
        query.order_by(Project.created_at.desc(), Project.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return projects, total


def record_view(db: Session, project: Project, viewer_id: Optional[int] = None):
    """Anonymous views always count, a signed-in viewer counts once."""
    if viewer_id is not None:
        viewed_by = list(project.viewed_by or [])
        if viewer_id in viewed_by:
            return project
        project.viewed_by = viewed_by + [viewer_id]
    project.view_count = (project.view_count or 0) + 1
    db.commit()
    db.refresh(project)
    return project


def get_user_projects(db: Session, user_id: int, role: Optional[str] = None, status: Optional[ProjectStatus] = None):
    query = db.query(Project)
    if role == "client":
        query = query.filter(Project.client_id == user_id)
    elif role == "freelancer":
        query = query.filter(Project.assigned_freelancer_id == user_id)
    else:
        query = query.filter(or_(Project.client_id == user_id, Project.assigned_freelancer_id == user_id))
    if status:
        query = query.filter(Project.status == status)
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def count_pending_applications(db: Session, project_id: int) -> int:
    return db.query(Application).filter(
        Application.project_id == project_id,
        Application.status == ApplicationStatus.PENDING
    ).count()


def update_project(db: Session, project: Project, **kwargs):
    budget = kwargs.pop("budget", None)
    if budget is not None:
        project.budget_min = budget["min"]
        project.budget_max = budget["max"]
        project.budget_type = budget.get("type") or project.budget_type
    for key, value in kwargs.items():
        if hasattr(project, key):
            setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project: Project):
    conversations = db.query(Conversation).filter(Conversation.project_id == project.id).all()
    db.query(Contract).filter(Contract.project_id == project.id).delete(synchronize_session=False)
    for conversation in conversations:
        db.delete(conversation)
    db.flush()
    db.query(Application).filter(Application.project_id == project.id).delete(synchronize_session=False)
    db.delete(project)
    db.commit()


# ------- Workspace -------

def change_work_status(project: Project, work_status: WorkStatus, is_rollback: bool = False):
    """Move the freelancer's work phase.

    Going forward appends to phase_history; a rollback drops every entry
    for phases after the target.
    """
    previous = project.work_status
    if is_rollback:
        target_index = WORK_PHASES.index(work_status.value)
        history = [
            entry for entry in (project.phase_history or [])
            if entry.get("phase") in WORK_PHASES and WORK_PHASES.index(entry["phase"]) <= target_index
        ]
    else:
        history = list(project.phase_history or []) + [
            {"phase": work_status.value, "completed_at": datetime.utcnow().isoformat()}
        ]
    project.work_status = work_status
    project.phase_history = history
    return previous


def add_milestone(db: Session, project: Project, **kwargs):
    milestone = ProjectMilestone(project_id=project.id, status=MilestoneStatus.PENDING, **kwargs)
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    return milestone


def get_milestone(db: Session, project_id: int, milestone_id: int):
    return db.query(ProjectMilestone).filter(
        ProjectMilestone.id == milestone_id,
        ProjectMilestone.project_id == project_id
    ).first()


def update_milestone(db: Session, milestone: ProjectMilestone, **kwargs):
    for key, value in kwargs.items():
        setattr(milestone, key, value)
    if milestone.status == MilestoneStatus.COMPLETED and milestone.completed_at is None:
        milestone.completed_at = datetime.utcnow()
    elif milestone.status != MilestoneStatus.COMPLETED:
        milestone.completed_at = None
    db.commit()
    db.refresh(milestone)
    return milestone


def add_deliverable(db: Session, project: Project, **kwargs):
    deliverable = Deliverable(project_id=project.id, **kwargs)
    db.add(deliverable)
    db.commit()
    db.refresh(deliverable)
    return deliverable


def get_deliverable(db: Session, project_id: int, deliverable_id: int):
    return db.query(Deliverable).filter(
        Deliverable.id == deliverable_id,
        Deliverable.project_id == project_id
    ).first()


def delete_deliverable(db: Session, deliverable: Deliverable):
    db.delete(deliverable)
    db.commit()


def add_work_note(db: Session, project: Project, content: str, created_by: int):
    note = WorkNote(project_id=project.id, content=content, created_by=created_by)
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def set_progress(db: Session, project: Project, percentage: int):
    project.progress_percentage = max(0, min(100, int(percentage)))
    db.commit()
    db.refresh(project)
    return project
