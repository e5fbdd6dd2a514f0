from typing import Optional

from sqlalchemy.orm import Session

from prolance.applications.models import Application, ApplicationStatus
from prolance.projects.models import Project


def create_application(db: Session, project: Project, freelancer_id: int, cover_letter: str,
                       proposed_budget: dict, proposed_duration: str):
    """Stage the application and bump the project's proposal count in one commit."""
    application = Application(
        project_id=project.id,
        freelancer_id=freelancer_id,
        cover_letter=cover_letter,
        proposed_budget_min=proposed_budget["min"],
        proposed_budget_max=proposed_budget["max"],
        proposed_duration=proposed_duration,
        status=ApplicationStatus.PENDING,
    )
    db.add(application)
    project.proposal_count = (project.proposal_count or 0) + 1
    db.commit()
    db.refresh(application)
    return application


def get_application(db: Session, application_id: int):
    return db.query(Application).filter(Application.id == application_id).first()


def find_application(db: Session, project_id: int, freelancer_id: int):
    return db.query(Application).filter(
        Application.project_id == project_id,
        Application.freelancer_id == freelancer_id
    ).first()


def get_project_applications(db: Session, project_id: int):
    return db.query(Application).filter(
        Application.project_id == project_id
    ).order_by(Application.created_at.desc(), Application.id.desc()).all()


def get_freelancer_applications(db: Session, freelancer_id: int, status: Optional[ApplicationStatus] = None):
    query = db.query(Application).filter(Application.freelancer_id == freelancer_id)
    if status:
        query = query.filter(Application.status == status)
    return query.order_by(Application.created_at.desc(), Application.id.desc()).all()


def get_pending_for_client(db: Session, client_id: int, limit: int = 10):
    query = (
        db.query(Application)
        .join(Project, Project.id == Application.project_id)
        .filter(Project.client_id == client_id, Application.status == ApplicationStatus.PENDING)
    )
    total = query.count()
    recent = query.order_by(Application.created_at.desc(), Application.id.desc()).limit(limit).all()
    return total, recent


def save_score(db: Session, application_id: int, score: int, analysis: dict, scored_at):
    application = get_application(db, application_id)
    if not application:
        return None
    application.ai_score = score
    application.ai_analysis = analysis
    application.scored_at = scored_at
    db.commit()
    return application
