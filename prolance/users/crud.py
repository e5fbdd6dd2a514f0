from typing import List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from prolance.applications.models import Application
from prolance.auth.models import User, UserRole
from prolance.contracts.models import Contract
from prolance.messaging.models import Conversation
from prolance.notifications.models import Notification
from prolance.payments.models import Payment
from prolance.projects.models import Project, ProjectStatus
from prolance.ratings.models import Rating
from prolance.users.models import PortfolioItem

FREELANCER_ROLES = (UserRole.FREELANCER, UserRole.BOTH)


def get_user_by_id(db: Session, user_id: int):
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email.lower()).first()


def get_user_by_username(db: Session, username: str):
    return db.query(User).filter(User.username == username.lower()).first()


def update_profile(db: Session, user: User, **kwargs):
    for key, value in kwargs.items():
        if value is not None and hasattr(user, key):
            setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def add_portfolio_item(db: Session, user: User, **fields):
    item = PortfolioItem(user_id=user.id, **fields)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def remove_portfolio_item(db: Session, user: User, item_id: int) -> bool:
    item = db.query(PortfolioItem).filter(PortfolioItem.id == item_id, PortfolioItem.user_id == user.id).first()
    if not item:
        return False
    db.delete(item)
    db.commit()
    return True


def search_freelancers(
    db: Session,
    skills: Optional[List[str]] = None,
    search: Optional[str] = None,
    min_rate: Optional[float] = None,
    max_rate: Optional[float] = None,
    exclude_user_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
):
    query = db.query(User).filter(User.role.in_(FREELANCER_ROLES), User.is_banned.is_(False))
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    if skills:
        skills_text = cast(User.skills, String)
        query = query.filter(or_(*[skills_text.ilike(f'%"{skill}"%') for skill in skills]))
    if min_rate is not None:
        query = query.filter(User.hourly_rate >= min_rate)
    if max_rate is not None:
        query = query.filter(User.hourly_rate <= max_rate)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            User.name.ilike(pattern),
            User.username.ilike(pattern),
            User.bio.ilike(pattern),
        ))
    total = query.count()
    freelancers = (
        query.order_by(User.rating.desc(), User.total_reviews.desc(), User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return freelancers, total


def count_active_projects(db: Session, user_id: int) -> int:
    return db.query(Project).filter(
        Project.status != ProjectStatus.CLOSED,
        or_(Project.client_id == user_id, Project.assigned_freelancer_id == user_id)
    ).count()


def purge_user(db: Session, user: User):
    """Delete a user together with everything that references them.

    Projects the user owns go with their applications, conversations,
    contracts and payments. Projects the user worked on for other clients
    are kept and only lose the assignment. Portfolio items go with the user
    through the relationship cascade.
    """
    project_ids = [pid for (pid,) in db.query(Project.id).filter(Project.client_id == user.id).all()]

    def owned_or_involving(model, *user_columns):
        conditions = [column == user.id for column in user_columns]
        if project_ids:
            conditions.append(model.project_id.in_(project_ids))
        return db.query(model).filter(or_(*conditions))

    owned_or_involving(Payment, Payment.client_id, Payment.freelancer_id).delete(synchronize_session=False)
    owned_or_involving(Contract, Contract.client_id, Contract.freelancer_id).delete(synchronize_session=False)
    for conversation in owned_or_involving(Conversation, Conversation.client_id, Conversation.freelancer_id).all():
        db.delete(conversation)
    db.flush()
    owned_or_involving(Application, Application.freelancer_id).delete(synchronize_session=False)
    owned_or_involving(Rating, Rating.client_id, Rating.freelancer_id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)
    db.query(Project).filter(Project.assigned_freelancer_id == user.id).update(
        {Project.assigned_freelancer_id: None}, synchronize_session=False
    )
    for project in db.query(Project).filter(Project.client_id == user.id).all():
        db.delete(project)
    db.delete(user)
    db.commit()
