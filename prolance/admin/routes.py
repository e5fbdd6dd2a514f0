from collections import Counter
from datetime import datetime, timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from prolance.admin.schemas import (
    StatsResponse, PlatformStats, UserListResponse, GrowthResponse, GrowthPoint,
    FreelancerStatsResponse, FreelancerStats, SkillCount, FreelancerListResponse,
    FreelancerDetailResponse, AdminActionResponse
)
from prolance.auth.models import User, UserRole
from prolance.database import get_db
from prolance.payments.models import Payment, PaymentStatus, EscrowStatus
from prolance.projects.models import Project
from prolance.security import require_admin
from prolance.users.crud import FREELANCER_ROLES, get_user_by_id, purge_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_target_user(db: Session, user_id: int, label: str = "User") -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return user


def get_target_freelancer(db: Session, user_id: int) -> User:
    user = get_target_user(db, user_id, "Freelancer")
    if user.role not in FREELANCER_ROLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Freelancer not found")
    return user


@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    role_counts = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    project_counts = {
        project_status.value: count
        for project_status, count in db.query(Project.status, func.count(Project.id)).group_by(Project.status).all()
    }
    since = datetime.utcnow() - timedelta(days=30)
    settled = db.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(
        Payment.status == PaymentStatus.CAPTURED
    ).scalar()
    held = db.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(
        Payment.status == PaymentStatus.CAPTURED,
        Payment.escrow_status == EscrowStatus.HELD
    ).scalar()
    stats = PlatformStats(
        total_users=sum(role_counts.values()),
        client_count=role_counts.get(UserRole.CLIENT, 0),
        freelancer_count=role_counts.get(UserRole.FREELANCER, 0),
        both_count=role_counts.get(UserRole.BOTH, 0),
        admin_count=role_counts.get(UserRole.ADMIN, 0),
        recent_users=db.query(User).filter(User.created_at >= since).count(),
        banned_users=db.query(User).filter(User.is_banned.is_(True)).count(),
        projects_by_status=project_counts,
        total_projects=sum(project_counts.values()),
        total_payments=float(settled or 0.0),
        escrow_held=float(held or 0.0),
    )
    return StatsResponse(stats=stats)


@router.get("/users", response_model=UserListResponse)
def list_users(
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return UserListResponse(users=query.order_by(User.created_at.desc(), User.id.desc()).all())


@router.delete("/users/{user_id}", response_model=AdminActionResponse)
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = get_target_user(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    purge_user(db, user)
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return AdminActionResponse(message="User deleted successfully")


@router.patch("/users/{user_id}/ban", response_model=AdminActionResponse)
def ban_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = get_target_user(db, user_id)
    if user.is_admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admin accounts cannot be banned")
    user.is_banned = True
    db.commit()
    logger.info("Admin %s banned user %s", admin.id, user_id)
    return AdminActionResponse(message="User banned successfully")


@router.patch("/users/{user_id}/unban", response_model=AdminActionResponse)
def unban_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = get_target_user(db, user_id)
    user.is_banned = False
    db.commit()
    return AdminActionResponse(message="User unbanned successfully")


@router.get("/user-growth", response_model=GrowthResponse)
def get_user_growth(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    today = datetime.utcnow().date()
    start = today - timedelta(days=days - 1)
    created = db.query(User.created_at).filter(
        User.created_at >= datetime.combine(start, datetime.min.time())
    ).all()
    per_day = Counter(created_at.date() for (created_at,) in created if created_at)
    return GrowthResponse(data=[
        GrowthPoint(date=day.isoformat(), count=per_day.get(day, 0))
        for day in (start + timedelta(days=offset) for offset in range(days))
    ])


@router.get("/freelancers", response_model=FreelancerListResponse)
def list_freelancers(
    verified: Optional[bool] = None,
    banned: Optional[bool] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    query = db.query(User).filter(User.role.in_(FREELANCER_ROLES))
    if verified is not None:
        query = query.filter(User.is_verified.is_(verified))
    if banned is not None:
        query = query.filter(User.is_banned.is_(banned))
    return FreelancerListResponse(freelancers=query.order_by(User.created_at.desc(), User.id.desc()).all())


@router.get("/freelancers/stats", response_model=FreelancerStatsResponse)
def get_freelancer_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    freelancers = db.query(User).filter(User.role.in_(FREELANCER_ROLES)).all()
    skills = Counter(skill for freelancer in freelancers for skill in (freelancer.skills or []))
    return FreelancerStatsResponse(stats=FreelancerStats(
        total_freelancers=len(freelancers),
        verified_freelancers=sum(1 for f in freelancers if f.is_verified),
        banned_freelancers=sum(1 for f in freelancers if f.is_banned),
        top_skills=[SkillCount(skill=skill, count=count) for skill, count in skills.most_common(10)],
    ))


@router.get("/freelancers/{user_id}", response_model=FreelancerDetailResponse)
def get_freelancer_details(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return FreelancerDetailResponse(freelancer=get_target_freelancer(db, user_id))


@router.patch("/freelancers/{user_id}/verify", response_model=AdminActionResponse)
def verify_freelancer(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    freelancer = get_target_freelancer(db, user_id)
    freelancer.is_verified = True
    db.commit()
    return AdminActionResponse(message="Freelancer verified successfully")


@router.patch("/freelancers/{user_id}/unverify", response_model=AdminActionResponse)
def unverify_freelancer(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    freelancer = get_target_freelancer(db, user_id)
    freelancer.is_verified = False
    db.commit()
    return AdminActionResponse(message="Freelancer unverified successfully")
