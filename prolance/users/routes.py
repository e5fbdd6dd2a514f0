from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from prolance.auth.models import User, UserRole
from prolance.database import get_db
from prolance.errors import http_error
from prolance.security import get_current_user
from prolance.users.crud import (
    get_user_by_id, get_user_by_username, update_profile, search_freelancers, count_active_projects, purge_user,
    add_portfolio_item, remove_portfolio_item
)
from prolance.users.schemas import (
    OwnProfileResponse, PublicProfileResponse, ProfileUpdate, ProfileUpdateResponse,
    FreelancerSearchResponse, ActiveProjectsResponse, PortfolioItemCreate, PortfolioItemResponse, PortfolioResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=OwnProfileResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=ProfileUpdateResponse)
def update_my_profile(
    request: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if request.role == UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot assign the admin role")
    user = update_profile(db, current_user, **request.model_dump(exclude_unset=True))
    return ProfileUpdateResponse(message="Profile updated successfully", user=user)


def portfolio_items(user: User):
    return [PortfolioItemResponse.model_validate(item) for item in user.portfolio]


@router.post("/portfolio", response_model=PortfolioResponse, status_code=status.HTTP_201_CREATED)
def add_portfolio(
    request: PortfolioItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    add_portfolio_item(db, current_user, **request.model_dump())
    return PortfolioResponse(message="Portfolio item added successfully", portfolio=portfolio_items(current_user))


@router.delete("/portfolio/{item_id}", response_model=PortfolioResponse)
def remove_portfolio(item_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not remove_portfolio_item(db, current_user, item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio item not found")
    return PortfolioResponse(message="Portfolio item removed successfully", portfolio=portfolio_items(current_user))


@router.get("/freelancers/search", response_model=FreelancerSearchResponse)
def search_freelancer_profiles(
    skills: Optional[str] = None,
    search: Optional[str] = None,
    min_rate: Optional[float] = Query(None, alias="minRate"),
    max_rate: Optional[float] = Query(None, alias="maxRate"),
    exclude_user_id: Optional[int] = Query(None, alias="excludeUserId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    skills_list = [s.strip() for s in skills.split(",") if s.strip()] if skills else None
    freelancers, total = search_freelancers(
        db,
        skills=skills_list,
        search=search,
        min_rate=min_rate,
        max_rate=max_rate,
        exclude_user_id=exclude_user_id,
        page=page,
        limit=limit,
    )
    return FreelancerSearchResponse(freelancers=freelancers, count=len(freelancers), total=total, page=page)


@router.get("/active-projects-count", response_model=ActiveProjectsResponse)
def get_active_projects_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ActiveProjectsResponse(active_projects_count=count_active_projects(db, current_user.id))


@router.delete("/account")
def delete_account(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    active = count_active_projects(db, current_user.id)
    if active > 0:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            f"Cannot delete account. You have {active} active project(s). "
            "Please complete or cancel them first.",
            active_projects_count=active,
        )
    user_id = current_user.id
    purge_user(db, current_user)
    logger.info("User %s deleted their account", user_id)
    return {"success": True, "message": "Account deleted successfully"}


@router.get("/username/{username}", response_model=PublicProfileResponse)
def get_profile_by_username(username: str, db: Session = Depends(get_db)):
    user = get_user_by_username(db, username)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/{user_id}", response_model=PublicProfileResponse)
def get_profile(user_id: int, db: Session = Depends(get_db)):
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
