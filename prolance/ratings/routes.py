import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.database import get_db
from prolance.ratings.crud import get_rating, get_freelancer_ratings, upsert_rating
from prolance.ratings.models import Rating
from prolance.ratings.schemas import (
    RatingCreate, RaterSummary, RatingResponse, RatingSubmitResponse, RatingListResponse, RatingCheckResponse
)
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ratings", tags=["ratings"])


def to_rating_response(db: Session, rating: Rating) -> RatingResponse:
    payload = RatingResponse.model_validate(rating)
    client = db.query(User).filter(User.id == rating.client_id).first()
    if client:
        payload.client = RaterSummary.model_validate(client)
    return payload


@router.post("", response_model=RatingSubmitResponse)
def submit_rating(
    request: RatingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if request.rating < 1 or request.rating > 5:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Rating must be between 1 and 5")
    freelancer = db.query(User).filter(User.id == request.freelancer_id).first()
    if not freelancer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Freelancer not found")
    if freelancer.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot rate yourself")

    rating, existed = upsert_rating(
        db, current_user.id, freelancer, request.rating, request.review, request.project_id
    )
    logger.info("User %s rated freelancer %s with %s", current_user.id, freelancer.id, request.rating)
    return RatingSubmitResponse(
        message="Rating updated successfully" if existed else "Rating submitted successfully",
        rating=to_rating_response(db, rating),
    )


@router.get("/freelancer/{freelancer_id}", response_model=RatingListResponse)
def list_freelancer_ratings(freelancer_id: int, db: Session = Depends(get_db)):
    return RatingListResponse(
        ratings=[to_rating_response(db, r) for r in get_freelancer_ratings(db, freelancer_id)]
    )


@router.get("/check/{freelancer_id}", response_model=RatingCheckResponse)
def check_user_rating(
    freelancer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rating = get_rating(db, current_user.id, freelancer_id)
    return RatingCheckResponse(
        has_rated=rating is not None,
        rating=to_rating_response(db, rating) if rating else None,
    )
