from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.ratings.models import Rating


def get_rating(db: Session, client_id: int, freelancer_id: int) -> Optional[Rating]:
    return db.query(Rating).filter(
        Rating.client_id == client_id,
        Rating.freelancer_id == freelancer_id
    ).first()


def get_freelancer_ratings(db: Session, freelancer_id: int):
    return db.query(Rating).filter(
        Rating.freelancer_id == freelancer_id
    ).order_by(Rating.created_at.desc(), Rating.id.desc()).all()


def upsert_rating(
    db: Session,
    client_id: int,
    freelancer: User,
    rating: int,
    review: Optional[str] = None,
    project_id: Optional[int] = None,
):
    """Create or update the client's rating of a freelancer and refresh the freelancer's average.

    Returns the rating row and whether it already existed.
    """
    db_rating = get_rating(db, client_id, freelancer.id)
    existed = db_rating is not None
    if existed:
        db_rating.rating = rating
        if review is not None:
            db_rating.review = review
    else:
        db_rating = Rating(
            client_id=client_id,
            freelancer_id=freelancer.id,
            rating=rating,
            review=review or "",
            project_id=project_id,
        )
        db.add(db_rating)
    db.flush()
    refresh_freelancer_rating(db, freelancer)
    db.commit()
    db.refresh(db_rating)
    return db_rating, existed


def refresh_freelancer_rating(db: Session, freelancer: User):
    average, total = db.query(func.avg(Rating.rating), func.count(Rating.id)).filter(
        Rating.freelancer_id == freelancer.id
    ).one()
    freelancer.rating = round(float(average), 1) if total else 0.0
    freelancer.total_reviews = total
