from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class RatingCreate(BaseModel):
    freelancer_id: int
    rating: int
    review: Optional[str] = Field(default=None, max_length=500)
    project_id: Optional[int] = None


class RaterSummary(BaseModel):
    id: int
    name: str
    username: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class RatingResponse(BaseModel):
    id: int
    freelancer_id: int
    client_id: int
    project_id: Optional[int] = None
    rating: int
    review: Optional[str] = None
    client: Optional[RaterSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RatingSubmitResponse(BaseModel):
    success: bool = True
    message: str
    rating: RatingResponse


class RatingListResponse(BaseModel):
    success: bool = True
    ratings: List[RatingResponse]


class RatingCheckResponse(BaseModel):
    success: bool = True
    has_rated: bool
    rating: Optional[RatingResponse] = None
