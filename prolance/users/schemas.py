from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from prolance.auth.models import UserRole


URL_PATTERN = r"^https?://\S+$"


class PortfolioItemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    link: Optional[str] = Field(default=None, pattern=URL_PATTERN)


class PortfolioItemResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    link: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicUserResponse(BaseModel):
    id: int
    name: str
    username: str
    role: UserRole
    bio: Optional[str] = None
    skills: List[str] = []
    hourly_rate: Optional[float] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    is_verified: bool = False
    rating: float = 0.0
    total_reviews: int = 0
    completed_projects: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicProfileResponse(PublicUserResponse):
    portfolio: List[PortfolioItemResponse] = []


class UserResponse(PublicUserResponse):
    email: str
    phone: Optional[str] = None
    is_banned: bool = False
    is_admin: bool = False
    total_earnings: float = 0.0
    total_spent: float = 0.0
    updated_at: Optional[datetime] = None


class OwnProfileResponse(UserResponse):
    portfolio: List[PortfolioItemResponse] = []


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[UserRole] = None


class ProfileUpdateResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse


class FreelancerSearchResponse(BaseModel):
    success: bool = True
    freelancers: List[PublicUserResponse]
    count: int
    total: int
    page: int


class ActiveProjectsResponse(BaseModel):
    success: bool = True
    active_projects_count: int


class PortfolioResponse(BaseModel):
    success: bool = True
    message: str
    portfolio: List[PortfolioItemResponse]
