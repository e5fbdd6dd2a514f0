from pydantic import BaseModel
from typing import Dict, List

from prolance.users.schemas import UserResponse


class PlatformStats(BaseModel):
    total_users: int
    client_count: int
    freelancer_count: int
    both_count: int
    admin_count: int
    recent_users: int
    banned_users: int
    projects_by_status: Dict[str, int]
    total_projects: int
    total_payments: float
    escrow_held: float


class StatsResponse(BaseModel):
    success: bool = True
    stats: PlatformStats


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserResponse]


class GrowthPoint(BaseModel):
    date: str
    count: int


class GrowthResponse(BaseModel):
    success: bool = True
    data: List[GrowthPoint]


class SkillCount(BaseModel):
    skill: str
    count: int


class FreelancerStats(BaseModel):
    total_freelancers: int
    verified_freelancers: int
    banned_freelancers: int
    top_skills: List[SkillCount]


class FreelancerStatsResponse(BaseModel):
    success: bool = True
    stats: FreelancerStats


class FreelancerListResponse(BaseModel):
    success: bool = True
    freelancers: List[UserResponse]


class FreelancerDetailResponse(BaseModel):
    success: bool = True
    freelancer: UserResponse


class AdminActionResponse(BaseModel):
    success: bool = True
    message: str
