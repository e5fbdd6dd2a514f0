from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, JSON
from sqlalchemy.sql import func
import enum

from prolance.database import Base, EnumValue


class UserRole(str, enum.Enum):
    FREELANCER = "freelancer"
    CLIENT = "client"
    BOTH = "both"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    username = Column(String(20), unique=True, index=True, nullable=False)
    role = Column(EnumValue(UserRole, length=20), nullable=False, default=UserRole.FREELANCER)
    phone = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, default=list)
    hourly_rate = Column(Float, nullable=True)
    location = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    is_banned = Column(Boolean, default=False)
    is_verified = Column(Boolean, default=False)  # freelancer verified by an admin
    rating = Column(Float, default=0.0)
    total_reviews = Column(Integer, default=0)
    total_earnings = Column(Float, default=0.0)
    total_spent = Column(Float, default=0.0)
    completed_projects = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_act_as(self, role: UserRole) -> bool:
        return self.role == role or self.role == UserRole.BOTH
