from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from prolance.database import Base, EnumValue


class ProjectCategory(str, enum.Enum):
    PROGRAMMING_TECH = "Programming & Tech"
    GRAPHICS_DESIGN = "Graphics & Design"
    DIGITAL_MARKETING = "Digital Marketing"
    WRITING_TRANSLATION = "Writing & Translation"
    VIDEO_ANIMATION = "Video & Animation"
    AI_SERVICES = "AI Services"
    MUSIC_AUDIO = "Music & Audio"
    BUSINESS = "Business"
    CONSULTING = "Consulting"
    OTHER = "Other"


class ProjectStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class BudgetType(str, enum.Enum):
    FIXED = "fixed"
    HOURLY = "hourly"


class Visibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class WorkStatus(str, enum.Enum):
    PLANNING = "planning"
    DESIGNING = "designing"
    DEVELOPMENT = "development"
    TESTING = "testing"
    REVIEW = "review"
    COMPLETED = "completed"


WORK_PHASES = [phase.value for phase in WorkStatus]


class MilestoneStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(EnumValue(ProjectCategory, length=50), nullable=False)
    budget_min = Column(Float, nullable=False)
    budget_max = Column(Float, nullable=False)
    budget_type = Column(EnumValue(BudgetType, length=20), default=BudgetType.FIXED)
    duration = Column(String, nullable=False)
    skills_required = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    deadline = Column(DateTime(timezone=True), nullable=True)
    visibility = Column(EnumValue(Visibility, length=20), default=Visibility.PUBLIC)
    status = Column(EnumValue(ProjectStatus, length=20), default=ProjectStatus.OPEN, index=True)
    proposal_count = Column(Integer, default=0)
    accepted_proposal_id = Column(Integer, nullable=True)
    assigned_freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    # status and work_status are independent: work_status is the freelancer's progress inside in-progress
    work_status = Column(EnumValue(WorkStatus, length=20), default=WorkStatus.PLANNING)
    phase_history = Column(JSON, default=list)  # [{"phase": ..., "completed_at": iso}]
    progress_percentage = Column(Integer, default=0)
    view_count = Column(Integer, default=0)
    viewed_by = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    milestones = relationship("ProjectMilestone", back_populates="project", cascade="all, delete-orphan",
                              order_by="ProjectMilestone.id")
    deliverables = relationship("Deliverable", back_populates="project", cascade="all, delete-orphan",
                                order_by="Deliverable.id")
    work_notes = relationship("WorkNote", back_populates="project", cascade="all, delete-orphan",
                              order_by="WorkNote.id")

    @property
    def budget(self):
        return {"min": self.budget_min, "max": self.budget_max, "type": self.budget_type}

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.client_id, self.assigned_freelancer_id)


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(EnumValue(MilestoneStatus, length=20), default=MilestoneStatus.PENDING)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="milestones")


class Deliverable(Base):
    __tablename__ = "deliverables"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="deliverables")


class WorkNote(Base):
    __tablename__ = "work_notes"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="work_notes")
