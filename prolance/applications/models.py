from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
import enum

from prolance.database import Base, EnumValue


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("project_id", "freelancer_id", name="uq_application_project_freelancer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    cover_letter = Column(Text, nullable=False)
    proposed_budget_min = Column(Float, nullable=False)
    proposed_budget_max = Column(Float, nullable=False)
    proposed_duration = Column(String, nullable=False)
    status = Column(EnumValue(ApplicationStatus, length=20), default=ApplicationStatus.PENDING, index=True)
    client_notes = Column(Text, nullable=True)
    ai_score = Column(Integer, nullable=True)
    ai_analysis = Column(JSON, nullable=True)  # relevance, professionalism, clarity, experience, summary
    scored_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def proposed_budget(self):
        return {"min": self.proposed_budget_min, "max": self.proposed_budget_max}
