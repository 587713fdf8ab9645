"""
CurriculumAlignment: links a topic group to an external standard (framework + code + grade).
Owned by exactly one group; rows absent from a sync payload are deleted.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH


class CurriculumAlignment(Base):
    __tablename__ = "curriculum_alignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    framework: Mapped[str] = mapped_column(String(120), nullable=False)  # e.g. CCSS, NGSS
    subject: Mapped[str | None] = mapped_column(String(120), nullable=True)
    standard_code: Mapped[str] = mapped_column(String(120), nullable=False)
    grade_level: Mapped[str | None] = mapped_column(String(40), nullable=True)
    description: Mapped[str | None] = mapped_column(String(560), nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    group = relationship("TopicGroup", back_populates="alignments")
