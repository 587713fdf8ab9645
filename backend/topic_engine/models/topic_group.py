"""
TopicGroup: language-agnostic identity of one piece of content.
Tags and curriculum alignments hang off the group and are shared by every language variant.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH


class TopicGroup(Base):
    __tablename__ = "topic_groups"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    default_language: Mapped[str] = mapped_column(String(16), nullable=False, default="en")
    summary: Mapped[str | None] = mapped_column(String(560), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    versions = relationship("TopicVersion", back_populates="group", cascade="all, delete-orphan", passive_deletes=True)
    tag_assignments = relationship(
        "TopicGroupTag", back_populates="group", cascade="all, delete-orphan", passive_deletes=True
    )
    alignments = relationship(
        "CurriculumAlignment",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CurriculumAlignment.created_at",
    )

    @property
    def tags(self):
        return [a.tag for a in self.tag_assignments]
