"""
Tag catalog: reusable labels keyed by (name, type), shared by every topic group.
TopicGroupTag binds a tag to a group; the binding has no lifecycle of its own.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH

DEFAULT_TAG_TYPE = "classification"


class Tag(Base):
    __tablename__ = "topic_tags"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(60), nullable=False, default=DEFAULT_TAG_TYPE)  # classification | subject | ...
    description: Mapped[str | None] = mapped_column(String(360), nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("name", "type", name="uq_topic_tags_name_type"),
    )

    assignments = relationship("TopicGroupTag", back_populates="tag", passive_deletes=True)


class TopicGroupTag(Base):
    __tablename__ = "topic_group_tags"

    group_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_groups.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_tags.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    assigned_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    group = relationship("TopicGroup", back_populates="tag_assignments")
    tag = relationship("Tag", back_populates="assignments", lazy="joined")
