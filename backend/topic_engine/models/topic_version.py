"""
TopicVersion: one snapshot of a group's content in one language, with its own workflow status.
At most one row per (group_id, language) has is_latest=True; the partial unique index enforces it.
Versions chain through supersedes_id; version numbers increase by one along the chain.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.enums import TopicStatus, ContentFormat, sql_in_list
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH, utcnow

LATEST_INDEX_NAME = "uq_topic_versions_latest_per_language"


class TopicVersion(Base):
    __tablename__ = "topic_versions"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    language: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(240), nullable=False)
    summary: Mapped[str | None] = mapped_column(String(560), nullable=True)
    content: Mapped[dict | str | None] = mapped_column(JSON, nullable=True)  # object for JSON, string for HTML
    content_format: Mapped[str] = mapped_column(String(10), nullable=False, default=ContentFormat.JSON.value)
    accessibility: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=TopicStatus.DRAFT.value, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_latest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    supersedes_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("topic_versions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in_list(TopicStatus)})", name="topic_versions_status_check"),
        CheckConstraint(f"content_format IN ({sql_in_list(ContentFormat)})", name="topic_versions_content_format_check"),
        CheckConstraint("version >= 1", name="topic_versions_version_check"),
        Index(
            LATEST_INDEX_NAME,
            "group_id",
            "language",
            unique=True,
            sqlite_where=text("is_latest = 1"),
            postgresql_where=text("is_latest"),
        ),
        Index("ix_topic_versions_chain", "group_id", "language", "version"),
    )

    group = relationship("TopicGroup", back_populates="versions")
    supersedes = relationship("TopicVersion", remote_side="TopicVersion.id", uselist=False)
    workflow_events = relationship(
        "WorkflowEvent",
        back_populates="topic_version",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WorkflowEvent.created_at",
    )
    reviews = relationship(
        "ReviewRecord",
        back_populates="topic_version",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ReviewRecord.created_at",
    )
    comments = relationship(
        "TopicComment",
        back_populates="topic_version",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TopicComment.created_at",
    )
