"""
Append-only audit rows.
WorkflowEvent: one per status transition. ReviewRecord: one per reviewer decision.
Both are written in the same transaction as the change they describe.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.enums import ReviewDecision, sql_in_list
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH, utcnow


class WorkflowEvent(Base):
    __tablename__ = "topic_workflow_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    topic_version_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    actor_id: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)  # null for the first draft of a chain
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    decision: Mapped[str | None] = mapped_column(String(30), nullable=True)  # set on review transitions only
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    topic_version = relationship("TopicVersion", back_populates="workflow_events")


class ReviewRecord(Base):
    __tablename__ = "topic_reviews"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    topic_version_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    actor_id: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    decision: Mapped[str] = mapped_column(String(30), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(f"decision IN ({sql_in_list(ReviewDecision)})", name="topic_reviews_decision_check"),
    )

    topic_version = relationship("TopicVersion", back_populates="reviews")
