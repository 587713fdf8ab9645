"""
TopicComment: discussion thread on one topic version. Not part of the workflow; any status allows it.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from topic_engine.database import Base
from topic_engine.models.enums import CommentType, sql_in_list
from topic_engine.models.types import UuidType, ACTOR_ID_LENGTH, utcnow


class TopicComment(Base):
    __tablename__ = "topic_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    topic_version_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("topic_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=CommentType.GENERAL.value)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_in_list(CommentType)})", name="topic_comments_type_check"),
    )

    topic_version = relationship("TopicVersion", back_populates="comments")
