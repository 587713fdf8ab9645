"""Initial topic schema: groups, versions, tags, alignments, workflow events, reviews, comments.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_STATUSES = "'DRAFT', 'IN_REVIEW', 'CHANGES_REQUESTED', 'APPROVED', 'PUBLISHED', 'ARCHIVED'"


def upgrade() -> None:
    op.create_table(
        "topic_tags",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("type", sa.String(60), nullable=False, server_default="classification"),
        sa.Column("description", sa.String(360), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "type", name="uq_topic_tags_name_type"),
    )
    op.create_index("ix_topic_tags_name", "topic_tags", ["name"], unique=False)

    op.create_table(
        "topic_groups",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("default_language", sa.String(16), nullable=False, server_default="en"),
        sa.Column("summary", sa.String(560), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_topic_groups_archived_at", "topic_groups", ["archived_at"], unique=False)

    op.create_table(
        "topic_group_tags",
        sa.Column("group_id", sa.String(36), nullable=False),
        sa.Column("tag_id", sa.String(36), nullable=False),
        sa.Column("assigned_by", sa.String(128), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["topic_groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["topic_tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("group_id", "tag_id"),
    )
    op.create_index("ix_topic_group_tags_tag_id", "topic_group_tags", ["tag_id"], unique=False)

    op.create_table(
        "curriculum_alignments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("group_id", sa.String(36), nullable=False),
        sa.Column("framework", sa.String(120), nullable=False),
        sa.Column("subject", sa.String(120), nullable=True),
        sa.Column("standard_code", sa.String(120), nullable=False),
        sa.Column("grade_level", sa.String(40), nullable=True),
        sa.Column("description", sa.String(560), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["topic_groups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_curriculum_alignments_group_id", "curriculum_alignments", ["group_id"], unique=False)

    op.create_table(
        "topic_versions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("group_id", sa.String(36), nullable=False),
        sa.Column("language", sa.String(16), nullable=False),
        sa.Column("title", sa.String(240), nullable=False),
        sa.Column("summary", sa.String(560), nullable=True),
        sa.Column("content", postgresql.JSONB(), nullable=True),
        sa.Column("content_format", sa.String(10), nullable=False, server_default="JSON"),
        sa.Column("accessibility", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="DRAFT"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_latest", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("supersedes_id", sa.String(36), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("submitted_by", sa.String(128), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_by", sa.String(128), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(f"status IN ({_STATUSES})", name="topic_versions_status_check"),
        sa.CheckConstraint("content_format IN ('JSON', 'HTML')", name="topic_versions_content_format_check"),
        sa.CheckConstraint("version >= 1", name="topic_versions_version_check"),
        sa.ForeignKeyConstraint(["group_id"], ["topic_groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["supersedes_id"], ["topic_versions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_topic_versions_group_id", "topic_versions", ["group_id"], unique=False)
    op.create_index("ix_topic_versions_language", "topic_versions", ["language"], unique=False)
    op.create_index("ix_topic_versions_status", "topic_versions", ["status"], unique=False)
    op.create_index("ix_topic_versions_supersedes_id", "topic_versions", ["supersedes_id"], unique=False)
    op.create_index("ix_topic_versions_chain", "topic_versions", ["group_id", "language", "version"], unique=False)
    # At most one latest version per (group, language)
    op.create_index(
        "uq_topic_versions_latest_per_language",
        "topic_versions",
        ["group_id", "language"],
        unique=True,
        postgresql_where=sa.text("is_latest"),
        sqlite_where=sa.text("is_latest = 1"),
    )

    op.create_table(
        "topic_workflow_events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("topic_version_id", sa.String(36), nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("from_status", sa.String(30), nullable=True),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("decision", sa.String(30), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["topic_version_id"], ["topic_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_topic_workflow_events_topic_version_id", "topic_workflow_events", ["topic_version_id"], unique=False
    )

    op.create_table(
        "topic_reviews",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("topic_version_id", sa.String(36), nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("decision", sa.String(30), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("decision IN ('APPROVED', 'CHANGES_REQUESTED')", name="topic_reviews_decision_check"),
        sa.ForeignKeyConstraint(["topic_version_id"], ["topic_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_topic_reviews_topic_version_id", "topic_reviews", ["topic_version_id"], unique=False)

    op.create_table(
        "topic_comments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("topic_version_id", sa.String(36), nullable=False),
        sa.Column("author_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="GENERAL"),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("type IN ('GENERAL', 'SUGGESTION', 'ISSUE')", name="topic_comments_type_check"),
        sa.ForeignKeyConstraint(["topic_version_id"], ["topic_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_topic_comments_topic_version_id", "topic_comments", ["topic_version_id"], unique=False)


def downgrade() -> None:
    op.drop_table("topic_comments")
    op.drop_table("topic_reviews")
    op.drop_table("topic_workflow_events")
    op.drop_index("uq_topic_versions_latest_per_language", table_name="topic_versions")
    op.drop_table("topic_versions")
    op.drop_table("curriculum_alignments")
    op.drop_table("topic_group_tags")
    op.drop_table("topic_groups")
    op.drop_index("ix_topic_tags_name", table_name="topic_tags")
    op.drop_table("topic_tags")
