"""
Topic request/response schemas. Wire names are camelCase; Python attributes are snake_case.
Field rules (required title/content, lengths, formats) are enforced by the engine, not here.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TopicCreateRequest(_CamelModel):
    title: str | None = None
    summary: str | None = None
    language: str | None = None
    content_format: str | None = None
    content: Any = None
    accessibility: dict | None = None
    metadata: dict | None = None
    tags: list[str | dict] | None = None
    alignments: list[dict] | None = None
    notes: str | None = None
    change_notes: str | None = None
    group_id: str | None = None
    base_topic_id: str | None = None
    group_summary: str | None = None
    group_metadata: dict | None = None


class TopicUpdateRequest(_CamelModel):
    title: str | None = None
    summary: str | None = None
    content_format: str | None = None
    content: Any = None
    accessibility: dict | None = None
    metadata: dict | None = None
    tags: list[str | dict] | None = None
    alignments: list[dict] | None = None
    notes: str | None = None
    change_notes: str | None = None
    group_summary: str | None = None
    group_metadata: dict | None = None


class SubmitRequest(_CamelModel):
    comment: str | None = None


class ReviewRequest(_CamelModel):
    decision: str | None = None
    comment: str | None = None
    notes: str | None = None  # older clients send the reviewer note as "notes"
    metadata: dict | None = None
    updates: dict | None = None
    tags: list[str | dict] | None = None


class PublishRequest(_CamelModel):
    comment: str | None = None


class RevisionRequest(_CamelModel):
    notes: str | None = None


class CommentRequest(_CamelModel):
    body: str | None = None
    type: str | None = None
    resolved: bool = False


class TagResponse(_CamelModel):
    id: str
    name: str
    type: str
    description: str | None = None
    metadata: dict | None = None
    assigned_at: datetime | None = None
    assigned_by: str | None = None


class AlignmentResponse(_CamelModel):
    id: str
    framework: str
    subject: str | None = None
    standard_code: str
    grade_level: str | None = None
    description: str | None = None
    metadata: dict | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TopicGroupResponse(_CamelModel):
    id: str
    default_language: str
    summary: str | None = None
    archived_at: datetime | None = None
    metadata: dict | None = None
    tags: list[TagResponse] = []
    alignments: list[AlignmentResponse] = []


class WorkflowEventResponse(_CamelModel):
    id: str
    topic_id: str
    actor_id: str
    from_status: str | None = None
    to_status: str
    decision: str | None = None
    comment: str | None = None
    metadata: dict | None = None
    created_at: datetime | None = None


class ReviewResponse(_CamelModel):
    id: str
    topic_id: str
    actor_id: str
    decision: str
    comment: str | None = None
    metadata: dict | None = None
    created_at: datetime | None = None


class CommentResponse(_CamelModel):
    id: str
    topic_id: str
    author_id: str
    type: str
    body: str
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    created_at: datetime | None = None


class TopicResponse(_CamelModel):
    id: str
    group_id: str
    language: str
    title: str
    summary: str | None = None
    status: str
    version: int
    is_latest: bool
    supersedes_id: str | None = None
    notes: str | None = None
    tags: list[TagResponse] = []
    created_by: str | None = None
    updated_by: str | None = None
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    published_by: str | None = None
    published_at: datetime | None = None
    status_changed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Omitted from list responses unless includeContent=true
    content_format: str | None = None
    content: Any = None
    accessibility: dict | None = None
    metadata: dict | None = None


class TopicDetailResponse(TopicResponse):
    group: TopicGroupResponse | None = None
    reviews: list[ReviewResponse] = []
    workflow: list[WorkflowEventResponse] = []
    comments: list[CommentResponse] = []


class TopicListResponse(_CamelModel):
    items: list[TopicResponse]
    total: int
    page: int
    page_size: int


class TopicHistoryResponse(_CamelModel):
    history: list[TopicResponse]
