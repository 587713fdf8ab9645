"""
Topics API: list, create, get, patch, workflow actions (submit, review, publish, revise), history, comments.
Every route resolves the actor from the Bearer token and asks the capability check first.
Engine errors (TopicEngineError) are rendered by the app-level exception handler in main.py.
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from topic_engine.database import get_db
from topic_engine.models.alignment import CurriculumAlignment
from topic_engine.models.comment import TopicComment
from topic_engine.models.tag import TopicGroupTag
from topic_engine.models.topic_group import TopicGroup
from topic_engine.models.topic_version import TopicVersion
from topic_engine.models.workflow import ReviewRecord, WorkflowEvent
from topic_engine.schemas.topic import (
    AlignmentResponse,
    CommentRequest,
    CommentResponse,
    PublishRequest,
    ReviewRequest,
    ReviewResponse,
    RevisionRequest,
    SubmitRequest,
    TagResponse,
    TopicCreateRequest,
    TopicDetailResponse,
    TopicGroupResponse,
    TopicHistoryResponse,
    TopicListResponse,
    TopicResponse,
    TopicUpdateRequest,
    WorkflowEventResponse,
)
from topic_engine.api.deps import require
from topic_engine.services import listing, workflow_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/topics", tags=["topics"])


def _tag_to_response(a: TopicGroupTag) -> TagResponse:
    return TagResponse(
        id=str(a.tag.id),
        name=a.tag.name,
        type=a.tag.type,
        description=a.tag.description,
        metadata=a.tag.meta,
        assigned_at=a.assigned_at,
        assigned_by=a.assigned_by,
    )


def _alignment_to_response(a: CurriculumAlignment) -> AlignmentResponse:
    return AlignmentResponse(
        id=str(a.id),
        framework=a.framework,
        subject=a.subject,
        standard_code=a.standard_code,
        grade_level=a.grade_level,
        description=a.description,
        metadata=a.meta,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _group_to_response(g: TopicGroup) -> TopicGroupResponse:
    return TopicGroupResponse(
        id=str(g.id),
        default_language=g.default_language,
        summary=g.summary,
        archived_at=g.archived_at,
        metadata=g.meta,
        tags=[_tag_to_response(a) for a in g.tag_assignments],
        alignments=[_alignment_to_response(a) for a in g.alignments],
    )


def _event_to_response(e: WorkflowEvent) -> WorkflowEventResponse:
    return WorkflowEventResponse(
        id=str(e.id),
        topic_id=str(e.topic_version_id),
        actor_id=e.actor_id,
        from_status=e.from_status,
        to_status=e.to_status,
        decision=e.decision,
        comment=e.comment,
        metadata=e.meta,
        created_at=e.created_at,
    )


def _review_to_response(r: ReviewRecord) -> ReviewResponse:
    return ReviewResponse(
        id=str(r.id),
        topic_id=str(r.topic_version_id),
        actor_id=r.actor_id,
        decision=r.decision,
        comment=r.comment,
        metadata=r.meta,
        created_at=r.created_at,
    )


def _comment_to_response(c: TopicComment) -> CommentResponse:
    return CommentResponse(
        id=str(c.id),
        topic_id=str(c.topic_version_id),
        author_id=c.author_id,
        type=c.type,
        body=c.body,
        resolved_at=c.resolved_at,
        resolved_by=c.resolved_by,
        created_at=c.created_at,
    )


def _topic_fields(t: TopicVersion, include_content: bool = True) -> dict:
    fields = dict(
        id=str(t.id),
        group_id=str(t.group_id),
        language=t.language,
        title=t.title,
        summary=t.summary,
        status=t.status,
        version=t.version,
        is_latest=t.is_latest,
        supersedes_id=str(t.supersedes_id) if t.supersedes_id else None,
        notes=t.notes,
        tags=[_tag_to_response(a) for a in t.group.tag_assignments],
        created_by=t.created_by,
        updated_by=t.updated_by,
        submitted_by=t.submitted_by,
        submitted_at=t.submitted_at,
        reviewed_by=t.reviewed_by,
        reviewed_at=t.reviewed_at,
        published_by=t.published_by,
        published_at=t.published_at,
        status_changed_at=t.status_changed_at,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )
    if include_content:
        fields.update(
            content_format=t.content_format,
            content=t.content,
            accessibility=t.accessibility,
            metadata=t.meta,
        )
    return fields


def _topic_to_response(t: TopicVersion, include_content: bool = True) -> TopicResponse:
    return TopicResponse(**_topic_fields(t, include_content))


def _topic_to_detail(t: TopicVersion) -> TopicDetailResponse:
    return TopicDetailResponse(
        **_topic_fields(t),
        group=_group_to_response(t.group),
        reviews=[_review_to_response(r) for r in t.reviews],
        workflow=[_event_to_response(e) for e in t.workflow_events],
        comments=[_comment_to_response(c) for c in t.comments],
    )


@router.get("", response_model=TopicListResponse, response_model_exclude_unset=True)
def list_topics(
    status_filter: str | None = Query(None, alias="status"),
    language: str | None = None,
    tag: str | None = None,
    tag_ids: str | None = Query(None, alias="tagIds"),
    search: str | None = None,
    group_id: str | None = Query(None, alias="groupId"),
    base_topic_id: str | None = Query(None, alias="baseTopicId"),
    archived: bool | None = None,
    is_latest: bool | None = Query(None, alias="isLatest"),
    page: int | None = None,
    page_size: int | None = Query(None, alias="pageSize"),
    include_content: bool = Query(False, alias="includeContent"),
    actor_id: str = Depends(require("list")),
    db: Session = Depends(get_db),
):
    """Latest version per (group, language) by default; content elided unless includeContent=true."""
    filters = {
        "status": status_filter,
        "language": language,
        "tag": tag,
        "tag_ids": tag_ids,
        "search": search,
        "group_id": group_id or base_topic_id,
        "archived": archived,
        "is_latest": is_latest,
    }
    result = listing.list_topics(
        db, {k: v for k, v in filters.items() if v is not None}, page=page, page_size=page_size
    )
    return TopicListResponse(
        items=[_topic_to_response(t, include_content=include_content) for t in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.post("", response_model=TopicResponse, status_code=status.HTTP_201_CREATED)
def create_topic(
    data: TopicCreateRequest,
    actor_id: str = Depends(require("create")),
    db: Session = Depends(get_db),
):
    topic = workflow_engine.create_topic(db, data.model_dump(exclude_unset=True), actor_id)
    return _topic_to_response(topic)


@router.get("/{topic_id}", response_model=TopicDetailResponse)
def get_topic(
    topic_id: str,
    actor_id: str = Depends(require("read")),
    db: Session = Depends(get_db),
):
    """One version with group tags/alignments, reviews, workflow events and comments."""
    return _topic_to_detail(listing.get_topic(db, topic_id))


@router.patch("/{topic_id}", response_model=TopicResponse)
def update_topic(
    topic_id: str,
    data: TopicUpdateRequest,
    actor_id: str = Depends(require("update")),
    db: Session = Depends(get_db),
):
    """Partial edit; only DRAFT and CHANGES_REQUESTED versions accept it."""
    topic = workflow_engine.update_topic(db, topic_id, data.model_dump(exclude_unset=True), actor_id)
    return _topic_to_response(topic)


@router.post("/{topic_id}/submit", response_model=TopicResponse)
def submit_topic(
    topic_id: str,
    data: SubmitRequest | None = None,
    actor_id: str = Depends(require("submit")),
    db: Session = Depends(get_db),
):
    comment = data.comment if data else None
    topic = workflow_engine.submit_for_review(db, topic_id, actor_id, comment=comment)
    return _topic_to_response(topic)


@router.post("/{topic_id}/review", response_model=TopicResponse)
def review_topic(
    topic_id: str,
    data: ReviewRequest,
    actor_id: str = Depends(require("review")),
    db: Session = Depends(get_db),
):
    comment = data.comment if data.comment is not None else data.notes
    topic = workflow_engine.record_review_decision(
        db,
        topic_id,
        actor_id,
        data.decision,
        comment=comment,
        metadata=data.metadata,
        updates=data.updates,
        tags=data.tags,
    )
    return _topic_to_response(topic)


@router.post("/{topic_id}/publish", response_model=TopicResponse)
def publish_topic(
    topic_id: str,
    data: PublishRequest | None = None,
    actor_id: str = Depends(require("publish")),
    db: Session = Depends(get_db),
):
    comment = data.comment if data else None
    topic = workflow_engine.publish_topic(db, topic_id, actor_id, comment=comment)
    return _topic_to_response(topic)


@router.post("/{topic_id}/revise", response_model=TopicResponse, status_code=status.HTTP_201_CREATED)
def revise_topic(
    topic_id: str,
    data: RevisionRequest | None = None,
    actor_id: str = Depends(require("revise")),
    db: Session = Depends(get_db),
):
    """New DRAFT on top of a PUBLISHED latest version. 409 if a newer draft already exists."""
    notes = data.notes if data else None
    draft = workflow_engine.create_revision(db, topic_id, actor_id, notes=notes)
    return _topic_to_response(draft)


@router.get("/{topic_id}/history", response_model=TopicHistoryResponse)
def topic_history(
    topic_id: str,
    actor_id: str = Depends(require("read")),
    db: Session = Depends(get_db),
):
    """Every version of the topic's (group, language), newest first."""
    versions = listing.get_topic_history(db, topic_id)
    return TopicHistoryResponse(history=[_topic_to_response(v) for v in versions])


@router.post("/{topic_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment(
    topic_id: str,
    data: CommentRequest,
    actor_id: str = Depends(require("comment")),
    db: Session = Depends(get_db),
):
    comment = workflow_engine.add_comment(
        db, topic_id, actor_id, data.body, type=data.type, resolved=data.resolved
    )
    return _comment_to_response(comment)


@router.post("/comments/{comment_id}/resolve", response_model=CommentResponse)
def resolve_comment(
    comment_id: str,
    actor_id: str = Depends(require("comment")),
    db: Session = Depends(get_db),
):
    return _comment_to_response(workflow_engine.resolve_comment(db, comment_id, actor_id))
