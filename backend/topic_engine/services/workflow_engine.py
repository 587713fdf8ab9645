"""
Topic workflow engine: create / update / submit / review / publish / revise / comment.

State machine:
    DRAFT -> IN_REVIEW -> APPROVED -> PUBLISHED
                       -> CHANGES_REQUESTED -> IN_REVIEW
    PUBLISHED --revise--> new DRAFT version (old version keeps PUBLISHED, loses is_latest)

Every public function is one unit of work: commit on success, rollback and re-raise on any error.
Status transitions write exactly one WorkflowEvent in the same transaction; plain edits write none.
"""
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from topic_engine import metrics
from topic_engine.models.comment import TopicComment
from topic_engine.models.enums import EDITABLE_STATUSES, ReviewDecision, TopicStatus
from topic_engine.models.topic_group import TopicGroup
from topic_engine.models.topic_version import LATEST_INDEX_NAME, TopicVersion
from topic_engine.models.types import utcnow
from topic_engine.models.workflow import ReviewRecord, WorkflowEvent
from topic_engine.services.associations import sync_group_alignments, sync_group_tags
from topic_engine.services.errors import Conflict, InvalidInput, InvalidState, NotFound
from topic_engine.services.payloads import (
    COMMENT_BODY_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    SUMMARY_MAX_LENGTH,
    build_version_fields,
    normalize_comment_type,
    normalize_decision,
    normalize_keys,
    sanitize_json_object,
    sanitize_string,
)

logger = logging.getLogger(__name__)

# Fields copied from a published version into its revision draft.
_REVISION_CLONED_FIELDS = ("title", "summary", "content", "content_format", "accessibility", "meta")
# Reviewers may touch descriptive fields while a topic is in review, never the content body.
_REVIEW_EDITABLE_FIELDS = frozenset({"title", "summary", "accessibility", "meta"})
# SQLite reports partial unique index violations by column list, PostgreSQL by index name.
_LATEST_VIOLATION_MARKERS = (LATEST_INDEX_NAME, "topic_versions.group_id, topic_versions.language")


@contextmanager
def _unit_of_work(db: Session):
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        message = str(getattr(e, "orig", e))
        if any(marker in message for marker in _LATEST_VIOLATION_MARKERS):
            metrics.increment_revision_conflicts_total()
            logger.warning("Latest-version race lost: %s", message)
            raise Conflict(
                "a newer draft already exists for this topic language",
                code="TOPIC_LATEST_CONFLICT",
            ) from e
        raise
    except Exception:
        db.rollback()
        raise


def _require_actor(actor_id: Any) -> str:
    actor = str(actor_id).strip() if actor_id is not None else ""
    if not actor:
        raise InvalidInput("An actor id is required to manage topics.", code="TOPIC_ACTOR_REQUIRED")
    return actor


def _as_uuid(value: Any, *, what: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{what} not found.", code=f"{_code(what)}_NOT_FOUND", details={"id": str(value)})


def _code(what: str) -> str:
    return what.upper().replace(" ", "_")


def _get_version(db: Session, topic_id: Any, *, lock: bool = False) -> TopicVersion:
    ident = _as_uuid(topic_id, what="Topic")
    topic = db.get(TopicVersion, ident, with_for_update=True if lock else None, populate_existing=lock)
    if topic is None:
        raise NotFound("Topic not found.", code="TOPIC_NOT_FOUND", details={"topic_id": str(ident)})
    return topic


def _get_group(db: Session, group_id: Any) -> TopicGroup:
    ident = _as_uuid(group_id, what="Topic group")
    group = db.get(TopicGroup, ident)
    if group is None:
        raise NotFound("Topic group not found.", code="TOPIC_GROUP_NOT_FOUND", details={"group_id": str(ident)})
    return group


def _lock_latest(db: Session, group_id: uuid.UUID, language: str) -> TopicVersion | None:
    """Current latest for (group, language), re-read under a row lock right before it is acted on."""
    stmt = (
        select(TopicVersion)
        .where(
            TopicVersion.group_id == group_id,
            TopicVersion.language == language,
            TopicVersion.is_latest.is_(True),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def _require_status(topic: TopicVersion, allowed, *, attempted: str, message: str, code: str) -> None:
    if topic.status not in {s.value for s in allowed}:
        raise InvalidState(message, topic_id=topic.id, status=topic.status, attempted=attempted, code=code)


def _transition(
    db: Session,
    topic: TopicVersion,
    to_status: TopicStatus,
    actor_id: str,
    *,
    from_status: str | None,
    decision: ReviewDecision | None = None,
    comment: str | None = None,
    meta: dict | None = None,
) -> WorkflowEvent:
    now = utcnow()
    topic.status = to_status.value
    topic.status_changed_at = now
    topic.updated_by = actor_id
    event = WorkflowEvent(
        topic_version_id=topic.id,
        actor_id=actor_id,
        from_status=from_status,
        to_status=to_status.value,
        decision=decision.value if decision else None,
        comment=comment,
        meta=meta,
        created_at=now,
    )
    db.add(event)
    metrics.record_transition(from_status, to_status.value)
    return event


def _apply_group_fields(group: TopicGroup, data: Mapping[str, Any], actor_id: str) -> None:
    if "group_summary" in data:
        group.summary = sanitize_string(data.get("group_summary"), field="Group summary", max_length=SUMMARY_MAX_LENGTH)
        group.updated_by = actor_id
    if "group_metadata" in data:
        group.meta = sanitize_json_object(data.get("group_metadata"), field="Group metadata")
        group.updated_by = actor_id


def _sync_associations(db: Session, group: TopicGroup, data: Mapping[str, Any], actor_id: str) -> None:
    if data.get("tags") is not None:
        sync_group_tags(db, group, data["tags"], actor_id=actor_id)
    if data.get("alignments") is not None:
        sync_group_alignments(db, group, data["alignments"], actor_id=actor_id)


def create_topic(db: Session, payload: Mapping[str, Any], actor_id: str) -> TopicVersion:
    """
    New DRAFT version with is_latest=True.
    Without group_id a new TopicGroup is created. With group_id, an existing latest version for the
    same language is demoted and the new draft continues its chain (version + 1, supersedes it).
    A variant added to an existing group without a language uses the group's default_language.
    """
    actor_id = _require_actor(actor_id)
    data = normalize_keys(payload)
    fields = build_version_fields(data, partial=False)
    language = fields["language"]

    with _unit_of_work(db):
        previous = None
        if data.get("group_id"):
            group = _get_group(db, data["group_id"])
            if sanitize_string(data.get("language"), field="Language") is None:
                fields["language"] = group.default_language
                language = group.default_language
            _apply_group_fields(group, data, actor_id)
            previous = _lock_latest(db, group.id, language)
        else:
            group = TopicGroup(
                default_language=language,
                summary=sanitize_string(
                    data.get("group_summary", fields.get("summary")),
                    field="Group summary",
                    max_length=SUMMARY_MAX_LENGTH,
                ),
                meta=sanitize_json_object(data.get("group_metadata"), field="Group metadata"),
                created_by=actor_id,
                updated_by=actor_id,
            )
            db.add(group)
            db.flush()

        version_number = 1
        supersedes_id = None
        from_status = None
        if previous is not None:
            previous.is_latest = False
            previous.updated_by = actor_id
            # Demote before the insert so the partial unique index never sees two latest rows.
            db.flush()
            version_number = previous.version + 1
            supersedes_id = previous.id
            from_status = previous.status

        topic = TopicVersion(
            group_id=group.id,
            version=version_number,
            is_latest=True,
            supersedes_id=supersedes_id,
            created_by=actor_id,
            updated_by=actor_id,
            **fields,
        )
        db.add(topic)
        db.flush()
        _sync_associations(db, group, data, actor_id)
        _transition(
            db, topic, TopicStatus.DRAFT, actor_id,
            from_status=from_status,
            comment=fields.get("notes") or "Draft created.",
        )

    logger.info(
        "Topic draft created: topic_id=%s group_id=%s language=%s version=%s actor_id=%s",
        topic.id, topic.group_id, topic.language, topic.version, actor_id,
    )
    return topic


def update_topic(db: Session, topic_id: Any, payload: Mapping[str, Any], actor_id: str) -> TopicVersion:
    """Partial edit of an editable version, plus optional group-level tag/alignment/summary sync."""
    actor_id = _require_actor(actor_id)
    data = normalize_keys(payload)

    with _unit_of_work(db):
        topic = _get_version(db, topic_id, lock=True)
        _require_status(
            topic, EDITABLE_STATUSES,
            attempted="update",
            message="only draft topics can be modified",
            code="TOPIC_UPDATE_INVALID_STATUS",
        )
        fields = build_version_fields(
            data, partial=True, current_format=topic.content_format, current_content=topic.content
        )
        for key, value in fields.items():
            setattr(topic, key, value)
        topic.updated_by = actor_id

        group = topic.group
        _apply_group_fields(group, data, actor_id)
        _sync_associations(db, group, data, actor_id)

    logger.info("Topic draft updated: topic_id=%s actor_id=%s fields=%s", topic.id, actor_id, sorted(fields))
    return topic


def submit_for_review(db: Session, topic_id: Any, actor_id: str, comment: str | None = None) -> TopicVersion:
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        topic = _get_version(db, topic_id, lock=True)
        _require_status(
            topic, EDITABLE_STATUSES,
            attempted="submit",
            message="only draft topics can be submitted for review",
            code="TOPIC_SUBMIT_INVALID_STATUS",
        )
        note = sanitize_string(comment, field="Submission comment", max_length=NOTES_MAX_LENGTH)
        from_status = topic.status
        _transition(db, topic, TopicStatus.IN_REVIEW, actor_id, from_status=from_status, comment=note)
        topic.submitted_by = actor_id
        topic.submitted_at = topic.status_changed_at

    logger.info("Topic submitted for review: topic_id=%s actor_id=%s from=%s", topic.id, actor_id, from_status)
    return topic


def record_review_decision(
    db: Session,
    topic_id: Any,
    actor_id: str,
    decision: Any,
    comment: str | None = None,
    metadata: dict | None = None,
    *,
    updates: Mapping[str, Any] | None = None,
    tags: Any = None,
) -> TopicVersion:
    """
    Reviewer verdict on an IN_REVIEW version. "approve"/"approved" -> APPROVED,
    "changes_requested"/"request_changes" -> CHANGES_REQUESTED (comment is kept in notes).
    Writes one ReviewRecord and one WorkflowEvent.
    """
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        topic = _get_version(db, topic_id, lock=True)
        _require_status(
            topic, {TopicStatus.IN_REVIEW},
            attempted="review",
            message="only topics in review can be decided",
            code="TOPIC_REVIEW_INVALID_STATUS",
        )
        verdict = normalize_decision(decision)
        note = sanitize_string(comment, field="Review comment", max_length=NOTES_MAX_LENGTH)
        meta = sanitize_json_object(metadata, field="Review metadata")

        if updates:
            edits = normalize_keys(updates)
            blocked = sorted(set(edits) - _REVIEW_EDITABLE_FIELDS)
            if blocked:
                raise InvalidInput(
                    "Only title, summary, accessibility and metadata can be edited during review.",
                    code="TOPIC_REVIEW_UPDATES_INVALID",
                    details={"fields": blocked},
                )
            for key, value in build_version_fields(edits, partial=True).items():
                setattr(topic, key, value)
        if tags is not None:
            sync_group_tags(db, topic.group, tags, actor_id=actor_id)

        from_status = topic.status
        to_status = TopicStatus(verdict.value)
        _transition(
            db, topic, to_status, actor_id,
            from_status=from_status, decision=verdict, comment=note, meta=meta,
        )
        topic.reviewed_by = actor_id
        topic.reviewed_at = topic.status_changed_at
        if verdict == ReviewDecision.CHANGES_REQUESTED:
            topic.notes = note
        db.add(ReviewRecord(
            topic_version_id=topic.id,
            actor_id=actor_id,
            decision=verdict.value,
            comment=note,
            meta=meta,
            created_at=topic.status_changed_at,
        ))

    logger.info("Topic review recorded: topic_id=%s actor_id=%s decision=%s", topic.id, actor_id, verdict.value)
    return topic


def publish_topic(db: Session, topic_id: Any, actor_id: str, comment: str | None = None) -> TopicVersion:
    """APPROVED -> PUBLISHED. is_latest is left as it is."""
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        topic = _get_version(db, topic_id, lock=True)
        _require_status(
            topic, {TopicStatus.APPROVED},
            attempted="publish",
            message="only approved topics can be published",
            code="TOPIC_PUBLISH_INVALID_STATUS",
        )
        note = sanitize_string(comment, field="Publish comment", max_length=NOTES_MAX_LENGTH)
        _transition(db, topic, TopicStatus.PUBLISHED, actor_id, from_status=topic.status, comment=note)
        topic.published_by = actor_id
        topic.published_at = topic.status_changed_at

    logger.info("Topic published: topic_id=%s actor_id=%s version=%s", topic.id, actor_id, topic.version)
    return topic


def create_revision(db: Session, topic_id: Any, actor_id: str, notes: str | None = None) -> TopicVersion:
    """
    Open a new DRAFT on top of a PUBLISHED version. The source must still be the latest for its
    (group, language); otherwise someone already revised it and Conflict is raised.
    """
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        source = _get_version(db, topic_id, lock=True)
        _require_status(
            source, {TopicStatus.PUBLISHED},
            attempted="revise",
            message="only published topics can be revised",
            code="TOPIC_REVISE_INVALID_STATUS",
        )
        latest = _lock_latest(db, source.group_id, source.language)
        if latest is None or latest.id != source.id:
            metrics.increment_revision_conflicts_total()
            logger.warning(
                "Revision conflict: topic_id=%s latest_id=%s actor_id=%s",
                source.id, latest.id if latest else None, actor_id,
            )
            raise Conflict(
                "a newer draft already exists",
                code="TOPIC_REVISION_CONFLICT",
                details={
                    "topic_id": str(source.id),
                    "latest_id": str(latest.id) if latest else None,
                    "status": source.status,
                },
            )
        change_notes = sanitize_string(notes, field="Revision notes", max_length=NOTES_MAX_LENGTH)

        source.is_latest = False
        source.updated_by = actor_id
        db.flush()

        draft = TopicVersion(
            group_id=source.group_id,
            language=source.language,
            version=source.version + 1,
            is_latest=True,
            supersedes_id=source.id,
            notes=change_notes,
            created_by=actor_id,
            updated_by=actor_id,
            **{field: getattr(source, field) for field in _REVISION_CLONED_FIELDS},
        )
        db.add(draft)
        db.flush()
        _transition(
            db, draft, TopicStatus.DRAFT, actor_id,
            from_status=TopicStatus.PUBLISHED.value,
            comment=change_notes or "Revision opened from published version.",
        )

    logger.info(
        "Topic revision created: topic_id=%s source_id=%s version=%s actor_id=%s",
        draft.id, source.id, draft.version, actor_id,
    )
    return draft


def add_comment(
    db: Session,
    topic_id: Any,
    actor_id: str,
    body: Any,
    type: Any = None,
    *,
    resolved: bool = False,
) -> TopicComment:
    """Append to the version's comment thread. Allowed in every status; not a transition."""
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        topic = _get_version(db, topic_id)
        text = sanitize_string(body, field="Comment body", max_length=COMMENT_BODY_MAX_LENGTH, required=True)
        comment = TopicComment(
            topic_version_id=topic.id,
            author_id=actor_id,
            type=normalize_comment_type(type).value,
            body=text,
        )
        if resolved:
            comment.resolved_at = utcnow()
            comment.resolved_by = actor_id
        db.add(comment)
        db.flush()

    logger.info("Topic comment added: topic_id=%s comment_id=%s actor_id=%s", topic.id, comment.id, actor_id)
    return comment


def resolve_comment(db: Session, comment_id: Any, actor_id: str) -> TopicComment:
    actor_id = _require_actor(actor_id)
    with _unit_of_work(db):
        ident = _as_uuid(comment_id, what="Topic comment")
        comment = db.get(TopicComment, ident)
        if comment is None:
            raise NotFound(
                "Topic comment not found.", code="TOPIC_COMMENT_NOT_FOUND", details={"comment_id": str(ident)}
            )
        if comment.resolved_at is None:
            comment.resolved_at = utcnow()
            comment.resolved_by = actor_id
    return comment
