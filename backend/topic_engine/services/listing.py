"""
Read side: paginated topic listing, single-topic aggregate, per-language revision history.
History rows (is_latest=False) and archived groups are hidden from listings unless asked for.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from topic_engine.config import settings
from topic_engine.models.enums import TopicStatus
from topic_engine.models.tag import Tag, TopicGroupTag
from topic_engine.models.topic_group import TopicGroup
from topic_engine.models.topic_version import TopicVersion
from topic_engine.services.errors import InvalidInput, NotFound
from topic_engine.services.payloads import sanitize_language

_FILTER_ALIASES = {
    "baseTopicId": "group_id",
    "base_topic_id": "group_id",
    "groupId": "group_id",
    "tagIds": "tag_ids",
    "isLatest": "is_latest",
}


@dataclass
class TopicPage:
    items: list[TopicVersion]
    total: int
    page: int
    page_size: int


def _split(value: Any) -> list[str]:
    """Accept a list or a comma-separated string; drop blanks."""
    if value is None:
        return []
    raw = value if isinstance(value, (list, tuple, set)) else str(value).split(",")
    return [str(v).strip() for v in raw if v is not None and str(v).strip()]


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Any, default: bool | None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def _parse_uuid(value: Any, *, field: str) -> uuid.UUID:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except ValueError:
        raise InvalidInput(f"{field} is not a valid identifier.", code="TOPIC_FILTER_INVALID", details={field: value})


def normalize_pagination(page: Any = None, page_size: Any = None) -> tuple[int, int]:
    """page >= 1; page_size clamped to 1..max_page_size, default default_page_size."""
    page_value = max(1, _coerce_int(page, 1))
    size_value = _coerce_int(page_size, settings.default_page_size)
    size_value = max(1, min(settings.max_page_size, size_value))
    return page_value, size_value


def list_topics(
    db: Session,
    filters: Mapping[str, Any] | None = None,
    *,
    page: Any = None,
    page_size: Any = None,
) -> TopicPage:
    """
    Filters: status, language, group_id (alias baseTopicId), archived, tag (names), tag_ids,
    search (title/summary substring, case-insensitive), is_latest (default True).
    Newest first by updated_at.
    """
    f = {_FILTER_ALIASES.get(k, k): v for k, v in (filters or {}).items()}
    page_value, size_value = normalize_pagination(page, page_size)

    stmt = select(TopicVersion).join(TopicGroup, TopicVersion.group_id == TopicGroup.id)

    statuses = [s.upper() for s in _split(f.get("status"))]
    valid_statuses = [s for s in statuses if s in TopicStatus.__members__]
    if valid_statuses:
        stmt = stmt.where(TopicVersion.status.in_(valid_statuses))

    languages = [sanitize_language(lang) for lang in _split(f.get("language"))]
    if languages:
        stmt = stmt.where(TopicVersion.language.in_(languages))

    if f.get("group_id"):
        stmt = stmt.where(TopicVersion.group_id == _parse_uuid(f["group_id"], field="group_id"))

    if _coerce_bool(f.get("archived"), False):
        stmt = stmt.where(TopicGroup.archived_at.is_not(None))
    else:
        stmt = stmt.where(TopicGroup.archived_at.is_(None))

    tag_names = [t.lower() for t in _split(f.get("tag"))]
    if tag_names:
        tagged_groups = (
            select(TopicGroupTag.group_id)
            .join(Tag, Tag.id == TopicGroupTag.tag_id)
            .where(Tag.name.in_(tag_names))
        )
        stmt = stmt.where(TopicVersion.group_id.in_(tagged_groups))

    tag_ids = [_parse_uuid(t, field="tag_ids") for t in _split(f.get("tag_ids"))]
    if tag_ids:
        stmt = stmt.where(
            TopicVersion.group_id.in_(select(TopicGroupTag.group_id).where(TopicGroupTag.tag_id.in_(tag_ids)))
        )

    term = str(f.get("search") or "").strip()
    if term:
        stmt = stmt.where(
            TopicVersion.title.icontains(term, autoescape=True)
            | TopicVersion.summary.icontains(term, autoescape=True)
        )

    if _coerce_bool(f.get("is_latest"), True):
        stmt = stmt.where(TopicVersion.is_latest.is_(True))

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    items = (
        db.execute(
            stmt.order_by(TopicVersion.updated_at.desc(), TopicVersion.id)
            .offset((page_value - 1) * size_value)
            .limit(size_value)
            .options(selectinload(TopicVersion.group).selectinload(TopicGroup.tag_assignments))
        )
        .scalars()
        .all()
    )
    return TopicPage(items=list(items), total=total, page=page_value, page_size=size_value)


def _topic_ident(topic_id: Any) -> uuid.UUID:
    try:
        return topic_id if isinstance(topic_id, uuid.UUID) else uuid.UUID(str(topic_id))
    except ValueError:
        raise NotFound("Topic not found.", code="TOPIC_NOT_FOUND", details={"topic_id": str(topic_id)})


def get_topic(db: Session, topic_id: Any) -> TopicVersion:
    """One version with its group (tags, alignments), reviews, workflow events and comments loaded."""
    ident = _topic_ident(topic_id)
    stmt = (
        select(TopicVersion)
        .where(TopicVersion.id == ident)
        .options(
            selectinload(TopicVersion.group).selectinload(TopicGroup.tag_assignments),
            selectinload(TopicVersion.group).selectinload(TopicGroup.alignments),
            selectinload(TopicVersion.reviews),
            selectinload(TopicVersion.workflow_events),
            selectinload(TopicVersion.comments),
        )
    )
    topic = db.execute(stmt).scalars().first()
    if topic is None:
        raise NotFound("Topic not found.", code="TOPIC_NOT_FOUND", details={"topic_id": str(ident)})
    return topic


def get_topic_history(db: Session, topic_id: Any) -> list[TopicVersion]:
    """Every version sharing the topic's (group, language), newest version first."""
    ident = _topic_ident(topic_id)
    topic = db.get(TopicVersion, ident)
    if topic is None:
        raise NotFound("Topic not found.", code="TOPIC_NOT_FOUND", details={"topic_id": str(ident)})
    stmt = (
        select(TopicVersion)
        .where(TopicVersion.group_id == topic.group_id, TopicVersion.language == topic.language)
        .order_by(TopicVersion.version.desc(), TopicVersion.created_at.desc())
        .options(selectinload(TopicVersion.group).selectinload(TopicGroup.tag_assignments))
    )
    return list(db.execute(stmt).scalars().all())
