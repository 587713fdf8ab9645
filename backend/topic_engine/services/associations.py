"""
Group-scoped association sync: tag bindings and curriculum alignments.
Both are full-replace-by-diff: whatever the payload lists is what the group ends up with.
Tags themselves live in a shared catalog and are never deleted here; only bindings are.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from topic_engine.models.alignment import CurriculumAlignment
from topic_engine.models.tag import DEFAULT_TAG_TYPE, Tag, TopicGroupTag
from topic_engine.models.topic_group import TopicGroup
from topic_engine.models.types import utcnow
from topic_engine.services.errors import InvalidInput
from topic_engine.services.payloads import sanitize_json_object, sanitize_string
from topic_engine.services.reconcile import Reconciliation, reconcile

logger = logging.getLogger(__name__)

TAG_NAME_MAX_LENGTH = 160
TAG_TYPE_MAX_LENGTH = 60
TAG_DESCRIPTION_MAX_LENGTH = 360
_UNSET = object()


@dataclass(frozen=True)
class TagDescriptor:
    name: str
    type: str = DEFAULT_TAG_TYPE
    description: Any = _UNSET  # _UNSET: leave the catalog row's description alone
    metadata: Any = _UNSET

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.name)


def normalize_tag_name(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip()).lower()[:TAG_NAME_MAX_LENGTH].rstrip()


def normalize_tag_descriptors(tags: Any) -> list[TagDescriptor]:
    """Parse strings / {name, type, description?, metadata?}; dedupe on (type, name), first one wins."""
    if not isinstance(tags, (list, tuple)):
        raise InvalidInput("Tags must be provided as a list.", code="TOPIC_TAGS_INVALID")
    unique: dict[tuple[str, str], TagDescriptor] = {}
    for raw in tags:
        descriptor = _parse_tag(raw)
        if descriptor is None:
            continue
        unique.setdefault(descriptor.key, descriptor)
    return list(unique.values())


def _parse_tag(raw: Any) -> TagDescriptor | None:
    if isinstance(raw, str):
        name = normalize_tag_name(raw)
        return TagDescriptor(name=name) if name else None
    if not isinstance(raw, dict):
        raise InvalidInput("Each tag must be a string or an object with a name.", code="TOPIC_TAGS_INVALID")

    label = raw.get("name", raw.get("label"))
    name = sanitize_string(label, field="Tag name", required=True)
    tag_type = sanitize_string(raw.get("type"), field="Tag type", max_length=TAG_TYPE_MAX_LENGTH)
    description: Any = _UNSET
    if "description" in raw:
        description = sanitize_string(
            raw.get("description"), field="Tag description", max_length=TAG_DESCRIPTION_MAX_LENGTH
        )
    metadata: Any = _UNSET
    if "metadata" in raw:
        metadata = sanitize_json_object(raw.get("metadata"), field="Tag metadata")
    return TagDescriptor(
        name=normalize_tag_name(name),
        type=(tag_type or DEFAULT_TAG_TYPE).lower(),
        description=description,
        metadata=metadata,
    )


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for upsert: {dialect}")
    return insert


def upsert_tag(db: Session, descriptor: TagDescriptor, *, actor_id: str | None) -> Tag:
    """
    Insert-if-absent on the (name, type) unique key, then annotate in place if the descriptor
    carries a different description/metadata. Safe under concurrent first use of the same name.
    """
    insert = _dialect_insert(db)
    values = {
        "id": uuid.uuid4(),
        "name": descriptor.name,
        "type": descriptor.type,
        "description": None if descriptor.description is _UNSET else descriptor.description,
        "meta": None if descriptor.metadata is _UNSET else descriptor.metadata,
        "created_by": actor_id,
    }
    db.execute(insert(Tag).values(**values).on_conflict_do_nothing(index_elements=["name", "type"]))

    tag = db.execute(
        select(Tag).where(Tag.name == descriptor.name, Tag.type == descriptor.type)
    ).scalar_one()
    changed = False
    if descriptor.description is not _UNSET and tag.description != descriptor.description:
        tag.description = descriptor.description
        changed = True
    if descriptor.metadata is not _UNSET and tag.meta != descriptor.metadata:
        tag.meta = descriptor.metadata
        changed = True
    if changed:
        logger.info("Tag annotated: tag_id=%s name=%s type=%s", tag.id, tag.name, tag.type)
    return tag


def sync_group_tags(db: Session, group: TopicGroup, tags: Any, *, actor_id: str | None) -> Reconciliation:
    """Make the group's bindings exactly the given tags. Returns the applied diff."""
    descriptors = normalize_tag_descriptors(tags)
    desired_ids = [upsert_tag(db, d, actor_id=actor_id).id for d in descriptors]
    db.flush()

    existing_ids = db.execute(
        select(TopicGroupTag.tag_id).where(TopicGroupTag.group_id == group.id)
    ).scalars().all()
    diff = reconcile(existing_ids, desired_ids)

    if diff.to_remove:
        db.execute(
            delete(TopicGroupTag).where(
                TopicGroupTag.group_id == group.id,
                TopicGroupTag.tag_id.in_(list(diff.to_remove)),
            )
        )
    if diff.to_add:
        insert = _dialect_insert(db)
        assigned_at = utcnow()
        for tag_id in diff.to_add:
            db.execute(
                insert(TopicGroupTag)
                .values(group_id=group.id, tag_id=tag_id, assigned_by=actor_id, assigned_at=assigned_at)
                .on_conflict_do_nothing(index_elements=["group_id", "tag_id"])
            )
    db.expire(group, ["tag_assignments"])
    if not diff.is_noop:
        logger.info(
            "Group tags synced: group_id=%s added=%s removed=%s",
            group.id, len(diff.to_add), len(diff.to_remove),
        )
    return diff


def _parse_alignment(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise InvalidInput("Each alignment must be an object.", code="TOPIC_ALIGNMENT_INVALID")
    alignment_id = raw.get("id")
    if alignment_id is not None:
        try:
            alignment_id = uuid.UUID(str(alignment_id))
        except ValueError:
            raise InvalidInput(
                "Alignment id is not a valid identifier.",
                code="TOPIC_ALIGNMENT_INVALID",
                details={"id": raw.get("id")},
            )
    return {
        "id": alignment_id,
        "framework": sanitize_string(raw.get("framework"), field="Alignment framework", max_length=120, required=True),
        "subject": sanitize_string(raw.get("subject"), field="Alignment subject", max_length=120),
        "standard_code": sanitize_string(
            raw.get("standard_code", raw.get("standardCode", raw.get("code"))),
            field="Alignment standard code",
            max_length=120,
            required=True,
        ),
        "grade_level": sanitize_string(
            raw.get("grade_level", raw.get("gradeLevel")), field="Alignment grade level", max_length=40
        ),
        "description": sanitize_string(raw.get("description"), field="Alignment description", max_length=560),
        "meta": sanitize_json_object(raw.get("metadata", raw.get("meta")), field="Alignment metadata"),
    }


def sync_group_alignments(db: Session, group: TopicGroup, alignments: Any, *, actor_id: str | None) -> Reconciliation:
    """Entries with an id update that row, entries without one are created, unlisted rows are deleted."""
    if not isinstance(alignments, (list, tuple)):
        raise InvalidInput("Alignments must be provided as a list.", code="TOPIC_ALIGNMENTS_INVALID")
    desired = [_parse_alignment(raw) for raw in alignments]

    existing = {
        row.id: row
        for row in db.execute(
            select(CurriculumAlignment).where(CurriculumAlignment.group_id == group.id)
        ).scalars()
    }
    kept_ids = [item["id"] for item in desired if item["id"] is not None]
    if len(kept_ids) != len(set(kept_ids)):
        raise InvalidInput("Alignment ids must not repeat.", code="TOPIC_ALIGNMENT_INVALID")
    unknown = [str(i) for i in kept_ids if i not in existing]
    if unknown:
        raise InvalidInput(
            "Alignment does not belong to this topic group.",
            code="TOPIC_ALIGNMENT_INVALID",
            details={"ids": unknown, "group_id": str(group.id)},
        )

    diff = reconcile(existing.keys(), kept_ids)
    for alignment_id in diff.to_remove:
        db.delete(existing[alignment_id])

    created = 0
    for item in desired:
        fields = {k: v for k, v in item.items() if k != "id"}
        if item["id"] is None:
            db.add(CurriculumAlignment(group_id=group.id, created_by=actor_id, updated_by=actor_id, **fields))
            created += 1
            continue
        row = existing[item["id"]]
        for key, value in fields.items():
            setattr(row, key, value)
        row.updated_by = actor_id
    db.flush()
    db.expire(group, ["alignments"])
    logger.info(
        "Group alignments synced: group_id=%s created=%s updated=%s removed=%s",
        group.id, created, len(kept_ids), len(diff.to_remove),
    )
    return diff
