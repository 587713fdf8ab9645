"""
Status and vocabulary enums. Stored as their upper-case string values.
"""
import enum


class TopicStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    # Reserved: no workflow operation moves a topic here.
    ARCHIVED = "ARCHIVED"


EDITABLE_STATUSES = frozenset({TopicStatus.DRAFT, TopicStatus.CHANGES_REQUESTED})


class ReviewDecision(str, enum.Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class ContentFormat(str, enum.Enum):
    JSON = "JSON"
    HTML = "HTML"


class CommentType(str, enum.Enum):
    GENERAL = "GENERAL"
    SUGGESTION = "SUGGESTION"
    ISSUE = "ISSUE"


def sql_in_list(enum_cls) -> str:
    """Render enum values for a CHECK constraint: 'A', 'B', ..."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
