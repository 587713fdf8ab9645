"""
Payload normalization for topic create/update/review/comment calls.
Accepts snake_case keys and the camelCase wire names; raises InvalidInput on malformed fields.
Over-long title/summary/notes are truncated, not rejected.
"""
import re
from typing import Any, Mapping

from topic_engine.config import settings
from topic_engine.models.enums import CommentType, ContentFormat, ReviewDecision
from topic_engine.schemas.content import Content, HtmlContent, JsonContent
from topic_engine.services.errors import InvalidInput

TITLE_MAX_LENGTH = 240
SUMMARY_MAX_LENGTH = 560
NOTES_MAX_LENGTH = 800
COMMENT_BODY_MAX_LENGTH = 1200
LANGUAGE_PATTERN = re.compile(r"^[a-z]{2}(?:-[a-z]{2})?$")

# Wire name -> engine key
_KEY_ALIASES = {
    "contentFormat": "content_format",
    "groupId": "group_id",
    "baseTopicId": "group_id",
    "base_topic_id": "group_id",
    "changeNotes": "notes",
    "change_notes": "notes",
    "groupSummary": "group_summary",
    "groupMetadata": "group_metadata",
    "metadata": "meta",
}

_DECISIONS = {
    "approve": ReviewDecision.APPROVED,
    "approved": ReviewDecision.APPROVED,
    "changes_requested": ReviewDecision.CHANGES_REQUESTED,
    "request_changes": ReviewDecision.CHANGES_REQUESTED,
}


def normalize_keys(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    """Map camelCase / legacy keys onto engine keys. Explicit snake_case keys win over aliases."""
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise InvalidInput("Topic payload must be an object.", code="TOPIC_PAYLOAD_INVALID")
    out: dict[str, Any] = {}
    for key, value in payload.items():
        target = _KEY_ALIASES.get(key, key)
        if target in out and key != target:
            continue
        out[target] = value
    return out


def sanitize_string(value: Any, *, field: str, max_length: int | None = None, required: bool = False) -> str | None:
    """Trim; None/blank -> None (or InvalidInput when required); truncate to max_length."""
    if value is None:
        if required:
            raise InvalidInput(f"{field} is required.", code=f"TOPIC_{_code(field)}_REQUIRED")
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be a string.", code=f"TOPIC_{_code(field)}_INVALID")
    trimmed = value.strip()
    if not trimmed:
        if required:
            raise InvalidInput(f"{field} cannot be empty.", code=f"TOPIC_{_code(field)}_REQUIRED")
        return None
    if max_length and len(trimmed) > max_length:
        return trimmed[:max_length]
    return trimmed


def _code(field: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "_", field.upper()).strip("_")


def sanitize_language(value: Any) -> str:
    language = sanitize_string(value if value is not None else settings.default_language, field="Language", max_length=16)
    if language is None:
        language = settings.default_language
    language = language.replace("_", "-").lower()
    if not LANGUAGE_PATTERN.match(language):
        raise InvalidInput(
            "Language must be provided using ISO language codes (e.g., en or en-us).",
            code="TOPIC_LANGUAGE_INVALID",
            details={"language": value},
        )
    return language


def sanitize_json_object(value: Any, *, field: str) -> dict | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidInput(f"Invalid {field} payload provided.", code=f"TOPIC_{_code(field)}_INVALID")
    return value


def sanitize_content_format(value: Any) -> ContentFormat:
    if value is None or (isinstance(value, str) and not value.strip()):
        return ContentFormat.JSON
    try:
        return ContentFormat(str(value).strip().upper())
    except ValueError:
        raise InvalidInput(
            "Unsupported topic content format provided.",
            code="TOPIC_CONTENT_FORMAT_INVALID",
            details={"contentFormat": value},
        )


def parse_content(value: Any, content_format: ContentFormat, *, required: bool) -> Content | None:
    """Build the tagged content for the given format; None when absent and not required."""
    if content_format == ContentFormat.HTML:
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise InvalidInput("Content is required.", code="TOPIC_CONTENT_REQUIRED")
            return None
        if not isinstance(value, str):
            raise InvalidInput("HTML content must be provided as a string.", code="TOPIC_CONTENT_INVALID")
        return HtmlContent(body=value.strip())

    if value is None:
        if required:
            raise InvalidInput("Content is required.", code="TOPIC_CONTENT_REQUIRED")
        return None
    if not isinstance(value, dict):
        raise InvalidInput("Rich text content must be provided as a JSON object.", code="TOPIC_CONTENT_INVALID")
    return JsonContent(body=value)


def content_fields(content: Content | None, content_format: ContentFormat) -> dict[str, Any]:
    """Column values for a parsed content; the discriminator is stored alongside the body."""
    if content is None:
        return {"content_format": content_format.value, "content": None}
    return {"content_format": content.format, "content": content.body}


def build_version_fields(
    payload: Mapping[str, Any],
    *,
    partial: bool,
    current_format: str | None = None,
    current_content: Any = None,
) -> dict[str, Any]:
    """
    Column updates for a TopicVersion from a normalized payload.
    partial=False (create): title and content are required, every field is set.
    partial=True (update): only keys present in the payload are touched.
    """
    updates: dict[str, Any] = {}

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("title"):
        updates["title"] = sanitize_string(
            payload.get("title"), field="Title", max_length=TITLE_MAX_LENGTH, required=True
        )
    if present("summary"):
        updates["summary"] = sanitize_string(payload.get("summary"), field="Summary", max_length=SUMMARY_MAX_LENGTH)
    if not partial:
        updates["language"] = sanitize_language(payload.get("language"))

    if present("content_format"):
        content_format = sanitize_content_format(payload.get("content_format"))
    else:
        content_format = sanitize_content_format(current_format)

    if present("content"):
        content = parse_content(payload.get("content"), content_format, required=True)
        updates.update(content_fields(content, content_format))
    elif partial and "content_format" in payload:
        # Format switched without new content: the stored body must still fit the new format.
        content = parse_content(current_content, content_format, required=False)
        updates.update(content_fields(content, content_format))

    if present("accessibility"):
        updates["accessibility"] = sanitize_json_object(payload.get("accessibility"), field="Accessibility")
    if present("meta"):
        updates["meta"] = sanitize_json_object(payload.get("meta"), field="Metadata")
    if present("notes"):
        updates["notes"] = sanitize_string(payload.get("notes"), field="Notes", max_length=NOTES_MAX_LENGTH)
    return updates


def normalize_decision(value: Any) -> ReviewDecision:
    decision = sanitize_string(value, field="Decision", max_length=40, required=True)
    normalized = _DECISIONS.get(decision.lower())
    if normalized is None:
        raise InvalidInput(
            'Unsupported review decision provided. Use "approve" or "changes_requested".',
            code="TOPIC_REVIEW_DECISION_INVALID",
            details={"decision": value},
        )
    return normalized


def normalize_comment_type(value: Any) -> CommentType:
    type_value = sanitize_string(value, field="Comment type", max_length=40)
    if type_value is None:
        return CommentType.GENERAL
    try:
        return CommentType(type_value.upper())
    except ValueError:
        raise InvalidInput(
            "Unsupported comment type provided.",
            code="TOPIC_COMMENT_TYPE_INVALID",
            details={"type": value},
        )
